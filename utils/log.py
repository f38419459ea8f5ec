import logging
import sys

from config import settings


def configure_logging() -> None:
    """
    Configure process-wide logging once, from the app lifespan (or run.py).
    Module loggers are plain ``logging.getLogger(__name__)``.
    """
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
