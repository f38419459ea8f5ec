from contextlib import contextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from services.errors import DuplicateCardNumberError, RequestError, RequestTimeoutError, ValidationError


@contextmanager
def failing_action(action: str):
    """Tag remote failures raised inside the block with the user-facing action name."""
    try:
        yield
    except RequestError as e:
        e.action = action
        raise


def _describe(exc: RequestError) -> str:
    return f"{exc.action} failed: {exc.message}" if exc.action else exc.message


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": exc.message, "missing": exc.missing})

    @app.exception_handler(DuplicateCardNumberError)
    async def _duplicate_card(request: Request, exc: DuplicateCardNumberError):
        return JSONResponse(
            status_code=409,
            content={"detail": exc.message, "cardNumber": exc.card_number, "retryable": False},
        )

    @app.exception_handler(RequestTimeoutError)
    async def _timeout(request: Request, exc: RequestTimeoutError):
        return JSONResponse(status_code=504, content={"detail": _describe(exc), "retryable": True})

    @app.exception_handler(RequestError)
    async def _request_error(request: Request, exc: RequestError):
        return JSONResponse(
            status_code=502,
            content={"detail": _describe(exc), "remoteStatus": exc.status_code, "retryable": exc.retryable},
        )
