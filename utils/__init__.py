"""Shared utilities for the portal."""
from utils.case import dict_keys_to_snake, to_snake_key, unknown_keys
from utils.log import configure_logging

__all__ = [
    "configure_logging",
    "dict_keys_to_snake",
    "to_snake_key",
    "unknown_keys",
]
