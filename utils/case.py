"""
Key normalization for flat form patches.
Clients may send camelCase (wire) or snake_case (Python) keys; both map to the
same field names pydantic generates aliases from.
"""
from typing import Any, Iterable

from pydantic.alias_generators import to_snake


def to_snake_key(s: str) -> str:
    """camelCase -> snake_case; snake_case keys pass through unchanged."""
    return to_snake(s)


def dict_keys_to_snake(obj: Any) -> Any:
    """Top-level keys only; nested values are field values, not structure."""
    if isinstance(obj, dict):
        return {to_snake_key(k): v for k, v in obj.items()}
    return obj


def unknown_keys(data: dict[str, Any], allowed: Iterable[str]) -> list[str]:
    return sorted(set(data) - set(allowed))
