"""Shared validation helpers for service settings."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


def _split_list(value: str) -> list[Any]:
    """Split a raw env value given as a JSON array or comma-separated items.

    Raises ValueError for empty values or malformed JSON.
    """
    stripped = value.strip()
    if not stripped:
        raise ValueError("List value must not be empty")

    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}") from e
        if not isinstance(parsed, list):
            raise ValueError("JSON value must be an array")
        return parsed

    return [item.strip() for item in stripped.split(",") if item.strip()]


def parse_string_list(value: str | list[str]) -> list[str]:
    """Parse a string list from environment variable or config value.

    Accepts a list of strings, a JSON array string ('["a","b"]') or a
    comma-separated string ('a,b'). Empty results are rejected.
    """
    items = value if isinstance(value, list) else _split_list(value)
    if not all(isinstance(item, str) for item in items):
        raise ValueError("JSON value must be an array of strings")
    if not items:
        raise ValueError("String list value must not be empty")
    return items


def parse_int_tuple(value: str | list[int] | tuple[int, ...]) -> tuple[int, ...]:
    """Parse an integer tuple such as the move set ('1,3,5' or '[1,3,5]')."""
    items = list(value) if isinstance(value, (list, tuple)) else _split_list(value)
    if not items:
        raise ValueError("Integer list value must not be empty")
    result = []
    for item in items:
        if isinstance(item, (bool, float)):
            raise ValueError(f"Not an integer: {item!r}")
        try:
            result.append(int(item))
        except (TypeError, ValueError):
            raise ValueError(f"Not an integer: {item!r}") from None
    return tuple(result)


_RAW_LIST_FIELDS = {"cors_origins", "choices"}


class RawListEnvSettingsSource(EnvSettingsSource):
    """Env settings source that passes list fields as raw strings to validators.

    pydantic-settings tries to JSON-decode list-typed fields from env vars before
    validators run. This subclass bypasses that so the parse_* validators above
    handle both JSON and CSV formats.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in _RAW_LIST_FIELDS and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
