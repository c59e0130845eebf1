"""Checks run by the ``__post_init__`` of the frozen models.

Event fields arrive from remote relays and from clients, so the models
refuse wrong types, malformed hex and embedded NUL characters up front.
"""

from __future__ import annotations

import re
from typing import Any


_LOWER_HEX = re.compile(r"[0-9a-f]+")


def _type_name(value: Any) -> str:
    return type(value).__name__


def validate_instance(value: Any, expected: type, name: str) -> None:
    if not isinstance(value, expected):
        article = "an" if expected.__name__[:1].lower() in "aeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {_type_name(value)}")


def validate_int_range(value: Any, name: str, low: int, high: int | None = None) -> None:
    """Require a real ``int`` (not ``bool``) with ``low <= value <= high``."""
    if type(value) is bool or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {_type_name(value)}")
    if high is None:
        if value < low:
            raise ValueError(f"{name} must be >= {low}, got {value}")
    elif not low <= value <= high:
        raise ValueError(f"{name} must be in [{low}, {high}], got {value}")


def validate_str_no_null(value: Any, name: str) -> None:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {_type_name(value)}")
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")


def is_hex(value: str, length: int) -> bool:
    """Whether *value* is exactly *length* lowercase hex digits."""
    return len(value) == length and _LOWER_HEX.fullmatch(value) is not None


def validate_hex(value: Any, name: str, length: int) -> None:
    validate_str_no_null(value, name)
    if not is_hex(value, length):
        raise ValueError(f"{name} must be {length} lowercase hex characters")
