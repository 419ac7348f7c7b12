"""
Enum Utilities for String-backed Status Codes

Status values travel as plain lower-case strings (Odoo native states and
the storefront's extended statuses). Python enums are used for validation
at the edges, but any string coming back from the backend or out of an
annotation tag must be accepted even if no enum member matches it.

DATA FLOW:
━━━━━━━━━━
INPUT (API Request):
    Pydantic Enum → .value → String → codec / backend
    Example: OrderStatus.SHIPPED → "shipped" → "[SHIPPED]"

OUTPUT (API Response):
    Backend / annotation → String → Return directly
    Example: "[ON_HOLD]" → "on_hold" (no enum member, still valid)
"""

from enum import Enum
import re
from typing import Any, Optional, TypeVar, Type


T = TypeVar('T', bound=Enum)

_SEPARATORS = re.compile(r"[_\-]+")


def get_enum_value(value: Any) -> Optional[str]:
    """
    Safely get string value from an enum or string.

    Examples:
        >>> get_enum_value(OrderStatus.SHIPPED)
        'shipped'
        >>> get_enum_value("on_hold")
        'on_hold'
        >>> get_enum_value(None)
        None
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def to_enum(value: Any, enum_class: Type[T]) -> Optional[T]:
    """
    Convert a string value to an enum instance.

    Returns None for unknown values instead of raising, so callers can
    fall back to the raw string.

    Examples:
        >>> to_enum("shipped", OrderStatus)
        OrderStatus.SHIPPED
        >>> to_enum("on_hold", OrderStatus)
        None
    """
    if value is None:
        return None
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(value)
    except (ValueError, KeyError):
        return None


def humanize_code(code: str) -> str:
    """
    Turn a status code into a display label.

    Examples:
        >>> humanize_code("on_hold")
        'On Hold'
        >>> humanize_code("READY_FOR_PICKUP")
        'Ready For Pickup'
    """
    words = _SEPARATORS.sub(" ", code or "").split()
    return " ".join(word.capitalize() for word in words)
