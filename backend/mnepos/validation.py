from __future__ import annotations

import math
from typing import Any, Optional


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

MAX_DISCOUNT_BPS = 10_000

# Largest value an SQLite INTEGER column can hold
MAX_SQLITE_INTEGER = 2**63 - 1


class ValidationError(ValueError):
    """400-level input problem. Nothing was written."""


class ConflictError(ValueError):
    """409-level conflict reported by the store (e.g., duplicate bill number)."""


def floor_int(value: Any) -> Optional[int]:
    """
    Lenient numeric coercion used for money and quantities.

    - ints pass through (bools are rejected, they are not quantities)
    - finite floats and numeric strings are floored
    - anything else (None, "", "abc", NaN, inf) -> None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return int(s)
        except ValueError:
            pass
        try:
            value = float(s)
        except ValueError:
            return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return math.floor(value)
    return None


def strict_int(value: Any, *, field: str) -> int:
    """
    Strict integer parsing for query parameters and settings.

    Rejects floats, decimal strings and scientific notation.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped and "e" not in stripped.lower() and "." not in stripped:
            try:
                return int(stripped)
            except ValueError:
                pass
    raise ValidationError(f"{field} must be an integer")


def positive_id(value: Any) -> Optional[int]:
    """Return value as a positive integer identifier that fits an SQLite INTEGER, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, int):
        return value if 0 < value <= MAX_SQLITE_INTEGER else None
    return None


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))
