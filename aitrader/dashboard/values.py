"""Coercion helpers for loosely typed database values."""

import math
from typing import Any, Optional


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any, fallback: float = 0) -> float:
    """Convert to a finite float, else return fallback (None counts as missing)."""
    if value is None or isinstance(value, bool):
        return fallback
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return fallback
    return numeric if math.isfinite(numeric) else fallback


def to_nullable_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    return numeric if math.isfinite(numeric) else None


def parse_percentage(value: Any) -> Optional[float]:
    """Parse a quote change like "1,234.5%" or "-0.42 %"; None when not finite."""
    if value is None:
        return None
    cleaned = str(value).replace('%', '').replace(',', '').strip()
    if not cleaned:
        return None
    return to_nullable_number(cleaned)
