"""Utility helpers shared across analysis modules."""

from __future__ import annotations

import math
from typing import Optional


def clamp_to_unit(value):
    """Clamp any numeric value to [0, 1], treating NaN/inf as 0."""
    if value is None:
        return 0.0
    try:
        val = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(val):
        return 0.0
    return max(0.0, min(1.0, val))


def safe_float(value) -> Optional[float]:
    try:
        val = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(val):
        return None
    return val


def safe_int(value) -> Optional[int]:
    """Parse loosely formatted integers ("128", "128.0", 128.4); None when unusable."""
    if isinstance(value, str):
        value = value.strip()
    val = safe_float(value)
    if val is None:
        return None
    return int(val)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage(value) -> str:
    """Render a unit-interval confidence as a one-decimal percent string."""
    return f"{clamp_to_unit(value) * 100.0:.1f}%"


__all__ = ["clamp_to_unit", "safe_float", "safe_int", "round_half_up", "percentage"]
