"""Formatting utilities for display."""

import math

UNAVAILABLE = "n/a"


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round half away from zero (Python's round() is banker's rounding)."""
    if math.isnan(value) or math.isinf(value):
        return value
    factor = 10 ** ndigits
    scaled = abs(value) * factor
    rounded = math.floor(scaled + 0.5) / factor
    return math.copysign(rounded, value)


def is_unavailable(value: float | None) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def format_km(km: float | None, decimals: int = 2) -> str:
    if is_unavailable(km):
        return UNAVAILABLE
    return f"{km:.{decimals}f}km"


def format_meters(m: float | None) -> str:
    if is_unavailable(m):
        return UNAVAILABLE
    return f"{m:.0f} m"


def format_percent(pct: float | None) -> str:
    if is_unavailable(pct):
        return UNAVAILABLE
    return f"{pct:.1f}%"


def format_duration(minutes: float | None) -> str:
    """Format minutes as Xh Ym string."""
    if is_unavailable(minutes):
        return UNAVAILABLE
    hours = int(minutes // 60)
    mins = int(minutes % 60)
    if hours > 0:
        return f"{hours}h {mins:02d}m"
    return f"{mins}m"
