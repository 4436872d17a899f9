"""
Utility functions for QuizPulse.
"""

import datetime
from typing import Iterable, Optional, Union

Number = Union[int, float]


def utc_now() -> datetime.datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def ensure_utc(value: datetime.datetime) -> datetime.datetime:
    """Treat naive datetimes as UTC so event timestamps compare cleanly."""
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def safe_divide(numerator: Number, denominator: Number, default: Number = 0) -> float:
    """
    Safely divide two numbers, returning a default value if denominator is zero.

    Args:
        numerator: Number to divide
        denominator: Number to divide by
        default: Value to return if denominator is zero

    Returns:
        Result of division or default value
    """
    try:
        if denominator == 0:
            return default
        return numerator / denominator
    except (TypeError, ValueError):
        return default


def percentage(part: Number, whole: Number) -> float:
    """``part / whole * 100``, or 0.0 when ``whole`` is zero."""
    return float(safe_divide(part * 100.0, whole, 0))


def mean(values: Iterable[Number]) -> Optional[float]:
    """Arithmetic mean, or None for an empty iterable."""
    total = 0.0
    count = 0
    for value in values:
        total += value
        count += 1
    if count == 0:
        return None
    return total / count


def format_duration(seconds: float) -> str:
    """
    Format a duration in seconds as a short human readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration such as ``"45s"``, ``"3m 20s"`` or ``"1h 5m"``
    """
    if seconds < 60:
        return f"{int(seconds)}s"
    elif seconds < 3600:
        minutes = int(seconds / 60)
        seconds = int(seconds % 60)
        return f"{minutes}m {seconds}s"
    else:
        hours = int(seconds / 3600)
        minutes = int((seconds % 3600) / 60)
        return f"{hours}h {minutes}m"
