"""Small formatting and time helpers shared across the application."""

from __future__ import annotations

import re
from datetime import datetime

_HOUR_MINUTE = re.compile(r"(\d{1,2}):(\d{2})")


def colorize(label: str, key: str, enabled: bool) -> str:
    """Render an action label and its key, greying the key out when disabled."""
    key_color = "blue" if enabled else "gray"
    return f"[white]{label}:[{key_color}] {key} [white]| "


def _truncating_divmod(value: int, divisor: int) -> tuple[int, int]:
    """Divide rounding toward zero; the remainder keeps the sign of ``value``."""
    quotient = abs(value) // divisor
    if value < 0:
        quotient = -quotient
    return quotient, value - quotient * divisor


def humanize_duration(seconds: int) -> str:
    """Format a number of seconds as ``XhYm``, ``Xh`` or ``Ym``."""
    hours, remainder = _truncating_divmod(seconds, 3600)
    minutes, _ = _truncating_divmod(remainder, 60)

    if hours != 0 and minutes < 0:
        minutes = -minutes

    if hours == 0:
        return f"{minutes}m"
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h{minutes}m"


def update_time(date: datetime, hour: str) -> datetime:
    """Return ``date`` with its time of day replaced by ``hour`` (``HH:MM``).

    Seconds and microseconds are reset; the time zone is kept.
    Raises ValueError when ``hour`` is not a valid time.
    """
    match = _HOUR_MINUTE.fullmatch(hour)
    if match is None:
        raise ValueError(f"invalid time {hour!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"time out of range: {hour!r}")
    return date.replace(hour=hours, minute=minutes, second=0, microsecond=0)