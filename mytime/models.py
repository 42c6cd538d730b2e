"""Domain records: tasks, settings and tasks waiting to be synchronised."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date as _date
from datetime import datetime

_TIMESTAMP = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[ T](\d{2}):(\d{2})(?::(\d{2})(?:\.(\d{1,9}))?)?"
)


def format_timestamp(value: datetime) -> str:
    """Format a local timestamp for storage; trailing fractional zeros are dropped."""
    text = value.strftime("%Y-%m-%d %H:%M:%S")
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    return text


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Read a stored local timestamp back into a naive datetime.

    Any time-zone suffix is ignored: stored timestamps are local time.
    Raises ValueError for text that is not a timestamp.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    match = _TIMESTAMP.match(value.strip())
    if match is None:
        raise ValueError(f"invalid timestamp {value!r}")
    year, month, day, hour, minute, second, fraction = match.groups()
    microsecond = int((fraction or "0")[:6].ljust(6, "0"))
    return datetime(
        int(year),
        int(month),
        int(day),
        int(hour),
        int(minute),
        int(second or 0),
        microsecond,
    )


def _parse_hours(part: str) -> float:
    if part != part.strip() or "_" in part or not part:
        raise ValueError(f"invalid number of hours {part!r}")
    return float(part)


@dataclass
class Settings:
    """User settings; ``work_hours`` lists seven comma-separated daily goals, Monday first."""

    work_hours: str
    theme: str = ""
    view_type: str = ""
    dark_mode: bool = False
    id: int | None = None
    integration: str | None = None
    right_sidebar_open: bool = False
    theme_secondary: str = "#ce93d8"
    integration_config: str = "{}"
    _cached_hours: tuple[float, ...] | None = field(
        default=None, init=False, repr=False, compare=False
    )

    def _parsed_work_hours(self) -> tuple[float, ...] | None:
        if self._cached_hours is not None:
            return self._cached_hours
        parts = self.work_hours.split(",")
        if len(parts) != 7:
            return None
        try:
            hours = tuple(_parse_hours(part) for part in parts)
        except ValueError:
            return None
        self._cached_hours = hours
        return hours

    def goal_day_in_seconds(self, date: _date) -> int:
        """Seconds to work on the weekday of ``date``; 0 when the hours are invalid."""
        hours = self._parsed_work_hours()
        if hours is None:
            return 0
        return int(hours[date.weekday()] * 3600)

    def goal_week_in_seconds(self) -> int:
        """Seconds to work in a whole week; 0 when the hours are invalid."""
        hours = self._parsed_work_hours()
        if hours is None:
            return 0
        return int(sum(hours) * 3600)


@dataclass
class Task:
    """A span of work on one description."""

    desc: str
    start: datetime
    end: datetime | None = None
    id: int | None = None
    reported: bool = False
    external_id: str | None = None
    project: str | None = None
    favourite: bool = False
    duration: int = 0

    def reported_icon(self) -> str:
        return "🟢" if self.reported else "🔴"

    def is_open(self) -> bool:
        return self.end is None


@dataclass
class TaskToSync:
    """Closed, unreported tasks grouped by issue, description, day and project."""

    id: str
    external_id: str
    duration: int
    desc: str
    date: str
    project: str = ""
    ids: list[str] = field(default_factory=list)