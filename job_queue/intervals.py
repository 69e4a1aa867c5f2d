"""
Interval arithmetic for scheduling and rescheduling.

Intervals come in as ISO-8601 durations ("PT15M", "P2D"), as bare values
that still need their designator ("15M", "2"), or as ``timedelta``.

Bare values follow a prefix rule:
  - time style ("H")  → "PT" + value   e.g. "15M" → 15 minutes, "2" → 2 hours
  - date style (else) → "P" + value    e.g. "2"   → 2 days,    "1M" → 1 month
A bare value tagged with a leading "H" ("H15M") is time style whatever
style the caller asked for.
"""
from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Union

from job_queue.errors import InvalidIntervalError

TIME = "H"
DATE = "D"

DEFAULT_INTERVAL = timedelta(minutes=15)

_ISO_DURATION = re.compile(
    r"^P(?!$)"
    r"(?:(?P<years>\d+)Y)?"
    r"(?:(?P<months>\d+)M)?"
    r"(?:(?P<weeks>\d+)W)?"
    r"(?:(?P<days>\d+)D)?"
    r"(?:T(?=\d)"
    r"(?:(?P<hours>\d+)H)?"
    r"(?:(?P<minutes>\d+)M)?"
    r"(?:(?P<seconds>\d+)S)?"
    r")?$"
)


@dataclass(frozen=True)
class Interval:
    """A calendar-aware duration: whole months first, then a fixed delta."""
    months: int = 0
    delta: timedelta = timedelta()

    def add_to(self, moment: datetime) -> datetime:
        if self.months:
            moment = _add_months(moment, self.months)
        return moment + self.delta

    def __bool__(self) -> bool:
        return bool(self.months or self.delta)


IntervalLike = Union[Interval, timedelta, str, int, None]


def _add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def parse_iso_duration(value: str) -> Interval:
    match = _ISO_DURATION.match(value)
    if not match:
        raise InvalidIntervalError(f"Invalid ISO-8601 duration: {value!r}")
    parts = {k: int(v) for k, v in match.groupdict().items() if v}
    months = parts.get("years", 0) * 12 + parts.get("months", 0)
    delta = timedelta(
        weeks=parts.get("weeks", 0),
        days=parts.get("days", 0),
        hours=parts.get("hours", 0),
        minutes=parts.get("minutes", 0),
        seconds=parts.get("seconds", 0),
    )
    return Interval(months=months, delta=delta)


def parse_interval(value: IntervalLike, style: str = DATE) -> Interval:
    """Turn any accepted interval form into an ``Interval``.

    ``None`` (or an empty string) yields the 15 minute default.
    """
    if value is None or value == "":
        return Interval(delta=DEFAULT_INTERVAL)
    if isinstance(value, Interval):
        return value
    if isinstance(value, timedelta):
        return Interval(delta=value)
    if isinstance(value, bool):
        raise InvalidIntervalError(f"Invalid interval: {value!r}")

    text = str(value).strip().upper()
    if text.startswith("P"):
        return parse_iso_duration(text)

    time_based = style.upper() == TIME
    if text.startswith("H") and len(text) > 1:
        time_based = True
        text = text[1:]

    if text.isdigit():
        # a bare number means hours in time style and days in date style
        text += "H" if time_based else "D"

    return parse_iso_duration(("PT" if time_based else "P") + text)
