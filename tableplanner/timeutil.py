"""Helpers for the HH:MM / YYYY-MM-DD values used throughout the API."""

import re
import time as _time
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from .errors import DeadlineExceeded, InvalidRequest

TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def parse_time(value: Union[str, time]) -> time:
    """Parse a 24-hour HH:MM string"""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    match = TIME_PATTERN.match(str(value).strip())
    if not match:
        raise InvalidRequest(f"Invalid time '{value}'. Use HH:MM (24-hour)")
    return time(int(match.group(1)), int(match.group(2)))


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def parse_date(value: Union[str, date]) -> date:
    """Parse a YYYY-MM-DD calendar date"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError:
        raise InvalidRequest(f"Invalid date '{value}'. Use YYYY-MM-DD")


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max)


def combine(day: date, at: time, minutes: int = 0) -> datetime:
    return datetime.combine(day, at) + timedelta(minutes=minutes)


class Deadline:
    """Monotonic deadline checked between iterations of a bounded scan.

    ``Deadline(None)`` never expires, so callers can pass it unconditionally.
    """

    def __init__(self, seconds: Optional[float] = None, clock=_time.monotonic):
        self._clock = clock
        self._expires_at = None if seconds is None else clock() + seconds

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and self._clock() >= self._expires_at

    def check(self, what: str = "scan"):
        if self.expired:
            raise DeadlineExceeded(f"Deadline exceeded during {what}")
