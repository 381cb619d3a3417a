import math
from datetime import datetime, timedelta
from typing import NamedTuple, Union

from .errors import InvalidIntervalError
from .models import TimeUnit

MS_PER_SECOND = 1000
MS_PER_MINUTE = MS_PER_SECOND * 60
MS_PER_HOUR = MS_PER_MINUTE * 60
MS_PER_DAY = MS_PER_HOUR * 24
MS_PER_WEEK = MS_PER_DAY * 7
MS_PER_MONTH = MS_PER_DAY * 30  # Fixed 30 day month, not calendar aware

UNIT_MILLISECONDS = {
    TimeUnit.SECONDS: MS_PER_SECOND,
    TimeUnit.MINUTES: MS_PER_MINUTE,
    TimeUnit.HOURS: MS_PER_HOUR,
    TimeUnit.DAYS: MS_PER_DAY,
    TimeUnit.WEEKS: MS_PER_WEEK,
    TimeUnit.MONTHS: MS_PER_MONTH,
}

OVERDUE = "overdue"


class TimeUntil(NamedTuple):
    value: int
    unit: str

    def label(self) -> str:
        if self.unit == OVERDUE:
            return OVERDUE
        return f"{self.value} {self.unit}"


def _coerce_unit(unit: Union[TimeUnit, str]) -> TimeUnit:
    try:
        return TimeUnit(unit)
    except ValueError:
        raise InvalidIntervalError(f"Unknown time unit: {unit!r}") from None


def unit_to_milliseconds(unit: Union[TimeUnit, str]) -> int:
    """Returns the length of one ``unit`` in milliseconds."""
    return UNIT_MILLISECONDS[_coerce_unit(unit)]


def _check_interval(interval) -> int:
    if isinstance(interval, bool) or not isinstance(interval, (int, float)):
        raise InvalidIntervalError(f"Interval must be a number, got {interval!r}")
    if not math.isfinite(interval) or interval != int(interval):
        raise InvalidIntervalError(f"Interval must be a whole number, got {interval!r}")
    if interval <= 0:
        raise InvalidIntervalError(f"Interval must be positive, got {interval!r}")
    return int(interval)


def next_due_date(interval: int, unit: Union[TimeUnit, str], now: datetime) -> datetime:
    """
    Computes the absolute due date ``interval`` units after ``now``.

    Args:
        interval (int): Positive whole number of units.
        unit (TimeUnit): One of seconds, minutes, hours, days, weeks, months.
        now (datetime): Reference time, usually the moment of review.

    Returns:
        datetime: ``now`` shifted by ``interval * unit_to_milliseconds(unit)``.

    Raises:
        InvalidIntervalError: If the interval is not a positive whole number
            or the unit is unknown.
    """
    interval = _check_interval(interval)
    return now + timedelta(milliseconds=interval * unit_to_milliseconds(unit))


def time_until(due: datetime, now: datetime) -> TimeUntil:
    """
    Describes how long until ``due`` using the largest whole unit.

    Remainders are floored away, so 90 seconds reads as one minute. Anything
    at or before ``now`` is reported as overdue.
    """
    diff_ms = (due - now) // timedelta(milliseconds=1)
    if diff_ms <= 0:
        return TimeUntil(0, OVERDUE)

    seconds = diff_ms // MS_PER_SECOND
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    weeks = days // 7
    months = days // 30

    for value, singular in (
        (months, "month"),
        (weeks, "week"),
        (days, "day"),
        (hours, "hour"),
        (minutes, "minute"),
    ):
        if value > 0:
            return TimeUntil(value, singular if value == 1 else singular + "s")
    return TimeUntil(seconds, "second" if seconds == 1 else "seconds")


def format_interval(interval: int, unit: Union[TimeUnit, str]) -> str:
    """Formats a revision setting for display, e.g. ``1 day`` or ``3 weeks``."""
    unit = _coerce_unit(unit)
    if interval == 1:
        return f"1 {unit.value[:-1]}"
    return f"{interval} {unit.value}"
