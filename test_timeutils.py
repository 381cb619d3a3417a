from datetime import timedelta

import pytest

from conftest import T0
from studycards.errors import InvalidIntervalError
from studycards.models import TimeUnit
from studycards.timeutils import format_interval, next_due_date, time_until, unit_to_milliseconds


@pytest.mark.parametrize("unit, ms", [
    (TimeUnit.SECONDS, 1000),
    (TimeUnit.MINUTES, 60_000),
    (TimeUnit.HOURS, 3_600_000),
    (TimeUnit.DAYS, 86_400_000),
    (TimeUnit.WEEKS, 604_800_000),
    (TimeUnit.MONTHS, 2_592_000_000),
])
def test_next_due_date_adds_exact_milliseconds(unit, ms):
    for interval in (1, 2, 7, 45):
        due = next_due_date(interval, unit, T0)
        assert due - T0 == timedelta(milliseconds=interval * ms)
    assert unit_to_milliseconds(unit) == ms


def test_next_due_date_accepts_unit_names():
    assert next_due_date(3, "hours", T0) == T0 + timedelta(hours=3)


@pytest.mark.parametrize("interval", [0, -1, 1.5, float("inf"), float("nan"), None, "2", True])
def test_next_due_date_rejects_bad_intervals(interval):
    with pytest.raises(InvalidIntervalError):
        next_due_date(interval, TimeUnit.DAYS, T0)


def test_next_due_date_rejects_unknown_unit():
    with pytest.raises(InvalidIntervalError):
        next_due_date(1, "fortnights", T0)


def test_time_until_overdue():
    assert time_until(T0, T0) == (0, "overdue")
    assert time_until(T0 - timedelta(days=3), T0) == (0, "overdue")
    assert time_until(T0, T0).label() == "overdue"


def test_time_until_floors_to_largest_unit():
    assert time_until(T0 + timedelta(seconds=90), T0) == (1, "minute")
    assert time_until(T0 + timedelta(seconds=1), T0) == (1, "second")
    assert time_until(T0 + timedelta(seconds=59), T0) == (59, "seconds")
    assert time_until(T0 + timedelta(hours=5, minutes=59), T0) == (5, "hours")
    assert time_until(T0 + timedelta(days=1), T0) == (1, "day")
    assert time_until(T0 + timedelta(days=13), T0) == (1, "week")
    assert time_until(T0 + timedelta(days=29), T0) == (4, "weeks")
    assert time_until(T0 + timedelta(days=61), T0) == (2, "months")


def test_time_until_label():
    assert time_until(T0 + timedelta(minutes=2), T0).label() == "2 minutes"


def test_format_interval():
    assert format_interval(1, TimeUnit.DAYS) == "1 day"
    assert format_interval(3, TimeUnit.WEEKS) == "3 weeks"
    assert format_interval(1, "months") == "1 month"
