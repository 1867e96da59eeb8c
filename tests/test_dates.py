from datetime import date, datetime

import pytest

from taperpath.dates import (
    add_days,
    date_for_day,
    day_number,
    days_between,
    format_iso,
    parse_local_date,
    step_windows,
)
from taperpath.errors import StepNotFound


class TestParseLocalDate:
    def test_plain_iso(self):
        assert parse_local_date("2025-02-01") == date(2025, 2, 1)

    def test_timestamp_keeps_calendar_day(self):
        # A UTC-normalizing parser would move this to the previous or next day.
        assert parse_local_date("2025-02-01T23:59:59-08:00") == date(2025, 2, 1)
        assert parse_local_date("2025-02-01T00:30:00Z") == date(2025, 2, 1)

    def test_passes_dates_through(self):
        assert parse_local_date(date(2024, 2, 29)) == date(2024, 2, 29)
        assert parse_local_date(datetime(2024, 2, 29, 22, 15)) == date(2024, 2, 29)

    @pytest.mark.parametrize("value", ["", "   ", "yesterday", "2024/01/01", "2024-13-01"])
    def test_rejects_garbage(self, value):
        with pytest.raises(ValueError):
            parse_local_date(value)


def test_day_arithmetic_crosses_month_and_leap_day():
    assert add_days(date(2024, 2, 28), 1) == date(2024, 2, 29)
    assert add_days(date(2024, 2, 28), 2) == date(2024, 3, 1)
    assert days_between(date(2024, 3, 1), date(2024, 2, 28)) == -2
    assert format_iso(date(2024, 7, 4)) == "2024-07-04"


def test_step_windows(diazepam_plan):
    windows = step_windows(diazepam_plan)
    assert len(windows) == len(diazepam_plan.steps)
    assert windows[0].first_day == date(2024, 1, 1)
    assert windows[0].last_day == date(2024, 1, 7)
    assert windows[1].first_day == date(2024, 1, 8)
    assert windows[-1].last_day == date(2024, 7, 21)
    assert windows[1].contains(date(2024, 1, 14))
    assert not windows[1].contains(date(2024, 1, 15))


def test_date_for_day(diazepam_plan):
    assert date_for_day(diazepam_plan, "step-1", 0) == date(2024, 1, 1)
    assert date_for_day(diazepam_plan, "step-2", 3) == date(2024, 1, 11)


def test_date_for_day_bounds(diazepam_plan):
    with pytest.raises(IndexError):
        date_for_day(diazepam_plan, "step-1", 7)
    with pytest.raises(StepNotFound):
        date_for_day(diazepam_plan, "step-99", 0)


def test_day_number(diazepam_plan):
    assert day_number(diazepam_plan, date(2024, 1, 1)) == 1
    assert day_number(diazepam_plan, date(2024, 1, 8)) == 8
    assert day_number(diazepam_plan, date(2024, 7, 21)) == 203
    assert day_number(diazepam_plan, date(2023, 12, 31)) is None
    assert day_number(diazepam_plan, date(2024, 7, 22)) is None
