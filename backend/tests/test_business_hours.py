"""Tests for business-hour arithmetic (Sunday exclusion)."""
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from prflow.rules.business_hours import add_business_hours, business_hours_between

IST = ZoneInfo("Asia/Kolkata")


def test_weekday_span_counts_wall_clock_hours():
    start = datetime(2026, 10, 19, 10, 0, tzinfo=IST)  # Monday
    end = datetime(2026, 10, 19, 22, 30, tzinfo=IST)
    assert business_hours_between(start, end, IST) == pytest.approx(12.5)


def test_sunday_is_skipped():
    start = datetime(2026, 10, 17, 20, 0, tzinfo=IST)  # Saturday
    end = datetime(2026, 10, 19, 8, 0, tzinfo=IST)  # Monday
    assert business_hours_between(start, end, IST) == pytest.approx(12.0)


def test_sunday_counted_when_exclusion_off():
    start = datetime(2026, 10, 17, 20, 0, tzinfo=IST)
    end = datetime(2026, 10, 19, 8, 0, tzinfo=IST)
    assert business_hours_between(start, end, IST, exclude_sundays=False) == pytest.approx(36.0)


def test_end_before_start_is_zero():
    start = datetime(2026, 10, 19, 10, 0, tzinfo=IST)
    assert business_hours_between(start, start.replace(hour=9), IST) == 0.0


def test_sunday_boundary_uses_configured_timezone():
    # Sunday 02:00 UTC is Sunday 07:30 IST: excluded in IST
    start = datetime(2026, 10, 18, 2, 0, tzinfo=timezone.utc)
    end = datetime(2026, 10, 18, 4, 0, tzinfo=timezone.utc)
    assert business_hours_between(start, end, IST) == 0.0
    assert business_hours_between(start, end, ZoneInfo("UTC"), exclude_sundays=False) == pytest.approx(2.0)


def test_add_business_hours_jumps_over_sunday():
    start = datetime(2026, 10, 17, 20, 0, tzinfo=IST)  # Saturday
    due = add_business_hours(start, 12, IST)
    assert due == datetime(2026, 10, 19, 8, 0, tzinfo=IST)


def test_add_business_hours_is_inverse_of_between():
    start = datetime(2026, 10, 16, 15, 45, tzinfo=timezone.utc)
    due = add_business_hours(start, 30, IST)
    assert business_hours_between(start, due, IST) == pytest.approx(30.0)
