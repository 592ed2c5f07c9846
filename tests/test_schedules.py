"""Tests for weekly schedule validation and lookup."""
from __future__ import annotations

from datetime import date

import pytest

from app.services.errors import ValidationError
from app.services.schedules import (DEFAULT_STAFF_SCHEDULE, day_schedule_for, default_schedule,
                                    validate_schedule)
from app.services.slots import CLOSED_DAY


def test_default_schedule_is_a_copy() -> None:
    schedule = default_schedule()
    schedule["monday"]["breaks"].append({"start_time": "10:00", "end_time": "10:15"})

    assert len(DEFAULT_STAFF_SCHEDULE["monday"]["breaks"]) == 1
    assert DEFAULT_STAFF_SCHEDULE["sunday"]["is_available"] is False


def test_validate_schedule_normalizes_times() -> None:
    normalized = validate_schedule({
        "tuesday": {
            "start_time": "9:00",
            "end_time": "17:30",
            "breaks": [
                {"start_time": "15:00", "end_time": "15:15"},
                {"start_time": "12:00", "end_time": "12:30"},
            ],
        },
    })

    assert normalized == {
        "tuesday": {
            "is_available": True,
            "start_time": "09:00",
            "end_time": "17:30",
            "breaks": [
                {"start_time": "12:00", "end_time": "12:30"},
                {"start_time": "15:00", "end_time": "15:15"},
            ],
        },
    }


@pytest.mark.parametrize(
    "schedule",
    [
        {"funday": {"start_time": "09:00", "end_time": "17:00"}},
        {"monday": {"start_time": "17:00", "end_time": "09:00"}},
        {"monday": {"start_time": "09:00", "end_time": "09:00"}},
        {"monday": {"start_time": "09:00", "end_time": "17:00",
                    "breaks": [{"start_time": "08:00", "end_time": "09:30"}]}},
        {"monday": {"start_time": "09:00", "end_time": "17:00",
                    "breaks": [{"start_time": "12:00", "end_time": "13:00"},
                               {"start_time": "12:30", "end_time": "13:30"}]}},
        {"monday": {"start_time": "09:00", "end_time": "17:00",
                    "breaks": [{"start_time": "12:00", "end_time": "12:00"}]}},
        {"monday": "all day"},
        ["monday"],
    ],
)
def test_validate_schedule_rejects_invalid_templates(schedule) -> None:
    with pytest.raises(ValidationError):
        validate_schedule(schedule)


def test_bad_time_format_reports_invalid_format() -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_schedule({"monday": {"start_time": "9am", "end_time": "17:00"}})

    assert excinfo.value.code == "invalid_format"
    assert excinfo.value.status_code == 400


def test_day_schedule_for_missing_weekday_is_closed() -> None:
    assert day_schedule_for({}, date(2026, 10, 19)) == CLOSED_DAY
    assert day_schedule_for(None, date(2026, 10, 19)) == CLOSED_DAY


def test_day_schedule_for_reads_weekday_entry() -> None:
    # 2026-10-17 is a Saturday
    day = day_schedule_for(default_schedule(), date(2026, 10, 17))

    assert day.is_available is True
    assert (day.start, day.end) == (9 * 60, 17 * 60)
    assert [(b.start, b.end) for b in day.breaks] == [(13 * 60, 14 * 60)]


def test_day_off_keeps_hours_but_is_unavailable() -> None:
    # 2026-10-18 is a Sunday
    day = day_schedule_for(default_schedule(), date(2026, 10, 18))

    assert day.is_available is False
    assert not day.fits(10 * 60, 30)
