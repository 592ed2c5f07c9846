"""Unit tests for slot generation and conflict tagging."""
from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from app.services.errors import ValidationError
from app.services.slots import (CLOSED_DAY, BookedInterval, Break, DaySchedule, filter_conflicts,
                                format_12_hour, generate_slots, localize, parse_hhmm)

NEW_YORK = ZoneInfo("America/New_York")

WORKDAY = DaySchedule(is_available=True, start=9 * 60, end=18 * 60, breaks=(Break(13 * 60, 14 * 60),))


def test_closed_day_has_no_slots() -> None:
    for duration in (15, 60, 240):
        assert generate_slots(CLOSED_DAY, duration) == []


def test_slots_skip_lunch_break() -> None:
    slots = generate_slots(WORKDAY, 60)

    assert slots == [
        "09:00", "09:30", "10:00", "10:30", "11:00", "11:30", "12:00",
        "14:00", "14:30", "15:00", "15:30", "16:00", "16:30", "17:00",
    ]
    for overlapping in ("12:30", "13:00", "13:30"):
        assert overlapping not in slots


def test_every_slot_fits_inside_working_hours() -> None:
    for duration in (15, 45, 90, 120):
        for slot in generate_slots(WORKDAY, duration, grid_minutes=15):
            start = parse_hhmm(slot)
            assert start >= WORKDAY.start
            assert start + duration <= WORKDAY.end
            assert not (start < 14 * 60 and start + duration > 13 * 60)


def test_duration_longer_than_day_returns_nothing() -> None:
    short_day = DaySchedule(is_available=True, start=9 * 60, end=11 * 60)

    assert generate_slots(short_day, 180) == []


def test_generation_is_deterministic() -> None:
    assert generate_slots(WORKDAY, 45) == generate_slots(WORKDAY, 45)


@pytest.mark.parametrize("duration", [0, -30, None])
def test_invalid_duration_raises(duration) -> None:
    with pytest.raises(ValidationError):
        generate_slots(WORKDAY, duration)


def test_booking_marks_overlapping_slots_unavailable() -> None:
    on_date = date(2026, 10, 19)
    booking = BookedInterval(starts_at=datetime(2026, 10, 19, 10, 0), duration_minutes=60)

    tagged = {slot.time: slot.available for slot in filter_conflicts(
        ["09:00", "09:30", "10:00", "10:30", "11:00"], [booking], on_date, 60,
    )}

    assert tagged == {"09:00": True, "09:30": False, "10:00": False, "10:30": False, "11:00": True}


def test_inactive_bookings_do_not_block() -> None:
    on_date = date(2026, 10, 19)
    bookings = [
        BookedInterval(starts_at=datetime(2026, 10, 19, 10, 0), duration_minutes=60, status="cancelled"),
        BookedInterval(starts_at=datetime(2026, 10, 19, 10, 0), duration_minutes=60, status="completed"),
    ]

    tagged = filter_conflicts(["10:00"], bookings, on_date, 60)

    assert [slot.available for slot in tagged] == [True]


def test_candidates_are_never_dropped() -> None:
    on_date = date(2026, 10, 19)
    booking = BookedInterval(starts_at=datetime(2026, 10, 19, 9, 0), duration_minutes=540)
    candidates = generate_slots(WORKDAY, 60)

    tagged = filter_conflicts(candidates, [booking], on_date, 60)

    assert [slot.time for slot in tagged] == candidates
    assert not any(slot.available for slot in tagged)


def test_spring_forward_gap_is_unavailable() -> None:
    assert localize(date(2026, 3, 8), parse_hhmm("02:30"), NEW_YORK) is None

    tagged = filter_conflicts(["01:30", "02:00", "02:30", "03:00"], [], date(2026, 3, 8), 30, NEW_YORK)

    assert [(slot.time, slot.available) for slot in tagged] == [
        ("01:30", True), ("02:00", False), ("02:30", False), ("03:00", True),
    ]


def test_fall_back_repeated_time_uses_first_occurrence() -> None:
    assert localize(date(2026, 11, 1), parse_hhmm("01:30"), NEW_YORK) == datetime(2026, 11, 1, 5, 30)


def test_local_bookings_compare_in_utc() -> None:
    on_date = date(2026, 7, 6)
    # 10:00 EDT
    booking = BookedInterval(starts_at=datetime(2026, 7, 6, 14, 0), duration_minutes=60)

    tagged = {slot.time: slot.available for slot in filter_conflicts(
        ["10:00", "14:00"], [booking], on_date, 60, NEW_YORK,
    )}

    assert tagged == {"10:00": False, "14:00": True}


@pytest.mark.parametrize(
    ("value", "expected"),
    [("00:00", "12:00 AM"), ("09:05", "9:05 AM"), ("12:00", "12:00 PM"), ("13:30", "1:30 PM")],
)
def test_format_12_hour(value, expected) -> None:
    assert format_12_hour(value) == expected


@pytest.mark.parametrize("value", ["24:00", "9am", "", None, "12:60"])
def test_parse_hhmm_rejects_bad_input(value) -> None:
    with pytest.raises(ValidationError) as excinfo:
        parse_hhmm(value)

    assert excinfo.value.code == "invalid_format"
