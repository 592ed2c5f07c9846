"""
slots.py
--------
Pure slot arithmetic: candidate start times for one staff member's working
day, and tagging of those candidates against existing bookings.

Times of day are handled as minutes since midnight. All interval checks use
half-open intervals, so a slot ending exactly when a break or booking starts
does not overlap it:

    a_start < b_end AND a_end > b_start

Booking timestamps are compared as naive UTC. Wall-clock slot times are
projected onto a date in the salon's time zone before comparing; a wall-clock
time that does not exist on that date (DST gap) can never be booked.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Protocol, Sequence

from ..models import ACTIVE_BOOKING_STATUSES
from .errors import ValidationError

DEFAULT_GRID_MINUTES = 30

_HHMM = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def parse_hhmm(value: str) -> int:
    """Convert ``"HH:MM"`` to minutes since midnight."""
    match = _HHMM.match(value or "") if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Time must be in HH:MM format, got {value!r}", code="invalid_format")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_12_hour(value: str) -> str:
    """``"13:30"`` -> ``"1:30 PM"``."""
    minutes = parse_hhmm(value)
    hours, mins = divmod(minutes, 60)
    period = "PM" if hours >= 12 else "AM"
    hours_12 = 12 if hours % 12 == 0 else hours % 12
    return f"{hours_12}:{mins:02d} {period}"


def intervals_overlap(a_start, a_end, b_start, b_end) -> bool:
    return a_start < b_end and a_end > b_start


@dataclass(frozen=True)
class Break:
    start: int
    end: int


@dataclass(frozen=True)
class DaySchedule:
    is_available: bool
    start: int
    end: int
    breaks: tuple[Break, ...] = ()

    def fits(self, start_minutes: int, duration_minutes: int) -> bool:
        """True if ``[start, start+duration)`` is inside working hours and clear of breaks."""
        if not self.is_available:
            return False
        end_minutes = start_minutes + duration_minutes
        if start_minutes < self.start or end_minutes > self.end:
            return False
        return not any(
            intervals_overlap(start_minutes, end_minutes, brk.start, brk.end)
            for brk in self.breaks
        )

    def narrowed(self, open_minutes: int, close_minutes: int) -> DaySchedule:
        """The same day limited to ``[open, close)``; closed when nothing is left."""
        start = max(self.start, open_minutes)
        end = min(self.end, close_minutes)
        if not self.is_available or start >= end:
            return CLOSED_DAY
        return replace(self, start=start, end=end)


CLOSED_DAY = DaySchedule(is_available=False, start=0, end=0)


def generate_slots(
    day_schedule: DaySchedule,
    duration_minutes: int,
    grid_minutes: int = DEFAULT_GRID_MINUTES,
) -> list[str]:
    """Return ascending ``HH:MM`` start times on the grid that fit the working day."""
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationError("duration_minutes must be a positive integer")
    if grid_minutes is None or grid_minutes <= 0:
        raise ValidationError("grid_minutes must be a positive integer")

    if not day_schedule.is_available:
        return []

    slots = []
    current = day_schedule.start
    while current + duration_minutes <= day_schedule.end:
        if day_schedule.fits(current, duration_minutes):
            slots.append(format_hhmm(current))
        current += grid_minutes
    return slots


class BookedTime(Protocol):
    starts_at: datetime
    duration_minutes: int
    status: str


@dataclass(frozen=True)
class BookedInterval:
    """Plain stand-in for a booking row when only its interval matters."""

    starts_at: datetime
    duration_minutes: int
    status: str = "confirmed"


@dataclass
class Slot:
    time: str
    available: bool
    staff_id: int | None = None
    staff_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"time": self.time, "available": self.available}
        if self.staff_id is not None:
            payload["staff_id"] = self.staff_id
        if self.staff_ids:
            payload["staff_ids"] = list(self.staff_ids)
        return payload


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def localize(on_date: date, minutes: int, tz: tzinfo) -> datetime | None:
    """Project a wall-clock time onto ``on_date`` in ``tz``; return naive UTC.

    Returns ``None`` when the wall-clock time does not exist on that date.
    Repeated wall-clock times resolve to their first occurrence.
    """
    wall = datetime.combine(on_date, time()) + timedelta(minutes=minutes)
    as_utc = wall.replace(tzinfo=tz).astimezone(timezone.utc)
    if as_utc.astimezone(tz).replace(tzinfo=None) != wall:
        return None
    return as_utc.replace(tzinfo=None)


def active_intervals(existing_bookings: Iterable[BookedTime]) -> list[tuple[datetime, datetime]]:
    intervals = []
    for booking in existing_bookings:
        if booking.status not in ACTIVE_BOOKING_STATUSES:
            continue
        start = to_utc_naive(booking.starts_at)
        intervals.append((start, start + timedelta(minutes=booking.duration_minutes)))
    return intervals


def filter_conflicts(
    candidate_slots: Sequence[str],
    existing_bookings: Iterable[BookedTime],
    on_date: date,
    duration_minutes: int,
    tz: tzinfo = timezone.utc,
) -> list[Slot]:
    """Tag every candidate with ``available``; nothing is dropped.

    A candidate is unavailable when it overlaps a pending or confirmed
    booking, or when its wall-clock time does not exist on ``on_date``.
    """
    booked = active_intervals(existing_bookings)
    length = timedelta(minutes=duration_minutes)

    tagged = []
    for slot_time in candidate_slots:
        start = localize(on_date, parse_hhmm(slot_time), tz)
        if start is None:
            tagged.append(Slot(time=slot_time, available=False))
            continue
        end = start + length
        free = not any(intervals_overlap(start, end, b_start, b_end) for b_start, b_end in booked)
        tagged.append(Slot(time=slot_time, available=free))
    return tagged
