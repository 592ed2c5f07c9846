"""Weekly staff schedule templates: defaults, validation and lookup by date."""
from __future__ import annotations

import copy
from datetime import date

from .errors import ValidationError
from .slots import CLOSED_DAY, Break, DaySchedule, format_hhmm, parse_hhmm

# Indexed by date.weekday(): Monday is 0.
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_LUNCH = [{"start_time": "13:00", "end_time": "14:00"}]

DEFAULT_STAFF_SCHEDULE = {
    "monday": {"is_available": True, "start_time": "09:00", "end_time": "18:00", "breaks": _LUNCH},
    "tuesday": {"is_available": True, "start_time": "09:00", "end_time": "18:00", "breaks": _LUNCH},
    "wednesday": {"is_available": True, "start_time": "09:00", "end_time": "18:00", "breaks": _LUNCH},
    "thursday": {"is_available": True, "start_time": "09:00", "end_time": "18:00", "breaks": _LUNCH},
    "friday": {"is_available": True, "start_time": "09:00", "end_time": "18:00", "breaks": _LUNCH},
    "saturday": {"is_available": True, "start_time": "09:00", "end_time": "17:00", "breaks": _LUNCH},
    "sunday": {"is_available": False, "start_time": "09:00", "end_time": "17:00", "breaks": []},
}


def default_schedule() -> dict[str, dict]:
    return copy.deepcopy(DEFAULT_STAFF_SCHEDULE)


def weekday_name(on_date: date) -> str:
    return WEEKDAYS[on_date.weekday()]


def parse_day(day: str, data: dict) -> DaySchedule:
    """Build a :class:`DaySchedule` from its JSON form, enforcing the invariants."""
    if not isinstance(data, dict):
        raise ValidationError(f"{day}: schedule entry must be an object")

    start = parse_hhmm(data.get("start_time"))
    end = parse_hhmm(data.get("end_time"))
    if start >= end:
        raise ValidationError(f"{day}: start_time must be before end_time")

    raw_breaks = data.get("breaks") or []
    if not isinstance(raw_breaks, list):
        raise ValidationError(f"{day}: breaks must be a list")

    breaks = []
    for raw in raw_breaks:
        if not isinstance(raw, dict):
            raise ValidationError(f"{day}: each break must be an object")
        brk = Break(parse_hhmm(raw.get("start_time")), parse_hhmm(raw.get("end_time")))
        if brk.start >= brk.end:
            raise ValidationError(f"{day}: break start_time must be before end_time")
        if brk.start < start or brk.end > end:
            raise ValidationError(f"{day}: breaks must fall within working hours")
        breaks.append(brk)

    breaks.sort(key=lambda b: b.start)
    for previous, current in zip(breaks, breaks[1:]):
        if current.start < previous.end:
            raise ValidationError(f"{day}: breaks must not overlap")

    return DaySchedule(
        is_available=bool(data.get("is_available", True)),
        start=start,
        end=end,
        breaks=tuple(breaks),
    )


def validate_schedule(payload: dict) -> dict[str, dict]:
    """Validate a full weekly template and return it in normalized form."""
    if not isinstance(payload, dict):
        raise ValidationError("schedule must be an object keyed by weekday")

    unknown = set(payload) - set(WEEKDAYS)
    if unknown:
        raise ValidationError(f"unknown weekday(s): {', '.join(sorted(unknown))}")

    normalized = {}
    for day in WEEKDAYS:
        if day not in payload:
            continue
        parsed = parse_day(day, payload[day])
        normalized[day] = {
            "is_available": parsed.is_available,
            "start_time": format_hhmm(parsed.start),
            "end_time": format_hhmm(parsed.end),
            "breaks": [
                {"start_time": format_hhmm(b.start), "end_time": format_hhmm(b.end)}
                for b in parsed.breaks
            ],
        }
    return normalized


def day_schedule_for(schedule: dict | None, on_date: date) -> DaySchedule:
    """Day template for ``on_date``; a missing weekday counts as a day off."""
    entry = (schedule or {}).get(weekday_name(on_date))
    if not entry:
        return CLOSED_DAY
    return parse_day(weekday_name(on_date), entry)
