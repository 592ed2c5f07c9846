"""
availability.py
---------------
Aggregates per-staff slot generation and conflict tagging into the
availability view a customer books from.

For "any" staff preference the per-staff results are merged by time of day:
a time is available when at least one eligible staff member is free, and the
lowest free staff id is reported as the one the booking would be assigned to.
"""
from __future__ import annotations

import time
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ACTIVE_BOOKING_STATUSES, Booking, Salon, Service, Staff
from .errors import AvailabilityUnknown, NotEligibleError, NotFoundError, ValidationError
from .schedules import day_schedule_for, weekday_name
from .slots import (CLOSED_DAY, DaySchedule, Slot, filter_conflicts, format_12_hour, format_hhmm,
                    generate_slots, parse_hhmm)

STAFF_PREFERENCES = ("any", "specific")


def salon_timezone(salon: Salon) -> ZoneInfo:
    name = salon.timezone or current_app.config["DEFAULT_TIMEZONE"]
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        current_app.logger.warning("Unknown timezone %r for salon %s, using UTC", name, salon.salon_id)
        return ZoneInfo("UTC")


def local_day_bounds(on_date: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Naive-UTC ``[start, end)`` of the salon-local calendar day."""
    start = datetime.combine(on_date, datetime.min.time(), tzinfo=tz)
    end = datetime.combine(on_date + timedelta(days=1), datetime.min.time(), tzinfo=tz)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )


def resolve_preference(staff_preference: str | None, staff_id: int | None) -> str:
    """Default to "specific" when a staff member is named, "any" otherwise."""
    if not staff_preference:
        return "specific" if staff_id is not None else "any"
    if staff_preference not in STAFF_PREFERENCES:
        raise ValidationError("staff_preference must be 'any' or 'specific'")
    if staff_preference == "specific" and staff_id is None:
        raise ValidationError("staff_id is required when staff_preference is 'specific'")
    if staff_preference == "any" and staff_id is not None:
        raise ValidationError("staff_id is only allowed when staff_preference is 'specific'")
    return staff_preference


def get_salon(salon_id: int) -> Salon:
    salon = db.session.get(Salon, salon_id)
    if salon is None:
        raise NotFoundError("Salon not found")
    return salon


def get_service(salon_id: int, service_id: int) -> Service:
    service = db.session.get(Service, service_id)
    if service is None or service.salon_id != salon_id or not service.is_active:
        raise NotFoundError("Service not found", code="unknown_service")
    return service


def eligible_staff(salon_id: int, service_id: int | None = None) -> list[Staff]:
    """Active staff of the salon allowed to perform ``service_id``, by ascending id."""
    members = (
        Staff.query.filter_by(salon_id=salon_id, is_active=True)
        .order_by(Staff.staff_id.asc())
        .all()
    )
    if service_id is None:
        return members
    return [member for member in members if member.can_perform(service_id)]


def require_eligible(staff_id: int, salon_id: int, service_id: int) -> Staff:
    staff = db.session.get(Staff, staff_id)
    if staff is None:
        raise NotFoundError("Staff member not found")
    if staff.salon_id != salon_id:
        raise NotEligibleError("Staff member does not belong to this salon")
    if not staff.is_active:
        raise NotEligibleError("Staff member is not active")
    if not staff.can_perform(service_id):
        raise NotEligibleError("Staff member cannot perform this service")
    return staff


def business_hours_for(salon: Salon, weekday: str) -> tuple[bool, dict | None]:
    """``(is_open, {"open", "close"} or None)`` from the salon's configuration."""
    hours = (salon.business_hours or {}).get(weekday)
    if not hours:
        return True, None
    if not hours.get("is_open", True):
        return False, None
    if hours.get("open") and hours.get("close"):
        return True, {"open": hours["open"], "close": hours["close"]}
    return True, None


def bookable_day(member: Staff, on_date: date, hours: dict | None) -> DaySchedule:
    """Working day of ``member`` on ``on_date`` limited to the salon's opening hours."""
    day = day_schedule_for(member.schedule, on_date)
    if hours is None:
        return day
    return day.narrowed(parse_hhmm(hours["open"]), parse_hhmm(hours["close"]))


def format_business_hours(open_time: str, close_time: str) -> dict[str, str]:
    return {
        "open": open_time,
        "close": close_time,
        "display": f"{format_12_hour(open_time)} - {format_12_hour(close_time)}",
    }


class AvailabilityService:
    def __init__(self, grid_minutes: int | None = None, timeout_seconds: float | None = None,
                 clock=time.monotonic):
        config = current_app.config
        self.grid_minutes = grid_minutes or config["SLOT_GRID_MINUTES"]
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else config["AVAILABILITY_TIMEOUT_SECONDS"]
        )
        self._clock = clock
        self._deadline = None

    def _start_clock(self) -> None:
        self._deadline = self._clock() + self.timeout_seconds

    def _check_deadline(self) -> None:
        if self._deadline is not None and self._clock() > self._deadline:
            raise AvailabilityUnknown("Availability could not be determined in time, please retry")

    def _active_bookings(self, staff_ids: list[int], on_date: date, tz: ZoneInfo) -> dict[int, list[Booking]]:
        if not staff_ids:
            return {}
        day_start, day_end = local_day_bounds(on_date, tz)
        rows = Booking.query.filter(
            Booking.staff_id.in_(staff_ids),
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            Booking.starts_at < day_end,
            Booking.ends_at > day_start,
        ).all()
        grouped = defaultdict(list)
        for booking in rows:
            grouped[booking.staff_id].append(booking)
        return grouped

    def _staff_slots(self, day: DaySchedule, bookings, on_date: date, duration: int, tz: ZoneInfo) -> list[Slot]:
        candidates = generate_slots(day, duration, self.grid_minutes)
        return filter_conflicts(candidates, bookings, on_date, duration, tz)

    def get_availability(self, salon_id: int, service_id: int, on_date: date,
                         staff_preference: str | None = "any", staff_id: int | None = None) -> dict[str, object]:
        preference = resolve_preference(staff_preference, staff_id)
        self._start_clock()
        try:
            return self._compute(salon_id, service_id, on_date, preference, staff_id)
        except SQLAlchemyError as exc:
            current_app.logger.exception("Failed to compute availability", exc_info=exc)
            raise AvailabilityUnknown("Availability is temporarily unavailable, please retry") from exc

    def _compute(self, salon_id, service_id, on_date, preference, staff_id) -> dict[str, object]:
        salon = get_salon(salon_id)
        service = get_service(salon_id, service_id)
        tz = salon_timezone(salon)
        weekday = weekday_name(on_date)

        payload = {
            "salon_id": salon_id,
            "service_id": service_id,
            "date": on_date.isoformat(),
            "day_of_week": weekday,
            "staff_preference": preference,
            "is_open": False,
            "business_hours": None,
            "time_slots": [],
            "available_slots": [],
            "staff_count": 0,
            "total_slots": 0,
            "booked_slots": 0,
        }

        if preference == "specific":
            members = [require_eligible(staff_id, salon_id, service_id)]
        else:
            members = eligible_staff(salon_id, service_id)

        if not members:
            payload["message"] = "No staff members available"
            return payload

        open_today, configured_hours = business_hours_for(salon, weekday)
        if not open_today:
            payload["message"] = "Closed today"
            return payload

        if preference == "specific" and not day_schedule_for(members[0].schedule, on_date).is_available:
            raise NotEligibleError("Staff member is not available on this date", code="staff_not_scheduled")

        scheduled = []
        for member in members:
            day = bookable_day(member, on_date, configured_hours)
            if day.is_available:
                scheduled.append((member, day))

        if not scheduled:
            payload["message"] = "Closed today"
            return payload

        self._check_deadline()
        bookings = self._active_bookings([m.staff_id for m, _ in scheduled], on_date, tz)

        free_by_time = {}
        for member, day in scheduled:
            self._check_deadline()
            tagged = self._staff_slots(day, bookings.get(member.staff_id, []), on_date,
                                       service.duration_minutes, tz)
            for slot in tagged:
                free = free_by_time.setdefault(slot.time, [])
                if slot.available:
                    free.append(member.staff_id)

        time_slots = []
        for slot_time in sorted(free_by_time, key=parse_hhmm):
            free = sorted(free_by_time[slot_time])
            time_slots.append(Slot(
                time=slot_time,
                available=bool(free),
                staff_id=free[0] if free else None,
                staff_ids=free,
            ))

        if configured_hours:
            hours = format_business_hours(configured_hours["open"], configured_hours["close"])
        else:
            hours = format_business_hours(
                format_hhmm(min(day.start for _, day in scheduled)),
                format_hhmm(max(day.end for _, day in scheduled)),
            )

        available = [slot.time for slot in time_slots if slot.available]
        payload.update({
            "is_open": True,
            "business_hours": hours,
            "time_slots": [slot.to_dict() for slot in time_slots],
            "available_slots": available,
            "staff_count": len(scheduled),
            "total_slots": len(time_slots),
            "booked_slots": len(time_slots) - len(available),
        })

        current_app.logger.info(
            "Availability computed for salon %s service %s on %s: %d/%d slots open",
            salon_id, service_id, on_date.isoformat(), len(available), len(time_slots),
        )
        return payload

    def get_staff_availability(self, staff_id: int, on_date: date, duration_minutes: int | None = None,
                               service_id: int | None = None) -> dict[str, object]:
        """Slots for one staff member, with either an explicit duration or a service."""
        self._start_clock()
        try:
            staff = db.session.get(Staff, staff_id)
            if staff is None:
                raise NotFoundError("Staff not found")

            if service_id is not None:
                service = get_service(staff.salon_id, service_id)
                if not staff.can_perform(service.service_id):
                    raise NotEligibleError("Staff member cannot perform this service")
                duration_minutes = service.duration_minutes
            if not duration_minutes or duration_minutes <= 0:
                raise ValidationError("duration_minutes or service_id is required")

            tz = salon_timezone(staff.salon)
            open_today, hours = business_hours_for(staff.salon, weekday_name(on_date))
            day = bookable_day(staff, on_date, hours) if open_today else CLOSED_DAY
            payload = {
                "staff_id": staff.staff_id,
                "staff_name": staff.full_name,
                "date": on_date.isoformat(),
                "day_of_week": weekday_name(on_date),
                "is_available": bool(staff.is_active and day.is_available),
                "time_slots": [],
                "available_slots": [],
                "schedule": staff.schedule or {},
            }
            if not payload["is_available"]:
                return payload

            bookings = self._active_bookings([staff.staff_id], on_date, tz).get(staff.staff_id, [])
            self._check_deadline()
            tagged = self._staff_slots(day, bookings, on_date, duration_minutes, tz)
            payload["time_slots"] = [slot.to_dict() for slot in tagged]
            payload["available_slots"] = [slot.time for slot in tagged if slot.available]
            return payload
        except SQLAlchemyError as exc:
            current_app.logger.exception("Failed to check staff availability", exc_info=exc)
            raise AvailabilityUnknown("Availability is temporarily unavailable, please retry") from exc

    def list_staff(self, salon_id: int, service_id: int | None = None) -> list[dict[str, object]]:
        get_salon(salon_id)
        if service_id is not None:
            get_service(salon_id, service_id)
        return [member.to_summary() for member in eligible_staff(salon_id, service_id)]
