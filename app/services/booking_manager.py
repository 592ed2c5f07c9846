"""
booking_manager.py
------------------
Creates bookings and moves them through their status lifecycle.

Creation re-validates the requested slot against the bookings that exist at
write time, so a slot taken after the customer loaded availability is
rejected with a ConflictError instead of being double-booked. The check and
the insert run in one transaction with the staff row locked; the partial
unique index on (staff_id, starts_at) catches anything that slips past the
lock on backends that ignore SELECT ... FOR UPDATE.

Status lifecycle:
    pending -> confirmed -> completed
    pending | confirmed -> cancelled
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import ACTIVE_BOOKING_STATUSES, Booking, Staff, utc_now
from .availability import (bookable_day, business_hours_for, eligible_staff, get_salon, get_service,
                           require_eligible, resolve_preference, salon_timezone)
from .errors import (BookingFailed, ConflictError, NotEligibleError, NotFoundError,
                     SchedulingError, ValidationError)
from .notifications import BookingNotifier
from .schedules import day_schedule_for, weekday_name
from .slots import localize, to_utc_naive

BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled")

STATUS_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

ACTIVE_SLOT_INDEX = "uq_bookings_active_staff_start"


def is_slot_collision(exc: IntegrityError) -> bool:
    """True when ``exc`` is a violation of the one-active-booking-per-start index."""
    diag = getattr(exc.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint:
        return constraint == ACTIVE_SLOT_INDEX
    # SQLite names the indexed columns instead of the index.
    message = str(exc.orig)
    return ACTIVE_SLOT_INDEX in message or "bookings.staff_id, bookings.starts_at" in message


def parse_starts_at(value, tz) -> datetime:
    """Return naive UTC. Naive input is wall-clock time in the salon's zone."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError("starts_at must be a valid ISO 8601 datetime") from None
    if not isinstance(value, datetime):
        raise ValidationError("starts_at must be a valid ISO 8601 datetime")

    if value.second or value.microsecond:
        raise ValidationError("starts_at must fall on a whole minute")

    if value.tzinfo is not None:
        return to_utc_naive(value)

    converted = localize(value.date(), value.hour * 60 + value.minute, tz)
    if converted is None:
        raise ValidationError("starts_at does not exist in the salon's time zone", code="nonexistent_local_time")
    return converted


class BookingManager:
    def __init__(self, notifier: BookingNotifier | None = None):
        self.notifier = notifier or BookingNotifier()

    def create_booking(self, customer_id: int, service_id: int, salon_id: int, starts_at,
                       staff_preference: str | None = None, staff_id: int | None = None,
                       notes: str | None = None) -> Booking:
        """
        Re-validate the slot and persist a pending booking.

        Raises:
            ValidationError: bad input, unknown service, past or out-of-hours time.
            NotEligibleError: named staff cannot take this booking at all.
            ConflictError: the slot was taken since availability was shown.
            BookingFailed: the database write failed.
        """
        preference = resolve_preference(staff_preference, staff_id)

        try:
            salon = get_salon(salon_id)
            service = get_service(salon_id, service_id)
            duration = service.duration_minutes
            if duration < current_app.config["MIN_SERVICE_DURATION_MINUTES"]:
                raise ValidationError("Service duration is below the minimum bookable length")

            tz = salon_timezone(salon)
            start = parse_starts_at(starts_at, tz)
            if start <= to_utc_naive(utc_now()):
                raise ValidationError("Cannot book an appointment in the past", code="datetime_in_past")

            local_start = start.replace(tzinfo=timezone.utc).astimezone(tz)
            on_date = local_start.date()
            start_minutes = local_start.hour * 60 + local_start.minute

            open_today, hours = business_hours_for(salon, weekday_name(on_date))
            if not open_today:
                raise ValidationError("The salon is closed on this date", code="salon_closed")

            if preference == "specific":
                candidates = self._specific_candidate(staff_id, salon_id, service_id, on_date,
                                                      start_minutes, duration, hours)
            else:
                candidates = self._any_candidates(salon_id, service_id, on_date, start_minutes, duration, hours)

            fields = {
                "customer_id": customer_id,
                "salon_id": salon_id,
                "service_id": service_id,
                "staff_preference": preference,
                "starts_at": start,
                "ends_at": start + timedelta(minutes=duration),
                "duration_minutes": duration,
                "price_cents": service.price_cents,
                "notes": notes,
                "status": "pending",
            }
            booking = self._insert_first_free([member.staff_id for member in candidates], fields)
            if booking is None:
                current_app.logger.warning(
                    "Booking conflict for salon %s at %s (%s preference)", salon_id, start.isoformat(), preference
                )
                raise ConflictError(
                    "The selected time is no longer available, please refresh availability and try again"
                )
            db.session.commit()
        except SchedulingError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Failed to create booking", exc_info=exc)
            raise BookingFailed("Booking could not be saved, please try again") from exc

        current_app.logger.info(
            "Booking %s created for customer %s with staff %s at %s",
            booking.booking_id, customer_id, booking.staff_id, booking.starts_at.isoformat(),
        )
        self.notifier.booking_created(booking)
        return booking

    def _specific_candidate(self, staff_id, salon_id, service_id, on_date, start_minutes, duration,
                            hours) -> list[Staff]:
        staff = require_eligible(staff_id, salon_id, service_id)
        if not day_schedule_for(staff.schedule, on_date).is_available:
            raise NotEligibleError("Staff member is not available on this date", code="staff_not_scheduled")
        if not bookable_day(staff, on_date, hours).fits(start_minutes, duration):
            raise ValidationError(
                "Requested time is outside the staff member's working hours", code="outside_working_hours"
            )
        return [staff]

    def _any_candidates(self, salon_id, service_id, on_date, start_minutes, duration, hours) -> list[Staff]:
        members = eligible_staff(salon_id, service_id)
        if not members:
            raise NotEligibleError("No staff members can perform this service", code="no_eligible_staff")
        fitting = [
            member for member in members
            if bookable_day(member, on_date, hours).fits(start_minutes, duration)
        ]
        if not fitting:
            raise ValidationError("Requested time is outside working hours", code="outside_working_hours")
        return fitting

    def _find_clash(self, staff_id: int, starts_at: datetime, ends_at: datetime) -> Booking | None:
        return Booking.query.filter(
            Booking.staff_id == staff_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            Booking.starts_at < ends_at,
            Booking.ends_at > starts_at,
        ).first()

    def _insert_first_free(self, staff_ids: list[int], fields: dict) -> Booking | None:
        """Lock, re-check and insert for each staff id in order; first success wins."""
        for staff_id in staff_ids:
            db.session.query(Staff).filter_by(staff_id=staff_id).with_for_update().one()

            if self._find_clash(staff_id, fields["starts_at"], fields["ends_at"]) is not None:
                continue

            booking = Booking(staff_id=staff_id, **fields)
            db.session.add(booking)
            try:
                db.session.flush()
            except IntegrityError as exc:
                db.session.rollback()
                if not is_slot_collision(exc):
                    raise
                current_app.logger.warning(
                    "Concurrent booking detected for staff %s at %s", staff_id, fields["starts_at"].isoformat(),
                    exc_info=exc,
                )
                continue
            return booking
        return None

    def get_booking(self, booking_id: int) -> Booking:
        booking = db.session.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    def update_status(self, booking_id: int, new_status: str, actor_id: int | None = None) -> Booking:
        if new_status not in BOOKING_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(BOOKING_STATUSES)}", code="invalid_status")

        try:
            booking = self.get_booking(booking_id)
            if new_status not in STATUS_TRANSITIONS[booking.status]:
                raise ValidationError(
                    f"Cannot change a {booking.status} booking to {new_status}",
                    code="invalid_status_transition",
                )

            booking.status = new_status
            if new_status == "cancelled":
                booking.cancelled_at = to_utc_naive(utc_now())
                booking.cancelled_by = actor_id
            db.session.commit()
        except SchedulingError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Failed to update booking status", exc_info=exc)
            raise BookingFailed("Booking status could not be updated, please try again") from exc

        current_app.logger.info("Booking %s moved to %s", booking_id, new_status)
        self.notifier.status_changed(booking)
        return booking

    def cancel_booking(self, booking_id: int, actor_id: int | None = None) -> Booking:
        return self.update_status(booking_id, "cancelled", actor_id=actor_id)
