"""In-app notifications fired after booking changes.

Dispatch is fire-and-forget: it runs after the booking is committed, in its
own transaction, and a failure here is logged and swallowed so it can never
undo a booking.
"""
from __future__ import annotations

from datetime import timezone

from flask import current_app

from ..extensions import db
from ..models import Booking, Notification
from .availability import salon_timezone

_STATUS_MESSAGES = {
    "confirmed": ("booking_confirmed", "Booking Confirmed", "Your appointment on {when} has been confirmed."),
    "completed": ("booking_completed", "Appointment Completed", "Thanks for visiting {salon}!"),
    "cancelled": ("booking_cancelled", "Booking Cancelled", "Your appointment on {when} has been cancelled."),
}


def _local_when(booking: Booking) -> str:
    starts_at = booking.starts_at.replace(tzinfo=timezone.utc)
    if booking.salon:
        starts_at = starts_at.astimezone(salon_timezone(booking.salon))
    return starts_at.strftime("%B %d, %Y at %I:%M %p")


def _created_notifications(booking: Booking) -> list[Notification]:
    service_name = booking.service.name if booking.service else "your service"
    salon_name = booking.salon.name if booking.salon else "the salon"
    when = _local_when(booking)

    notifications = [
        Notification(
            user_id=booking.customer_id,
            booking_id=booking.booking_id,
            title="Booking Requested",
            message=f"Your {service_name} appointment at {salon_name} on {when} is pending confirmation.",
            notification_type="booking_created",
        )
    ]
    if booking.salon and booking.salon.vendor_id:
        notifications.append(
            Notification(
                user_id=booking.salon.vendor_id,
                booking_id=booking.booking_id,
                title="New Booking",
                message=f"New {service_name} booking on {when}.",
                notification_type="booking_received",
            )
        )
    return notifications


def _status_notifications(booking: Booking) -> list[Notification]:
    template = _STATUS_MESSAGES.get(booking.status)
    if template is None:
        return []
    notification_type, title, message = template
    salon_name = booking.salon.name if booking.salon else "the salon"
    return [
        Notification(
            user_id=booking.customer_id,
            booking_id=booking.booking_id,
            title=title,
            message=message.format(when=_local_when(booking), salon=salon_name),
            notification_type=notification_type,
        )
    ]


class BookingNotifier:
    def booking_created(self, booking: Booking) -> None:
        self._dispatch(booking, _created_notifications)

    def status_changed(self, booking: Booking) -> None:
        self._dispatch(booking, _status_notifications)

    def _dispatch(self, booking: Booking, build) -> None:
        booking_id = booking.booking_id
        try:
            notifications = build(booking)
            if not notifications:
                return
            db.session.add_all(notifications)
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            current_app.logger.exception(
                "Failed to send notifications for booking %s", booking_id, exc_info=exc
            )
