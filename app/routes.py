"""HTTP routes for the SalonHub booking backend."""
from __future__ import annotations

from datetime import date

from flask import Blueprint, Flask, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .auth import get_current_user_id
from .extensions import db
from .models import Booking, Salon, Service, Staff, User
from .services.availability import AvailabilityService
from .services.booking_manager import BookingManager
from .services.errors import SchedulingError, ValidationError
from .services.schedules import default_schedule, validate_schedule

bp = Blueprint("api", __name__)


def register_routes(app: Flask) -> None:
    app.register_blueprint(bp)


def _parse_date(value: str | None) -> date:
    try:
        return date.fromisoformat((value or "").strip())
    except ValueError:
        raise ValidationError("date must be in YYYY-MM-DD format") from None


def _is_id(value) -> bool:
    # JSON true/false arrive as bool, which is an int subclass.
    return isinstance(value, int) and not isinstance(value, bool)


def _unauthorized():
    return jsonify({"error": "unauthorized", "message": "authentication required"}), 401


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database."""
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# --- BEGIN: Availability ---

@bp.get("/salons/<int:salon_id>/availability")
def get_salon_availability(salon_id: int) -> tuple[dict[str, object], int]:
    """Business hours and bookable time slots for a service on a date.
    ---
    tags:
      - Availability
    parameters:
      - name: salon_id
        in: path
        type: integer
        required: true
      - name: service_id
        in: query
        type: integer
        required: true
      - name: date
        in: query
        type: string
        format: date
        required: true
      - name: staff_id
        in: query
        type: integer
      - name: staff_preference
        in: query
        type: string
        enum: [any, specific]
    responses:
      200:
        description: Availability for the day (is_open false when closed or unstaffed)
      400:
        description: Invalid parameters or staff member not eligible
      404:
        description: Salon, service or staff member not found
      503:
        description: Availability could not be determined
    """
    service_id = request.args.get("service_id", type=int)
    staff_id = request.args.get("staff_id", type=int)
    staff_preference = (request.args.get("staff_preference") or "").strip() or None

    if not service_id or not request.args.get("date"):
        return (
            jsonify({
                "error": "invalid_payload",
                "message": "service_id and date (YYYY-MM-DD) are required",
            }),
            400,
        )

    try:
        on_date = _parse_date(request.args.get("date"))
        payload = AvailabilityService().get_availability(
            salon_id, service_id, on_date, staff_preference=staff_preference, staff_id=staff_id
        )
        return jsonify(payload), 200
    except SchedulingError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@bp.get("/staff/<int:staff_id>/availability")
def check_staff_availability(staff_id: int) -> tuple[dict[str, object], int]:
    """Check time slots for one staff member on a given date.
    ---
    tags:
      - Staff
    parameters:
      - in: path
        name: staff_id
        required: true
        schema:
          type: integer
      - in: query
        name: date
        required: true
      - in: query
        name: duration_minutes
      - in: query
        name: service_id
    responses:
      200:
        description: Success
      400:
        description: Invalid input
      404:
        description: Not found
      503:
        description: Availability could not be determined
    """
    duration_minutes = request.args.get("duration_minutes", type=int)
    service_id = request.args.get("service_id", type=int)

    if not request.args.get("date") or not (duration_minutes or service_id):
        return (
            jsonify({
                "error": "invalid_payload",
                "message": "date (YYYY-MM-DD) and duration_minutes or service_id are required",
            }),
            400,
        )

    try:
        on_date = _parse_date(request.args.get("date"))
        payload = AvailabilityService().get_staff_availability(
            staff_id, on_date, duration_minutes=duration_minutes, service_id=service_id
        )
        return jsonify(payload), 200
    except SchedulingError as exc:
        return jsonify(exc.to_dict()), exc.status_code

# --- END: Availability ---


# --- BEGIN: Staff Management ---

@bp.get("/salons/<int:salon_id>/staff")
def list_staff(salon_id: int) -> tuple[dict[str, list[dict[str, object]]], int]:
    """Eligible staff for the booking staff picker.
    ---
    tags:
      - Staff
    parameters:
      - name: salon_id
        in: path
        type: integer
        required: true
      - name: service_id
        in: query
        type: integer
        description: Only staff who can perform this service
    responses:
      200:
        description: List of staff members (id, name, position)
      404:
        description: Salon or service not found
      500:
        description: Server error
    """
    service_id = request.args.get("service_id", type=int)
    try:
        staff = AvailabilityService().list_staff(salon_id, service_id)
        return jsonify({"staff": staff}), 200
    except SchedulingError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch staff members", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.post("/salons/<int:salon_id>/staff")
def create_staff(salon_id: int) -> tuple[dict[str, object], int]:
    """Create a staff member with the default weekly schedule unless one is given."""
    payload = request.get_json(silent=True) or {}
    first_name = (payload.get("first_name") or "").strip()

    if not first_name:
        return (
            jsonify({"error": "invalid_payload", "message": "first_name is required"}),
            400,
        )

    try:
        schedule = validate_schedule(payload["schedule"]) if payload.get("schedule") else default_schedule()

        salon = db.session.get(Salon, salon_id)
        if not salon:
            return jsonify({"error": "not_found", "message": "Salon not found"}), 404

        services = _salon_services(salon_id, payload.get("service_ids") or [])

        new_staff = Staff(
            salon_id=salon_id,
            first_name=first_name,
            last_name=(payload.get("last_name") or "").strip(),
            position=(payload.get("position") or "").strip() or None,
            schedule=schedule,
            services=services,
        )
        db.session.add(new_staff)
        db.session.commit()

        return jsonify({"staff": new_staff.to_dict()}), 201

    except SchedulingError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create staff member", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


def _salon_services(salon_id: int, service_ids: list) -> list[Service]:
    if not isinstance(service_ids, list) or not all(_is_id(sid) for sid in service_ids):
        raise ValidationError("service_ids must be a list of integers")
    if not service_ids:
        return []
    services = Service.query.filter(
        Service.salon_id == salon_id,
        Service.service_id.in_(service_ids),
    ).all()
    if len(services) != len(set(service_ids)):
        raise ValidationError("One or more services do not exist or do not belong to this salon")
    return services


@bp.put("/salons/<int:salon_id>/staff/<int:staff_id>/schedule")
def update_staff_schedule(salon_id: int, staff_id: int) -> tuple[dict[str, object], int]:
    """Replace a staff member's weekly schedule.
    ---
    tags:
      - Staff
    parameters:
      - in: path
        name: salon_id
        required: true
        schema:
          type: integer
      - in: path
        name: staff_id
        required: true
        schema:
          type: integer
      - in: body
        name: body
        required: true
        schema:
          properties:
            schedule:
              type: object
    responses:
      200:
        description: Staff schedule updated successfully
      400:
        description: Invalid input
      404:
        description: Staff member not found
      500:
        description: Database error
    """
    payload = request.get_json(silent=True) or {}
    schedule = payload.get("schedule")

    if schedule is None:
        return (
            jsonify({"error": "invalid_payload", "message": "schedule is required"}),
            400,
        )

    try:
        normalized = validate_schedule(schedule)

        staff = Staff.query.filter_by(staff_id=staff_id, salon_id=salon_id).first()
        if not staff:
            return jsonify({"error": "not_found", "message": "Staff member not found"}), 404

        staff.schedule = normalized
        db.session.commit()

        return jsonify({"staff": staff.to_dict()}), 200

    except SchedulingError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update staff schedule", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.put("/salons/<int:salon_id>/staff/<int:staff_id>/services")
def assign_staff_services(salon_id: int, staff_id: int) -> tuple[dict[str, object], int]:
    """Restrict a staff member to the given services; an empty list lifts the restriction."""
    payload = request.get_json(silent=True) or {}
    service_ids = payload.get("service_ids")

    if service_ids is None:
        return (
            jsonify({"error": "invalid_payload", "message": "service_ids is required"}),
            400,
        )

    try:
        staff = Staff.query.filter_by(staff_id=staff_id, salon_id=salon_id).first()
        if not staff:
            return jsonify({"error": "not_found", "message": "Staff member not found"}), 404

        staff.services = _salon_services(salon_id, service_ids)
        db.session.commit()

        return jsonify({"staff": staff.to_dict()}), 200

    except SchedulingError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to assign staff services", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.delete("/salons/<int:salon_id>/staff/<int:staff_id>")
def deactivate_staff(salon_id: int, staff_id: int) -> tuple[dict[str, str], int]:
    """Deactivate a staff member; existing bookings are kept."""
    try:
        staff = Staff.query.filter_by(staff_id=staff_id, salon_id=salon_id).first()
        if not staff:
            return jsonify({"error": "not_found", "message": "Staff member not found"}), 404

        staff.is_active = False
        db.session.commit()

        return jsonify({"message": "Staff member deactivated", "staff": staff.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to deactivate staff member", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

# --- END: Staff Management ---


# --- BEGIN: Bookings ---

@bp.post("/bookings")
def create_booking() -> tuple[dict[str, object], int]:
    """Book a slot for the authenticated customer.
    ---
    tags:
      - Bookings
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            salon_id:
              type: integer
            service_id:
              type: integer
            starts_at:
              type: string
              format: date-time
            staff_id:
              type: integer
            staff_preference:
              type: string
              enum: [any, specific]
            notes:
              type: string
          required:
            - salon_id
            - service_id
            - starts_at
    responses:
      201:
        description: Booking created with status pending
      400:
        description: Invalid payload, past time, or staff not eligible
      401:
        description: Authentication required
      404:
        description: Salon, service or staff member not found
      409:
        description: Slot no longer available
      503:
        description: Booking could not be saved
    """
    customer_id = get_current_user_id()
    if not customer_id:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    salon_id = payload.get("salon_id")
    service_id = payload.get("service_id")
    starts_at = payload.get("starts_at")
    staff_id = payload.get("staff_id")
    notes = (payload.get("notes") or "").strip() or None

    if not all([salon_id, service_id, starts_at]):
        return (
            jsonify({
                "error": "invalid_payload",
                "message": "salon_id, service_id, and starts_at are required",
            }),
            400,
        )
    if not all(_is_id(value) for value in (salon_id, service_id)) or (
        staff_id is not None and not _is_id(staff_id)
    ):
        return (
            jsonify({"error": "invalid_payload", "message": "salon_id, service_id and staff_id must be integers"}),
            400,
        )
    if notes and len(notes) > 500:
        return jsonify({"error": "invalid_payload", "message": "notes must be 500 characters or fewer"}), 400

    try:
        booking = BookingManager().create_booking(
            customer_id=customer_id,
            service_id=service_id,
            salon_id=salon_id,
            starts_at=starts_at,
            staff_preference=payload.get("staff_preference"),
            staff_id=staff_id,
            notes=notes,
        )
    except SchedulingError as exc:
        return jsonify(exc.to_dict()), exc.status_code

    return jsonify({"message": "Booking created successfully", "booking": booking.to_dict()}), 201


@bp.get("/bookings")
def list_bookings() -> tuple[dict[str, list[dict[str, object]]], int]:
    """Bookings of the authenticated customer, newest first."""
    user_id = get_current_user_id()
    if not user_id:
        return _unauthorized()

    try:
        bookings = (
            Booking.query.filter(Booking.customer_id == user_id)
            .order_by(Booking.starts_at.desc())
            .all()
        )
        return jsonify({"bookings": [booking.to_dict() for booking in bookings]}), 200
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch bookings", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


def _booking_access(booking: Booking, user: User | None) -> str | None:
    """Role of ``user`` with respect to ``booking``, or None when unrelated."""
    if user is None:
        return None
    if user.role == "admin":
        return "admin"
    if booking.salon and booking.salon.vendor_id == user.user_id:
        return "vendor"
    if booking.customer_id == user.user_id:
        return "customer"
    return None


@bp.get("/bookings/<int:booking_id>")
def get_booking(booking_id: int) -> tuple[dict[str, object], int]:
    user_id = get_current_user_id()
    if not user_id:
        return _unauthorized()

    try:
        booking = BookingManager().get_booking(booking_id)
        if _booking_access(booking, db.session.get(User, user_id)) is None:
            return jsonify({"error": "forbidden", "message": "access denied"}), 403
        return jsonify({"booking": booking.to_dict()}), 200
    except SchedulingError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch booking", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.put("/bookings/<int:booking_id>/status")
def update_booking_status(booking_id: int) -> tuple[dict[str, object], int]:
    """Move a booking along pending -> confirmed -> completed, or cancel it.
    ---
    tags:
      - Bookings
    parameters:
      - in: path
        name: booking_id
        required: true
        schema:
          type: integer
      - in: body
        name: body
        required: true
        schema:
          properties:
            status:
              type: string
              enum: [confirmed, completed, cancelled]
    responses:
      200:
        description: Status updated
      400:
        description: Invalid status or transition
      403:
        description: Not allowed for this user
      404:
        description: Booking not found
    """
    user_id = get_current_user_id()
    if not user_id:
        return _unauthorized()

    payload = request.get_json(silent=True) or {}
    new_status = (payload.get("status") or "").strip().lower()
    if not new_status:
        return jsonify({"error": "invalid_payload", "message": "status is required"}), 400

    manager = BookingManager()
    try:
        booking = manager.get_booking(booking_id)
        access = _booking_access(booking, db.session.get(User, user_id))
        # Customers may only cancel their own bookings.
        if access is None or (access == "customer" and new_status != "cancelled"):
            return jsonify({"error": "forbidden", "message": "access denied"}), 403

        booking = manager.update_status(booking_id, new_status, actor_id=user_id)
        return jsonify({"booking": booking.to_dict()}), 200
    except SchedulingError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@bp.delete("/bookings/<int:booking_id>")
def cancel_booking(booking_id: int) -> tuple[dict[str, object], int]:
    """Cancel a booking by setting its status to 'cancelled'."""
    user_id = get_current_user_id()
    if not user_id:
        return _unauthorized()

    manager = BookingManager()
    try:
        booking = manager.get_booking(booking_id)
        if _booking_access(booking, db.session.get(User, user_id)) is None:
            return jsonify({"error": "forbidden", "message": "access denied"}), 403

        booking = manager.cancel_booking(booking_id, actor_id=user_id)
        return jsonify({"message": "Booking cancelled successfully", "booking": booking.to_dict()}), 200
    except SchedulingError as exc:
        return jsonify(exc.to_dict()), exc.status_code

# --- END: Bookings ---
