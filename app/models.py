"""Database models for the SalonHub booking backend."""
from __future__ import annotations

from datetime import datetime, timezone

from .extensions import db


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


ACTIVE_BOOKING_STATUSES = ("pending", "confirmed")

# Service assignments for staff; a staff member with no rows may perform any service.
staff_services = db.Table(
    "staff_services",
    db.Column("staff_id", db.Integer, db.ForeignKey("staff.staff_id"), primary_key=True),
    db.Column("service_id", db.Integer, db.ForeignKey("services.service_id"), primary_key=True),
)


class User(db.Model):
    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    role = db.Column(
        db.Enum(
            "customer",
            "vendor",
            "admin",
            name="user_role",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="customer",
    )
    phone = db.Column(db.String(30))
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    salons = db.relationship("Salon", back_populates="vendor", lazy="dynamic")


class Salon(db.Model):
    """A vendor's business listing; bookings and staff hang off it."""

    __tablename__ = "salons"

    salon_id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    city = db.Column(db.String(100))
    phone = db.Column(db.String(30))
    timezone = db.Column(db.String(64))
    # weekday -> {"is_open": bool, "open": "HH:MM", "close": "HH:MM"}
    business_hours = db.Column(db.JSON, nullable=True)
    is_published = db.Column(db.Boolean, nullable=False, server_default="1")
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    vendor = db.relationship("User", back_populates="salons")


class Staff(db.Model):
    __tablename__ = "staff"

    staff_id = db.Column(db.Integer, primary_key=True)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.salon_id"), nullable=False)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False, server_default="")
    position = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    # weekday -> {"is_available", "start_time", "end_time", "breaks": [...]}
    schedule = db.Column(db.JSON, nullable=True, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    salon = db.relationship("Salon")
    services = db.relationship("Service", secondary=staff_services, lazy="selectin")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def can_perform(self, service_id: int) -> bool:
        if not self.services:
            return True
        return any(service.service_id == service_id for service in self.services)

    def to_summary(self) -> dict[str, object]:
        return {
            "id": self.staff_id,
            "name": self.full_name,
            "position": self.position,
        }

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.staff_id,
            "salon_id": self.salon_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "name": self.full_name,
            "position": self.position,
            "is_active": bool(self.is_active),
            "schedule": self.schedule or {},
            "service_ids": sorted(service.service_id for service in self.services),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class Service(db.Model):
    """Services offered by a salon."""

    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.salon_id"), nullable=False)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    price_cents = db.Column(db.Integer, nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    salon = db.relationship("Salon")


class Booking(db.Model):
    """Customer appointments. Times are stored as naive UTC."""

    __tablename__ = "bookings"
    __table_args__ = (
        # Backstop for the check-and-insert in BookingManager: one active booking
        # per staff member per start instant.
        db.Index(
            "uq_bookings_active_staff_start",
            "staff_id",
            "starts_at",
            unique=True,
            sqlite_where=db.text("status IN ('pending', 'confirmed')"),
            postgresql_where=db.text("status IN ('pending', 'confirmed')"),
        ),
        db.Index("ix_bookings_staff_window", "staff_id", "starts_at", "ends_at"),
    )

    booking_id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.salon_id"), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.staff_id"), nullable=True)
    staff_preference = db.Column(
        db.Enum("any", "specific", name="staff_preference", native_enum=False, validate_strings=True),
        nullable=False,
        server_default="any",
    )
    starts_at = db.Column(db.DateTime, nullable=False)
    ends_at = db.Column(db.DateTime, nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(
        db.Enum(
            "pending",
            "confirmed",
            "completed",
            "cancelled",
            name="booking_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="pending",
        server_default="pending",
    )
    notes = db.Column(db.Text)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancelled_by = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    salon = db.relationship("Salon")
    staff = db.relationship("Staff")
    service = db.relationship("Service")
    customer = db.relationship("User", foreign_keys=[customer_id])

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.booking_id,
            "customer_id": self.customer_id,
            "salon_id": self.salon_id,
            "salon_name": self.salon.name if self.salon else None,
            "service_id": self.service_id,
            "service": {
                "id": self.service.service_id,
                "name": self.service.name,
            } if self.service else None,
            "staff_id": self.staff_id,
            "staff": self.staff.to_summary() if self.staff else None,
            "staff_preference": self.staff_preference,
            "starts_at": _isoformat_utc(self.starts_at),
            "ends_at": _isoformat_utc(self.ends_at),
            "duration_minutes": self.duration_minutes,
            "price_cents": self.price_cents,
            "status": self.status,
            "notes": self.notes,
            "cancelled_at": _isoformat_utc(self.cancelled_at),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Notification(db.Model):
    __tablename__ = "notifications"

    notification_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.booking_id"), nullable=True)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    notification_type = db.Column(
        db.Enum(
            "booking_created",
            "booking_received",
            "booking_confirmed",
            "booking_completed",
            "booking_cancelled",
            name="notification_type",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    is_read = db.Column(db.Boolean, nullable=False, server_default="0")
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    user = db.relationship("User")
    booking = db.relationship("Booking")


def _isoformat_utc(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
