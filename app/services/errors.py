"""Typed failures raised by the scheduling core.

Routes catch :class:`SchedulingError` and render ``exc.to_dict()`` with
``exc.status_code``; every error carries a machine-readable ``code`` and a
human-readable ``message`` so the client can show something actionable.
"""
from __future__ import annotations


class SchedulingError(Exception):
    status_code = 500
    default_code = "scheduling_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "message": self.message}


class ValidationError(SchedulingError):
    """Malformed or out-of-policy input. Never retried."""

    status_code = 400
    default_code = "invalid_payload"


class NotFoundError(ValidationError):
    status_code = 404
    default_code = "not_found"


class ConflictError(SchedulingError):
    """The slot was taken between availability display and booking."""

    status_code = 409
    default_code = "slot_no_longer_available"


class NotEligibleError(SchedulingError):
    """Named staff cannot do the service or is not scheduled that day."""

    status_code = 400
    default_code = "not_eligible"


class AvailabilityUnknown(SchedulingError):
    status_code = 503
    default_code = "availability_unknown"


class BookingFailed(SchedulingError):
    status_code = 503
    default_code = "booking_failed"
