"""Scheduling domain errors.

Every error carries a human readable message plus a ``context`` dict naming the
salon/staff/date/services involved, so callers can react without parsing text.
"""

from typing import Any, Optional


class SchedulingError(Exception):
    """Base class for availability and booking errors"""

    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> dict:
        return {"detail": self.message, "context": _jsonable(self.context)}


class ValidationError(SchedulingError):
    """Malformed input: empty service list, zero-length interval, unknown status..."""

    status_code = 400


class NotFoundError(SchedulingError):
    """Referenced salon/service/staff/appointment does not exist"""

    status_code = 404


class ForbiddenError(SchedulingError):
    """Caller's credential does not match the appointment"""

    status_code = 403


class ConflictError(SchedulingError):
    """Slot no longer available at commit time. Callers must re-query slots."""

    status_code = 409


class InvalidTransitionError(SchedulingError):
    """Status change not allowed by the appointment state machine"""

    status_code = 409

    def __init__(self, current: str, requested: str, appointment_id: Optional[int] = None):
        super().__init__(
            f"Cannot change appointment status from '{current}' to '{requested}'",
            appointment_id=appointment_id,
            current_status=current,
            requested_status=requested,
        )
        self.current = current
        self.requested = requested


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value
