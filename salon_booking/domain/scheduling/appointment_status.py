"""
Appointment status state machine

    reserved → requested → confirmed → checked_in → in_progress → completed
    (reserved may also go straight to confirmed)

cancelled and no_show are reachable from every non-terminal status.
completed, cancelled and no_show are terminal: nothing leaves them.
"""

from typing import Optional

from ...models import AppointmentStatus
from .errors import InvalidTransitionError, ValidationError

TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
)

_FORWARD = {
    AppointmentStatus.RESERVED: {AppointmentStatus.REQUESTED, AppointmentStatus.CONFIRMED},
    AppointmentStatus.REQUESTED: {AppointmentStatus.CONFIRMED},
    AppointmentStatus.CONFIRMED: {AppointmentStatus.CHECKED_IN},
    AppointmentStatus.CHECKED_IN: {AppointmentStatus.IN_PROGRESS},
    AppointmentStatus.IN_PROGRESS: {AppointmentStatus.COMPLETED},
}

ALLOWED_TRANSITIONS = {
    status: frozenset(targets | {AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})
    for status, targets in _FORWARD.items()
}


def parse_status(value: str) -> AppointmentStatus:
    try:
        return AppointmentStatus(value)
    except ValueError:
        raise ValidationError(
            f"Unknown appointment status '{value}'",
            allowed=[s.value for s in AppointmentStatus],
        ) from None


def is_terminal(status: str) -> bool:
    return parse_status(status) in TERMINAL_STATUSES


def can_transition(current: str, new: str) -> bool:
    return parse_status(new) in ALLOWED_TRANSITIONS.get(parse_status(current), frozenset())


def validate_transition(
    current: str, new: str, appointment_id: Optional[int] = None
) -> AppointmentStatus:
    """Return the parsed target status or raise InvalidTransitionError"""
    target = parse_status(new)
    if not can_transition(current, target.value):
        raise InvalidTransitionError(current, target.value, appointment_id=appointment_id)
    return target


def initial_status(booked_via: str, auto_confirm_online: bool, hold: bool = False) -> AppointmentStatus:
    """Status of a freshly committed appointment.

    Holds start as ``reserved``; online requests wait for confirmation unless the
    salon auto-confirms; bookings made by staff (phone, walk-in, admin) are confirmed.
    """
    if hold:
        return AppointmentStatus.RESERVED
    if booked_via == "online" and not auto_confirm_online:
        return AppointmentStatus.REQUESTED
    return AppointmentStatus.CONFIRMED
