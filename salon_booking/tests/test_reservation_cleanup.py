from __future__ import annotations

from datetime import timedelta

from sqlalchemy.orm import Session

from salon_booking.domain.scheduling.schemas import AppointmentCreate
from salon_booking.domain.scheduling.service import SchedulingService
from salon_booking.services.reservation_cleanup import (
    RESERVATION_EXPIRED_REASON,
    release_expired_reservations,
)
from salon_booking.tests.conftest import MONDAY, NOW, SeededSalon


def _hold(seeded: SeededSalon, start: int) -> AppointmentCreate:
    return AppointmentCreate(
        customer_id=seeded.customer.id,
        staff_id=seeded.ben.id,
        date=MONDAY,
        start_minute=start,
        end_minute=start + 60,
        service_ids=[seeded.haircut.id],
        hold=True,
    )


def test_expired_holds_are_cancelled(db: Session, seeded: SeededSalon) -> None:
    service = SchedulingService(db)
    expired = service.commit_appointment(seeded.salon.id, _hold(seeded, 540), NOW)
    fresh = service.commit_appointment(seeded.salon.id, _hold(seeded, 660), NOW + timedelta(minutes=10))

    cleanup_time = NOW + timedelta(minutes=20)
    summary = release_expired_reservations(db, cleanup_time)

    assert summary == {"released": 1, "appointment_ids": [expired.id]}

    released = service.get_appointment(expired.id)
    assert released.status == "cancelled"
    assert released.cancellation_reason == RESERVATION_EXPIRED_REASON
    assert released.cancelled_at == cleanup_time
    assert released.reserved_until is None
    assert service.get_appointment(fresh.id).status == "reserved"


def test_released_hold_frees_the_slot(db: Session, seeded: SeededSalon) -> None:
    service = SchedulingService(db)
    service.commit_appointment(seeded.salon.id, _hold(seeded, 540), NOW)

    later = NOW + timedelta(hours=1)
    release_expired_reservations(db, later)

    rebooked = service.commit_appointment(seeded.salon.id, _hold(seeded, 540), later)
    assert rebooked.status == "reserved"


def test_nothing_to_release(db: Session, seeded: SeededSalon) -> None:
    assert release_expired_reservations(db, NOW) == {"released": 0, "appointment_ids": []}
