from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from salon_booking.domain.scheduling import service as scheduling_service
from salon_booking.domain.scheduling.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from salon_booking.domain.scheduling.schemas import AppointmentCreate
from salon_booking.domain.scheduling.service import (
    CONFIRMATION_ALPHABET,
    SchedulingService,
    generate_confirmation_number,
    included_tax,
)
from salon_booking.domain.scheduling.repository import SchedulingRepository
from salon_booking.models import Appointment, BookingRule, Customer, StaffAbsence
from salon_booking.tests.conftest import MONDAY, NOW, SeededSalon


def _booking(seeded: SeededSalon, start: int = 600, end: int = 660, **kwargs) -> AppointmentCreate:
    data = {
        "customer_id": seeded.customer.id,
        "staff_id": seeded.anna.id,
        "date": MONDAY,
        "start_minute": start,
        "end_minute": end,
        "service_ids": [seeded.haircut.id],
    }
    data.update(kwargs)
    return AppointmentCreate(**data)


def test_confirmation_number_uses_unambiguous_alphabet() -> None:
    number = generate_confirmation_number()
    assert len(number) == 8
    assert set(number) <= set(CONFIRMATION_ALPHABET)
    assert not set(number) & set("01IO")


def test_included_tax() -> None:
    assert included_tax(Decimal("80.00"), Decimal("8.1")) == Decimal("5.99")
    assert included_tax(Decimal("45.00"), Decimal("8.1")) == Decimal("3.37")
    assert included_tax(Decimal("45.00"), Decimal("0")) == Decimal("0.00")


def test_find_slots_for_unknown_salon_is_not_found(db: Session) -> None:
    with pytest.raises(NotFoundError):
        SchedulingService(db).find_slots(999, [1], NOW, start_date=MONDAY, number_of_days=1)


def test_find_slots_reads_appointments_from_database(db: Session, seeded: SeededSalon) -> None:
    service = SchedulingService(db)
    service.commit_appointment(seeded.salon.id, _booking(seeded), NOW)

    _, slots = service.find_slots(
        seeded.salon.id, [seeded.haircut.id], NOW, staff_id=seeded.anna.id, start_date=MONDAY, number_of_days=1
    )

    starts = [s.start_time for s in slots[MONDAY]]
    assert "09:00" in starts
    assert "10:00" not in starts
    assert "11:00" in starts


def test_commit_creates_requested_appointment_with_snapshots(db: Session, seeded: SeededSalon) -> None:
    # Anna colors in 20 minutes, so 60 + 20 is her total; 90 is the catalogue total
    data = _booking(seeded, start=600, end=700, service_ids=[seeded.haircut.id, seeded.color.id])
    with pytest.raises(ValidationError):
        SchedulingService(db).commit_appointment(seeded.salon.id, data, NOW)

    data = _booking(seeded, start=600, end=680, service_ids=[seeded.haircut.id, seeded.color.id])
    appointment = SchedulingService(db).commit_appointment(seeded.salon.id, data, NOW)

    assert appointment.status == "requested"
    assert appointment.starts_at == datetime(2030, 3, 4, 10, 0)
    assert appointment.ends_at == datetime(2030, 3, 4, 11, 20)
    assert appointment.total_duration_minutes == 80
    assert appointment.total_price_chf == Decimal("125.00")
    assert appointment.total_tax_chf == Decimal("9.36")
    assert len(appointment.confirmation_number) == 8

    lines = [
        (line.service_id, line.snapshot_service_name, line.snapshot_duration_minutes, line.sort_order)
        for line in appointment.services
    ]
    assert lines == [(seeded.haircut.id, "Haircut", 60, 0), (seeded.color.id, "Color", 20, 1)]


def test_no_preference_commit_uses_catalogue_duration(db: Session, seeded: SeededSalon) -> None:
    data = _booking(seeded, start=540, end=630, service_ids=[seeded.haircut.id, seeded.color.id], any_staff=True)
    appointment = SchedulingService(db).commit_appointment(seeded.salon.id, data, NOW)

    assert appointment.total_duration_minutes == 90
    assert [line.snapshot_duration_minutes for line in appointment.services] == [60, 30]


def test_chosen_staff_member_must_use_their_own_duration(db: Session, seeded: SeededSalon) -> None:
    data = _booking(seeded, start=540, end=630, service_ids=[seeded.haircut.id, seeded.color.id])

    with pytest.raises(ValidationError) as exc:
        SchedulingService(db).commit_appointment(seeded.salon.id, data, NOW)

    assert "80" in exc.value.message
    assert db.query(Appointment).count() == 0


def test_commit_creates_new_customer(db: Session, seeded: SeededSalon) -> None:
    customer = {"first_name": "Lea", "last_name": "Keller", "email": " Lea@Example.com ", "phone": "+41 79 123 45 67"}
    data = _booking(seeded, customer_id=None, customer=customer)

    appointment = SchedulingService(db).commit_appointment(seeded.salon.id, data, NOW)

    created = db.query(Customer).filter(Customer.id == appointment.customer_id).one()
    assert created.id != seeded.customer.id
    assert (created.salon_id, created.first_name, created.email) == (seeded.salon.id, "Lea", "lea@example.com")


def test_new_customer_is_not_kept_when_slot_is_taken(db: Session, seeded: SeededSalon) -> None:
    service = SchedulingService(db)
    service.commit_appointment(seeded.salon.id, _booking(seeded), NOW)
    customer = {"first_name": "Lea", "last_name": "Keller", "email": "lea@example.com", "phone": "0791234567"}

    with pytest.raises(ConflictError):
        service.commit_appointment(seeded.salon.id, _booking(seeded, customer_id=None, customer=customer), NOW)

    assert db.query(Customer).count() == 1


def test_booking_needs_exactly_one_customer_reference(seeded: SeededSalon) -> None:
    customer = {"first_name": "Lea", "last_name": "Keller", "email": "lea@example.com", "phone": "0791234567"}
    with pytest.raises(ValueError):
        _booking(seeded, customer=customer)
    with pytest.raises(ValueError):
        _booking(seeded, customer_id=None)
    with pytest.raises(ValueError):
        _booking(seeded, customer_id=None, customer={**customer, "email": "not-an-email"})


def test_confirmation_number_collision_is_retried(
    db: Session, seeded: SeededSalon, monkeypatch: pytest.MonkeyPatch
) -> None:
    numbers = iter(["AAAAAAAA", "AAAAAAAA", "BBBBBBBB"])
    monkeypatch.setattr(scheduling_service, "generate_confirmation_number", lambda: next(numbers))
    # Two commits racing for the same number both see it as unused
    monkeypatch.setattr(SchedulingRepository, "confirmation_number_exists", staticmethod(lambda db, number: False))
    service = SchedulingService(db)

    first = service.commit_appointment(seeded.salon.id, _booking(seeded), NOW)
    second = service.commit_appointment(seeded.salon.id, _booking(seeded, start=780, end=840), NOW)

    assert (first.confirmation_number, second.confirmation_number) == ("AAAAAAAA", "BBBBBBBB")
    assert db.query(Appointment).count() == 2


def test_confirmation_number_collisions_give_up_after_retries(
    db: Session, seeded: SeededSalon, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(scheduling_service, "generate_confirmation_number", lambda: "AAAAAAAA")
    monkeypatch.setattr(SchedulingRepository, "confirmation_number_exists", staticmethod(lambda db, number: False))
    service = SchedulingService(db)
    service.commit_appointment(seeded.salon.id, _booking(seeded), NOW)

    with pytest.raises(ConflictError) as exc:
        service.commit_appointment(seeded.salon.id, _booking(seeded, start=780, end=840), NOW)

    assert exc.value.message == "Could not generate a unique confirmation number"
    assert db.query(Appointment).count() == 1


def test_second_commit_for_same_slot_conflicts(db: Session, seeded: SeededSalon) -> None:
    service = SchedulingService(db)
    service.commit_appointment(seeded.salon.id, _booking(seeded), NOW)

    with pytest.raises(ConflictError) as exc:
        service.commit_appointment(seeded.salon.id, _booking(seeded, start=630, end=690), NOW)

    assert exc.value.context["staff_id"] == seeded.anna.id
    assert db.query(Appointment).count() == 1


def test_database_index_rejects_double_booking_when_recheck_is_bypassed(
    db: Session, seeded: SeededSalon, monkeypatch: pytest.MonkeyPatch
) -> None:
    # Simulates two transactions that both passed the availability recheck
    monkeypatch.setattr(scheduling_service, "is_slot_free", lambda *args, **kwargs: True)
    service = SchedulingService(db)
    service.commit_appointment(seeded.salon.id, _booking(seeded), NOW)

    with pytest.raises(ConflictError):
        service.commit_appointment(seeded.salon.id, _booking(seeded), NOW)
    assert db.query(Appointment).count() == 1


def test_cancelled_appointment_frees_the_slot(db: Session, seeded: SeededSalon) -> None:
    service = SchedulingService(db)
    first = service.commit_appointment(seeded.salon.id, _booking(seeded), NOW)
    service.cancel_appointment(first.id, NOW, reason="customer request")

    second = service.commit_appointment(seeded.salon.id, _booking(seeded), NOW)
    assert second.id != first.id


def test_commit_in_the_past_conflicts(db: Session, seeded: SeededSalon) -> None:
    later = datetime(2030, 3, 4, 10, 30)
    with pytest.raises(ConflictError):
        SchedulingService(db).commit_appointment(seeded.salon.id, _booking(seeded), later)


def test_commit_during_absence_conflicts(db: Session, seeded: SeededSalon) -> None:
    db.add(StaffAbsence(staff_id=seeded.anna.id, start_date=MONDAY, end_date=MONDAY, reason="sick"))
    db.commit()

    with pytest.raises(ConflictError):
        SchedulingService(db).commit_appointment(seeded.salon.id, _booking(seeded), NOW)


def test_commit_with_unqualified_staff_is_rejected(db: Session, seeded: SeededSalon) -> None:
    data = _booking(seeded, staff_id=seeded.ben.id, start=600, end=630, service_ids=[seeded.color.id])
    with pytest.raises(ValidationError):
        SchedulingService(db).commit_appointment(seeded.salon.id, data, NOW)


def test_commit_with_unknown_customer_or_staff_is_not_found(db: Session, seeded: SeededSalon) -> None:
    service = SchedulingService(db)
    with pytest.raises(NotFoundError):
        service.commit_appointment(seeded.salon.id, _booking(seeded, customer_id=999), NOW)
    with pytest.raises(NotFoundError):
        service.commit_appointment(seeded.salon.id, _booking(seeded, staff_id=999), NOW)


def test_phone_booking_is_confirmed_and_auto_confirm_applies_online(db: Session, seeded: SeededSalon) -> None:
    service = SchedulingService(db)
    phone = service.commit_appointment(seeded.salon.id, _booking(seeded, booked_via="phone"), NOW)
    assert phone.status == "confirmed"

    db.add(BookingRule(salon_id=seeded.salon.id, auto_confirm_online_bookings=True))
    db.commit()
    online = service.commit_appointment(seeded.salon.id, _booking(seeded, start=780, end=840), NOW)
    assert online.status == "confirmed"


def test_hold_creates_reservation_with_expiry(db: Session, seeded: SeededSalon) -> None:
    appointment = SchedulingService(db).commit_appointment(seeded.salon.id, _booking(seeded, hold=True), NOW)

    assert appointment.status == "reserved"
    assert appointment.reserved_until == NOW + timedelta(minutes=15)


def test_status_transitions_set_timestamps(db: Session, seeded: SeededSalon) -> None:
    service = SchedulingService(db)
    appointment = service.commit_appointment(seeded.salon.id, _booking(seeded, hold=True), NOW)

    for status in ("confirmed", "checked_in", "in_progress", "completed"):
        appointment = service.transition_status(appointment.id, status, NOW)
        assert appointment.status_changed_at == NOW

    assert appointment.completed_at == NOW
    assert appointment.reserved_until is None

    with pytest.raises(InvalidTransitionError):
        service.transition_status(appointment.id, "cancelled", NOW)
    assert service.get_appointment(appointment.id).status == "completed"


def test_cancel_records_reason(db: Session, seeded: SeededSalon) -> None:
    service = SchedulingService(db)
    appointment = service.commit_appointment(seeded.salon.id, _booking(seeded), NOW)

    cancelled = service.cancel_appointment(appointment.id, NOW, reason="sick")

    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_at == NOW
    assert cancelled.cancellation_reason == "sick"


def test_unknown_appointment_is_not_found(db: Session) -> None:
    with pytest.raises(NotFoundError):
        SchedulingService(db).transition_status(404, "confirmed", NOW)


def test_bookable_staff_filters_by_services(db: Session, seeded: SeededSalon) -> None:
    service = SchedulingService(db)

    everyone = service.get_bookable_staff(seeded.salon.id)
    colorists = service.get_bookable_staff(seeded.salon.id, [seeded.haircut.id, seeded.color.id])

    assert [s.display_name for s in everyone] == ["Anna", "Ben"]
    assert [s.display_name for s in colorists] == ["Anna"]
    assert colorists[0].service_ids == sorted([seeded.haircut.id, seeded.color.id])


def test_next_available_slot(db: Session, seeded: SeededSalon) -> None:
    slot = SchedulingService(db).next_available_slot(
        seeded.salon.id, [seeded.haircut.id], NOW, start_date=MONDAY, number_of_days=7
    )
    assert (slot.date, slot.start_time, slot.staff_name) == (MONDAY, "09:00", "Anna")
