"""Scheduling service - Business logic for slot queries and appointment booking"""

import logging
import secrets
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ... import config
from ...models import Appointment, AppointmentService, AppointmentStatus, Customer, Service, Staff
from .appointment_status import initial_status, validate_transition
from .availability_service import (
    booking_window,
    first_slot,
    generate_slots,
    is_slot_free,
    qualified_service_ids,
    required_duration,
    resolve_buffer_policy,
    resolve_services,
    select_candidate_staff,
)
from .errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from .repository import SchedulingRepository
from .schemas import AppointmentCreate, BookableStaffResponse, ServiceRecord, SkillRecord, TimeSlot
from .time_calculator import TimeInterval, at_minutes

logger = logging.getLogger(__name__)

# No 0/O or 1/I, so numbers can be read out over the phone
CONFIRMATION_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CONFIRMATION_LENGTH = 8
CONFIRMATION_ATTEMPTS = 3
CENT = Decimal("0.01")


def generate_confirmation_number() -> str:
    return "".join(secrets.choice(CONFIRMATION_ALPHABET) for _ in range(CONFIRMATION_LENGTH))


def is_confirmation_number_collision(error: IntegrityError) -> bool:
    """Unique violation on the confirmation number rather than on the staff time slot"""
    return "confirmation_number" in str(error.orig)


def included_tax(price: Decimal, rate_percent: Decimal) -> Decimal:
    """VAT contained in a gross price: price * rate / (100 + rate)"""
    if not rate_percent:
        return Decimal("0.00")
    return (price * rate_percent / (Decimal(100) + rate_percent)).quantize(CENT, ROUND_HALF_UP)


def apply_transition(
    appointment: Appointment, new_status: str, now: datetime, reason: Optional[str] = None
) -> AppointmentStatus:
    """Validate and apply a status change in memory; the caller commits"""
    target = validate_transition(appointment.status, new_status, appointment.id)
    appointment.status = target.value
    appointment.status_changed_at = now
    appointment.reserved_until = None
    if target == AppointmentStatus.CANCELLED:
        appointment.cancelled_at = now
        appointment.cancellation_reason = reason
    elif target == AppointmentStatus.COMPLETED:
        appointment.completed_at = now
    return target


class SchedulingService:
    """Service layer for availability queries and appointment lifecycle"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()

    def _require_salon(self, salon_id: int):
        salon = self.repo.get_salon(self.db, salon_id)
        if not salon:
            raise NotFoundError("Salon not found", salon_id=salon_id)
        return salon

    # ------------------------------------------------------------------
    # Catalogue
    # ------------------------------------------------------------------

    def get_bookable_services(self, salon_id: int) -> list[Service]:
        self._require_salon(salon_id)
        return self.repo.get_bookable_services(self.db, salon_id)

    def get_bookable_staff(
        self, salon_id: int, service_ids: Sequence[int] = ()
    ) -> list[BookableStaffResponse]:
        """Active online-bookable staff qualified for every service in ``service_ids``"""
        self._require_salon(salon_id)
        required = set(service_ids)
        result = []
        for staff in self.repo.get_staff(self.db, salon_id):
            if not staff.is_active or not staff.accepts_online_bookings:
                continue
            skills = [SkillRecord.model_validate(s) for s in staff.skills]
            qualified = qualified_service_ids(staff.id, skills)
            if not required <= qualified:
                continue
            result.append(
                BookableStaffResponse(
                    id=staff.id,
                    display_name=staff.display_name,
                    bio=staff.bio,
                    service_ids=sorted(qualified),
                )
            )
        return result

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    def find_slots(
        self,
        salon_id: int,
        service_ids: Sequence[int],
        now: datetime,
        staff_id: Optional[int] = None,
        start_date: Optional[date] = None,
        number_of_days: Optional[int] = None,
        step_minutes: Optional[int] = None,
    ) -> tuple[int, dict[date, list[TimeSlot]]]:
        """Bookable slots per date for the requested services"""
        self._require_salon(salon_id)
        start_date = start_date or now.date()
        days = number_of_days if number_of_days is not None else config.DEFAULT_SLOT_QUERY_DAYS

        snapshot = self.repo.load_snapshot(
            self.db,
            salon_id,
            service_ids,
            start_date,
            max(days, 1),
            staff_ids=[staff_id] if staff_id is not None else None,
        )
        return generate_slots(
            snapshot,
            service_ids,
            staff_id,
            start_date,
            days,
            now,
            step_minutes=step_minutes,
        )

    def next_available_slot(
        self,
        salon_id: int,
        service_ids: Sequence[int],
        now: datetime,
        staff_id: Optional[int] = None,
        start_date: Optional[date] = None,
        number_of_days: Optional[int] = None,
    ) -> Optional[TimeSlot]:
        _, slots = self.find_slots(
            salon_id,
            service_ids,
            now,
            staff_id=staff_id,
            start_date=start_date,
            number_of_days=number_of_days,
        )
        return first_slot(slots)

    # ------------------------------------------------------------------
    # Appointment commit
    # ------------------------------------------------------------------

    def commit_appointment(self, salon_id: int, data: AppointmentCreate, now: datetime) -> Appointment:
        """Re-check the slot under a staff row lock and persist the appointment.

        Raises ConflictError when the slot is no longer free; callers should
        re-query slots and let the customer pick again.
        """
        self._require_salon(salon_id)
        logger.info(
            f"📥 Booking request salon={salon_id} staff={data.staff_id} "
            f"{data.date} {data.start_minute}-{data.end_minute} services={data.service_ids}"
        )

        for attempt in range(1, CONFIRMATION_ATTEMPTS + 1):
            try:
                appointment = self._commit_once(salon_id, data, now)
                break
            except IntegrityError as e:
                self.db.rollback()
                if not is_confirmation_number_collision(e):
                    logger.warning(f"⚠️ Double booking prevented by database for staff {data.staff_id}: {e.orig}")
                    raise ConflictError(
                        "Slot was booked by someone else",
                        salon_id=salon_id,
                        staff_id=data.staff_id,
                        date=data.date,
                        start_minute=data.start_minute,
                    ) from None
                logger.warning(f"⚠️ Confirmation number collision on attempt {attempt}, retrying")
        else:
            raise ConflictError("Could not generate a unique confirmation number", salon_id=salon_id)

        self.db.refresh(appointment)
        logger.info(
            f"✅ Appointment {appointment.id} ({appointment.confirmation_number}) "
            f"{appointment.status} for staff {appointment.staff_id} at {appointment.starts_at}"
        )
        return appointment

    def _commit_once(self, salon_id: int, data: AppointmentCreate, now: datetime) -> Appointment:
        # Serializes commits for this staff member until the transaction ends
        staff = self.repo.lock_staff_member(self.db, data.staff_id)
        if not staff or staff.salon_id != salon_id:
            self.db.rollback()
            raise NotFoundError("Staff member not found", staff_id=data.staff_id)

        try:
            customer = self._resolve_customer(salon_id, data)
            appointment = self._build_appointment(salon_id, staff, customer, data, now)
        except Exception:
            self.db.rollback()
            raise

        self.repo.add_appointment(self.db, appointment)
        self.db.commit()
        return appointment

    def _resolve_customer(self, salon_id: int, data: AppointmentCreate) -> Customer:
        """Existing customer by id, or a new one created in the booking transaction"""
        if data.customer_id is not None:
            customer = self.repo.get_customer(self.db, data.customer_id, salon_id)
            if not customer:
                raise NotFoundError("Customer not found", customer_id=data.customer_id)
            return customer

        customer = self.repo.add_customer(
            self.db, Customer(salon_id=salon_id, **data.customer.model_dump())
        )
        logger.info(f"👤 New customer {customer.id} for salon {salon_id}")
        return customer

    def _build_appointment(
        self, salon_id: int, staff: Staff, customer: Customer, data: AppointmentCreate, now: datetime
    ) -> Appointment:
        online = data.booked_via == "online"
        snapshot = self.repo.load_snapshot(
            self.db, salon_id, data.service_ids, data.date, 1, staff_ids=[staff.id]
        )
        rules = snapshot.rules
        services = resolve_services(snapshot, data.service_ids, online=online)

        if not select_candidate_staff(snapshot, data.service_ids, staff.id):
            raise ValidationError(
                "Staff member cannot perform the selected services",
                staff_id=staff.id,
                service_ids=data.service_ids,
            )
        if online and not staff.accepts_online_bookings:
            raise ValidationError("Staff member does not accept online bookings", staff_id=staff.id)

        slot = TimeInterval(data.start_minute, data.end_minute)
        # "No preference" slots are listed with catalogue durations, a chosen staff member with their own
        skills = () if data.any_staff else snapshot.skills
        expected = required_duration(services, skills, staff.id)
        if slot.duration_minutes != expected:
            raise ValidationError(
                f"Slot length {slot.duration_minutes} does not match service duration {expected}",
                staff_id=staff.id,
                service_ids=data.service_ids,
            )

        starts_at = at_minutes(data.date, slot.start)
        ends_at = at_minutes(data.date, slot.end)
        earliest, last_day = booking_window(now, rules)
        if starts_at < earliest or data.date > last_day:
            raise ConflictError(
                "Slot is outside the booking window",
                salon_id=salon_id,
                staff_id=staff.id,
                date=data.date,
                start_minute=slot.start,
            )

        buffers = resolve_buffer_policy(services, rules)
        if not is_slot_free(staff.id, data.date, slot, snapshot, buffers):
            logger.warning(f"⚠️ Slot {data.date} {slot} no longer free for staff {staff.id}")
            raise ConflictError(
                "Slot is no longer available",
                salon_id=salon_id,
                staff_id=staff.id,
                date=data.date,
                start_minute=slot.start,
            )

        lines = self._service_lines(services, skills, staff.id)

        status = initial_status(data.booked_via, rules.auto_confirm_online_bookings, hold=data.hold)
        reserved_until = None
        if status == AppointmentStatus.RESERVED:
            reserved_until = now + timedelta(minutes=rules.reservation_timeout_minutes)

        return Appointment(
            salon_id=salon_id,
            customer_id=customer.id,
            staff_id=staff.id,
            starts_at=starts_at,
            ends_at=ends_at,
            status=status.value,
            status_changed_at=now,
            reserved_until=reserved_until,
            total_price_chf=sum((line.snapshot_price_chf for line in lines), Decimal("0.00")),
            total_tax_chf=sum((line.snapshot_tax_chf for line in lines), Decimal("0.00")),
            total_duration_minutes=slot.duration_minutes,
            booked_via=data.booked_via,
            confirmation_number=self._unique_confirmation_number(),
            customer_notes=data.customer_notes,
            staff_notes=data.staff_notes,
            services=lines,
        )

    @staticmethod
    def _service_lines(
        services: Sequence[ServiceRecord], skills: Sequence[SkillRecord], staff_id: int
    ) -> list[AppointmentService]:
        """Price, tax and duration as they are at booking time"""
        lines = []
        for index, service in enumerate(services):
            price = Decimal(service.price_chf).quantize(CENT, ROUND_HALF_UP)
            rate = (
                Decimal(service.tax_rate_percent)
                if service.tax_rate_percent is not None
                else Decimal(str(config.DEFAULT_TAX_RATE_PERCENT))
            )
            lines.append(
                AppointmentService(
                    service_id=service.id,
                    snapshot_service_name=service.name,
                    snapshot_price_chf=price,
                    snapshot_tax_rate_percent=rate,
                    snapshot_tax_chf=included_tax(price, rate),
                    snapshot_duration_minutes=required_duration([service], skills, staff_id),
                    sort_order=index,
                )
            )
        return lines

    def _unique_confirmation_number(self, attempts: int = 10) -> str:
        for _ in range(attempts):
            number = generate_confirmation_number()
            if not self.repo.confirmation_number_exists(self.db, number):
                return number
        raise ConflictError("Could not generate a unique confirmation number")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)
        return appointment

    def verify_confirmation_number(self, appointment_id: int, confirmation_number: str) -> Appointment:
        """Customer access: the confirmation number stands in for a login"""
        appointment = self.get_appointment(appointment_id)
        given = confirmation_number.strip().upper().encode()
        if not secrets.compare_digest(appointment.confirmation_number.encode(), given):
            logger.warning(f"⚠️ Wrong confirmation number for appointment {appointment_id}")
            raise ForbiddenError("Confirmation number does not match", appointment_id=appointment_id)
        return appointment

    def transition_status(
        self, appointment_id: int, new_status: str, now: datetime, reason: Optional[str] = None
    ) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        previous = appointment.status
        apply_transition(appointment, new_status, now, reason)
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"🔄 Appointment {appointment.id} status {previous} → {appointment.status}")
        return appointment

    def cancel_appointment(
        self, appointment_id: int, now: datetime, reason: Optional[str] = None
    ) -> Appointment:
        return self.transition_status(
            appointment_id, AppointmentStatus.CANCELLED.value, now, reason=reason
        )
