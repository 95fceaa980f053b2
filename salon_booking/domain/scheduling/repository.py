"""Scheduling repository - Database operations for availability and appointments"""

from datetime import date, datetime, time, timedelta
from typing import Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from ...models import (
    BUSY_STATUSES,
    Appointment,
    AppointmentStatus,
    BlockedTime,
    BookingRule,
    Customer,
    OpeningHours,
    Salon,
    Service,
    Staff,
    StaffAbsence,
    StaffServiceSkill,
    StaffWorkingHours,
)
from .schemas import (
    AbsenceRecord,
    AppointmentRecord,
    AvailabilitySnapshot,
    BlockedTimeRecord,
    BookingRulesRecord,
    OpeningHoursRecord,
    ServiceRecord,
    SkillRecord,
    StaffRecord,
    WorkingHoursRecord,
)


class SchedulingRepository:
    """Repository for scheduling database operations"""

    @staticmethod
    def get_salon(db: Session, salon_id: int) -> Optional[Salon]:
        return db.query(Salon).filter(Salon.id == salon_id, Salon.is_active.is_(True)).first()

    @staticmethod
    def get_booking_rules(db: Session, salon_id: int) -> BookingRulesRecord:
        """Salon booking rules, or configured defaults when the salon has none"""
        rule = (
            db.query(BookingRule)
            .filter(BookingRule.salon_id == salon_id, BookingRule.is_active.is_(True))
            .first()
        )
        if not rule:
            return BookingRulesRecord()
        return BookingRulesRecord.model_validate(rule)

    @staticmethod
    def get_services(db: Session, salon_id: int, service_ids: Sequence[int]) -> list[Service]:
        if not service_ids:
            return []
        return (
            db.query(Service)
            .filter(Service.salon_id == salon_id, Service.id.in_(list(service_ids)))
            .all()
        )

    @staticmethod
    def get_bookable_services(db: Session, salon_id: int) -> list[Service]:
        return (
            db.query(Service)
            .filter(
                Service.salon_id == salon_id,
                Service.is_active.is_(True),
                Service.online_bookable.is_(True),
            )
            .order_by(Service.display_order, Service.name)
            .all()
        )

    @staticmethod
    def get_staff(db: Session, salon_id: int) -> list[Staff]:
        return (
            db.query(Staff)
            .options(selectinload(Staff.skills))
            .filter(Staff.salon_id == salon_id)
            .order_by(Staff.display_order, Staff.id)
            .all()
        )

    @staticmethod
    def get_staff_member(db: Session, staff_id: int, salon_id: int) -> Optional[Staff]:
        return db.query(Staff).filter(Staff.id == staff_id, Staff.salon_id == salon_id).first()

    @staticmethod
    def lock_staff_member(db: Session, staff_id: int) -> Optional[Staff]:
        """Row lock on the staff member; serializes concurrent commits for the same calendar"""
        query = db.query(Staff).filter(Staff.id == staff_id)
        if db.get_bind().dialect.name == "sqlite":
            # SQLite ignores FOR UPDATE; a no-op write holds the database write lock until commit
            query.update({Staff.id: Staff.id}, synchronize_session=False)
        return query.with_for_update().first()

    @staticmethod
    def add_customer(db: Session, customer: Customer) -> Customer:
        db.add(customer)
        db.flush()
        return customer

    @staticmethod
    def get_skills(db: Session, staff_ids: Sequence[int]) -> list[StaffServiceSkill]:
        if not staff_ids:
            return []
        return db.query(StaffServiceSkill).filter(StaffServiceSkill.staff_id.in_(list(staff_ids))).all()

    @staticmethod
    def get_opening_hours(db: Session, salon_id: int) -> list[OpeningHours]:
        return db.query(OpeningHours).filter(OpeningHours.salon_id == salon_id).all()

    @staticmethod
    def get_working_hours(db: Session, staff_ids: Sequence[int]) -> list[StaffWorkingHours]:
        if not staff_ids:
            return []
        return (
            db.query(StaffWorkingHours)
            .filter(StaffWorkingHours.staff_id.in_(list(staff_ids)))
            .order_by(StaffWorkingHours.staff_id, StaffWorkingHours.start_time_minutes)
            .all()
        )

    @staticmethod
    def get_absences(
        db: Session, staff_ids: Sequence[int], start_date: date, end_date: date
    ) -> list[StaffAbsence]:
        if not staff_ids:
            return []
        return (
            db.query(StaffAbsence)
            .filter(
                StaffAbsence.staff_id.in_(list(staff_ids)),
                StaffAbsence.start_date <= end_date,
                StaffAbsence.end_date >= start_date,
            )
            .all()
        )

    @staticmethod
    def get_blocked_times(
        db: Session, salon_id: int, window_start: datetime, window_end: datetime
    ) -> list[BlockedTime]:
        return (
            db.query(BlockedTime)
            .filter(
                BlockedTime.salon_id == salon_id,
                BlockedTime.start_datetime < window_end,
                BlockedTime.end_datetime > window_start,
            )
            .all()
        )

    @staticmethod
    def get_busy_appointments(
        db: Session, staff_ids: Sequence[int], window_start: datetime, window_end: datetime
    ) -> list[Appointment]:
        """Appointments in a blocking status overlapping the window"""
        if not staff_ids:
            return []
        return (
            db.query(Appointment)
            .filter(
                Appointment.staff_id.in_(list(staff_ids)),
                Appointment.status.in_(BUSY_STATUSES),
                Appointment.starts_at < window_end,
                Appointment.ends_at > window_start,
            )
            .all()
        )

    @staticmethod
    def get_customer(db: Session, customer_id: int, salon_id: int) -> Optional[Customer]:
        return (
            db.query(Customer)
            .filter(Customer.id == customer_id, Customer.salon_id == salon_id)
            .first()
        )

    @staticmethod
    def get_appointment(db: Session, appointment_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(selectinload(Appointment.services))
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def confirmation_number_exists(db: Session, confirmation_number: str) -> bool:
        return (
            db.query(Appointment.id)
            .filter(Appointment.confirmation_number == confirmation_number)
            .first()
            is not None
        )

    @staticmethod
    def add_appointment(db: Session, appointment: Appointment) -> Appointment:
        """Stage a new appointment; the caller owns the transaction"""
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def get_expired_reservations(db: Session, now: datetime) -> list[Appointment]:
        return (
            db.query(Appointment)
            .filter(
                Appointment.status == AppointmentStatus.RESERVED.value,
                or_(Appointment.reserved_until.is_(None), Appointment.reserved_until < now),
            )
            .order_by(Appointment.id)
            .all()
        )

    # Snapshot loading
    @classmethod
    def load_snapshot(
        cls,
        db: Session,
        salon_id: int,
        service_ids: Sequence[int],
        start_date: date,
        number_of_days: int,
        staff_ids: Optional[Sequence[int]] = None,
    ) -> AvailabilitySnapshot:
        """Read every row the availability engine needs for the date range.

        ``staff_ids`` narrows the calendars loaded; by default the whole salon team is read.
        """
        staff = cls.get_staff(db, salon_id)
        if staff_ids is not None:
            staff = [s for s in staff if s.id in set(staff_ids)]
        ids = [s.id for s in staff]

        # One extra day on each side catches buffers and appointments crossing midnight
        window_start = datetime.combine(start_date - timedelta(days=1), time.min)
        window_end = datetime.combine(start_date + timedelta(days=number_of_days + 1), time.min)
        end_date = start_date + timedelta(days=max(number_of_days - 1, 0))

        return AvailabilitySnapshot(
            rules=cls.get_booking_rules(db, salon_id),
            opening_hours=[
                OpeningHoursRecord.model_validate(row) for row in cls.get_opening_hours(db, salon_id)
            ],
            services=[
                ServiceRecord.model_validate(row)
                for row in cls.get_services(db, salon_id, service_ids)
            ],
            staff=[StaffRecord.model_validate(row) for row in staff],
            skills=[SkillRecord.model_validate(row) for row in cls.get_skills(db, ids)],
            working_hours=[
                WorkingHoursRecord.model_validate(row) for row in cls.get_working_hours(db, ids)
            ],
            absences=[
                AbsenceRecord.model_validate(row)
                for row in cls.get_absences(db, ids, start_date, end_date)
            ],
            blocked_times=[
                BlockedTimeRecord.model_validate(row)
                for row in cls.get_blocked_times(db, salon_id, window_start, window_end)
            ],
            appointments=[
                AppointmentRecord.model_validate(row)
                for row in cls.get_busy_appointments(db, ids, window_start, window_end)
            ],
        )
