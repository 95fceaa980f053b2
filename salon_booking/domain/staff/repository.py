"""Staff repository - Database operations for staff schedule data"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Service, Staff, StaffAbsence, StaffServiceSkill, StaffWorkingHours


class StaffRepository:
    """Repository for staff database operations"""

    @staticmethod
    def get_staff_by_id(db: Session, staff_id: int) -> Optional[Staff]:
        return db.query(Staff).filter(Staff.id == staff_id).first()

    @staticmethod
    def get_service_by_id(db: Session, service_id: int, salon_id: int) -> Optional[Service]:
        return (
            db.query(Service)
            .filter(Service.id == service_id, Service.salon_id == salon_id)
            .first()
        )

    # Working hours
    @staticmethod
    def get_working_hours(db: Session, staff_id: int) -> list[StaffWorkingHours]:
        return (
            db.query(StaffWorkingHours)
            .filter(StaffWorkingHours.staff_id == staff_id)
            .order_by(StaffWorkingHours.day_of_week, StaffWorkingHours.start_time_minutes)
            .all()
        )

    @staticmethod
    def get_working_hours_by_id(
        db: Session, working_hours_id: int, staff_id: int
    ) -> Optional[StaffWorkingHours]:
        return (
            db.query(StaffWorkingHours)
            .filter(StaffWorkingHours.id == working_hours_id, StaffWorkingHours.staff_id == staff_id)
            .first()
        )

    # Absences
    @staticmethod
    def get_absences(db: Session, staff_id: int) -> list[StaffAbsence]:
        return (
            db.query(StaffAbsence)
            .filter(StaffAbsence.staff_id == staff_id)
            .order_by(StaffAbsence.start_date)
            .all()
        )

    @staticmethod
    def get_absence_by_id(db: Session, absence_id: int, staff_id: int) -> Optional[StaffAbsence]:
        return (
            db.query(StaffAbsence)
            .filter(StaffAbsence.id == absence_id, StaffAbsence.staff_id == staff_id)
            .first()
        )

    # Skills
    @staticmethod
    def get_skills(db: Session, staff_id: int) -> list[StaffServiceSkill]:
        return (
            db.query(StaffServiceSkill)
            .filter(StaffServiceSkill.staff_id == staff_id)
            .order_by(StaffServiceSkill.service_id)
            .all()
        )

    @staticmethod
    def get_skill(db: Session, staff_id: int, service_id: int) -> Optional[StaffServiceSkill]:
        return (
            db.query(StaffServiceSkill)
            .filter(
                StaffServiceSkill.staff_id == staff_id,
                StaffServiceSkill.service_id == service_id,
            )
            .first()
        )

    @staticmethod
    def create(db: Session, row):
        """Insert any schedule row"""
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def delete(db: Session, row) -> None:
        db.delete(row)
        db.commit()
