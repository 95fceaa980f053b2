"""Staff service - Business logic for working hours, absences and skills"""

import logging

from sqlalchemy.orm import Session

from ...models import Staff, StaffAbsence, StaffServiceSkill, StaffWorkingHours
from ..scheduling.errors import ConflictError, NotFoundError
from .repository import StaffRepository
from .schemas import AbsenceCreate, SkillCreate, WorkingHoursCreate

logger = logging.getLogger(__name__)


class StaffService:
    """Service layer for staff schedule administration"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = StaffRepository()

    def get_staff_member(self, staff_id: int) -> Staff:
        staff = self.repo.get_staff_by_id(self.db, staff_id)
        if not staff:
            raise NotFoundError("Staff member not found", staff_id=staff_id)
        return staff

    # ------------------------------------------------------------------
    # Working hours
    # ------------------------------------------------------------------

    def get_working_hours(self, staff_id: int) -> list[StaffWorkingHours]:
        self.get_staff_member(staff_id)
        return self.repo.get_working_hours(self.db, staff_id)

    def add_working_hours(self, staff_id: int, data: WorkingHoursCreate) -> StaffWorkingHours:
        self.get_staff_member(staff_id)
        row = StaffWorkingHours(
            staff_id=staff_id,
            day_of_week=data.day_of_week,
            start_time_minutes=data.start_time,
            end_time_minutes=data.end_time,
            break_start_minutes=data.break_start,
            break_end_minutes=data.break_end,
            label=data.label,
            valid_from=data.valid_from,
            valid_to=data.valid_to,
        )
        row = self.repo.create(self.db, row)
        logger.info(f"✅ Working hours {row.id} added for staff {staff_id} (day {row.day_of_week})")
        return row

    def delete_working_hours(self, staff_id: int, working_hours_id: int) -> dict:
        row = self.repo.get_working_hours_by_id(self.db, working_hours_id, staff_id)
        if not row:
            raise NotFoundError(
                "Working hours not found", staff_id=staff_id, working_hours_id=working_hours_id
            )
        self.repo.delete(self.db, row)
        logger.info(f"🗑️ Working hours {working_hours_id} deleted for staff {staff_id}")
        return {"message": "Working hours deleted"}

    # ------------------------------------------------------------------
    # Absences
    # ------------------------------------------------------------------

    def get_absences(self, staff_id: int) -> list[StaffAbsence]:
        self.get_staff_member(staff_id)
        return self.repo.get_absences(self.db, staff_id)

    def add_absence(self, staff_id: int, data: AbsenceCreate) -> StaffAbsence:
        self.get_staff_member(staff_id)
        row = StaffAbsence(
            staff_id=staff_id,
            start_date=data.start_date,
            end_date=data.end_date,
            start_time_minutes=data.start_time,
            end_time_minutes=data.end_time,
            reason=data.reason,
            notes=data.notes,
        )
        row = self.repo.create(self.db, row)
        logger.info(
            f"✅ Absence {row.id} ({row.reason}) added for staff {staff_id}: "
            f"{row.start_date} → {row.end_date}"
        )
        return row

    def delete_absence(self, staff_id: int, absence_id: int) -> dict:
        row = self.repo.get_absence_by_id(self.db, absence_id, staff_id)
        if not row:
            raise NotFoundError("Absence not found", staff_id=staff_id, absence_id=absence_id)
        self.repo.delete(self.db, row)
        logger.info(f"🗑️ Absence {absence_id} deleted for staff {staff_id}")
        return {"message": "Absence deleted"}

    # ------------------------------------------------------------------
    # Skills
    # ------------------------------------------------------------------

    def get_skills(self, staff_id: int) -> list[StaffServiceSkill]:
        self.get_staff_member(staff_id)
        return self.repo.get_skills(self.db, staff_id)

    def add_skill(self, staff_id: int, data: SkillCreate) -> StaffServiceSkill:
        staff = self.get_staff_member(staff_id)
        if not self.repo.get_service_by_id(self.db, data.service_id, staff.salon_id):
            raise NotFoundError("Service not found", service_ids=[data.service_id])
        if self.repo.get_skill(self.db, staff_id, data.service_id):
            raise ConflictError(
                "Staff member already has this skill", staff_id=staff_id, service_ids=[data.service_id]
            )
        row = StaffServiceSkill(
            staff_id=staff_id,
            service_id=data.service_id,
            custom_duration_minutes=data.custom_duration_minutes,
        )
        row = self.repo.create(self.db, row)
        logger.info(f"✅ Staff {staff_id} can now perform service {data.service_id}")
        return row

    def delete_skill(self, staff_id: int, service_id: int) -> dict:
        row = self.repo.get_skill(self.db, staff_id, service_id)
        if not row:
            raise NotFoundError("Skill not found", staff_id=staff_id, service_ids=[service_id])
        self.repo.delete(self.db, row)
        logger.info(f"🗑️ Service {service_id} removed from staff {staff_id}")
        return {"message": "Skill deleted"}
