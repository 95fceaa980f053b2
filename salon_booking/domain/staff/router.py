"""Staff router - FastAPI endpoints for staff schedule administration"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import require_admin_token
from ...database import get_db
from .schemas import (
    AbsenceCreate,
    AbsenceResponse,
    SkillCreate,
    SkillResponse,
    WorkingHoursCreate,
    WorkingHoursResponse,
)
from .service import StaffService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/staff", tags=["Staff"], dependencies=[Depends(require_admin_token)])


def get_staff_service(db: Session = Depends(get_db)) -> StaffService:
    """Dependency injection for StaffService"""
    return StaffService(db)


# ============================================================================
# WORKING HOURS
# ============================================================================


@router.get("/{staff_id}/working-hours", response_model=list[WorkingHoursResponse])
async def get_working_hours(
    staff_id: int,
    service: StaffService = Depends(get_staff_service),
):
    return service.get_working_hours(staff_id)


@router.post("/{staff_id}/working-hours", response_model=WorkingHoursResponse, status_code=201)
async def add_working_hours(
    staff_id: int,
    data: WorkingHoursCreate,
    service: StaffService = Depends(get_staff_service),
):
    """Add a shift (several per day allowed)"""
    return service.add_working_hours(staff_id, data)


@router.delete("/{staff_id}/working-hours/{working_hours_id}")
async def delete_working_hours(
    staff_id: int,
    working_hours_id: int,
    service: StaffService = Depends(get_staff_service),
):
    return service.delete_working_hours(staff_id, working_hours_id)


# ============================================================================
# ABSENCES
# ============================================================================


@router.get("/{staff_id}/absences", response_model=list[AbsenceResponse])
async def get_absences(
    staff_id: int,
    service: StaffService = Depends(get_staff_service),
):
    return service.get_absences(staff_id)


@router.post("/{staff_id}/absences", response_model=AbsenceResponse, status_code=201)
async def add_absence(
    staff_id: int,
    data: AbsenceCreate,
    service: StaffService = Depends(get_staff_service),
):
    """Full-day absence, or a partial one when start_time/end_time are given"""
    return service.add_absence(staff_id, data)


@router.delete("/{staff_id}/absences/{absence_id}")
async def delete_absence(
    staff_id: int,
    absence_id: int,
    service: StaffService = Depends(get_staff_service),
):
    return service.delete_absence(staff_id, absence_id)


# ============================================================================
# SKILLS
# ============================================================================


@router.get("/{staff_id}/skills", response_model=list[SkillResponse])
async def get_skills(
    staff_id: int,
    service: StaffService = Depends(get_staff_service),
):
    return service.get_skills(staff_id)


@router.post("/{staff_id}/skills", response_model=SkillResponse, status_code=201)
async def add_skill(
    staff_id: int,
    data: SkillCreate,
    service: StaffService = Depends(get_staff_service),
):
    return service.add_skill(staff_id, data)


@router.delete("/{staff_id}/skills/{service_id}")
async def delete_skill(
    staff_id: int,
    service_id: int,
    service: StaffService = Depends(get_staff_service),
):
    return service.delete_skill(staff_id, service_id)
