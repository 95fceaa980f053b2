"""Scheduling router - FastAPI endpoints for availability and appointments"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ... import config
from ...auth import has_admin_token, require_admin_token, require_cron_secret, security
from ...database import get_db
from ...services.reservation_cleanup import release_expired_reservations
from .schemas import (
    AppointmentCreate,
    AppointmentResponse,
    BookableServiceResponse,
    BookableStaffResponse,
    CancelRequest,
    NextSlotResponse,
    ReservationCleanupResult,
    SlotsResponse,
    StatusTransitionRequest,
)
from .service import SchedulingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduling", tags=["Scheduling"])


def get_scheduling_service(db: Session = Depends(get_db)) -> SchedulingService:
    """Dependency injection for SchedulingService"""
    return SchedulingService(db)


def get_now() -> datetime:
    """Salon wall-clock time; overridden in tests"""
    return config.salon_now()


async def require_appointment_access(
    appointment_id: int,
    confirmation_number: Optional[str] = Query(None, description="Customer access without an admin token"),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    service: SchedulingService = Depends(get_scheduling_service),
) -> None:
    """Admin bearer token, or the confirmation number handed out at booking"""
    if has_admin_token(credentials):
        return
    if not confirmation_number:
        raise HTTPException(
            status_code=401,
            detail="Provide the confirmation number or an admin Bearer token.",
        )
    service.verify_confirmation_number(appointment_id, confirmation_number)


# ============================================================================
# CATALOGUE
# ============================================================================


@router.get("/salons/{salon_id}/services", response_model=list[BookableServiceResponse])
async def get_bookable_services(
    salon_id: int,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Active services that customers can book online"""
    return service.get_bookable_services(salon_id)


@router.get("/salons/{salon_id}/staff", response_model=list[BookableStaffResponse])
async def get_bookable_staff(
    salon_id: int,
    service_ids: list[int] = Query(default=[]),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Staff members qualified for all of the given services"""
    return service.get_bookable_staff(salon_id, service_ids)


# ============================================================================
# SLOTS
# ============================================================================


@router.get("/salons/{salon_id}/slots", response_model=SlotsResponse)
async def get_available_slots(
    salon_id: int,
    service_ids: list[int] = Query(...),
    staff_id: Optional[int] = Query(None, description="Omit for any available staff member"),
    start_date: Optional[date] = Query(None),
    days: Optional[int] = Query(None, ge=1, le=366),
    step_minutes: Optional[int] = Query(None, ge=1, le=240),
    now: datetime = Depends(get_now),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Bookable slots grouped by date"""
    duration, slots = service.find_slots(
        salon_id,
        service_ids,
        now,
        staff_id=staff_id,
        start_date=start_date,
        number_of_days=days,
        step_minutes=step_minutes,
    )
    return SlotsResponse(salon_id=salon_id, total_duration_minutes=duration, slots=slots)


@router.get("/salons/{salon_id}/slots/next", response_model=NextSlotResponse)
async def get_next_available_slot(
    salon_id: int,
    service_ids: list[int] = Query(...),
    staff_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    days: Optional[int] = Query(None, ge=1, le=366),
    now: datetime = Depends(get_now),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Earliest bookable slot in the range, if any"""
    slot = service.next_available_slot(
        salon_id,
        service_ids,
        now,
        staff_id=staff_id,
        start_date=start_date,
        number_of_days=days,
    )
    return NextSlotResponse(salon_id=salon_id, slot=slot)


# ============================================================================
# APPOINTMENTS
# ============================================================================


@router.post("/salons/{salon_id}/appointments", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    salon_id: int,
    data: AppointmentCreate,
    now: datetime = Depends(get_now),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Book a slot. Returns 409 when the slot was taken in the meantime."""
    return service.commit_appointment(salon_id, data, now)


@router.get(
    "/appointments/{appointment_id}",
    response_model=AppointmentResponse,
    dependencies=[Depends(require_appointment_access)],
)
async def get_appointment(
    appointment_id: int,
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.get_appointment(appointment_id)


@router.post(
    "/appointments/{appointment_id}/status",
    response_model=AppointmentResponse,
    dependencies=[Depends(require_admin_token)],
)
async def change_appointment_status(
    appointment_id: int,
    data: StatusTransitionRequest,
    now: datetime = Depends(get_now),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Move an appointment through its workflow (confirm, check in, complete...)"""
    return service.transition_status(appointment_id, data.status, now, reason=data.reason)


@router.post(
    "/appointments/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    dependencies=[Depends(require_appointment_access)],
)
async def cancel_appointment(
    appointment_id: int,
    data: CancelRequest,
    now: datetime = Depends(get_now),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.cancel_appointment(appointment_id, now, reason=data.reason)


# ============================================================================
# MAINTENANCE
# ============================================================================


@router.post(
    "/maintenance/release-expired-reservations",
    response_model=ReservationCleanupResult,
    dependencies=[Depends(require_cron_secret)],
)
async def release_reservations(
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    """Cancel reserved appointments whose hold has expired"""
    return release_expired_reservations(db, now)
