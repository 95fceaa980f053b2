"""
Automated release of expired reservation holds

A commit with ``hold=True`` creates a ``reserved`` appointment that blocks the
slot until ``reserved_until``. Holds that were not confirmed in time are moved
to ``cancelled`` with reason ``reservation_expired`` so the slot becomes free.
Should be run as a scheduled job (e.g. every minute).
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..domain.scheduling.repository import SchedulingRepository
from ..domain.scheduling.service import apply_transition
from ..models import AppointmentStatus

logger = logging.getLogger(__name__)

RESERVATION_EXPIRED_REASON = "reservation_expired"


def release_expired_reservations(db: Session, now: datetime) -> dict:
    """
    Cancel every reserved appointment whose hold has expired

    Returns:
        dict: Summary with the number of released holds and their ids
    """
    summary = {"released": 0, "appointment_ids": []}

    try:
        expired = SchedulingRepository.get_expired_reservations(db, now)

        for appointment in expired:
            apply_transition(
                appointment, AppointmentStatus.CANCELLED.value, now, RESERVATION_EXPIRED_REASON
            )
            summary["appointment_ids"].append(appointment.id)
            logger.info(f"✅ Appointment {appointment.id} transitioned: reserved → cancelled (hold expired)")

        if expired:
            db.commit()
            summary["released"] = len(expired)
            logger.info(f"📊 Reservation cleanup summary: {summary}")
        else:
            logger.debug("ℹ️ No expired reservations")

        return summary

    except Exception as e:
        logger.error(f"❌ Error releasing expired reservations: {str(e)}")
        db.rollback()
        raise
