"""
Availability engine.

Pure functions over an ``AvailabilitySnapshot``: nothing here touches the database,
so the same snapshot and ``now`` always produce the same slots.

    working hours (per weekday, minus breaks)
      ∩ salon opening hours
      − absences − blocked times
      − existing appointments (expanded by buffers)
      = free intervals  →  slot starts every ``step`` minutes
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence

from ...models import BUSY_STATUSES
from .errors import NotFoundError, ValidationError
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
    TimeSlot,
    WorkingHoursRecord,
)
from .time_calculator import (
    TimeInterval,
    align_up,
    at_minutes,
    clip_to_day,
    day_of_week,
    daterange,
    intersect_all,
    merge,
    minutes_to_time,
    subtract_all,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BufferPolicy:
    """Minutes added around every existing appointment before it is treated as busy"""

    before_minutes: int = 0
    after_minutes: int = 0

    def __post_init__(self):
        if self.before_minutes < 0 or self.after_minutes < 0:
            raise ValidationError(
                "Buffers cannot be negative",
                before_minutes=self.before_minutes,
                after_minutes=self.after_minutes,
            )


def resolve_buffer_policy(
    services: Sequence[ServiceRecord], rules: BookingRulesRecord
) -> BufferPolicy:
    """Buffers from the requested services ("service") or the salon-wide default ("salon")"""
    if rules.buffer_source == "salon":
        buffer = rules.default_visit_buffer_minutes
        return BufferPolicy(before_minutes=buffer, after_minutes=buffer)
    return BufferPolicy(
        before_minutes=max((s.buffer_before_minutes for s in services), default=0),
        after_minutes=max((s.buffer_after_minutes for s in services), default=0),
    )


# ============================================================================
# STAFF SCHEDULE RESOLVER
# ============================================================================


def resolve_staff_availability(
    staff_id: int,
    day: date,
    opening_hours: Iterable[OpeningHoursRecord],
    working_hours: Iterable[WorkingHoursRecord],
    absences: Iterable[AbsenceRecord] = (),
    blocked_times: Iterable[BlockedTimeRecord] = (),
) -> list[TimeInterval]:
    """Ordered, non-overlapping intervals in which ``staff_id`` can work on ``day``"""
    weekday = day_of_week(day)

    shifts = []
    for row in working_hours:
        if row.staff_id != staff_id or row.day_of_week != weekday or not row.applies_to(day):
            continue
        shift = TimeInterval(row.start_time_minutes, row.end_time_minutes)
        if row.break_start_minutes is not None:
            break_interval = TimeInterval(row.break_start_minutes, row.break_end_minutes)
            shifts.extend(shift.subtract([break_interval]))
        else:
            shifts.append(shift)
    if not shifts:
        return []

    # Staff cannot be available while the salon is closed
    opening = [
        TimeInterval(row.open_time_minutes, row.close_time_minutes)
        for row in opening_hours
        if row.is_active and row.day_of_week == weekday
    ]
    available = intersect_all(merge(shifts), opening)

    obstacles = []
    for absence in absences:
        if absence.staff_id != staff_id or not absence.covers(day):
            continue
        if absence.is_full_day:
            return []
        obstacles.append(TimeInterval(absence.start_time_minutes, absence.end_time_minutes))

    for block in blocked_times:
        if block.staff_id is not None and block.staff_id != staff_id:
            continue
        piece = clip_to_day(block.start_datetime, block.end_datetime, day)
        if piece:
            obstacles.append(piece)

    return subtract_all(available, obstacles)


# ============================================================================
# BUSY-INTERVAL COLLECTOR
# ============================================================================


def collect_busy_intervals(
    staff_id: int,
    start_date: date,
    number_of_days: int,
    appointments: Iterable[AppointmentRecord],
    buffers: BufferPolicy = BufferPolicy(),
) -> dict[date, list[TimeInterval]]:
    """Busy intervals per day for ``staff_id``, buffers included.

    Intervals from different appointments may overlap; they are not merged here.
    Cancelled and no-show appointments never block.
    """
    days = daterange(start_date, number_of_days)
    busy: dict[date, list[TimeInterval]] = {day: [] for day in days}

    for appointment in appointments:
        if appointment.staff_id != staff_id or appointment.status not in BUSY_STATUSES:
            continue
        blocked_from = appointment.starts_at - timedelta(minutes=buffers.before_minutes)
        blocked_to = appointment.ends_at + timedelta(minutes=buffers.after_minutes)
        for day in days:
            piece = clip_to_day(blocked_from, blocked_to, day)
            if piece:
                busy[day].append(piece)
    return busy


def free_intervals(
    staff_id: int,
    day: date,
    snapshot: AvailabilitySnapshot,
    buffers: BufferPolicy,
    busy: Optional[list[TimeInterval]] = None,
) -> list[TimeInterval]:
    """Available intervals minus busy intervals for one staff member and day"""
    available = resolve_staff_availability(
        staff_id,
        day,
        snapshot.opening_hours,
        snapshot.working_hours,
        snapshot.absences,
        snapshot.blocked_times,
    )
    if not available:
        return []
    if busy is None:
        busy = collect_busy_intervals(staff_id, day, 1, snapshot.appointments, buffers)[day]
    return subtract_all(available, busy)


# ============================================================================
# SLOT GENERATOR
# ============================================================================


def qualified_service_ids(staff_id: int, skills: Iterable[SkillRecord]) -> set[int]:
    return {s.service_id for s in skills if s.staff_id == staff_id and s.is_active}


def required_duration(
    services: Sequence[ServiceRecord],
    skills: Iterable[SkillRecord] = (),
    staff_id: Optional[int] = None,
) -> int:
    """Total minutes for ``services``; with ``staff_id``, that staff's custom durations win"""
    overrides = {}
    if staff_id is not None:
        overrides = {
            s.service_id: s.custom_duration_minutes
            for s in skills
            if s.staff_id == staff_id and s.is_active and s.custom_duration_minutes
        }
    return sum(overrides.get(service.id, service.duration_minutes) for service in services)


def resolve_services(
    snapshot: AvailabilitySnapshot, service_ids: Sequence[int], online: bool = True
) -> list[ServiceRecord]:
    """Requested services in request order; raises on empty, unknown or unbookable ids"""
    if not service_ids:
        raise ValidationError("At least one service must be selected")
    if len(set(service_ids)) != len(service_ids):
        raise ValidationError("A service can only be selected once", service_ids=list(service_ids))
    if len(service_ids) > snapshot.rules.max_services_per_appointment:
        raise ValidationError(
            f"At most {snapshot.rules.max_services_per_appointment} services per appointment",
            service_ids=list(service_ids),
        )

    by_id = {s.id: s for s in snapshot.services}
    missing = [sid for sid in service_ids if sid not in by_id]
    if missing:
        raise NotFoundError("Service not found", service_ids=missing)

    services = [by_id[sid] for sid in service_ids]
    for service in services:
        if not service.is_active:
            raise ValidationError("Service is not active", service_ids=[service.id])
        if online and not service.online_bookable:
            raise ValidationError("Service cannot be booked online", service_ids=[service.id])
    return services


def select_candidate_staff(
    snapshot: AvailabilitySnapshot, service_ids: Sequence[int], staff_id: Optional[int] = None
) -> list[StaffRecord]:
    """The requested staff member, or every active online-bookable staff member (no preference).

    Only staff qualified for ALL requested services are returned.
    """
    required = set(service_ids)
    if staff_id is not None:
        staff = next((s for s in snapshot.staff if s.id == staff_id), None)
        if staff is None:
            raise NotFoundError("Staff member not found", staff_id=staff_id)
        if staff.is_active and required <= qualified_service_ids(staff.id, snapshot.skills):
            return [staff]
        return []

    return [
        staff
        for staff in snapshot.staff
        if staff.is_active
        and staff.accepts_online_bookings
        and required <= qualified_service_ids(staff.id, snapshot.skills)
    ]


def enumerate_starts(free: Iterable[TimeInterval], duration: int, step: int) -> list[int]:
    """Grid-aligned start minutes whose ``[start, start + duration)`` fits a free interval"""
    starts = []
    for interval in free:
        start = align_up(interval.start, step)
        while start + duration <= interval.end:
            starts.append(start)
            start += step
    return starts


def booking_window(now: datetime, rules: BookingRulesRecord) -> tuple[datetime, date]:
    """Earliest bookable start and last bookable date"""
    earliest = now + timedelta(minutes=rules.min_lead_time_minutes)
    last_day = now.date() + timedelta(days=rules.max_booking_horizon_days)
    return earliest, last_day


def generate_slots(
    snapshot: AvailabilitySnapshot,
    service_ids: Sequence[int],
    staff_id: Optional[int],
    start_date: date,
    number_of_days: int,
    now: datetime,
    step_minutes: Optional[int] = None,
    online: bool = True,
) -> tuple[int, dict[date, list[TimeSlot]]]:
    """Bookable slots per date, plus the total duration they were computed for.

    With ``staff_id=None`` every qualified staff member's slots are returned
    individually; two staff free at 10:00 give two slots.
    """
    if number_of_days < 1:
        raise ValidationError("number_of_days must be at least 1", number_of_days=number_of_days)
    step = step_minutes or snapshot.rules.slot_granularity_minutes
    if step <= 0:
        raise ValidationError("step_minutes must be positive", step_minutes=step)

    services = resolve_services(snapshot, service_ids, online=online)
    candidates = select_candidate_staff(snapshot, service_ids, staff_id)
    duration = required_duration(services, snapshot.skills, staff_id)
    buffers = resolve_buffer_policy(services, snapshot.rules)
    earliest, last_day = booking_window(now, snapshot.rules)

    days = [
        day
        for day in daterange(start_date, number_of_days)
        if now.date() <= day <= last_day
    ]

    slots_by_date: dict[date, list[TimeSlot]] = defaultdict(list)
    for staff in candidates:
        busy_by_day = collect_busy_intervals(
            staff.id, start_date, number_of_days, snapshot.appointments, buffers
        )
        for day in days:
            free = free_intervals(staff.id, day, snapshot, buffers, busy=busy_by_day[day])
            for start in enumerate_starts(free, duration, step):
                starts_at = at_minutes(day, start)
                if starts_at < earliest:
                    continue
                slots_by_date[day].append(
                    TimeSlot(
                        date=day,
                        start_minute=start,
                        end_minute=start + duration,
                        start_time=minutes_to_time(start),
                        end_time=minutes_to_time(start + duration),
                        starts_at=starts_at,
                        staff_id=staff.id,
                        staff_name=staff.display_name,
                    )
                )

    result = {}
    for day in sorted(slots_by_date):
        result[day] = sorted(slots_by_date[day], key=lambda s: (s.start_minute, s.staff_id))

    logger.info(
        f"📅 Slot query services={list(service_ids)} staff={staff_id or 'any'} "
        f"candidates={len(candidates)} days={number_of_days} → "
        f"{sum(len(v) for v in result.values())} slots"
    )
    return duration, result


def first_slot(slots_by_date: dict[date, list[TimeSlot]]) -> Optional[TimeSlot]:
    for day in sorted(slots_by_date):
        if slots_by_date[day]:
            return slots_by_date[day][0]
    return None


def is_slot_free(
    staff_id: int,
    day: date,
    slot: TimeInterval,
    snapshot: AvailabilitySnapshot,
    buffers: BufferPolicy,
) -> bool:
    """Commit-time recheck: the slot must still fit inside one free interval"""
    return any(free.covers(slot) for free in free_intervals(staff_id, day, snapshot, buffers))
