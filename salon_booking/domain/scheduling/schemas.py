"""Scheduling domain schemas - typed records entering the availability engine and API models"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ... import config
from ...models import BOOKING_CHANNELS, AppointmentStatus
from ...shared.validators import validate_email

MINUTES_FIELD = Field(ge=0, le=1440)


# ============================================================================
# RECORDS - validated rows read from the database (or built by tests)
# ============================================================================


class Record(BaseModel):
    class Config:
        from_attributes = True
        frozen = True


class BookingRulesRecord(Record):
    min_lead_time_minutes: int = Field(default=config.DEFAULT_MIN_LEAD_TIME_MINUTES, ge=0)
    max_booking_horizon_days: int = Field(default=config.DEFAULT_MAX_BOOKING_HORIZON_DAYS, gt=0)
    slot_granularity_minutes: int = Field(default=config.DEFAULT_SLOT_GRANULARITY_MINUTES, gt=0)
    default_visit_buffer_minutes: int = Field(default=config.DEFAULT_VISIT_BUFFER_MINUTES, ge=0)
    buffer_source: str = config.DEFAULT_BUFFER_SOURCE
    auto_confirm_online_bookings: bool = config.DEFAULT_AUTO_CONFIRM_ONLINE
    reservation_timeout_minutes: int = Field(default=config.DEFAULT_RESERVATION_HOLD_MINUTES, gt=0)
    max_services_per_appointment: int = Field(default=config.MAX_SERVICES_PER_APPOINTMENT, gt=0)

    @field_validator("buffer_source")
    @classmethod
    def validate_buffer_source(cls, v):
        if v not in ("service", "salon"):
            raise ValueError("buffer_source must be 'service' or 'salon'")
        return v


class OpeningHoursRecord(Record):
    day_of_week: int = Field(ge=0, le=6)
    open_time_minutes: int = MINUTES_FIELD
    close_time_minutes: int = MINUTES_FIELD
    is_active: bool = True


class ServiceRecord(Record):
    id: int
    name: str
    duration_minutes: int = Field(gt=0)
    price_chf: Decimal
    tax_rate_percent: Optional[Decimal] = None
    buffer_before_minutes: int = Field(default=0, ge=0)
    buffer_after_minutes: int = Field(default=0, ge=0)
    is_active: bool = True
    online_bookable: bool = True


class StaffRecord(Record):
    id: int
    display_name: str
    is_active: bool = True
    accepts_online_bookings: bool = True


class SkillRecord(Record):
    staff_id: int
    service_id: int
    custom_duration_minutes: Optional[int] = Field(default=None, gt=0)
    is_active: bool = True


class WorkingHoursRecord(Record):
    staff_id: int
    day_of_week: int = Field(ge=0, le=6)
    start_time_minutes: int = MINUTES_FIELD
    end_time_minutes: int = MINUTES_FIELD
    break_start_minutes: Optional[int] = None
    break_end_minutes: Optional[int] = None
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    is_active: bool = True

    @model_validator(mode="after")
    def validate_shift(self):
        if self.start_time_minutes >= self.end_time_minutes:
            raise ValueError("Working hours start must be before end")
        if (self.break_start_minutes is None) != (self.break_end_minutes is None):
            raise ValueError("Break start and end must be given together")
        if self.break_start_minutes is not None and not (
            self.start_time_minutes
            <= self.break_start_minutes
            < self.break_end_minutes
            <= self.end_time_minutes
        ):
            raise ValueError("Break must lie inside the working hours")
        return self

    def applies_to(self, day: date) -> bool:
        if not self.is_active:
            return False
        if self.valid_from and day < self.valid_from:
            return False
        if self.valid_to and day > self.valid_to:
            return False
        return True


class AbsenceRecord(Record):
    staff_id: int
    start_date: date
    end_date: date
    start_time_minutes: Optional[int] = None
    end_time_minutes: Optional[int] = None

    @model_validator(mode="after")
    def validate_range(self):
        if self.end_date < self.start_date:
            raise ValueError("Absence end date must not be before start date")
        if (self.start_time_minutes is None) != (self.end_time_minutes is None):
            raise ValueError("Absence start and end time must be given together")
        return self

    @property
    def is_full_day(self) -> bool:
        return self.start_time_minutes is None

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class BlockedTimeRecord(Record):
    staff_id: Optional[int] = None  # None = whole salon
    start_datetime: datetime
    end_datetime: datetime


class AppointmentRecord(Record):
    id: Optional[int] = None
    staff_id: int
    starts_at: datetime
    ends_at: datetime
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return AppointmentStatus(v).value


class AvailabilitySnapshot(BaseModel):
    """Everything the slot generator reads, loaded fresh for each request"""

    rules: BookingRulesRecord = Field(default_factory=BookingRulesRecord)
    opening_hours: list[OpeningHoursRecord] = []
    services: list[ServiceRecord] = []
    staff: list[StaffRecord] = []
    skills: list[SkillRecord] = []
    working_hours: list[WorkingHoursRecord] = []
    absences: list[AbsenceRecord] = []
    blocked_times: list[BlockedTimeRecord] = []
    appointments: list[AppointmentRecord] = []


# ============================================================================
# API MODELS
# ============================================================================


class TimeSlot(BaseModel):
    """Bookable option; computed per request, never stored"""

    date: date
    start_minute: int
    end_minute: int
    start_time: str  # "10:00"
    end_time: str
    starts_at: datetime
    staff_id: int
    staff_name: str


class SlotsResponse(BaseModel):
    salon_id: int
    total_duration_minutes: int
    slots: dict[date, list[TimeSlot]]


class NextSlotResponse(BaseModel):
    salon_id: int
    slot: Optional[TimeSlot] = None


class BookableServiceResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    duration_minutes: int
    price_chf: Decimal
    display_order: int

    class Config:
        from_attributes = True


class BookableStaffResponse(BaseModel):
    id: int
    display_name: str
    bio: Optional[str] = None
    service_ids: list[int]


class CustomerCreate(BaseModel):
    """New customer registered together with their first booking"""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=255)
    phone: str = Field(min_length=7, max_length=50)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return validate_email(v)


class AppointmentCreate(BaseModel):
    """Either ``customer_id`` of an existing customer or a new ``customer`` block"""

    customer_id: Optional[int] = None
    customer: Optional[CustomerCreate] = None
    staff_id: int
    any_staff: bool = False  # Slot came from the "no preference" listing (catalogue durations)
    date: date
    start_minute: int = MINUTES_FIELD
    end_minute: int = MINUTES_FIELD
    service_ids: list[int]
    booked_via: str = "online"
    customer_notes: Optional[str] = Field(default=None, max_length=500)
    staff_notes: Optional[str] = None
    hold: bool = False  # Create a temporary reservation instead of a request

    @field_validator("booked_via")
    @classmethod
    def validate_channel(cls, v):
        if v not in BOOKING_CHANNELS:
            raise ValueError(f"booked_via must be one of {', '.join(BOOKING_CHANNELS)}")
        return v

    @model_validator(mode="after")
    def validate_customer(self):
        if (self.customer_id is None) == (self.customer is None):
            raise ValueError("Provide either customer_id or customer details")
        return self


class StatusTransitionRequest(BaseModel):
    status: str
    reason: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class AppointmentServiceResponse(BaseModel):
    service_id: int
    snapshot_service_name: str
    snapshot_price_chf: Decimal
    snapshot_tax_rate_percent: Decimal
    snapshot_tax_chf: Decimal
    snapshot_duration_minutes: int
    sort_order: int

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    id: int
    salon_id: int
    customer_id: int
    staff_id: int
    starts_at: datetime
    ends_at: datetime
    status: str
    status_changed_at: Optional[datetime] = None
    reserved_until: Optional[datetime] = None
    total_price_chf: Decimal
    total_tax_chf: Decimal
    total_duration_minutes: int
    booked_via: str
    confirmation_number: str
    customer_notes: Optional[str] = None
    staff_notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    services: list[AppointmentServiceResponse]

    class Config:
        from_attributes = True


class ReservationCleanupResult(BaseModel):
    released: int
    appointment_ids: list[int]
