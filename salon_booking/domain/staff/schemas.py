"""Staff domain schemas - Pydantic models for schedule reference data"""

from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import parse_time_of_day, validate_day_of_week

ABSENCE_REASONS = ("vacation", "sick", "training", "personal", "other")


class WorkingHoursCreate(BaseModel):
    """Times accept "HH:MM" or minutes since midnight"""

    day_of_week: int
    start_time: Union[str, int]
    end_time: Union[str, int]
    break_start: Optional[Union[str, int]] = None
    break_end: Optional[Union[str, int]] = None
    label: Optional[str] = Field(default=None, max_length=100)
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None

    @field_validator("day_of_week")
    @classmethod
    def validate_day(cls, v):
        return validate_day_of_week(v)

    @field_validator("start_time", "end_time", "break_start", "break_end")
    @classmethod
    def validate_time(cls, v):
        return parse_time_of_day(v)

    @model_validator(mode="after")
    def validate_shift(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        if (self.break_start is None) != (self.break_end is None):
            raise ValueError("break_start and break_end must be given together")
        if self.break_start is not None and not (
            self.start_time <= self.break_start < self.break_end <= self.end_time
        ):
            raise ValueError("Break must lie inside the working hours")
        if self.valid_from and self.valid_to and self.valid_to < self.valid_from:
            raise ValueError("valid_to must not be before valid_from")
        return self


class WorkingHoursResponse(BaseModel):
    id: int
    staff_id: int
    day_of_week: int
    start_time_minutes: int
    end_time_minutes: int
    break_start_minutes: Optional[int] = None
    break_end_minutes: Optional[int] = None
    label: Optional[str] = None
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    is_active: bool

    class Config:
        from_attributes = True


class AbsenceCreate(BaseModel):
    """Leave start_time/end_time empty for a full-day absence"""

    start_date: date
    end_date: date
    start_time: Optional[Union[str, int]] = None
    end_time: Optional[Union[str, int]] = None
    reason: str = "other"
    notes: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v):
        return parse_time_of_day(v)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        if v not in ABSENCE_REASONS:
            raise ValueError(f"reason must be one of {', '.join(ABSENCE_REASONS)}")
        return v

    @model_validator(mode="after")
    def validate_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must be given together")
        if self.start_time is not None and self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class AbsenceResponse(BaseModel):
    id: int
    staff_id: int
    start_date: date
    end_date: date
    start_time_minutes: Optional[int] = None
    end_time_minutes: Optional[int] = None
    reason: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SkillCreate(BaseModel):
    service_id: int
    custom_duration_minutes: Optional[int] = Field(default=None, gt=0)


class SkillResponse(BaseModel):
    id: int
    staff_id: int
    service_id: int
    custom_duration_minutes: Optional[int] = None
    is_active: bool

    class Config:
        from_attributes = True
