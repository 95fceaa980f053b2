import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class AppointmentStatus(str, enum.Enum):
    RESERVED = "reserved"  # Temporary hold, expires at reserved_until
    REQUESTED = "requested"  # Customer requested, awaiting confirmation
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Statuses whose time window blocks the staff member's calendar
BUSY_STATUSES = (
    AppointmentStatus.RESERVED.value,
    AppointmentStatus.REQUESTED.value,
    AppointmentStatus.CONFIRMED.value,
    AppointmentStatus.CHECKED_IN.value,
    AppointmentStatus.IN_PROGRESS.value,
    AppointmentStatus.COMPLETED.value,
)

BOOKING_CHANNELS = ("online", "phone", "walk_in", "admin")

_busy_status_sql = ", ".join(f"'{s}'" for s in BUSY_STATUSES)


class Salon(Base):
    __tablename__ = "salons"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    booking_rule = relationship("BookingRule", back_populates="salon", uselist=False)
    opening_hours = relationship("OpeningHours", back_populates="salon")
    services = relationship("Service", back_populates="salon")
    staff = relationship("Staff", back_populates="salon")


class BookingRule(Base):
    """Per-salon booking configuration (one row per salon)"""

    __tablename__ = "booking_rules"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), unique=True, nullable=False)

    # Lead time and horizon
    min_lead_time_minutes = Column(Integer, default=0, nullable=False)
    max_booking_horizon_days = Column(Integer, default=60, nullable=False)

    # Slot settings
    slot_granularity_minutes = Column(Integer, default=15, nullable=False)
    default_visit_buffer_minutes = Column(Integer, default=0, nullable=False)
    buffer_source = Column(String(20), default="service", nullable=False)  # service, salon

    # Confirmation and holds
    auto_confirm_online_bookings = Column(Boolean, default=False, nullable=False)
    reservation_timeout_minutes = Column(Integer, default=15, nullable=False)

    # Limits
    max_services_per_appointment = Column(Integer, default=5, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    salon = relationship("Salon", back_populates="booking_rule")

    __table_args__ = (
        CheckConstraint(
            "slot_granularity_minutes IN (5, 10, 15, 30, 60)", name="booking_rules_granularity_valid"
        ),
        CheckConstraint("buffer_source IN ('service', 'salon')", name="booking_rules_buffer_source"),
    )


class OpeningHours(Base):
    """Weekly salon opening hours; several rows per day allowed"""

    __tablename__ = "opening_hours"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    open_time_minutes = Column(Integer, nullable=False)  # e.g. 540 = 09:00
    close_time_minutes = Column(Integer, nullable=False)
    label = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    salon = relationship("Salon", back_populates="opening_hours")

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="opening_hours_day_range"),
        CheckConstraint(
            "close_time_minutes > open_time_minutes", name="opening_hours_time_order"
        ),
    )


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    price_chf = Column(Numeric(10, 2), nullable=False)
    tax_rate_percent = Column(Numeric(5, 2), nullable=True)  # None = salon default
    buffer_before_minutes = Column(Integer, default=0, nullable=False)  # Preparation
    buffer_after_minutes = Column(Integer, default=0, nullable=False)  # Cleanup
    display_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    online_bookable = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    salon = relationship("Salon", back_populates="services")

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="services_duration_positive"),
        CheckConstraint(
            "buffer_before_minutes >= 0 AND buffer_after_minutes >= 0",
            name="services_buffers_positive",
        ),
    )


class Staff(Base):
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    display_name = Column(String(255), nullable=False)
    bio = Column(Text, nullable=True)
    display_order = Column(Integer, default=0, nullable=False)
    accepts_online_bookings = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    salon = relationship("Salon", back_populates="staff")
    skills = relationship("StaffServiceSkill", back_populates="staff", cascade="all, delete-orphan")
    working_hours = relationship(
        "StaffWorkingHours", back_populates="staff", cascade="all, delete-orphan"
    )
    absences = relationship("StaffAbsence", back_populates="staff", cascade="all, delete-orphan")


class StaffServiceSkill(Base):
    """Which services a staff member can perform, with optional custom duration"""

    __tablename__ = "staff_service_skills"

    id = Column(Integer, primary_key=True, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False, index=True)
    custom_duration_minutes = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    staff = relationship("Staff", back_populates="skills")
    service = relationship("Service")

    __table_args__ = (
        UniqueConstraint("staff_id", "service_id", name="staff_skills_unique"),
        CheckConstraint(
            "custom_duration_minutes IS NULL OR custom_duration_minutes > 0",
            name="staff_skills_duration_positive",
        ),
    )


class StaffWorkingHours(Base):
    """Weekly working hours; several rows per day allowed (split shifts)"""

    __tablename__ = "staff_working_hours"

    id = Column(Integer, primary_key=True, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    start_time_minutes = Column(Integer, nullable=False)
    end_time_minutes = Column(Integer, nullable=False)
    break_start_minutes = Column(Integer, nullable=True)
    break_end_minutes = Column(Integer, nullable=True)
    label = Column(String(100), nullable=True)  # e.g. "Morning shift"

    # Validity window for temporary schedule changes (None = open-ended)
    valid_from = Column(Date, nullable=True)
    valid_to = Column(Date, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    staff = relationship("Staff", back_populates="working_hours")

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="working_hours_day_range"),
        CheckConstraint("end_time_minutes > start_time_minutes", name="working_hours_time_order"),
    )


class StaffAbsence(Base):
    """Date range when a staff member is unavailable"""

    __tablename__ = "staff_absences"

    id = Column(Integer, primary_key=True, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    # Optional window for partial-day absences (None = whole day)
    start_time_minutes = Column(Integer, nullable=True)
    end_time_minutes = Column(Integer, nullable=True)
    reason = Column(String(50), nullable=False)  # vacation, sick, training, personal, other
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    staff = relationship("Staff", back_populates="absences")

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="staff_absences_date_order"),
        Index("idx_staff_absences_dates", "staff_id", "start_date", "end_date"),
    )


class BlockedTime(Base):
    """Salon-wide (staff_id is NULL) or staff-specific blocked period"""

    __tablename__ = "blocked_times"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=True)
    block_type = Column(String(50), nullable=False)  # salon_closed, maintenance, private_event, other
    start_datetime = Column(DateTime, nullable=False)
    end_datetime = Column(DateTime, nullable=False)
    title = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        CheckConstraint("end_datetime > start_datetime", name="blocked_times_time_order"),
    )


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False, index=True)

    # Salon wall-clock time; ends_at = starts_at + sum(service snapshot durations)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)

    # Status workflow: reserved → requested → confirmed → checked_in → in_progress → completed
    # cancelled / no_show reachable from any non-terminal status
    status = Column(String(20), default=AppointmentStatus.REQUESTED.value, nullable=False, index=True)
    status_changed_at = Column(DateTime, nullable=True)
    reserved_until = Column(DateTime, nullable=True)  # Only for status=reserved

    # Totals (from service snapshots)
    total_price_chf = Column(Numeric(10, 2), nullable=False, default=0)
    total_tax_chf = Column(Numeric(10, 2), nullable=False, default=0)
    total_duration_minutes = Column(Integer, nullable=False)

    booked_via = Column(String(20), default="online", nullable=False)  # online, phone, walk_in, admin
    confirmation_number = Column(String(8), unique=True, nullable=False)

    customer_notes = Column(Text, nullable=True)
    staff_notes = Column(Text, nullable=True)

    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    services = relationship(
        "AppointmentService",
        back_populates="appointment",
        order_by="AppointmentService.sort_order",
        cascade="all, delete-orphan",
    )
    staff = relationship("Staff")
    customer = relationship("Customer")

    __table_args__ = (
        CheckConstraint("ends_at > starts_at", name="appointments_time_order"),
        CheckConstraint(
            "status != 'reserved' OR reserved_until IS NOT NULL",
            name="appointments_reserved_until_logic",
        ),
        # Prevents double bookings at the same start time for the same staff member
        Index(
            "idx_appointments_staff_time_unique",
            "staff_id",
            "starts_at",
            unique=True,
            sqlite_where=text(f"status IN ({_busy_status_sql})"),
            postgresql_where=text(f"status IN ({_busy_status_sql})"),
        ),
        Index("idx_appointments_staff_overlap", "staff_id", "starts_at", "ends_at"),
    )


class AppointmentService(Base):
    """Service line of an appointment with price/duration snapshot taken at booking time"""

    __tablename__ = "appointment_services"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False, index=True)

    snapshot_service_name = Column(String(255), nullable=False)
    snapshot_price_chf = Column(Numeric(10, 2), nullable=False)
    snapshot_tax_rate_percent = Column(Numeric(5, 2), nullable=False)
    snapshot_tax_chf = Column(Numeric(10, 2), nullable=False)
    snapshot_duration_minutes = Column(Integer, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    appointment = relationship("Appointment", back_populates="services")
