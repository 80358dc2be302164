# app/models.py
from __future__ import annotations

import enum
import datetime as dt
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .domain.types import AppointmentStatus, BusinessUnit, ServiceType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


# -----------------------------
# Core enums
# -----------------------------
class OutboxStatus(str, enum.Enum):
    pending = "pending"
    delivered = "delivered"
    failed = "failed"


class IntegrationType(str, enum.Enum):
    webhook = "webhook"


class JobRunStatus(str, enum.Enum):
    running = "running"
    success = "success"
    failed = "failed"


# -----------------------------
# Models
# -----------------------------
class Appointment(Base):
    """
    One booked job. Every business unit shares this table (business_unit is
    the discriminator) because they share one crew pool.

    slot_seat is the seat index a live booking holds within its (date, time)
    slot; the unique constraint is the write-time guard against two requests
    both passing the availability check. Cancelled rows release it (NULL).
    """
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("date", "time", "slot_seat", name="uq_appointment_slot_seat"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    booking_id: Mapped[str] = mapped_column(String(40), unique=True, index=True)
    business_unit: Mapped[BusinessUnit] = mapped_column(Enum(BusinessUnit), index=True)
    channel: Mapped[str] = mapped_column(String(20), default="web")

    first_name: Mapped[str] = mapped_column(String(80))
    last_name: Mapped[str] = mapped_column(String(80))
    email: Mapped[str] = mapped_column(String(255), index=True)
    phone: Mapped[str] = mapped_column(String(40))

    service_type: Mapped[ServiceType] = mapped_column(Enum(ServiceType))
    crew_size: Mapped[int | None] = mapped_column(Integer, nullable=True)

    date: Mapped[dt.date] = mapped_column(Date, index=True)
    time: Mapped[str] = mapped_column(String(5))
    slot_seat: Mapped[int | None] = mapped_column(Integer, nullable=True)

    pickup_address: Mapped[str] = mapped_column(String(255), default="")
    dropoff_address: Mapped[str] = mapped_column(String(255), default="")
    notes: Mapped[str] = mapped_column(Text, default="")

    # Estimate snapshot at booking time + the rate card version it came from
    estimate_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    estimated_total: Mapped[float | None] = mapped_column(Float, nullable=True)
    pricing_config_version: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(AppointmentStatus), default=AppointmentStatus.confirmed, index=True
    )

    previous_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    previous_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    rescheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class PricingConfig(Base):
    """Versioned rate cards. Exactly one row has active=True."""
    __tablename__ = "pricing_configs"
    __table_args__ = (UniqueConstraint("version", name="uq_pricing_config_version"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    version: Mapped[int] = mapped_column(Integer, index=True)
    active: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    # camelCase PricingConfiguration document
    data_json: Mapped[str] = mapped_column(Text)
    note: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class AvailabilitySettings(Base):
    """Single-row table (id=1) with the business-hours grid."""
    __tablename__ = "availability_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # "1,2,3,4,5,6" with 0=Sunday
    working_days: Mapped[str] = mapped_column(String(20), default="1,2,3,4,5,6")
    start_time: Mapped[str] = mapped_column(String(5), default="08:00")
    end_time: Mapped[str] = mapped_column(String(5), default="18:00")
    slot_minutes: Mapped[int] = mapped_column(Integer, default=60)
    slot_capacity: Mapped[int] = mapped_column(Integer, default=1)
    max_appointments_per_day: Mapped[int] = mapped_column(Integer, default=5)
    timezone: Mapped[str] = mapped_column(String(60), default="America/New_York")

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class BlockedDate(Base):
    __tablename__ = "blocked_dates"
    __table_args__ = (UniqueConstraint("date", name="uq_blocked_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, index=True)
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class CalendarBlock(Base):
    """Internal calendar entry (crew day off, meeting) holding one seat of a slot."""
    __tablename__ = "calendar_blocks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, index=True)
    time: Mapped[str] = mapped_column(String(5))
    kind: Mapped[str] = mapped_column(String(40), default="other")  # day-off|meeting|call-off|other
    title: Mapped[str] = mapped_column(String(255), default="")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Integration(Base):
    __tablename__ = "integrations"
    __table_args__ = (UniqueConstraint("name", name="uq_integration_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(80))
    type: Mapped[IntegrationType] = mapped_column(Enum(IntegrationType))

    # quiet by default
    enabled: Mapped[bool] = mapped_column(Boolean, default=False)

    # {"url": "...", "secret": "..."}
    config_json: Mapped[str] = mapped_column(Text, default="{}")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_type: Mapped[str] = mapped_column(String(120), index=True)
    payload_json: Mapped[str] = mapped_column(Text)

    status: Mapped[OutboxStatus] = mapped_column(Enum(OutboxStatus), default=OutboxStatus.pending, index=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)

    next_attempt_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class JobRun(Base):
    """Tracks job executions (outbox dispatch today)."""
    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(80), index=True)

    status: Mapped[JobRunStatus] = mapped_column(Enum(JobRunStatus), default=JobRunStatus.running, index=True)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary_json: Mapped[str | None] = mapped_column(Text, nullable=True)
