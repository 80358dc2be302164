from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .domain.types import BuildingDetails, Estimate, HomeType, QuoteRequest, ServiceType
from .models import Appointment


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False)


# -----------------------------
# Quotes
# -----------------------------
class BuildingIn(CamelModel):
    home_type: HomeType = HomeType.house
    stairs: int = 0

    def to_domain(self) -> BuildingDetails:
        return BuildingDetails(home_type=self.home_type, stairs=self.stairs)


class AdditionalServicesIn(CamelModel):
    packing: bool = False
    moving_blankets: bool = False
    blankets_quantity: int | None = None
    packing_materials: dict[str, int] = Field(default_factory=dict)
    # full value protection
    fvp: bool = False
    fvp_value: float | None = None


class QuoteIn(CamelModel):
    service_type: str
    crew_size: int | None = None
    distance: float | None = None
    drive_time: float | None = None
    estimated_hours: float | None = None
    pickup_details: BuildingIn | None = None
    dropoff_details: BuildingIn | None = None
    inventory: dict[str, bool] = Field(default_factory=dict)
    additional_services: AdditionalServicesIn | None = None

    def to_domain(self, service_type: ServiceType, crew_hint: int | None = None) -> QuoteRequest:
        extras = self.additional_services or AdditionalServicesIn()
        return QuoteRequest(
            service_type=service_type,
            crew_size=self.crew_size if self.crew_size is not None else crew_hint,
            distance_miles=self.distance or 0.0,
            drive_time_minutes=self.drive_time or 0.0,
            hours=self.estimated_hours,
            pickup=(self.pickup_details or BuildingIn()).to_domain(),
            dropoff=(self.dropoff_details or BuildingIn()).to_domain(),
            inventory=dict(self.inventory),
            packing=extras.packing,
            moving_blankets=extras.moving_blankets,
            blanket_quantity=extras.blankets_quantity,
            packing_materials=dict(extras.packing_materials),
            insurance_requested=extras.fvp,
            declared_value=extras.fvp_value,
        )


class EstimateOut(CamelModel):
    subtotal: float
    labor_cost: float
    travel_fee: float
    service_charge: float
    stairs_fee: float
    specialty_items_fee: float
    additional_services_fee: float
    packing_materials_fee: float
    insurance_fee: float
    total: float
    estimated_duration_hours: float

    @classmethod
    def from_domain(cls, est: Estimate) -> "EstimateOut":
        return cls(**est.to_dict())


class EstimateResponse(CamelModel):
    success: bool = True
    estimate: EstimateOut
    config_version: int | None = None


# -----------------------------
# Availability
# -----------------------------
class SlotOut(CamelModel):
    date: str
    time: str
    label: str
    available: bool
    reason: str | None = None


class SlotsResponse(CamelModel):
    success: bool = True
    date: str
    slots: list[SlotOut]


class SlotCheckResponse(CamelModel):
    success: bool = True
    available: bool
    reason: str | None = None


class AvailabilitySettingsIn(CamelModel):
    working_days: list[int] | None = None
    start_time: str | None = None
    end_time: str | None = None
    slot_minutes: int | None = Field(default=None, ge=5, le=480)
    slot_capacity: int | None = Field(default=None, ge=1, le=50)
    max_appointments_per_day: int | None = Field(default=None, ge=0, le=500)
    timezone: str | None = None


class AvailabilitySettingsOut(CamelModel):
    working_days: list[int]
    start_time: str
    end_time: str
    slot_minutes: int
    slot_capacity: int
    max_appointments_per_day: int
    timezone: str | None = None


class BlockedDateIn(CamelModel):
    date: str
    action: Literal["block", "unblock"] = "block"
    reason: str | None = None


class BlockedDateOut(CamelModel):
    date: str
    reason: str | None = None


class CalendarBlockIn(CamelModel):
    date: str
    time: str
    kind: Literal["day-off", "meeting", "call-off", "other"] = "other"
    title: str = ""
    notes: str | None = None


class CalendarBlockOut(CamelModel):
    id: int
    date: str
    time: str
    kind: str
    title: str
    notes: str | None = None


# -----------------------------
# Appointments
# -----------------------------
class BookingIn(QuoteIn):
    service_type: str = ServiceType.moving_service.value
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    date: str = ""
    time: str = ""
    business_unit: Literal["primary", "secondary"] | None = None
    pickup_address: str = ""
    dropoff_address: str = ""
    notes: str = ""
    channel: str = "web"
    send_confirmation: bool = True


class AppointmentOut(CamelModel):
    booking_id: str
    business_unit: str
    company_name: str
    status: str
    channel: str
    first_name: str
    last_name: str
    email: str
    phone: str
    service_type: str
    crew_size: int | None = None
    date: str
    time: str
    pickup_address: str
    dropoff_address: str
    notes: str
    estimate: dict[str, Any] | None = None
    estimated_total: float | None = None
    pricing_config_version: int | None = None
    previous_date: str | None = None
    previous_time: str | None = None
    rescheduled_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, appt: Appointment, company_name: str) -> "AppointmentOut":
        estimate = None
        if appt.estimate_json:
            estimate = EstimateOut(**json.loads(appt.estimate_json)).model_dump(by_alias=True)
        return cls(
            booking_id=appt.booking_id,
            business_unit=appt.business_unit.value,
            company_name=company_name,
            status=appt.status.value,
            channel=appt.channel,
            first_name=appt.first_name,
            last_name=appt.last_name,
            email=appt.email,
            phone=appt.phone,
            service_type=appt.service_type.value,
            crew_size=appt.crew_size,
            date=appt.date.isoformat(),
            time=appt.time,
            pickup_address=appt.pickup_address,
            dropoff_address=appt.dropoff_address,
            notes=appt.notes,
            estimate=estimate,
            estimated_total=appt.estimated_total,
            pricing_config_version=appt.pricing_config_version,
            previous_date=appt.previous_date.isoformat() if appt.previous_date else None,
            previous_time=appt.previous_time,
            rescheduled_at=appt.rescheduled_at,
            cancelled_at=appt.cancelled_at,
            created_at=appt.created_at,
            updated_at=appt.updated_at,
        )


class BookingResponse(CamelModel):
    success: bool = True
    booking_id: str
    appointment: AppointmentOut
    estimate: EstimateOut
    message: str = "Appointment booked successfully!"


class AppointmentResponse(CamelModel):
    success: bool = True
    appointment: AppointmentOut
    message: str | None = None


class AppointmentListResponse(CamelModel):
    success: bool = True
    count: int
    appointments: list[AppointmentOut]


class RescheduleIn(CamelModel):
    booking_id: str
    new_date: str
    new_time: str


class CancelIn(CamelModel):
    booking_id: str


class UpdateAppointmentIn(CamelModel):
    booking_id: str
    updates: dict[str, Any] = Field(default_factory=dict)


class BookingLookupIn(CamelModel):
    booking_id: str = ""
    email: str = ""


class CompanyInfoOut(CamelModel):
    success: bool = True
    business_unit: str
    company_name: str


class MessageResponse(CamelModel):
    success: bool = True
    message: str


# -----------------------------
# Pricing config admin
# -----------------------------
class PricingConfigOut(CamelModel):
    success: bool = True
    version: int
    config: dict[str, Any]
    note: str | None = None
    created_at: datetime | None = None


class PricingConfigSaveIn(CamelModel):
    config: dict[str, Any]
    note: str | None = None


class PricingConfigVersionOut(CamelModel):
    version: int
    active: bool
    note: str | None = None
    created_at: datetime | None = None


# -----------------------------
# Integrations / jobs
# -----------------------------
class IntegrationCreate(BaseModel):
    name: str
    type: Literal["webhook"] = "webhook"
    enabled: bool = False
    url: str
    secret: str | None = None


class IntegrationOut(BaseModel):
    id: int
    name: str
    type: str
    enabled: bool
    created_at: datetime


class DispatchResult(BaseModel):
    delivered: int
    failed: int
    sinks: int | None = None
    events: int | None = None
    skipped_no_sinks: int | None = None
