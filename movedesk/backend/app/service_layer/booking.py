# app/service_layer/booking.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.appointments import AppointmentRepository
from ..config import settings
from ..domain.availability import REASON_SLOT_FULL, normalize_time, parse_day
from ..domain.errors import InvalidTransition, NotFound, SlotConflict, ValidationError
from ..domain.policies import determine_business_unit, generate_booking_id, parse_service_type
from ..domain.types import AppointmentStatus, BusinessUnit, Estimate, QuoteRequest, ServiceType
from ..integrations.services.outbox import enqueue_event
from ..models import Appointment, utcnow
from .availability import AvailabilityChecker
from .config_provider import ConfigProvider
from .estimates import estimate_quote

log = logging.getLogger(__name__)

EVENT_BOOKED = "appointment.booked"
EVENT_RESCHEDULED = "appointment.rescheduled"
EVENT_CANCELLED = "appointment.cancelled"

SLOT_UNAVAILABLE_MESSAGE = "Selected time slot is not available"

# camelCase request key -> column, for customer self-service edits
_CONTACT_FIELDS = {
    "notes": "notes",
    "pickupAddress": "pickup_address",
    "dropoffAddress": "dropoff_address",
    "phone": "phone",
    "email": "email",
}


@dataclass(frozen=True)
class BookingRequest:
    first_name: str
    last_name: str
    email: str
    phone: str
    date: str
    time: str
    service_type: str
    business_unit: BusinessUnit | None = None
    crew_size: int | None = None
    quote: QuoteRequest | None = None
    pickup_address: str = ""
    dropoff_address: str = ""
    notes: str = ""
    channel: str = "web"
    send_confirmation: bool = True


@dataclass(frozen=True)
class BookingOutcome:
    success: bool
    appointment: Appointment | None = None
    estimate: Estimate | None = None
    reason: str | None = None
    error: str | None = None


def unit_display_name(unit: BusinessUnit) -> str:
    if unit == BusinessUnit.secondary:
        return settings.SECONDARY_UNIT_NAME
    return settings.PRIMARY_UNIT_NAME


def resolve_company(raw_service_type: str | None) -> tuple[BusinessUnit, str]:
    """Which unit would take a job of this service type when the caller doesn't say."""
    service_type = ServiceType.moving_service
    if raw_service_type:
        service_type, _ = parse_service_type(raw_service_type)
    unit = determine_business_unit(
        service_type,
        None,
        route_labor_only_to_secondary=settings.ROUTE_LABOR_ONLY_TO_SECONDARY,
    )
    return unit, unit_display_name(unit)


def event_payload(appt: Appointment) -> dict[str, Any]:
    return {
        "bookingId": appt.booking_id,
        "businessUnit": appt.business_unit.value,
        "companyName": unit_display_name(appt.business_unit),
        "firstName": appt.first_name,
        "lastName": appt.last_name,
        "email": appt.email,
        "phone": appt.phone,
        "serviceType": appt.service_type.value,
        "date": appt.date.isoformat(),
        "time": appt.time,
        "pickupAddress": appt.pickup_address,
        "dropoffAddress": appt.dropoff_address,
        "estimatedTotal": appt.estimated_total,
        "status": appt.status.value,
    }


def _require_contact_fields(req: BookingRequest) -> None:
    missing = [
        name
        for name, value in (
            ("firstName", req.first_name),
            ("lastName", req.last_name),
            ("email", req.email),
            ("phone", req.phone),
            ("date", req.date),
            ("time", req.time),
        )
        if not (value or "").strip()
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


async def book_appointment(
    session: AsyncSession,
    provider: ConfigProvider,
    req: BookingRequest,
) -> BookingOutcome:
    """
    Validate, price, re-check the slot and persist a confirmed appointment.

    The estimate is always recomputed from the active rate card; a client
    supplied total is never trusted. Does NOT commit.
    """
    _require_contact_fields(req)
    day = parse_day(req.date)
    time = normalize_time(req.time)

    service_type, crew_hint = parse_service_type(req.service_type)
    crew_size = req.crew_size if req.crew_size is not None else crew_hint
    unit = determine_business_unit(
        service_type,
        req.business_unit,
        route_labor_only_to_secondary=settings.ROUTE_LABOR_ONLY_TO_SECONDARY,
    )

    quote = req.quote or QuoteRequest(service_type=service_type)
    quote = replace(
        quote,
        service_type=service_type,
        crew_size=quote.crew_size if quote.crew_size is not None else crew_size,
    )
    priced = await estimate_quote(provider, quote)

    checker = AvailabilityChecker(session)
    check = await checker.check_availability(day, time, service_type)
    if not check.available:
        return BookingOutcome(success=False, reason=check.reason, error=SLOT_UNAVAILABLE_MESSAGE)

    appt = Appointment(
        booking_id=generate_booking_id(unit),
        business_unit=unit,
        channel=req.channel,
        first_name=req.first_name.strip(),
        last_name=req.last_name.strip(),
        email=req.email.strip(),
        phone=req.phone.strip(),
        service_type=service_type,
        crew_size=quote.crew_size,
        date=day,
        time=time,
        pickup_address=req.pickup_address or "",
        dropoff_address=req.dropoff_address or "",
        notes=req.notes or "",
        estimate_json=json.dumps(priced.estimate.to_dict()),
        estimated_total=priced.estimate.total,
        pricing_config_version=priced.config_version,
        status=AppointmentStatus.confirmed,
    )

    repo = AppointmentRepository(session)
    try:
        await repo.create_appointment(appt, capacity=await checker.seat_capacity(day, time))
    except SlotConflict as e:
        log.info("booking lost the race for %s %s: %s", day.isoformat(), time, e)
        return BookingOutcome(success=False, reason=REASON_SLOT_FULL, error=SLOT_UNAVAILABLE_MESSAGE)

    if req.send_confirmation:
        await enqueue_event(session, EVENT_BOOKED, event_payload(appt))
    else:
        log.info("notifications skipped for %s", appt.booking_id)

    log.info("booked %s (%s) for %s %s", appt.booking_id, unit.value, day.isoformat(), time)
    return BookingOutcome(success=True, appointment=appt, estimate=priced.estimate)


async def reschedule_appointment(
    session: AsyncSession,
    booking_id: str,
    new_date: str,
    new_time: str,
) -> BookingOutcome:
    repo = AppointmentRepository(session)
    appt = await repo.get(booking_id)
    if appt.status == AppointmentStatus.cancelled:
        raise InvalidTransition(f"Appointment {booking_id} is cancelled")

    day = parse_day(new_date)
    time = normalize_time(new_time)

    checker = AvailabilityChecker(session)
    check = await checker.check_availability(day, time, appt.service_type, exclude_booking_id=booking_id)
    if not check.available:
        return BookingOutcome(success=False, appointment=appt, reason=check.reason, error=SLOT_UNAVAILABLE_MESSAGE)

    old_date, old_time = appt.date, appt.time
    try:
        await repo.move_appointment(booking_id, day, time, capacity=await checker.seat_capacity(day, time))
    except SlotConflict:
        return BookingOutcome(success=False, reason=REASON_SLOT_FULL, error=SLOT_UNAVAILABLE_MESSAGE)

    appt = await repo.update_appointment(
        booking_id,
        previous_date=old_date,
        previous_time=old_time,
        rescheduled_at=utcnow(),
    )

    payload = event_payload(appt)
    payload.update({"previousDate": old_date.isoformat(), "previousTime": old_time})
    await enqueue_event(session, EVENT_RESCHEDULED, payload)

    log.info("rescheduled %s from %s %s to %s %s", booking_id, old_date.isoformat(), old_time, day.isoformat(), time)
    return BookingOutcome(success=True, appointment=appt)


async def cancel_appointment(session: AsyncSession, booking_id: str) -> Appointment:
    """confirmed -> cancelled is terminal; the seat is released for reuse."""
    repo = AppointmentRepository(session)
    appt = await repo.get(booking_id)
    if appt.status == AppointmentStatus.cancelled:
        raise InvalidTransition(f"Appointment {booking_id} is already cancelled")

    appt = await repo.update_appointment(
        booking_id,
        status=AppointmentStatus.cancelled,
        cancelled_at=utcnow(),
        slot_seat=None,
    )
    await enqueue_event(session, EVENT_CANCELLED, event_payload(appt))
    log.info("cancelled %s", booking_id)
    return appt


async def update_contact_details(session: AsyncSession, booking_id: str, updates: dict[str, Any]) -> Appointment:
    """Only notes, addresses, phone and email are editable; other keys are ignored."""
    changes: dict[str, Any] = {}
    for key, column in _CONTACT_FIELDS.items():
        if updates.get(key) is not None:
            changes[column] = str(updates[key]).strip()

    if "email" in changes and not changes["email"]:
        raise ValidationError("email cannot be empty")
    if "phone" in changes and not changes["phone"]:
        raise ValidationError("phone cannot be empty")

    repo = AppointmentRepository(session)
    if not changes:
        return await repo.get(booking_id)
    return await repo.update_appointment(booking_id, **changes)


async def lookup_booking(session: AsyncSession, booking_id: str, email: str) -> Appointment:
    if not (booking_id or "").strip() or not (email or "").strip():
        raise ValidationError("Booking ID and email are required")

    appt = await AppointmentRepository(session).get(booking_id.strip())
    if appt.email.strip().lower() != email.strip().lower():
        # same answer as an unknown id
        raise NotFound(f"Appointment {booking_id} not found")
    return appt
