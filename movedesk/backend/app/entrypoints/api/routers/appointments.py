# app/entrypoints/api/routers/appointments.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ....adapters.repos.appointments import AppointmentFilter, AppointmentRepository
from ....db import get_session
from ....domain.policies import parse_service_type
from ....domain.types import BusinessUnit
from ....models import Appointment
from ....schemas import (
    AppointmentListResponse,
    AppointmentOut,
    AppointmentResponse,
    BookingIn,
    BookingLookupIn,
    BookingResponse,
    CancelIn,
    CompanyInfoOut,
    EstimateOut,
    MessageResponse,
    RescheduleIn,
    UpdateAppointmentIn,
)
from ....service_layer.booking import (
    BookingOutcome,
    BookingRequest,
    book_appointment,
    cancel_appointment,
    lookup_booking,
    reschedule_appointment,
    resolve_company,
    unit_display_name,
    update_contact_details,
)
from ....service_layer.config_provider import ConfigProvider
from ..deps import get_config_provider, require_api_key

router = APIRouter(tags=["appointments"])


def _out(appt: Appointment) -> AppointmentOut:
    return AppointmentOut.from_row(appt, unit_display_name(appt.business_unit))


def _conflict(outcome: BookingOutcome) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={"success": False, "error": outcome.error, "reason": outcome.reason},
    )


@router.post("/book-appointment", response_model=BookingResponse, responses={409: {"description": "slot unavailable"}})
async def book(
    body: BookingIn,
    session: AsyncSession = Depends(get_session),
    provider: ConfigProvider = Depends(get_config_provider),
):
    service_type, crew_hint = parse_service_type(body.service_type)
    outcome = await book_appointment(
        session,
        provider,
        BookingRequest(
            first_name=body.first_name,
            last_name=body.last_name,
            email=body.email,
            phone=body.phone,
            date=body.date,
            time=body.time,
            service_type=body.service_type,
            business_unit=BusinessUnit(body.business_unit) if body.business_unit else None,
            crew_size=body.crew_size,
            quote=body.to_domain(service_type, crew_hint),
            pickup_address=body.pickup_address,
            dropoff_address=body.dropoff_address,
            notes=body.notes,
            channel=body.channel,
            send_confirmation=body.send_confirmation,
        ),
    )
    if not outcome.success:
        return _conflict(outcome)

    await session.commit()
    appt = outcome.appointment
    return BookingResponse(
        booking_id=appt.booking_id,
        appointment=_out(appt),
        estimate=EstimateOut.from_domain(outcome.estimate),
    )


@router.get("/appointment/{booking_id}", response_model=AppointmentResponse)
async def get_appointment(booking_id: str, session: AsyncSession = Depends(get_session)) -> AppointmentResponse:
    appt = await AppointmentRepository(session).get(booking_id)
    return AppointmentResponse(appointment=_out(appt))


@router.post("/reschedule-appointment", response_model=AppointmentResponse, responses={409: {"description": "slot unavailable"}})
async def reschedule(body: RescheduleIn, session: AsyncSession = Depends(get_session)):
    outcome = await reschedule_appointment(session, body.booking_id, body.new_date, body.new_time)
    if not outcome.success:
        return _conflict(outcome)
    await session.commit()
    return AppointmentResponse(appointment=_out(outcome.appointment), message="Appointment rescheduled successfully")


@router.post("/cancel-appointment", response_model=AppointmentResponse)
async def cancel(body: CancelIn, session: AsyncSession = Depends(get_session)) -> AppointmentResponse:
    appt = await cancel_appointment(session, body.booking_id)
    await session.commit()
    return AppointmentResponse(appointment=_out(appt), message="Appointment cancelled successfully")


@router.post("/update-appointment", response_model=AppointmentResponse)
async def update(body: UpdateAppointmentIn, session: AsyncSession = Depends(get_session)) -> AppointmentResponse:
    appt = await update_contact_details(session, body.booking_id, body.updates)
    await session.commit()
    return AppointmentResponse(appointment=_out(appt), message="Appointment updated successfully")


@router.post("/booking-lookup", response_model=AppointmentResponse)
async def booking_lookup(body: BookingLookupIn, session: AsyncSession = Depends(get_session)) -> AppointmentResponse:
    appt = await lookup_booking(session, body.booking_id, body.email)
    return AppointmentResponse(appointment=_out(appt))


@router.get("/company-info", response_model=CompanyInfoOut)
def company_info(service_type: str | None = Query(default=None, alias="serviceType")) -> CompanyInfoOut:
    unit, name = resolve_company(service_type)
    return CompanyInfoOut(business_unit=unit.value, company_name=name)


# -----------------------------
# Admin
# -----------------------------
@router.get("/appointments", response_model=AppointmentListResponse, dependencies=[Depends(require_api_key)])
async def list_appointments(
    business_unit: BusinessUnit | None = Query(default=None, alias="businessUnit"),
    include_cancelled: bool = Query(default=True, alias="includeCancelled"),
    session: AsyncSession = Depends(get_session),
) -> AppointmentListResponse:
    rows = await AppointmentRepository(session).list_appointments(
        AppointmentFilter(business_unit=business_unit, include_cancelled=include_cancelled)
    )
    return AppointmentListResponse(count=len(rows), appointments=[_out(a) for a in rows])


@router.delete("/appointments/{booking_id}", response_model=MessageResponse, dependencies=[Depends(require_api_key)])
async def delete_appointment(booking_id: str, session: AsyncSession = Depends(get_session)) -> MessageResponse:
    await AppointmentRepository(session).delete_appointment(booking_id)
    await session.commit()
    return MessageResponse(message="Appointment deleted successfully")
