# app/entrypoints/api/routers/availability.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ....adapters.repos.availability import AvailabilityRepository, rules_from_row
from ....db import get_session
from ....domain.availability import normalize_time, parse_day
from ....domain.policies import parse_service_type
from ....domain.types import AvailabilityRules
from ....models import CalendarBlock
from ....schemas import (
    AvailabilitySettingsIn,
    AvailabilitySettingsOut,
    BlockedDateIn,
    BlockedDateOut,
    CalendarBlockIn,
    CalendarBlockOut,
    MessageResponse,
    SlotCheckResponse,
    SlotOut,
    SlotsResponse,
)
from ....service_layer.availability import AvailabilityChecker
from ..deps import require_api_key

router = APIRouter(tags=["availability"])


@router.get("/available-slots", response_model=SlotsResponse)
async def available_slots(
    date: str = Query(..., description="YYYY-MM-DD"),
    session: AsyncSession = Depends(get_session),
) -> SlotsResponse:
    day = parse_day(date)
    slots = await AvailabilityChecker(session).get_available_slots(day)
    return SlotsResponse(
        date=day.isoformat(),
        slots=[SlotOut(date=s.date, time=s.time, label=s.label, available=s.available, reason=s.reason) for s in slots],
    )


@router.get("/check-availability", response_model=SlotCheckResponse)
async def check_availability(
    date: str = Query(...),
    time: str = Query(..., description="HH:MM"),
    service_type: str | None = Query(default=None, alias="serviceType"),
    session: AsyncSession = Depends(get_session),
) -> SlotCheckResponse:
    st = parse_service_type(service_type)[0] if service_type else None
    check = await AvailabilityChecker(session).check_availability(parse_day(date), time, st)
    return SlotCheckResponse(available=check.available, reason=check.reason)


# -----------------------------
# Admin: business hours
# -----------------------------
def _settings_out(rules: AvailabilityRules, tz: str | None) -> AvailabilitySettingsOut:
    return AvailabilitySettingsOut(
        working_days=list(rules.working_days),
        start_time=rules.start_time,
        end_time=rules.end_time,
        slot_minutes=rules.slot_minutes,
        slot_capacity=rules.slot_capacity,
        max_appointments_per_day=rules.max_appointments_per_day,
        timezone=tz,
    )


@router.get("/availability-settings", response_model=AvailabilitySettingsOut, dependencies=[Depends(require_api_key)])
async def get_availability_settings(session: AsyncSession = Depends(get_session)) -> AvailabilitySettingsOut:
    row = await AvailabilityRepository(session).get_settings()
    return _settings_out(rules_from_row(row), row.timezone if row else None)


@router.post("/availability-settings", response_model=AvailabilitySettingsOut, dependencies=[Depends(require_api_key)])
async def save_availability_settings(
    body: AvailabilitySettingsIn,
    session: AsyncSession = Depends(get_session),
) -> AvailabilitySettingsOut:
    row = await AvailabilityRepository(session).save_settings(
        working_days=body.working_days,
        start_time=normalize_time(body.start_time) if body.start_time else None,
        end_time=normalize_time(body.end_time) if body.end_time else None,
        slot_minutes=body.slot_minutes,
        slot_capacity=body.slot_capacity,
        max_appointments_per_day=body.max_appointments_per_day,
        timezone=body.timezone,
    )
    await session.commit()
    return _settings_out(rules_from_row(row), row.timezone)


# -----------------------------
# Admin: blocked dates
# -----------------------------
@router.get("/blocked-dates", response_model=list[BlockedDateOut], dependencies=[Depends(require_api_key)])
async def list_blocked_dates(session: AsyncSession = Depends(get_session)) -> list[BlockedDateOut]:
    rows = await AvailabilityRepository(session).list_blocked()
    return [BlockedDateOut(date=r.date.isoformat(), reason=r.reason) for r in rows]


@router.post("/blocked-dates", response_model=MessageResponse, dependencies=[Depends(require_api_key)])
async def update_blocked_date(
    body: BlockedDateIn,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    day = parse_day(body.date)
    repo = AvailabilityRepository(session)
    if body.action == "block":
        await repo.block(day, body.reason)
        message = f"{day.isoformat()} blocked"
    else:
        removed = await repo.unblock(day)
        message = f"{day.isoformat()} unblocked" if removed else f"{day.isoformat()} was not blocked"
    await session.commit()
    return MessageResponse(message=message)


# -----------------------------
# Admin: internal calendar blocks
# -----------------------------
def _block_out(b: CalendarBlock) -> CalendarBlockOut:
    return CalendarBlockOut(id=b.id, date=b.date.isoformat(), time=b.time, kind=b.kind, title=b.title, notes=b.notes)


@router.get("/calendar-blocks", response_model=list[CalendarBlockOut], dependencies=[Depends(require_api_key)])
async def list_calendar_blocks(
    date: str | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> list[CalendarBlockOut]:
    rows = await AvailabilityRepository(session).list_calendar_blocks(parse_day(date) if date else None)
    return [_block_out(b) for b in rows]


@router.post("/calendar-blocks", response_model=CalendarBlockOut, dependencies=[Depends(require_api_key)])
async def create_calendar_block(
    body: CalendarBlockIn,
    session: AsyncSession = Depends(get_session),
) -> CalendarBlockOut:
    row = await AvailabilityRepository(session).add_calendar_block(
        day=parse_day(body.date),
        time=normalize_time(body.time),
        kind=body.kind,
        title=body.title,
        notes=body.notes,
    )
    await session.commit()
    return _block_out(row)


@router.delete("/calendar-blocks/{block_id}", response_model=MessageResponse, dependencies=[Depends(require_api_key)])
async def delete_calendar_block(block_id: int, session: AsyncSession = Depends(get_session)) -> MessageResponse:
    await AvailabilityRepository(session).delete_calendar_block(block_id)
    await session.commit()
    return MessageResponse(message="Calendar block deleted")
