# app/adapters/repos/availability.py
from __future__ import annotations

import datetime as dt
from collections import Counter

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.errors import NotFound, UpstreamUnavailable, ValidationError
from ...domain.types import AvailabilityRules
from ...models import AvailabilitySettings, BlockedDate, CalendarBlock, utcnow

_SETTINGS_ID = 1


def _parse_working_days(raw: str) -> tuple[int, ...]:
    days = sorted({int(p) for p in (raw or "").split(",") if p.strip()})
    return tuple(days)


def rules_from_row(row: AvailabilitySettings | None) -> AvailabilityRules:
    if row is None:
        return AvailabilityRules()
    return AvailabilityRules(
        working_days=_parse_working_days(row.working_days),
        start_time=row.start_time,
        end_time=row.end_time,
        slot_minutes=row.slot_minutes,
        slot_capacity=row.slot_capacity,
        max_appointments_per_day=row.max_appointments_per_day,
    )


class AvailabilityRepository:
    """Business-hours settings, blocked dates and internal calendar blocks."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_settings(self) -> AvailabilitySettings | None:
        try:
            return await self.session.get(AvailabilitySettings, _SETTINGS_ID)
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(f"availability store unavailable: {type(e).__name__}") from e

    async def get_rules(self) -> AvailabilityRules:
        return rules_from_row(await self.get_settings())

    async def save_settings(
        self,
        *,
        working_days: list[int] | None = None,
        start_time: str | None = None,
        end_time: str | None = None,
        slot_minutes: int | None = None,
        slot_capacity: int | None = None,
        max_appointments_per_day: int | None = None,
        timezone: str | None = None,
    ) -> AvailabilitySettings:
        row = await self.get_settings()
        if row is None:
            defaults = AvailabilityRules()
            row = AvailabilitySettings(
                id=_SETTINGS_ID,
                working_days=",".join(str(d) for d in defaults.working_days),
                start_time=defaults.start_time,
                end_time=defaults.end_time,
                slot_minutes=defaults.slot_minutes,
                slot_capacity=defaults.slot_capacity,
                max_appointments_per_day=defaults.max_appointments_per_day,
            )
            self.session.add(row)

        if working_days is not None:
            if any(d < 0 or d > 6 for d in working_days):
                raise ValidationError("workingDays must be 0 (Sunday) .. 6 (Saturday)")
            row.working_days = ",".join(str(d) for d in sorted(set(working_days)))
        if start_time is not None:
            row.start_time = start_time
        if end_time is not None:
            row.end_time = end_time
        if slot_minutes is not None:
            row.slot_minutes = slot_minutes
        if slot_capacity is not None:
            row.slot_capacity = slot_capacity
        if max_appointments_per_day is not None:
            row.max_appointments_per_day = max_appointments_per_day
        if timezone is not None:
            row.timezone = timezone

        row.updated_at = utcnow()
        await self.session.flush()
        return row

    # -----------------------------
    # Blocked dates
    # -----------------------------
    async def is_blocked(self, day: dt.date) -> bool:
        q = select(BlockedDate.id).where(BlockedDate.date == day)
        try:
            return (await self.session.execute(q)).first() is not None
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(f"availability store unavailable: {type(e).__name__}") from e

    async def list_blocked(self) -> list[BlockedDate]:
        q = select(BlockedDate).order_by(BlockedDate.date.asc())
        try:
            return list((await self.session.execute(q)).scalars().all())
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(f"availability store unavailable: {type(e).__name__}") from e

    async def block(self, day: dt.date, reason: str | None = None) -> BlockedDate:
        existing = (await self.session.execute(select(BlockedDate).where(BlockedDate.date == day))).scalars().first()
        if existing:
            if reason is not None:
                existing.reason = reason
            await self.session.flush()
            return existing

        row = BlockedDate(date=day, reason=reason)
        self.session.add(row)
        await self.session.flush()
        return row

    async def unblock(self, day: dt.date) -> bool:
        res = await self.session.execute(delete(BlockedDate).where(BlockedDate.date == day))
        await self.session.flush()
        return (res.rowcount or 0) > 0

    # -----------------------------
    # Internal calendar blocks
    # -----------------------------
    async def list_calendar_blocks(self, day: dt.date | None = None) -> list[CalendarBlock]:
        q = select(CalendarBlock)
        if day is not None:
            q = q.where(CalendarBlock.date == day)
        q = q.order_by(CalendarBlock.date.asc(), CalendarBlock.time.asc(), CalendarBlock.id.asc())
        try:
            return list((await self.session.execute(q)).scalars().all())
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(f"availability store unavailable: {type(e).__name__}") from e

    async def calendar_blocks_by_time(self, day: dt.date) -> Counter[str]:
        return Counter(b.time for b in await self.list_calendar_blocks(day))

    async def add_calendar_block(
        self,
        *,
        day: dt.date,
        time: str,
        kind: str = "other",
        title: str = "",
        notes: str | None = None,
    ) -> CalendarBlock:
        row = CalendarBlock(date=day, time=time, kind=kind, title=title, notes=notes)
        self.session.add(row)
        await self.session.flush()
        return row

    async def delete_calendar_block(self, block_id: int) -> None:
        row = await self.session.get(CalendarBlock, block_id)
        if row is None:
            raise NotFound(f"Calendar block {block_id} not found")
        await self.session.delete(row)
        await self.session.flush()
