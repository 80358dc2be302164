# app/adapters/repos/appointments.py
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.errors import NotFound, SlotConflict, UpstreamUnavailable
from ...domain.types import AppointmentStatus, BusinessUnit
from ...models import Appointment, utcnow

# Columns callers may change through update_appointment().
_UPDATABLE = {
    "first_name",
    "last_name",
    "email",
    "phone",
    "pickup_address",
    "dropoff_address",
    "notes",
    "status",
    "date",
    "time",
    "slot_seat",
    "previous_date",
    "previous_time",
    "rescheduled_at",
    "cancelled_at",
}


@dataclass(frozen=True)
class AppointmentFilter:
    day: dt.date | None = None
    business_unit: BusinessUnit | None = None
    email: str | None = None
    include_cancelled: bool = False


class AppointmentRepository:
    """
    Store contract for appointments. Reads span every business unit unless
    the filter narrows it; availability counting relies on that.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_appointments(self, flt: AppointmentFilter | None = None) -> list[Appointment]:
        flt = flt or AppointmentFilter()
        q = select(Appointment)
        if flt.day is not None:
            q = q.where(Appointment.date == flt.day)
        if flt.business_unit is not None:
            q = q.where(Appointment.business_unit == flt.business_unit)
        if flt.email:
            q = q.where(func.lower(Appointment.email) == flt.email.strip().lower())
        if not flt.include_cancelled:
            q = q.where(Appointment.status != AppointmentStatus.cancelled)
        q = q.order_by(Appointment.date.asc(), Appointment.time.asc(), Appointment.id.asc())

        try:
            return list((await self.session.execute(q)).scalars().all())
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(f"appointment store unavailable: {type(e).__name__}") from e

    async def get(self, booking_id: str) -> Appointment:
        q = select(Appointment).where(Appointment.booking_id == booking_id)
        try:
            row = (await self.session.execute(q)).scalars().first()
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(f"appointment store unavailable: {type(e).__name__}") from e
        if row is None:
            raise NotFound(f"Appointment {booking_id} not found")
        return row

    async def _free_seat(
        self,
        day: dt.date,
        time: str,
        capacity: int,
        exclude_booking_id: str | None = None,
    ) -> int:
        q = (
            select(Appointment.slot_seat)
            .where(Appointment.date == day)
            .where(Appointment.time == time)
            .where(Appointment.slot_seat.is_not(None))
        )
        if exclude_booking_id:
            q = q.where(Appointment.booking_id != exclude_booking_id)
        try:
            taken = set((await self.session.execute(q)).scalars().all())
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(f"appointment store unavailable: {type(e).__name__}") from e
        for seat in range(max(1, capacity)):
            if seat not in taken:
                return seat
        raise SlotConflict(f"no free seat at {day.isoformat()} {time}")

    async def _flush_or_conflict(self) -> None:
        try:
            await self.session.flush()
        except IntegrityError as e:
            # a concurrent booking took the seat between our read and write
            await self.session.rollback()
            raise SlotConflict("slot taken by a concurrent booking") from e

    async def create_appointment(self, appt: Appointment, *, capacity: int) -> Appointment:
        appt.slot_seat = await self._free_seat(appt.date, appt.time, capacity)
        self.session.add(appt)
        await self._flush_or_conflict()
        return appt

    async def update_appointment(self, booking_id: str, **changes: Any) -> Appointment:
        appt = await self.get(booking_id)
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Not updatable: {sorted(unknown)}")
        for k, v in changes.items():
            setattr(appt, k, v)
        appt.updated_at = utcnow()
        await self._flush_or_conflict()
        return appt

    async def move_appointment(self, booking_id: str, day: dt.date, time: str, *, capacity: int) -> Appointment:
        """Re-seat a live appointment at a new slot (reschedule)."""
        appt = await self.get(booking_id)
        seat = await self._free_seat(day, time, capacity, exclude_booking_id=booking_id)
        # release the old seat first so a same-slot move cannot collide with itself
        appt.slot_seat = None
        await self.session.flush()
        return await self.update_appointment(booking_id, date=day, time=time, slot_seat=seat)

    async def delete_appointment(self, booking_id: str) -> None:
        await self.get(booking_id)
        await self.session.execute(delete(Appointment).where(Appointment.booking_id == booking_id))
        await self.session.flush()
