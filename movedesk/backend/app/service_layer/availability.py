# app/service_layer/availability.py
from __future__ import annotations

import datetime as dt
import logging
from collections import Counter

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.appointments import AppointmentFilter, AppointmentRepository
from ..adapters.repos.availability import AvailabilityRepository
from ..domain.availability import evaluate_day, evaluate_slot, normalize_time
from ..domain.types import AvailabilitySlot, ServiceType, SlotCheck

log = logging.getLogger(__name__)


class AvailabilityChecker:
    """
    Answers "is this slot free?" against the shared crew pool.

    Counts every business unit's non-cancelled appointments plus internal
    calendar blocks, re-read from the store on every call.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.appointments = AppointmentRepository(session)
        self.availability = AvailabilityRepository(session)

    async def _booked_by_time(self, day: dt.date, exclude_booking_id: str | None = None) -> Counter[str]:
        rows = await self.appointments.list_appointments(AppointmentFilter(day=day))
        return Counter(a.time for a in rows if a.booking_id != exclude_booking_id)

    async def get_available_slots(self, day: dt.date) -> list[AvailabilitySlot]:
        rules = await self.availability.get_rules()
        return evaluate_day(
            day,
            rules,
            date_blocked=await self.availability.is_blocked(day),
            booked_by_time=await self._booked_by_time(day),
            internal_by_time=await self.availability.calendar_blocks_by_time(day),
        )

    async def check_availability(
        self,
        day: dt.date,
        time: str,
        service_type: ServiceType | None = None,
        exclude_booking_id: str | None = None,
    ) -> SlotCheck:
        # service_type does not change capacity today; every service draws from one crew pool
        t = normalize_time(time)
        rules = await self.availability.get_rules()
        booked = await self._booked_by_time(day, exclude_booking_id=exclude_booking_id)
        internal = await self.availability.calendar_blocks_by_time(day)

        check = evaluate_slot(
            day,
            t,
            rules,
            date_blocked=await self.availability.is_blocked(day),
            booked_at_slot=booked.get(t, 0),
            internal_at_slot=internal.get(t, 0),
            booked_that_day=sum(booked.values()),
        )
        if not check.available:
            log.info("slot %s %s unavailable (%s) service=%s", day.isoformat(), t, check.reason, service_type)
        return check

    async def seat_capacity(self, day: dt.date, time: str) -> int:
        """Seats left for customer bookings once internal blocks take theirs."""
        rules = await self.availability.get_rules()
        internal = await self.availability.calendar_blocks_by_time(day)
        return max(1, rules.slot_capacity - internal.get(normalize_time(time), 0))
