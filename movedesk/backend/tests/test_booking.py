import datetime as dt
import json
import re

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.adapters.repos.appointments import AppointmentFilter, AppointmentRepository
from app.adapters.repos.availability import AvailabilityRepository
from app.adapters.repos.pricing_configs import PricingConfigRepository
from app.config import settings
from app.domain.errors import InvalidTransition, NotFound, SlotConflict, UpstreamUnavailable, ValidationError
from app.domain.types import AppointmentStatus, BusinessUnit, QuoteRequest, ServiceType
from app.models import Appointment, OutboxEvent
from app.service_layer.booking import (
    EVENT_BOOKED,
    EVENT_CANCELLED,
    EVENT_RESCHEDULED,
    BookingRequest,
    book_appointment,
    cancel_appointment,
    lookup_booking,
    reschedule_appointment,
    resolve_company,
    update_contact_details,
)

MONDAY = "2030-06-03"
TUESDAY = "2030-06-04"
BOOKING_ID = re.compile(r"^(WF|QM)-\d{13}-[0-9A-F]{9}$")


def _request(time: str = "10:00", **kw) -> BookingRequest:
    base = dict(
        first_name="Sam",
        last_name="Okafor",
        email="Sam.Okafor@example.com",
        phone="555-0142",
        date=MONDAY,
        time=time,
        service_type="movingService",
        quote=QuoteRequest(service_type=ServiceType.moving_service, crew_size=2, distance_miles=10, drive_time_minutes=20),
        pickup_address="12 Elm St",
        dropoff_address="98 Oak Ave",
    )
    base.update(kw)
    return BookingRequest(**base)


async def _events(session, event_type: str) -> list[OutboxEvent]:
    rows = (await session.execute(select(OutboxEvent).where(OutboxEvent.event_type == event_type))).scalars().all()
    return list(rows)


async def test_booking_persists_estimate_snapshot_and_event(async_session_maker, provider):
    async with async_session_maker() as session:
        outcome = await book_appointment(session, provider, _request())
        await session.commit()

        assert outcome.success
        appt = outcome.appointment
        assert BOOKING_ID.match(appt.booking_id)
        assert appt.booking_id.startswith("WF-")
        assert appt.business_unit == BusinessUnit.primary
        assert appt.status == AppointmentStatus.confirmed
        assert appt.estimated_total == 760.00
        assert json.loads(appt.estimate_json)["total"] == 760.00
        assert appt.pricing_config_version == 1
        assert appt.slot_seat == 0

        events = await _events(session, EVENT_BOOKED)
        assert len(events) == 1
        payload = json.loads(events[0].payload_json)
        assert payload["bookingId"] == appt.booking_id
        assert payload["companyName"] == settings.PRIMARY_UNIT_NAME


async def test_secondary_unit_gets_its_own_prefix(async_session_maker, provider):
    async with async_session_maker() as session:
        outcome = await book_appointment(session, provider, _request(business_unit=BusinessUnit.secondary))
    assert outcome.appointment.booking_id.startswith("QM-")


async def test_labor_only_routing_to_secondary(async_session_maker, provider, monkeypatch):
    monkeypatch.setattr(settings, "ROUTE_LABOR_ONLY_TO_SECONDARY", True)
    async with async_session_maker() as session:
        outcome = await book_appointment(
            session,
            provider,
            _request(service_type="Labor Only", quote=QuoteRequest(service_type=ServiceType.labor_only, crew_size=2, hours=3)),
        )
    assert outcome.appointment.business_unit == BusinessUnit.secondary
    assert resolve_company("laborOnly") == (BusinessUnit.secondary, settings.SECONDARY_UNIT_NAME)
    assert resolve_company("movingService")[0] == BusinessUnit.primary


async def test_crew_size_taken_from_legacy_label(async_session_maker, provider):
    async with async_session_maker() as session:
        outcome = await book_appointment(session, provider, _request(service_type="3 Person Crew", quote=None))
    assert outcome.appointment.crew_size == 3
    assert outcome.appointment.service_type == ServiceType.moving_service


async def test_send_confirmation_false_skips_notification(async_session_maker, provider):
    async with async_session_maker() as session:
        await book_appointment(session, provider, _request(send_confirmation=False))
        await session.commit()
        assert await _events(session, EVENT_BOOKED) == []


@pytest.mark.parametrize("field", ["first_name", "last_name", "email", "phone", "date", "time"])
async def test_missing_contact_field_is_rejected(async_session_maker, provider, field):
    async with async_session_maker() as session:
        with pytest.raises(ValidationError):
            await book_appointment(session, provider, _request(**{field: ""}))


async def test_unknown_service_type_is_rejected(async_session_maker, provider):
    async with async_session_maker() as session:
        with pytest.raises(ValidationError):
            await book_appointment(session, provider, _request(service_type="Storage Unit"))


async def test_reschedule_archives_previous_slot(async_session_maker, provider):
    async with async_session_maker() as session:
        booked = await book_appointment(session, provider, _request("10:00"))
        await session.commit()
        booking_id = booked.appointment.booking_id

        outcome = await reschedule_appointment(session, booking_id, TUESDAY, "13:00")
        await session.commit()

        assert outcome.success
        appt = outcome.appointment
        assert appt.date == dt.date.fromisoformat(TUESDAY)
        assert appt.time == "13:00"
        assert appt.previous_date == dt.date.fromisoformat(MONDAY)
        assert appt.previous_time == "10:00"
        assert appt.rescheduled_at is not None

        events = await _events(session, EVENT_RESCHEDULED)
        assert json.loads(events[0].payload_json)["previousTime"] == "10:00"

        # the old slot is free again
        again = await book_appointment(session, provider, _request("10:00", email="other@example.com"))
        assert again.success


async def test_reschedule_into_taken_slot_is_refused(async_session_maker, provider):
    async with async_session_maker() as session:
        a = await book_appointment(session, provider, _request("10:00"))
        await book_appointment(session, provider, _request("11:00"))
        await session.commit()

        outcome = await reschedule_appointment(session, a.appointment.booking_id, MONDAY, "11:00")
        assert outcome.success is False
        assert outcome.reason == "slot full"


async def test_reschedule_to_own_slot_does_not_conflict_with_itself(async_session_maker, provider):
    async with async_session_maker() as session:
        a = await book_appointment(session, provider, _request("10:00"))
        await session.commit()

        outcome = await reschedule_appointment(session, a.appointment.booking_id, MONDAY, "10:00")
        assert outcome.success


async def test_cancel_is_terminal(async_session_maker, provider):
    async with async_session_maker() as session:
        booked = await book_appointment(session, provider, _request())
        await session.commit()
        booking_id = booked.appointment.booking_id

        appt = await cancel_appointment(session, booking_id)
        await session.commit()
        assert appt.status == AppointmentStatus.cancelled
        assert appt.cancelled_at is not None
        assert appt.slot_seat is None
        assert len(await _events(session, EVENT_CANCELLED)) == 1

        with pytest.raises(InvalidTransition):
            await cancel_appointment(session, booking_id)
        with pytest.raises(InvalidTransition):
            await reschedule_appointment(session, booking_id, TUESDAY, "09:00")


async def test_update_contact_details_only_touches_allowed_fields(async_session_maker, provider):
    async with async_session_maker() as session:
        booked = await book_appointment(session, provider, _request())
        await session.commit()
        booking_id = booked.appointment.booking_id

        appt = await update_contact_details(
            session,
            booking_id,
            {"notes": "gate code 4411", "phone": "555-0199", "date": TUESDAY, "time": "15:00"},
        )
        await session.commit()

    assert appt.notes == "gate code 4411"
    assert appt.phone == "555-0199"
    assert appt.date == dt.date.fromisoformat(MONDAY)
    assert appt.time == "10:00"


async def test_lookup_matches_email_case_insensitively(async_session_maker, provider):
    async with async_session_maker() as session:
        booked = await book_appointment(session, provider, _request())
        await session.commit()
        booking_id = booked.appointment.booking_id

        found = await lookup_booking(session, booking_id, "  sam.okafor@EXAMPLE.com ")
        assert found.booking_id == booking_id

        with pytest.raises(NotFound):
            await lookup_booking(session, booking_id, "someone@else.com")
        with pytest.raises(NotFound):
            await lookup_booking(session, "WF-0-NOPE", "sam.okafor@example.com")
        with pytest.raises(ValidationError):
            await lookup_booking(session, booking_id, "")


# -----------------------------
# Store contract
# -----------------------------
def _row(booking_id: str, unit: BusinessUnit, seat: int | None) -> Appointment:
    return Appointment(
        booking_id=booking_id,
        business_unit=unit,
        first_name="A",
        last_name="B",
        email="a@example.com",
        phone="1",
        service_type=ServiceType.moving_service,
        date=dt.date.fromisoformat(MONDAY),
        time="10:00",
        slot_seat=seat,
    )


async def test_seat_constraint_rejects_double_booking(async_session_maker):
    async with async_session_maker() as session:
        session.add(_row("WF-1", BusinessUnit.primary, 0))
        session.add(_row("QM-1", BusinessUnit.secondary, 0))
        with pytest.raises(IntegrityError):
            await session.commit()


async def test_released_seats_do_not_collide(async_session_maker):
    async with async_session_maker() as session:
        session.add(_row("WF-1", BusinessUnit.primary, None))
        session.add(_row("WF-2", BusinessUnit.primary, None))
        session.add(_row("QM-1", BusinessUnit.secondary, 0))
        await session.commit()


async def test_repository_raises_slot_conflict_when_no_seat_left(async_session_maker):
    async with async_session_maker() as session:
        repo = AppointmentRepository(session)
        await repo.create_appointment(_row("WF-1", BusinessUnit.primary, None), capacity=1)
        await session.commit()

        with pytest.raises(SlotConflict):
            await repo.create_appointment(_row("QM-1", BusinessUnit.secondary, None), capacity=1)


async def test_list_appointments_filters(async_session_maker):
    async with async_session_maker() as session:
        repo = AppointmentRepository(session)
        await repo.create_appointment(_row("WF-1", BusinessUnit.primary, None), capacity=2)
        await repo.create_appointment(_row("QM-1", BusinessUnit.secondary, None), capacity=2)
        await repo.update_appointment("QM-1", status=AppointmentStatus.cancelled, slot_seat=None)
        await session.commit()

        assert [a.booking_id for a in await repo.list_appointments()] == ["WF-1"]
        everything = await repo.list_appointments(AppointmentFilter(include_cancelled=True))
        assert {a.booking_id for a in everything} == {"WF-1", "QM-1"}
        secondary = await repo.list_appointments(
            AppointmentFilter(business_unit=BusinessUnit.secondary, include_cancelled=True)
        )
        assert [a.booking_id for a in secondary] == ["QM-1"]

        await repo.delete_appointment("QM-1")
        with pytest.raises(NotFound):
            await repo.get("QM-1")


# -----------------------------
# Write-time seat race
# -----------------------------
async def _allow_two_per_slot(session) -> None:
    await AvailabilityRepository(session).save_settings(slot_capacity=2)
    await session.commit()


def _stale_seat_read(monkeypatch, seat: int = 0) -> None:
    """The seat read happens before a rival's write at that seat lands."""

    async def _free_seat(self, day, time, capacity, exclude_booking_id=None):
        return seat

    monkeypatch.setattr(AppointmentRepository, "_free_seat", _free_seat)


async def test_booking_that_loses_the_seat_race_is_refused(async_session_maker, provider, monkeypatch):
    async with async_session_maker() as session:
        await _allow_two_per_slot(session)
        rival = await book_appointment(session, provider, _request("10:00", email="rival@example.com"))
        await session.commit()
        assert rival.appointment.slot_seat == 0

        _stale_seat_read(monkeypatch)
        outcome = await book_appointment(session, provider, _request("10:00"))

        assert outcome.success is False
        assert outcome.reason == "slot full"
        assert outcome.appointment is None

        # the session was rolled back and is still usable
        rows = await AppointmentRepository(session).list_appointments()
        assert [a.email for a in rows] == ["rival@example.com"]
        assert len(await _events(session, EVENT_BOOKED)) == 1


async def test_reschedule_that_loses_the_seat_race_keeps_the_old_slot(async_session_maker, provider, monkeypatch):
    async with async_session_maker() as session:
        await _allow_two_per_slot(session)
        await book_appointment(session, provider, _request("10:00", email="rival@example.com"))
        mover = await book_appointment(session, provider, _request("11:00"))
        await session.commit()
        booking_id = mover.appointment.booking_id

        _stale_seat_read(monkeypatch)
        outcome = await reschedule_appointment(session, booking_id, MONDAY, "10:00")

        assert outcome.success is False
        assert outcome.reason == "slot full"

        appt = await AppointmentRepository(session).get(booking_id)
        assert appt.time == "11:00"
        assert appt.slot_seat == 0
        assert appt.previous_time is None
        assert await _events(session, EVENT_RESCHEDULED) == []


async def test_store_outage_on_reads_is_reported_as_unavailable(async_session_maker, monkeypatch):
    async with async_session_maker() as session:

        async def _broken_execute(self, *args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(AsyncSession, "execute", _broken_execute)

        with pytest.raises(UpstreamUnavailable):
            await AppointmentRepository(session).create_appointment(
                _row("WF-1", BusinessUnit.primary, None), capacity=1
            )
        with pytest.raises(UpstreamUnavailable):
            await AvailabilityRepository(session).list_blocked()
        with pytest.raises(UpstreamUnavailable):
            await PricingConfigRepository(session).history()
