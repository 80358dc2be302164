import hashlib
import hmac
import json

from sqlalchemy import select

from app.integrations.base import SinkDeliveryResult
from app.integrations.services.outbox import build_sinks, dispatch_pending_events, enqueue_event
from app.integrations.webhook import WebhookSink, sign_body
from app.models import Integration, IntegrationType, OutboxEvent, OutboxStatus


class RecordingSink:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.calls: list[tuple[str, dict]] = []

    async def deliver(self, event_type: str, payload: dict) -> SinkDeliveryResult:
        self.calls.append((event_type, payload))
        if self.ok:
            return SinkDeliveryResult(ok=True)
        return SinkDeliveryResult(ok=False, error="HTTP 500: boom")


async def test_dispatch_delivers_pending_events(async_session_maker):
    sink = RecordingSink()
    async with async_session_maker() as session:
        await enqueue_event(session, "appointment.booked", {"bookingId": "WF-1"})
        await enqueue_event(session, "appointment.cancelled", {"bookingId": "WF-1"})
        await session.commit()

        res = await dispatch_pending_events(session, rps=0, sinks=[sink])
        await session.commit()

        assert res["delivered"] == 2
        assert res["events"] == 2
        assert [c[0] for c in sink.calls] == ["appointment.booked", "appointment.cancelled"]
        assert sink.calls[0][1]["bookingId"] == "WF-1"
        assert "eventId" in sink.calls[0][1]

        rows = (await session.execute(select(OutboxEvent))).scalars().all()
        assert all(r.status == OutboxStatus.delivered for r in rows)
        assert all(r.delivered_at is not None for r in rows)

        # nothing left to send
        again = await dispatch_pending_events(session, rps=0, sinks=[sink])
        assert again["events"] == 0


async def test_failed_delivery_backs_off_then_gives_up(async_session_maker):
    sink = RecordingSink(ok=False)
    async with async_session_maker() as session:
        ev = await enqueue_event(session, "appointment.booked", {"bookingId": "WF-2"})
        await session.commit()

        res = await dispatch_pending_events(session, rps=0, max_attempts=2, sinks=[sink])
        assert res["delivered"] == 0
        assert ev.status == OutboxStatus.pending
        assert ev.attempts == 1
        assert ev.next_attempt_at is not None
        assert ev.last_error == "HTTP 500: boom"

        # not due yet
        res = await dispatch_pending_events(session, rps=0, max_attempts=2, sinks=[sink])
        assert res["events"] == 0

        ev.next_attempt_at = None
        await session.flush()
        res = await dispatch_pending_events(session, rps=0, max_attempts=2, sinks=[sink])
        assert res["failed"] == 1
        assert ev.status == OutboxStatus.failed


async def test_no_enabled_sinks_is_a_quiet_no_op(async_session_maker):
    async with async_session_maker() as session:
        await enqueue_event(session, "appointment.booked", {"bookingId": "WF-3"})
        session.add(
            Integration(
                name="off",
                type=IntegrationType.webhook,
                enabled=False,
                config_json=json.dumps({"url": "https://example.com/hook"}),
            )
        )
        await session.commit()

        res = await dispatch_pending_events(session)
        assert res["skipped_no_sinks"] == 1

        ev = (await session.execute(select(OutboxEvent))).scalars().one()
        assert ev.status == OutboxStatus.pending
        assert ev.attempts == 0


async def test_build_sinks_uses_enabled_webhooks_with_urls(async_session_maker):
    async with async_session_maker() as session:
        session.add_all(
            [
                Integration(
                    name="crm",
                    type=IntegrationType.webhook,
                    enabled=True,
                    config_json=json.dumps({"url": "https://example.com/hook", "secret": "s3cret"}),
                ),
                Integration(name="broken", type=IntegrationType.webhook, enabled=True, config_json="{}"),
            ]
        )
        await session.commit()

        sinks = await build_sinks(session)

    assert len(sinks) == 1
    assert isinstance(sinks[0], WebhookSink)
    assert sinks[0].url == "https://example.com/hook"
    assert sinks[0].secret == "s3cret"


def test_signature_is_hmac_sha256_of_body():
    body = b'{"type":"appointment.booked"}'
    assert sign_body("k", body) == hmac.new(b"k", body, hashlib.sha256).hexdigest()


async def test_webhook_sink_reports_transport_errors():
    sink = WebhookSink(url="http://127.0.0.1:9/hook", timeout_s=2)
    res = await sink.deliver("appointment.booked", {"bookingId": "WF-4"})
    assert res.ok is False
    assert res.error
