from __future__ import annotations
from dataclasses import dataclass
from typing import Protocol, Any


@dataclass(frozen=True)
class SinkDeliveryResult:
    ok: bool
    error: str | None = None


class NotificationSink(Protocol):
    """
    Receives appointment lifecycle events (appointment.booked / .rescheduled /
    .cancelled). Email, SMS and calendar providers sit behind a sink.
    """

    async def deliver(self, event_type: str, payload: dict[str, Any]) -> SinkDeliveryResult:
        ...
