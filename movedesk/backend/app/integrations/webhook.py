from __future__ import annotations

import hmac
import hashlib
import json
from typing import Any

import httpx

from ..config import settings
from .base import NotificationSink, SinkDeliveryResult

SIGNATURE_HEADER = "X-MoveDesk-Signature"


def sign_body(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class WebhookSink(NotificationSink):
    def __init__(self, url: str, secret: str | None = None, timeout_s: int | None = None) -> None:
        self.url = url
        self.secret = secret
        self.timeout_s = timeout_s or settings.WEBHOOK_TIMEOUT_S

    async def deliver(self, event_type: str, payload: dict[str, Any]) -> SinkDeliveryResult:
        body = json.dumps({"type": event_type, "data": payload}, default=str).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if self.secret:
            headers[SIGNATURE_HEADER] = sign_body(self.secret, body)

        try:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                r = await client.post(self.url, content=body, headers=headers)
                if 200 <= r.status_code < 300:
                    return SinkDeliveryResult(ok=True)
                return SinkDeliveryResult(ok=False, error=f"HTTP {r.status_code}: {r.text[:500]}")
        except httpx.HTTPError as e:
            return SinkDeliveryResult(ok=False, error=f"{type(e).__name__}: {e}")
