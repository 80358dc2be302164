# app/service_layer/estimates.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from ..domain.errors import ValidationError
from ..domain.pricing import calculate_estimate
from ..domain.types import Estimate, QuoteRequest
from .config_provider import ConfigProvider

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuoteResult:
    estimate: Estimate
    config_version: int | None


async def estimate_quote(provider: ConfigProvider, req: QuoteRequest) -> QuoteResult:
    """
    Price a request against whatever rate card is active right now.

    Every channel (web form, chat, voice, admin) comes through here so the
    same inputs always produce the same total.
    """
    active = await provider.get_active_config()
    try:
        estimate = calculate_estimate(req, active.config)
    except ValidationError as e:
        log.info("quote rejected: %s", e)
        raise
    return QuoteResult(estimate=estimate, config_version=active.version)
