# app/service_layer/defaults.py
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.availability import AvailabilityRepository
from ..adapters.repos.pricing_configs import PricingConfigRepository
from ..domain.pricing_config import default_pricing_configuration
from ..domain.types import AvailabilityRules


async def seed_defaults(session: AsyncSession, *, force_pricing: bool = False) -> dict[str, bool]:
    """
    Idempotent: an existing active rate card or settings row is left alone
    unless force_pricing asks for a fresh default version. Does NOT commit.
    """
    seeded = {"pricing": False, "availability": False}

    pricing = PricingConfigRepository(session)
    if force_pricing or await pricing.get_active() is None:
        await pricing.save_new_version(default_pricing_configuration(), note="default rate card")
        seeded["pricing"] = True

    availability = AvailabilityRepository(session)
    if await availability.get_settings() is None:
        rules = AvailabilityRules()
        await availability.save_settings(
            working_days=list(rules.working_days),
            start_time=rules.start_time,
            end_time=rules.end_time,
            slot_minutes=rules.slot_minutes,
            slot_capacity=rules.slot_capacity,
            max_appointments_per_day=rules.max_appointments_per_day,
        )
        seeded["availability"] = True

    return seeded
