# app/entrypoints/api/routers/pricing.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ....adapters.repos.pricing_configs import PricingConfigRepository, load_configuration
from ....db import get_session
from ....domain.errors import UpstreamUnavailable, ValidationError
from ....domain.pricing_config import PricingConfiguration
from ....models import PricingConfig
from ....schemas import PricingConfigOut, PricingConfigSaveIn, PricingConfigVersionOut
from ..deps import require_api_key

log = logging.getLogger(__name__)

router = APIRouter(tags=["pricing"])


def _config_out(row: PricingConfig) -> PricingConfigOut:
    return PricingConfigOut(
        version=row.version,
        config=load_configuration(row).to_document(),
        note=row.note,
        created_at=row.created_at,
    )


@router.get("/services", response_model=PricingConfigOut)
async def get_services(session: AsyncSession = Depends(get_session)) -> PricingConfigOut:
    row = await PricingConfigRepository(session).get_active()
    if row is None:
        raise UpstreamUnavailable("no active pricing configuration")
    return _config_out(row)


@router.post("/services", response_model=PricingConfigOut, dependencies=[Depends(require_api_key)])
async def save_services(
    body: PricingConfigSaveIn,
    session: AsyncSession = Depends(get_session),
) -> PricingConfigOut:
    try:
        config = PricingConfiguration.model_validate(body.config)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid pricing configuration: {e.error_count()} error(s); {e.errors()[0]['msg']}") from e

    row = await PricingConfigRepository(session).save_new_version(config, note=body.note)
    await session.commit()
    log.info("pricing configuration v%s activated", row.version)
    return _config_out(row)


@router.get("/services/history", response_model=list[PricingConfigVersionOut], dependencies=[Depends(require_api_key)])
async def services_history(
    limit: int = Query(50, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
) -> list[PricingConfigVersionOut]:
    rows = await PricingConfigRepository(session).history(limit=limit)
    return [
        PricingConfigVersionOut(version=r.version, active=r.active, note=r.note, created_at=r.created_at)
        for r in rows
    ]
