# app/entrypoints/api/routers/integrations.py
from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ....db import get_session
from ....models import Integration, IntegrationType
from ....schemas import IntegrationCreate, IntegrationOut
from ..deps import require_api_key

router = APIRouter(tags=["integrations"])


def _out(integ: Integration) -> IntegrationOut:
    return IntegrationOut(
        id=integ.id,
        name=integ.name,
        type=integ.type.value,
        enabled=integ.enabled,
        created_at=integ.created_at,
    )


@router.post("/integrations", response_model=IntegrationOut, dependencies=[Depends(require_api_key)])
async def create_integration(
    body: IntegrationCreate,
    session: AsyncSession = Depends(get_session),
) -> IntegrationOut:
    existing = (await session.execute(select(Integration).where(Integration.name == body.name))).scalars().first()
    if existing:
        raise HTTPException(
            status_code=409,
            detail="Integration name already exists. Use PATCH to update/disable.",
        )

    integ = Integration(
        name=body.name,
        type=IntegrationType.webhook,
        enabled=body.enabled,
        config_json=json.dumps({"url": body.url, "secret": body.secret}),
    )
    session.add(integ)
    await session.commit()
    return _out(integ)


@router.patch("/integrations/{integration_id}", response_model=IntegrationOut, dependencies=[Depends(require_api_key)])
async def update_integration(
    integration_id: int,
    enabled: bool | None = None,
    url: str | None = None,
    secret: str | None = None,
    session: AsyncSession = Depends(get_session),
) -> IntegrationOut:
    integ = await session.get(Integration, integration_id)
    if not integ:
        raise HTTPException(status_code=404, detail="Integration not found")

    if enabled is not None:
        integ.enabled = bool(enabled)

    if url is not None or secret is not None:
        cfg = json.loads(integ.config_json or "{}")
        if url is not None:
            cfg["url"] = url
        if secret is not None:
            cfg["secret"] = secret
        integ.config_json = json.dumps(cfg)

    await session.commit()
    return _out(integ)


@router.get("/integrations", response_model=list[IntegrationOut], dependencies=[Depends(require_api_key)])
async def list_integrations(session: AsyncSession = Depends(get_session)) -> list[IntegrationOut]:
    rows = (await session.execute(select(Integration).order_by(Integration.id.asc()))).scalars().all()
    return [_out(i) for i in rows]
