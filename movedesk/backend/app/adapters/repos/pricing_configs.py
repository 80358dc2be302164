# app/adapters/repos/pricing_configs.py
from __future__ import annotations

import json

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.errors import UpstreamUnavailable
from ...domain.pricing_config import PricingConfiguration
from ...models import PricingConfig


class PricingConfigRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active(self) -> PricingConfig | None:
        q = select(PricingConfig).where(PricingConfig.active == True).order_by(PricingConfig.version.desc())  # noqa: E712
        try:
            return (await self.session.execute(q)).scalars().first()
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(f"pricing config store unavailable: {type(e).__name__}") from e

    async def save_new_version(self, config: PricingConfiguration, note: str | None = None) -> PricingConfig:
        """
        Store a rate card as the next version and make it the only active one.
        Does NOT commit; the caller owns the transaction so both writes land together.
        """
        current_max = (await self.session.execute(select(func.max(PricingConfig.version)))).scalar_one_or_none()
        await self.session.execute(
            update(PricingConfig).where(PricingConfig.active == True).values(active=False)  # noqa: E712
        )

        row = PricingConfig(
            version=int(current_max or 0) + 1,
            active=True,
            data_json=json.dumps(config.to_document()),
            note=note,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def history(self, limit: int = 50) -> list[PricingConfig]:
        q = select(PricingConfig).order_by(PricingConfig.version.desc()).limit(limit)
        try:
            return list((await self.session.execute(q)).scalars().all())
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(f"pricing config store unavailable: {type(e).__name__}") from e


def load_configuration(row: PricingConfig) -> PricingConfiguration:
    return PricingConfiguration.model_validate(json.loads(row.data_json))
