# app/service_layer/config_provider.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.pricing_configs import PricingConfigRepository, load_configuration
from ..domain.errors import UpstreamUnavailable
from ..domain.pricing_config import PricingConfiguration


@dataclass(frozen=True)
class ActiveConfig:
    config: PricingConfiguration
    version: int | None


class ConfigProvider(Protocol):
    async def get_active_config(self) -> ActiveConfig:
        ...


class SqlAlchemyConfigProvider(ConfigProvider):
    """
    Reads the active rate card on every call. No caching: an admin edit is
    visible to the very next quote from any channel.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_active_config(self) -> ActiveConfig:
        row = await PricingConfigRepository(self.session).get_active()
        if row is None:
            raise UpstreamUnavailable("no active pricing configuration")
        return ActiveConfig(config=load_configuration(row), version=row.version)


class StaticConfigProvider(ConfigProvider):
    def __init__(self, config: PricingConfiguration, version: int | None = None) -> None:
        self._active = ActiveConfig(config=config, version=version)

    async def get_active_config(self) -> ActiveConfig:
        return self._active
