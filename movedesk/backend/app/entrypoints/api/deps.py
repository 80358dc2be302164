# app/entrypoints/api/deps.py
from __future__ import annotations

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...db import get_session
from ...service_layer.config_provider import ConfigProvider, SqlAlchemyConfigProvider


def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    if settings.API_KEY:
        if not x_api_key or x_api_key != settings.API_KEY:
            raise HTTPException(status_code=401, detail="Invalid API key")


def get_config_provider(session: AsyncSession = Depends(get_session)) -> ConfigProvider:
    """Per-request provider; the active rate card is re-read on every quote."""
    return SqlAlchemyConfigProvider(session)
