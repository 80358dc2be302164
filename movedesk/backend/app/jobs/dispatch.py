from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..integrations.services.outbox import dispatch_pending_events


async def run_dispatch(session: AsyncSession, batch_size: int | None = None) -> dict:
    return await dispatch_pending_events(session=session, batch_size=batch_size or settings.OUTBOX_BATCH_SIZE)
