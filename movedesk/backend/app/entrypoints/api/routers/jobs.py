# app/entrypoints/api/routers/jobs.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import require_api_key
from ....db import get_session
from ....jobs.dispatch import run_dispatch
from ....schemas import DispatchResult
from ....service_layer.jobruns import start_job, finish_job_success, finish_job_fail

router = APIRouter(tags=["jobs"])


@router.post("/jobs/dispatch", response_model=DispatchResult, dependencies=[Depends(require_api_key)])
async def dispatch_outbox(
    batch_size: int = Query(50, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
) -> DispatchResult:
    jr = await start_job(session, "dispatch_api", {"batch_size": batch_size})
    try:
        result = await run_dispatch(session=session, batch_size=batch_size)
        await finish_job_success(session, jr, result)
        await session.commit()
        return DispatchResult(**result)
    except Exception as e:
        await finish_job_fail(session, jr, e)
        await session.commit()
        raise
