# app/jobs/scheduler.py
from __future__ import annotations

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import select, func, or_

from ..config import settings
from ..db import async_session
from ..models import Integration, OutboxEvent, OutboxStatus, utcnow
from ..service_layer.jobruns import start_job, finish_job_success, finish_job_fail
from .dispatch import run_dispatch

log = logging.getLogger(__name__)


async def _run_dispatch_quiet() -> None:
    """
    Quiet-by-default posture:
    - If there are no enabled integrations, do nothing.
    - If there are no due outbox events, do nothing.
    """
    async with async_session() as session:
        enabled_sinks = (
            await session.execute(select(func.count()).select_from(Integration).where(Integration.enabled == True))  # noqa: E712
        ).scalar_one()

        if int(enabled_sinks) == 0:
            return

        due = (
            await session.execute(
                select(func.count())
                .select_from(OutboxEvent)
                .where(OutboxEvent.status == OutboxStatus.pending)
                .where(or_(OutboxEvent.next_attempt_at.is_(None), OutboxEvent.next_attempt_at <= utcnow()))
            )
        ).scalar_one()

        if int(due) == 0:
            return

    # do actual dispatch outside the count transaction
    async with async_session() as session:
        jr = await start_job(session, "dispatch_scheduler")
        try:
            result = await run_dispatch(session=session)
            await finish_job_success(session, jr, result)
            await session.commit()
            log.info("dispatch: %s", result)
        except Exception as e:
            await session.rollback()
            jr = await start_job(session, "dispatch_scheduler")
            await finish_job_fail(session, jr, e)
            await session.commit()
            log.exception("scheduled dispatch failed")


def build_scheduler() -> AsyncIOScheduler:
    sched = AsyncIOScheduler()
    sched.add_job(
        lambda: asyncio.create_task(_run_dispatch_quiet()),
        "interval",
        minutes=settings.SCHED_DISPATCH_INTERVAL_MINUTES,
    )
    return sched
