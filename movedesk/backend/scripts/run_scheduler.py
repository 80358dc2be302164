from __future__ import annotations

import asyncio
import logging

from app.config import settings
from app.jobs.scheduler import build_scheduler


def _quiet_logging() -> None:
    # Root defaults
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(levelname)s:%(name)s:%(message)s",
    )

    # Quiet the usual offenders
    for name in ("httpx", "apscheduler", "uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)


async def main() -> None:
    _quiet_logging()

    scheduler = build_scheduler()
    scheduler.start()
    logging.getLogger(__name__).info(
        "Scheduler started (dispatch every %s min)", settings.SCHED_DISPATCH_INTERVAL_MINUTES
    )

    try:
        while True:
            await asyncio.sleep(3600)
    except (KeyboardInterrupt, asyncio.CancelledError):
        scheduler.shutdown()
        logging.getLogger(__name__).info("Scheduler stopped")


if __name__ == "__main__":
    asyncio.run(main())
