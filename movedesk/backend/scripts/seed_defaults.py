# scripts/seed_defaults.py
from __future__ import annotations

import argparse
import asyncio

from app.db import async_session, engine
from app.models import Base
from app.service_layer.defaults import seed_defaults


async def _ensure_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--force-pricing", action="store_true", help="Activate a new default pricing version even if one exists")
    args = parser.parse_args()

    await _ensure_schema()

    async with async_session() as session:
        seeded = await seed_defaults(session, force_pricing=args.force_pricing)
        await session.commit()

    print(f"Seeded defaults: {seeded}")


if __name__ == "__main__":
    asyncio.run(main())
