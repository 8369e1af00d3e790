"""
Maintenance: rebuild aggregate counters from the ledger records.

Recomputes accounts.subscriber_count / tip_count / tip_volume and
content_items.tip_count / tip_volume from the subscriptions and tips tables.
Safe to run while the API is up; concurrent writes simply land on top of the
recomputed values.

Run from the backend/ directory:
    python scripts/reconcile_counters.py
"""
import asyncio
import logging
import os
import sys

# Add backend/ to path so we can import config
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from database import async_session, engine, init_db
from services import payment_ledger

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("reconcile_counters")


async def reconcile():
    await init_db()
    async with async_session() as db:
        try:
            await payment_ledger.reconcile_counters(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    await engine.dispose()
    logger.info("Done")


if __name__ == "__main__":
    asyncio.run(reconcile())
