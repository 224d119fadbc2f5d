# app/services/overdue_job.py

import asyncio
from typing import List

from loguru import logger

from app.core.database import AsyncSessionLocal
from app.services.notification_service import QueuedNotifier
from app.services.outpass_service import OutpassService


async def sweep_once() -> List[str]:
    """One overdue sweep in its own session; notifications go out after it closes."""
    notifier = QueuedNotifier()

    async with AsyncSessionLocal() as session:
        swept = await OutpassService(session, notifier).sweep_overdue()

    await notifier.flush()
    return swept


async def overdue_sweep_loop(interval_seconds: int):
    logger.info(f"Overdue sweep scheduled every {interval_seconds}s")

    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await sweep_once()
        except asyncio.CancelledError:
            raise
        except Exception:
            # Keep the timer alive; the next tick retries
            logger.exception("Overdue sweep failed")
