"""Run a two-way Google Calendar sync for every connected user.

Usage: python -m koda.jobs.sync_users
"""

import asyncio

from koda.core.database import async_session_factory, engine
from koda.core.exceptions import ProviderError, StoreError, SyncInProgressException
from koda.core.logging import get_logger, setup_logging
from koda.src.google_sync.client import GoogleCalendarClient
from koda.src.google_sync.repository import ConnectionRepository
from koda.src.google_sync.service import GoogleSyncService

logger = get_logger(__name__)


async def sync_user(user_id: int, session_factory=async_session_factory) -> bool:
    """Sync one user in its own session. Returns True if the sync completed."""
    async with session_factory() as session:
        async with GoogleCalendarClient(session) as client:
            try:
                summary = await GoogleSyncService(session, client).sync_all(user_id)
            except SyncInProgressException:
                logger.info(f"User {user_id}: sync already running, skipped")
                return False
            except (ProviderError, StoreError) as e:
                logger.error(f"User {user_id}: sync failed: {e}")
                return False

    logger.info(
        f"User {user_id}: {summary.changes}, {summary.skipped} skipped, {summary.failed} failed"
    )
    return True


async def sync_connected_users(session_factory=async_session_factory) -> dict[str, int]:
    """Sync all connected users one after another."""
    async with session_factory() as session:
        user_ids = await ConnectionRepository(session).get_connected_user_ids()

    logger.info(f"Syncing Google Calendar for {len(user_ids)} users")
    completed = 0
    for user_id in user_ids:
        if await sync_user(user_id, session_factory):
            completed += 1
    return {"users": len(user_ids), "completed": completed, "failed": len(user_ids) - completed}


async def main() -> None:
    setup_logging()
    try:
        totals = await sync_connected_users()
        logger.info(f"Sync job finished: {totals}")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
