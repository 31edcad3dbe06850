"""Per-user mutual exclusion for calendar sync."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from koda.core.exceptions import SyncInProgressException
from koda.core.logging import get_logger

logger = get_logger(__name__)

# High 32 bits of the advisory lock key; the user id fills the low bits
ADVISORY_LOCK_NAMESPACE = 0x4B4F4441  # "KODA"

_locks: dict[int, asyncio.Lock] = {}


def _advisory_key(user_id: int) -> int:
    return (ADVISORY_LOCK_NAMESPACE << 32) | (user_id & 0xFFFFFFFF)


@asynccontextmanager
async def user_sync_lock(user_id: int, engine: AsyncEngine | None = None) -> AsyncIterator[None]:
    """Hold the sync lock for a user, failing fast if it is taken.

    The in-process lock covers concurrent requests on one worker; on
    PostgreSQL a session advisory lock, held on its own connection, covers
    other workers and the scheduled job.

    Raises:
        SyncInProgressException: If a sync for this user is already running
    """
    lock = _locks.setdefault(user_id, asyncio.Lock())
    if lock.locked():
        raise SyncInProgressException()

    try:
        async with lock:
            if engine is None or engine.dialect.name != "postgresql":
                yield
                return

            key = _advisory_key(user_id)
            async with engine.connect() as conn:
                acquired = await conn.scalar(
                    text("SELECT pg_try_advisory_lock(:key)"), {"key": key}
                )
                if not acquired:
                    logger.info(f"Sync for user {user_id} is running on another worker")
                    raise SyncInProgressException()
                try:
                    yield
                finally:
                    await conn.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": key})
    finally:
        # Acquisition never waits, so a released lock has no waiters
        if not lock.locked() and _locks.get(user_id) is lock:
            del _locks[user_id]
