"""
Scheduling locks held for the duration of a check-and-write.

Keys look like "room:3" / "teacher:7" / "course:12". On PostgreSQL the lock is a
transaction-scoped advisory lock, released by the commit or rollback that ends the
caller's transaction. Other dialects fall back to one asyncio.Lock per key inside
this process.
"""

import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Dict, Iterable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_local_locks: Dict[str, asyncio.Lock] = {}
_local_holders: Dict[str, int] = {}


def lock_key(dimension: str, value: int) -> str:
    return f"{dimension}:{value}"


@asynccontextmanager
async def _local_lock(key: str) -> AsyncIterator[None]:
    lock = _local_locks.setdefault(key, asyncio.Lock())
    _local_holders[key] = _local_holders.get(key, 0) + 1
    try:
        async with lock:
            yield
    finally:
        _local_holders[key] -= 1
        if not _local_holders[key]:
            # nobody holds or waits on it any more
            del _local_holders[key]
            del _local_locks[key]


@asynccontextmanager
async def scheduling_lock(db: AsyncSession, keys: Iterable[str]) -> AsyncIterator[None]:
    """Acquire every key in sorted order; the caller must commit/rollback inside the block."""
    ordered = sorted(set(keys))
    if db.get_bind().dialect.name == "postgresql":
        for key in ordered:
            await db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key})
        logger.debug("Advisory locks acquired: %s", ordered)
        yield
        return

    async with AsyncExitStack() as stack:
        for key in ordered:
            await stack.enter_async_context(_local_lock(key))
        logger.debug("Local scheduling locks acquired: %s", ordered)
        yield
