"""
Serialization of dispatcher invocations.

Two invocations running side by side would both read the same capacity and
the same pending items. ``InvocationLock`` lets only one of them through:
an in-process ``asyncio.Lock`` covers concurrent requests in one worker,
and on PostgreSQL a session-level advisory lock covers other workers and
replicas. Contended callers do not wait; they skip the invocation.
"""

import asyncio
import hashlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from callqueue.shared.logging import get_logger

logger = get_logger(__name__)


def advisory_lock_id(key: str) -> int:
    """Derive a stable signed bigint lock id from an arbitrary string key."""
    digest = hashlib.blake2b(key.encode("utf-8"), digest_size=8).digest()
    # Use 63-bit positive space to avoid signed bigint surprises.
    return int.from_bytes(digest, "big", signed=False) & 0x7FFF_FFFF_FFFF_FFFF


class InvocationLock:
    """Non-blocking mutual exclusion around one dispatcher invocation."""

    def __init__(self, key: str, engine: AsyncEngine | None = None) -> None:
        self._local = asyncio.Lock()
        self._engine = engine
        self.lock_id = advisory_lock_id(key)

    @property
    def uses_advisory_lock(self) -> bool:
        return self._engine is not None and self._engine.dialect.name == "postgresql"

    @asynccontextmanager
    async def try_acquire(self) -> AsyncIterator[bool]:
        """Yield True if this caller holds the lock for the duration of the block."""
        if self._local.locked():
            yield False
            return

        async with self._local:
            if not self.uses_advisory_lock:
                yield True
                return

            # Dedicated connection used to hold the advisory lock.
            async with self._engine.connect() as conn:
                res = await conn.execute(
                    text("SELECT pg_try_advisory_lock(:lock_id)"),
                    {"lock_id": self.lock_id},
                )
                if not bool(res.scalar()):
                    logger.info("Dispatch lock busy", extra={"lock_id": self.lock_id})
                    yield False
                    return
                try:
                    yield True
                finally:
                    await conn.execute(
                        text("SELECT pg_advisory_unlock(:lock_id)"),
                        {"lock_id": self.lock_id},
                    )
