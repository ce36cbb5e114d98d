"""
Queue maintenance that runs outside a dispatcher invocation.
"""

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from callqueue.calls.models import TERMINAL_CALL_STATUSES
from callqueue.dispatch.models import utcnow
from callqueue.dispatch.repository import QueueRepository
from callqueue.dispatch.requeue import FailedItemRequeuePolicy
from callqueue.shared.logging import get_logger

logger = get_logger(__name__)


class QueueReconciler:
    """Returns capacity from finished calls and applies the requeue policy."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        policy: FailedItemRequeuePolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._policy = policy or FailedItemRequeuePolicy()
        self._clock = clock

    async def release(self) -> int:
        """Complete ``in_progress`` items whose call reached a terminal status.

        Returns:
            Number of capacity slots freed.
        """
        async with self._session_factory() as session:
            released = await QueueRepository(session).release_finished(
                TERMINAL_CALL_STATUSES, self._clock()
            )
            await session.commit()

        if released:
            logger.info("Capacity released from finished calls", extra={"released": released})
        return released

    async def requeue(self) -> int:
        """Apply the failed-item requeue policy once."""
        if not self._policy.enabled:
            return 0
        async with self._session_factory() as session:
            requeued = await self._policy.apply(QueueRepository(session), self._clock())
            await session.commit()
        return requeued
