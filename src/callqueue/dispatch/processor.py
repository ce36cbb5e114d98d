"""
One dispatcher invocation: capacity check, selection, dispatch, summary.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from callqueue.config import Settings
from callqueue.dispatch.admission import CapacityGate, QueueSelector
from callqueue.dispatch.dispatcher import QueueDispatcher
from callqueue.dispatch.errors import CapacityCheckError
from callqueue.dispatch.locking import InvocationLock
from callqueue.dispatch.outcomes import ProcessQueueResult, QueueStatusSnapshot
from callqueue.dispatch.repository import QueueRepository
from callqueue.shared.logging import get_logger
from callqueue.telephony.interface import CallProvider

logger = get_logger(__name__)

MESSAGE_AT_CAPACITY = "Queue is at capacity"
MESSAGE_NO_PENDING = "No pending calls"
MESSAGE_BUSY = "Dispatch already in progress"


class QueueProcessor:
    """Runs dispatcher invocations against the shared call queue.

    Each invocation:
    1. Counts ``in_progress`` items and stops if no slot is free.
    2. Selects up to ``available`` pending items in admission order.
    3. Dispatches them; each item claims its own slot atomically.
    4. Reports per-item outcomes.

    Invocations are serialized by an ``InvocationLock``; a caller that finds
    another invocation running gets an empty result instead of waiting.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: QueueDispatcher,
        lock: InvocationLock,
        max_concurrent: int,
    ) -> None:
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._lock = lock
        self._max_concurrent = max_concurrent

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        provider: CallProvider,
        lock: InvocationLock,
    ) -> "QueueProcessor":
        dispatcher = QueueDispatcher(
            session_factory,
            provider,
            max_concurrent=settings.queue_max_concurrent_calls,
            max_parallel=settings.dispatch_max_parallel,
        )
        return cls(
            session_factory,
            dispatcher,
            lock,
            max_concurrent=settings.queue_max_concurrent_calls,
        )

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    async def process(self) -> ProcessQueueResult:
        """Run one invocation.

        Raises:
            CapacityCheckError: If active calls cannot be counted.
            QueueSelectionError: If pending items cannot be read.
        """
        async with self._lock.try_acquire() as acquired:
            if not acquired:
                logger.info("Dispatch already in progress; skipping invocation")
                return ProcessQueueResult(processed=0, message=MESSAGE_BUSY)
            return await self._process_locked()

    async def _process_locked(self) -> ProcessQueueResult:
        async with self._session_factory() as session:
            repository = QueueRepository(session)
            capacity = await CapacityGate(repository, self._max_concurrent).check()

            logger.info(
                "Queue capacity checked",
                extra={
                    "active_calls": capacity.active,
                    "max_concurrent": capacity.max_concurrent,
                    "available_slots": capacity.available,
                },
            )

            if capacity.available <= 0:
                return ProcessQueueResult(
                    processed=0,
                    active_calls=capacity.active,
                    message=MESSAGE_AT_CAPACITY,
                )

            items = await QueueSelector(repository).select(capacity.available)

        if not items:
            return ProcessQueueResult(
                processed=0,
                active_calls=capacity.active,
                message=MESSAGE_NO_PENDING,
            )

        outcomes = await self._dispatcher.dispatch_all(items)

        results = [outcome for outcome in outcomes if outcome.claimed]
        successes = sum(1 for outcome in results if outcome.success)
        result = ProcessQueueResult(
            processed=len(results),
            results=results,
            active_calls=capacity.active + successes,
            skipped=len(outcomes) - len(results),
        )

        logger.info(
            "Queue invocation complete",
            extra={
                "processed": result.processed,
                "succeeded": successes,
                "failed": result.processed - successes,
                "skipped": result.skipped,
            },
        )
        return result

    async def status(self) -> QueueStatusSnapshot:
        """Queue depth per status for operators.

        Raises:
            CapacityCheckError: If the queue cannot be counted.
        """
        async with self._session_factory() as session:
            try:
                counts = await QueueRepository(session).count_by_status()
            except SQLAlchemyError as e:
                raise CapacityCheckError(f"Failed to count queue items: {e}") from e
        return QueueStatusSnapshot(counts=counts, max_concurrent=self._max_concurrent)
