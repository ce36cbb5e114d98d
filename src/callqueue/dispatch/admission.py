"""
Admission control: how many calls may start, and which ones.
"""

from sqlalchemy.exc import SQLAlchemyError

from callqueue.dispatch.errors import CapacityCheckError, QueueSelectionError
from callqueue.dispatch.outcomes import CapacitySnapshot, QueuedCall
from callqueue.dispatch.repository import QueueRepositoryProtocol
from callqueue.shared.logging import get_logger

logger = get_logger(__name__)


class CapacityGate:
    """Computes free call slots as ``max_concurrent - count(in_progress)``."""

    def __init__(self, repository: QueueRepositoryProtocol, max_concurrent: int) -> None:
        if max_concurrent <= 0:
            raise ValueError("max_concurrent must be > 0")
        self._repository = repository
        self._max_concurrent = max_concurrent

    async def check(self) -> CapacitySnapshot:
        """Read current capacity.

        Raises:
            CapacityCheckError: If the in-progress count cannot be read.
        """
        try:
            active = await self._repository.count_in_progress()
        except SQLAlchemyError as e:
            raise CapacityCheckError(f"Failed to count active calls: {e}") from e
        return CapacitySnapshot(max_concurrent=self._max_concurrent, active=active)

    async def available_slots(self) -> int:
        return (await self.check()).available


class QueueSelector:
    """Picks the next pending items: highest priority first, FIFO on ties."""

    def __init__(self, repository: QueueRepositoryProtocol) -> None:
        self._repository = repository

    async def select(self, limit: int) -> list[QueuedCall]:
        """Return up to ``limit`` pending items in admission order.

        A non-positive limit returns immediately without touching the queue.

        Raises:
            QueueSelectionError: If the queue cannot be read.
        """
        if limit <= 0:
            return []
        try:
            items = await self._repository.select_pending(limit)
        except SQLAlchemyError as e:
            raise QueueSelectionError(f"Failed to fetch queue: {e}") from e

        logger.debug("Pending items selected", extra={"limit": limit, "selected": len(items)})
        return [QueuedCall.from_model(item) for item in items]
