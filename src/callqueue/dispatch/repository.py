"""
Repository for call queue database operations.

Every state transition here is a conditional UPDATE guarded on the current
status, so concurrent dispatchers, webhooks and operators cannot overwrite
each other's transitions.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from callqueue.calls.models import CallRecord, CallStatus
from callqueue.dispatch.models import QueueItem, QueueItemStatus


class QueueRepositoryProtocol(Protocol):
    """Protocol for the queue reads used by admission control."""

    async def count_in_progress(self) -> int:
        """Count queue items currently holding a capacity slot."""
        ...

    async def select_pending(self, limit: int) -> Sequence[QueueItem]:
        """Return pending items in admission order."""
        ...


class QueueRepository:
    """Repository for call queue database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def count_in_progress(self) -> int:
        """Count queue items with status ``in_progress``."""
        stmt = select(func.count(QueueItem.id)).where(
            QueueItem.status == QueueItemStatus.IN_PROGRESS
        )
        result = await self._session.execute(stmt)
        count = result.scalar()
        return count if count is not None else 0

    async def count_by_status(self) -> dict[QueueItemStatus, int]:
        """Count queue items per status; absent statuses report 0."""
        stmt = select(QueueItem.status, func.count(QueueItem.id)).group_by(QueueItem.status)
        result = await self._session.execute(stmt)
        counts = {status: 0 for status in QueueItemStatus}
        for status, count in result.all():
            counts[QueueItemStatus(status)] = int(count)
        return counts

    async def select_pending(self, limit: int) -> Sequence[QueueItem]:
        """Get pending items, most urgent first, FIFO within a priority.

        Args:
            limit: Maximum number of items to return.

        Returns:
            Pending QueueItem instances in admission order.
        """
        stmt = (
            select(QueueItem)
            .where(QueueItem.status == QueueItemStatus.PENDING)
            .order_by(
                QueueItem.priority.desc(),
                QueueItem.queued_at.asc(),
                QueueItem.id.asc(),
            )
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def claim(
        self,
        item_id: UUID,
        started_at: datetime,
        max_concurrent: int,
    ) -> bool:
        """Atomically move a pending item to ``in_progress``.

        The UPDATE only matches while the item is still ``pending`` and fewer
        than ``max_concurrent`` items are ``in_progress``.

        Returns:
            True if this caller won the claim (exactly one row affected).
        """
        active = aliased(QueueItem)
        active_count = (
            select(func.count(active.id))
            .where(active.status == QueueItemStatus.IN_PROGRESS)
            .scalar_subquery()
        )
        stmt = (
            update(QueueItem)
            .where(
                QueueItem.id == item_id,
                QueueItem.status == QueueItemStatus.PENDING,
                active_count < max_concurrent,
            )
            .values(status=QueueItemStatus.IN_PROGRESS, started_at=started_at)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return (result.rowcount or 0) == 1

    async def mark_failed(
        self,
        item_id: UUID,
        error_message: str,
        completed_at: datetime,
    ) -> None:
        """Record a terminal dispatch failure on an item this dispatcher claimed."""
        stmt = (
            update(QueueItem)
            .where(
                QueueItem.id == item_id,
                QueueItem.status == QueueItemStatus.IN_PROGRESS,
            )
            .values(
                status=QueueItemStatus.FAILED,
                error_message=error_message,
                completed_at=completed_at,
            )
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

    async def link_call(self, item_id: UUID, call_id: UUID) -> None:
        """Point the queue item at its call record; status stays ``in_progress``."""
        stmt = (
            update(QueueItem)
            .where(QueueItem.id == item_id)
            .values(call_id=call_id)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

    async def requeue_failed(
        self,
        cutoff: datetime,
        max_retries: int,
        requeued_at: datetime,
    ) -> int:
        """Put failed items that cooled down before ``cutoff`` back to ``pending``.

        Returns:
            Number of items requeued.
        """
        stmt = (
            update(QueueItem)
            .where(
                QueueItem.status == QueueItemStatus.FAILED,
                QueueItem.completed_at.is_not(None),
                QueueItem.completed_at <= cutoff,
                QueueItem.retry_count < max_retries,
            )
            .values(
                status=QueueItemStatus.PENDING,
                retry_count=QueueItem.retry_count + 1,
                error_message=None,
                started_at=None,
                completed_at=None,
                queued_at=requeued_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    async def release_finished(
        self,
        terminal_statuses: Iterable[CallStatus],
        completed_at: datetime,
    ) -> int:
        """Complete in-progress items whose linked call reached a terminal status.

        Returns:
            Number of capacity slots released.
        """
        finished_calls = select(CallRecord.id).where(
            CallRecord.status.in_(list(terminal_statuses))
        )
        stmt = (
            update(QueueItem)
            .where(
                QueueItem.status == QueueItemStatus.IN_PROGRESS,
                QueueItem.call_id.in_(finished_calls),
            )
            .values(status=QueueItemStatus.COMPLETED, completed_at=completed_at)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0
