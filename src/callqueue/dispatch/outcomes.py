from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from callqueue.dispatch.models import QueueItem, QueueItemStatus


@dataclass(frozen=True)
class QueuedCall:
    """Detached snapshot of a selected queue item.

    Each item is dispatched in its own session, so the selector hands out
    plain values rather than ORM instances bound to the selection session.
    """

    id: UUID
    client_id: UUID
    lead_id: UUID
    agent_id: UUID
    priority: int
    queued_at: datetime

    @classmethod
    def from_model(cls, item: QueueItem) -> "QueuedCall":
        return cls(
            id=item.id,
            client_id=item.client_id,
            lead_id=item.lead_id,
            agent_id=item.agent_id,
            priority=item.priority,
            queued_at=item.queued_at,
        )


@dataclass(frozen=True)
class CapacitySnapshot:
    """Capacity as seen by one invocation."""

    max_concurrent: int
    active: int

    @property
    def available(self) -> int:
        return self.max_concurrent - self.active


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of driving one queue item."""

    queue_item_id: UUID
    success: bool
    call_id: Optional[UUID] = None
    execution_id: Optional[str] = None
    error: Optional[str] = None
    # False when another dispatcher won the claim; such items are not reported as processed.
    claimed: bool = True


@dataclass(frozen=True)
class ProcessQueueResult:
    """Summary returned after one dispatcher invocation."""

    processed: int = 0
    results: List[DispatchOutcome] = field(default_factory=list)
    active_calls: Optional[int] = None
    skipped: int = 0
    message: Optional[str] = None


@dataclass(frozen=True)
class QueueStatusSnapshot:
    """Queue depth per status plus the capacity headroom."""

    counts: dict[QueueItemStatus, int]
    max_concurrent: int

    @property
    def available_slots(self) -> int:
        return max(0, self.max_concurrent - self.counts.get(QueueItemStatus.IN_PROGRESS, 0))
