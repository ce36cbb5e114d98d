"""
Pydantic schemas for the call queue API.
"""

from uuid import UUID

from pydantic import BaseModel, Field

from callqueue.dispatch.models import QueueItemStatus
from callqueue.dispatch.outcomes import DispatchOutcome, ProcessQueueResult, QueueStatusSnapshot


class DispatchResultSchema(BaseModel):
    """Outcome of one queue item."""

    queue_item_id: UUID
    call_id: UUID | None = None
    execution_id: str | None = Field(None, description="Provider execution handle")
    success: bool
    error: str | None = None

    @classmethod
    def from_outcome(cls, outcome: DispatchOutcome) -> "DispatchResultSchema":
        return cls(
            queue_item_id=outcome.queue_item_id,
            call_id=outcome.call_id,
            execution_id=outcome.execution_id,
            success=outcome.success,
            error=outcome.error,
        )


class ProcessQueueResponse(BaseModel):
    """Summary of one dispatcher invocation."""

    success: bool = True
    processed: int = Field(..., ge=0, description="Items this invocation claimed and drove")
    results: list[DispatchResultSchema] = Field(default_factory=list)
    active_calls: int | None = Field(
        None,
        description="In-progress count before the invocation plus its successes",
    )
    skipped: int = Field(0, ge=0, description="Selected items another dispatcher claimed first")
    message: str | None = None

    @classmethod
    def from_result(cls, result: ProcessQueueResult) -> "ProcessQueueResponse":
        return cls(
            processed=result.processed,
            results=[DispatchResultSchema.from_outcome(o) for o in result.results],
            active_calls=result.active_calls,
            skipped=result.skipped,
            message=result.message,
        )


class QueueStatusResponse(BaseModel):
    pending: int
    in_progress: int
    completed: int
    failed: int
    max_concurrent: int
    available_slots: int

    @classmethod
    def from_snapshot(cls, snapshot: QueueStatusSnapshot) -> "QueueStatusResponse":
        return cls(
            pending=snapshot.counts.get(QueueItemStatus.PENDING, 0),
            in_progress=snapshot.counts.get(QueueItemStatus.IN_PROGRESS, 0),
            completed=snapshot.counts.get(QueueItemStatus.COMPLETED, 0),
            failed=snapshot.counts.get(QueueItemStatus.FAILED, 0),
            max_concurrent=snapshot.max_concurrent,
            available_slots=snapshot.available_slots,
        )


class RequeueResponse(BaseModel):
    requeued: int


class ReleaseResponse(BaseModel):
    released: int


class ErrorResponse(BaseModel):
    """Body returned when an invocation aborts."""

    error: str
