"""
Call queue API router.

POST /process-queue runs one dispatcher invocation. The remaining routes
expose queue depth and the maintenance operations the poller also runs.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from callqueue.config import get_settings
from callqueue.dispatch.locking import InvocationLock
from callqueue.dispatch.processor import QueueProcessor
from callqueue.dispatch.reconciler import QueueReconciler
from callqueue.dispatch.requeue import FailedItemRequeuePolicy
from callqueue.dispatch.schemas import (
    ErrorResponse,
    ProcessQueueResponse,
    QueueStatusResponse,
    ReleaseResponse,
    RequeueResponse,
)
from callqueue.shared.database import get_database_manager
from callqueue.shared.logging import get_logger
from callqueue.telephony.factory import get_call_provider

logger = get_logger(__name__)

router = APIRouter(prefix="/process-queue", tags=["call-queue"])

_invocation_lock: InvocationLock | None = None


def get_invocation_lock() -> InvocationLock:
    """Process-wide lock shared by HTTP triggers and the poller."""
    global _invocation_lock
    if _invocation_lock is None:
        _invocation_lock = InvocationLock(
            get_settings().poller_lock_key,
            engine=get_database_manager().engine,
        )
    return _invocation_lock


def get_queue_processor() -> QueueProcessor:
    """Dependency for the queue processor."""
    return QueueProcessor.from_settings(
        get_settings(),
        get_database_manager().session_factory,
        get_call_provider(),
        get_invocation_lock(),
    )


def get_queue_reconciler() -> QueueReconciler:
    """Dependency for queue maintenance."""
    return QueueReconciler(
        get_database_manager().session_factory,
        policy=FailedItemRequeuePolicy.from_settings(get_settings()),
    )


@router.post(
    "",
    response_model=ProcessQueueResponse,
    response_model_exclude_none=True,
    responses={500: {"model": ErrorResponse, "description": "Invocation aborted"}},
)
async def process_queue(
    processor: Annotated[QueueProcessor, Depends(get_queue_processor)],
) -> ProcessQueueResponse | JSONResponse:
    """Dispatch as many pending calls as free capacity allows.

    Per-item failures are reported in ``results`` with ``success=false``.
    Only failures that stop the whole invocation (capacity count, queue
    read) produce a 500 with an ``error`` body.
    """
    try:
        result = await processor.process()
    except Exception as e:
        logger.exception("Queue processing failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e) or e.__class__.__name__},
        )
    return ProcessQueueResponse.from_result(result)


@router.get("/status", response_model=QueueStatusResponse)
async def queue_status(
    processor: Annotated[QueueProcessor, Depends(get_queue_processor)],
) -> QueueStatusResponse:
    """Queue depth per status and free capacity."""
    return QueueStatusResponse.from_snapshot(await processor.status())


@router.post("/requeue", response_model=RequeueResponse)
async def requeue_failed(
    reconciler: Annotated[QueueReconciler, Depends(get_queue_reconciler)],
) -> RequeueResponse:
    """Apply the failed-item requeue policy once; a no-op when it is disabled."""
    return RequeueResponse(requeued=await reconciler.requeue())


@router.post("/release", response_model=ReleaseResponse)
async def release_capacity(
    reconciler: Annotated[QueueReconciler, Depends(get_queue_reconciler)],
) -> ReleaseResponse:
    """Complete in-progress items whose call has finished."""
    return ReleaseResponse(released=await reconciler.release())
