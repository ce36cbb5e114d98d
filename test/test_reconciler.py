"""
Tests for QueueReconciler.release (capacity returned by finished calls).
"""

from __future__ import annotations

import pytest

from callqueue.calls.models import CallStatus
from callqueue.dispatch.models import QueueItemStatus
from callqueue.dispatch.reconciler import QueueReconciler


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call_status",
    [
        CallStatus.COMPLETED,
        CallStatus.FAILED,
        CallStatus.NO_ANSWER,
        CallStatus.BUSY,
        CallStatus.CANCELED,
    ],
)
async def test_terminal_call_frees_its_slot(session_factory, seed, fetch, call_status) -> None:
    lead = await seed.lead()
    agent = await seed.agent()
    call = await seed.call(agent.id, lead.id, status=call_status)
    item = await seed.queue_item(lead.id, agent.id, status=QueueItemStatus.IN_PROGRESS, call_id=call.id)

    assert await QueueReconciler(session_factory).release() == 1

    stored = await fetch.queue_item(item.id)
    assert stored.status == QueueItemStatus.COMPLETED
    assert stored.completed_at is not None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call_status",
    [CallStatus.INITIATING, CallStatus.QUEUED, CallStatus.RINGING, CallStatus.IN_PROGRESS],
)
async def test_live_call_keeps_its_slot(session_factory, seed, fetch, call_status) -> None:
    lead = await seed.lead()
    agent = await seed.agent()
    call = await seed.call(agent.id, lead.id, status=call_status)
    item = await seed.queue_item(lead.id, agent.id, status=QueueItemStatus.IN_PROGRESS, call_id=call.id)

    assert await QueueReconciler(session_factory).release() == 0
    assert (await fetch.queue_item(item.id)).status == QueueItemStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_release_leaves_failed_items_and_call_records_alone(session_factory, seed, fetch) -> None:
    lead = await seed.lead()
    agent = await seed.agent()
    call = await seed.call(agent.id, lead.id, status=CallStatus.COMPLETED)
    item = await seed.queue_item(lead.id, agent.id, status=QueueItemStatus.FAILED, call_id=call.id)

    assert await QueueReconciler(session_factory).release() == 0

    assert (await fetch.queue_item(item.id)).status == QueueItemStatus.FAILED
    [stored_call] = await fetch.calls()
    assert stored_call.status == CallStatus.COMPLETED
