"""
API tests for /process-queue (httpx.ASGITransport + dependency_overrides).
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from callqueue.calls.models import CallStatus
from callqueue.dispatch.dispatcher import QueueDispatcher
from callqueue.dispatch.errors import CapacityCheckError
from callqueue.dispatch.locking import InvocationLock
from callqueue.dispatch.models import QueueItemStatus
from callqueue.dispatch.processor import QueueProcessor
from callqueue.dispatch.reconciler import QueueReconciler
from callqueue.dispatch.requeue import FailedItemRequeuePolicy
from callqueue.dispatch.router import get_queue_processor, get_queue_reconciler
from callqueue.main import app

from conftest import BASE_TIME

MAX_CONCURRENT = 4


@pytest.fixture
def processor(session_factory, provider) -> QueueProcessor:
    dispatcher = QueueDispatcher(session_factory, provider, max_concurrent=MAX_CONCURRENT)
    return QueueProcessor(
        session_factory,
        dispatcher,
        InvocationLock("router-test"),
        max_concurrent=MAX_CONCURRENT,
    )


@pytest.fixture
def reconciler(session_factory) -> QueueReconciler:
    return QueueReconciler(session_factory)


@pytest_asyncio.fixture
async def client(processor, reconciler) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_queue_processor] = lambda: processor
    app.dependency_overrides[get_queue_reconciler] = lambda: reconciler
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()


class TestProcessQueue:
    @pytest.mark.asyncio
    async def test_dispatches_and_reports_snake_case_results(self, client, seed, provider) -> None:
        lead = await seed.lead()
        agent = await seed.agent()
        ok = await seed.queue_item(lead.id, agent.id, priority=2)
        bad = await seed.queue_item(lead.id, agent.id, priority=1)
        provider.fail_for.add(bad.id)

        response = await client.post("/process-queue")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["processed"] == 2
        assert body["active_calls"] == 1
        assert body["skipped"] == 0

        first, second = body["results"]
        assert first["queue_item_id"] == str(ok.id)
        assert first["success"] is True
        assert first["execution_id"] == "exec-1"
        assert "call_id" in first
        assert "error" not in first

        assert second["queue_item_id"] == str(bad.id)
        assert second["success"] is False
        assert second["error"].startswith("Provider API error: 500")
        assert "execution_id" not in second

    @pytest.mark.asyncio
    async def test_empty_queue(self, client) -> None:
        response = await client.post("/process-queue")

        assert response.status_code == 200
        body = response.json()
        assert body["processed"] == 0
        assert body["results"] == []
        assert body["active_calls"] == 0
        assert body["message"] == "No pending calls"

    @pytest.mark.asyncio
    async def test_fatal_failure_returns_500_with_error(self, client, processor, monkeypatch) -> None:
        monkeypatch.setattr(
            processor,
            "process",
            AsyncMock(side_effect=CapacityCheckError("Failed to count active calls: db down")),
        )

        response = await client.post("/process-queue")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to count active calls: db down"}


class TestQueueStatus:
    @pytest.mark.asyncio
    async def test_reports_counts(self, client, seed) -> None:
        await seed.in_progress(1)
        lead = await seed.lead()
        agent = await seed.agent()
        await seed.queue_item(lead.id, agent.id)
        await seed.queue_item(lead.id, agent.id)

        response = await client.get("/process-queue/status")

        assert response.status_code == 200
        assert response.json() == {
            "pending": 2,
            "in_progress": 1,
            "completed": 0,
            "failed": 0,
            "max_concurrent": MAX_CONCURRENT,
            "available_slots": MAX_CONCURRENT - 1,
        }

    @pytest.mark.asyncio
    async def test_count_failure_maps_to_500(self, client, processor, monkeypatch) -> None:
        monkeypatch.setattr(
            processor,
            "status",
            AsyncMock(side_effect=CapacityCheckError("Failed to count queue items: db down")),
        )

        response = await client.get("/process-queue/status")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to count queue items: db down"}


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_requeue_is_zero_when_policy_disabled(self, client, seed) -> None:
        lead = await seed.lead()
        agent = await seed.agent()
        await seed.queue_item(lead.id, agent.id, status=QueueItemStatus.FAILED)

        response = await client.post("/process-queue/requeue")

        assert response.status_code == 200
        assert response.json() == {"requeued": 0}

    @pytest.mark.asyncio
    async def test_requeue_with_enabled_policy(self, client, seed, session_factory, fetch) -> None:
        lead = await seed.lead()
        agent = await seed.agent()
        item = await seed.queue_item(
            lead.id, agent.id, status=QueueItemStatus.FAILED, completed_at=BASE_TIME
        )
        app.dependency_overrides[get_queue_reconciler] = lambda: QueueReconciler(
            session_factory,
            policy=FailedItemRequeuePolicy(enabled=True, cooldown_minutes=3, max_retries=5),
        )

        response = await client.post("/process-queue/requeue")

        assert response.json() == {"requeued": 1}
        assert (await fetch.queue_item(item.id)).status == QueueItemStatus.PENDING

    @pytest.mark.asyncio
    async def test_release(self, client, seed, fetch) -> None:
        lead = await seed.lead()
        agent = await seed.agent()
        call = await seed.call(agent.id, lead.id, status=CallStatus.COMPLETED)
        item = await seed.queue_item(
            lead.id, agent.id, status=QueueItemStatus.IN_PROGRESS, call_id=call.id
        )

        response = await client.post("/process-queue/release")

        assert response.status_code == 200
        assert response.json() == {"released": 1}
        assert (await fetch.queue_item(item.id)).status == QueueItemStatus.COMPLETED


@pytest.mark.asyncio
async def test_health(client) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
