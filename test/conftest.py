"""
Pytest configuration and fixtures for the call queue dispatcher.

Repository, dispatcher and processor tests run against a throwaway SQLite
database (aiosqlite). A file-backed database is used so that every session
handed out by the session factory sees the same data.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from callqueue.agents.models import Agent
from callqueue.calls.models import CallRecord, CallStatus
from callqueue.dispatch.models import QueueItem, QueueItemStatus
from callqueue.leads.models import Lead, LeadStage
from callqueue.shared.database import Base
from callqueue.telephony.interface import (
    CallInitiationError,
    CallProvider,
    MakeCallRequest,
    MakeCallResponse,
)

BASE_TIME = datetime(2025, 1, 1, 9, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh SQLite database with every table."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'callqueue.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


class Seeder:
    """Inserts rows directly, bypassing the code under test."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self.client_id = uuid4()
        self._tick = 0

    async def _add(self, obj: Any) -> Any:
        async with self._session_factory() as session:
            session.add(obj)
            await session.commit()
        return obj

    async def lead(
        self,
        stage: LeadStage = LeadStage.NEW,
        name: str | None = "Asha Rao",
        phone_number: str = "+919800000001",
    ) -> Lead:
        return await self._add(
            Lead(
                id=uuid4(),
                client_id=self.client_id,
                name=name,
                phone_number=phone_number,
                stage=stage,
            )
        )

    async def agent(self, external_agent_id: str = "bolna-agent-1") -> Agent:
        return await self._add(
            Agent(
                id=uuid4(),
                client_id=self.client_id,
                agent_name="Sales Agent",
                external_agent_id=external_agent_id,
            )
        )

    async def queue_item(
        self,
        lead_id: UUID,
        agent_id: UUID,
        priority: int = 0,
        status: QueueItemStatus = QueueItemStatus.PENDING,
        queued_at: datetime | None = None,
        **kwargs: Any,
    ) -> QueueItem:
        if queued_at is None:
            # Strictly increasing enqueue times keep FIFO order deterministic.
            self._tick += 1
            queued_at = BASE_TIME + timedelta(seconds=self._tick)
        return await self._add(
            QueueItem(
                id=uuid4(),
                client_id=self.client_id,
                lead_id=lead_id,
                agent_id=agent_id,
                priority=priority,
                status=status,
                queued_at=queued_at,
                **kwargs,
            )
        )

    async def call(
        self,
        agent_id: UUID,
        lead_id: UUID | None = None,
        status: CallStatus = CallStatus.QUEUED,
    ) -> CallRecord:
        return await self._add(
            CallRecord(
                id=uuid4(),
                agent_id=agent_id,
                client_id=self.client_id,
                lead_id=lead_id,
                status=status,
                call_metadata={},
            )
        )

    async def in_progress(self, count: int) -> list[QueueItem]:
        """Occupy ``count`` capacity slots."""
        lead = await self.lead(phone_number="+919800009999")
        agent = await self.agent(external_agent_id="bolna-busy")
        return [
            await self.queue_item(lead.id, agent.id, status=QueueItemStatus.IN_PROGRESS)
            for _ in range(count)
        ]


@pytest.fixture
def seed(session_factory: async_sessionmaker[AsyncSession]) -> Seeder:
    return Seeder(session_factory)


class Reader:
    """Reads rows back in a fresh session after the code under test committed."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def queue_item(self, item_id: UUID) -> QueueItem:
        async with self._session_factory() as session:
            result = await session.execute(select(QueueItem).where(QueueItem.id == item_id))
            return result.scalar_one()

    async def lead(self, lead_id: UUID) -> Lead:
        async with self._session_factory() as session:
            result = await session.execute(select(Lead).where(Lead.id == lead_id))
            return result.scalar_one()

    async def calls(self) -> list[CallRecord]:
        async with self._session_factory() as session:
            result = await session.execute(select(CallRecord))
            return list(result.scalars().all())

    async def queue_statuses(self) -> dict[UUID, QueueItemStatus]:
        async with self._session_factory() as session:
            result = await session.execute(select(QueueItem.id, QueueItem.status))
            return {item_id: status for item_id, status in result.all()}


@pytest.fixture
def fetch(session_factory: async_sessionmaker[AsyncSession]) -> Reader:
    return Reader(session_factory)


# ---------------------------------------------------------------------------
# Call provider
# ---------------------------------------------------------------------------

@dataclass
class FakeCallProvider(CallProvider):
    """In-memory provider; fails for queue items listed in ``fail_for``.

    Items in ``no_execution_id_for`` are accepted without an execution id.
    """

    fail_for: set[UUID] = field(default_factory=set)
    no_execution_id_for: set[UUID] = field(default_factory=set)
    requests: list[MakeCallRequest] = field(default_factory=list)

    async def make_call(self, request: MakeCallRequest) -> MakeCallResponse:
        self.requests.append(request)
        if request.user_data.queue_item_id in self.fail_for:
            raise CallInitiationError(
                message="Provider API error: 500 - upstream exploded",
                error_code="500",
                status_code=500,
            )
        if request.user_data.queue_item_id in self.no_execution_id_for:
            return MakeCallResponse(execution_id=None, raw_response={"status": "queued"})
        execution_id = f"exec-{len(self.requests)}"
        return MakeCallResponse(execution_id=execution_id, raw_response={"execution_id": execution_id})

    @property
    def called_queue_items(self) -> list[UUID]:
        return [r.user_data.queue_item_id for r in self.requests]


@pytest.fixture
def provider() -> FakeCallProvider:
    return FakeCallProvider()
