"""
Repository for call record database operations.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from callqueue.calls.models import CallRecord, CallStatus


class CallRecordRepository:
    """Repository for call record database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def create(
        self,
        agent_id: UUID,
        client_id: UUID,
        lead_id: UUID,
        metadata: dict[str, Any],
    ) -> CallRecord:
        """Create a new call record.

        Args:
            agent_id: Agent UUID.
            client_id: Owning client UUID.
            lead_id: Lead UUID.
            metadata: Provenance metadata stored alongside the call.

        Returns:
            Created CallRecord instance.
        """
        record = CallRecord(
            agent_id=agent_id,
            client_id=client_id,
            lead_id=lead_id,
            status=CallStatus.INITIATING,
            call_metadata=metadata,
        )
        self._session.add(record)
        await self._session.flush()
        await self._session.refresh(record)
        return record

    async def mark_queued(
        self,
        call_id: UUID,
        external_call_id: str | None,
        started_at: datetime,
    ) -> None:
        """Persist the provider execution id and move the call to ``queued``.

        The status write only applies while the record is still
        ``initiating``; a lifecycle webhook that raced ahead keeps its state.
        """
        await self._session.execute(
            update(CallRecord)
            .where(CallRecord.id == call_id)
            .values(external_call_id=external_call_id, started_at=started_at)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(
            update(CallRecord)
            .where(
                CallRecord.id == call_id,
                CallRecord.status == CallStatus.INITIATING,
            )
            .values(status=CallStatus.QUEUED)
            .execution_options(synchronize_session=False)
        )
