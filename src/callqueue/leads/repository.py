"""
Lead repository for database operations.
"""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from callqueue.leads.models import Lead, LeadStage


class LeadRepositoryProtocol(Protocol):
    """Protocol for lead repository operations."""

    async def get_by_id(self, lead_id: UUID) -> Lead | None:
        """Get lead by ID."""
        ...

    async def touch_last_call(self, lead_id: UUID, called_at: datetime) -> int:
        """Stamp the lead's last call time."""
        ...

    async def advance_stage(
        self,
        lead_id: UUID,
        expected: LeadStage,
        target: LeadStage,
    ) -> bool:
        """Compare-and-set the lead's pipeline stage."""
        ...


class LeadRepository:
    """Repository for lead database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def get_by_id(self, lead_id: UUID) -> Lead | None:
        """Get lead by ID.

        Args:
            lead_id: Lead UUID.

        Returns:
            Lead if found, None otherwise.
        """
        stmt = select(Lead).where(Lead.id == lead_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def touch_last_call(self, lead_id: UUID, called_at: datetime) -> int:
        """Set ``last_call_at`` unconditionally.

        Returns:
            Number of rows updated (0 if the lead is gone).
        """
        stmt = (
            update(Lead)
            .where(Lead.id == lead_id)
            .values(last_call_at=called_at)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    async def advance_stage(
        self,
        lead_id: UUID,
        expected: LeadStage,
        target: LeadStage,
    ) -> bool:
        """Move the lead from ``expected`` to ``target`` only if still at ``expected``.

        Returns:
            True if the stage changed, False if another writer moved it first.
        """
        stmt = (
            update(Lead)
            .where(Lead.id == lead_id, Lead.stage == expected)
            .values(stage=target)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return (result.rowcount or 0) == 1
