"""
Agent repository for database operations.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from callqueue.agents.models import Agent


class AgentRepository:
    """Read-only access to voice agents."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, agent_id: UUID) -> Agent | None:
        """Get agent by ID, or None if it no longer exists."""
        stmt = select(Agent).where(Agent.id == agent_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()
