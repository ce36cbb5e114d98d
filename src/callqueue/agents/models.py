"""
SQLAlchemy models for voice agents.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from callqueue.shared.database import Base


class Agent(Base):
    """Voice agent as registered with the external call provider."""

    __tablename__ = "aitel_agents"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    client_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        nullable=True,
        index=True,
    )
    agent_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    # Identifier understood by the call provider's API
    external_agent_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Agent(id={self.id}, external_agent_id={self.external_agent_id})>"
