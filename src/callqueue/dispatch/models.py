"""
SQLAlchemy model for the outbound call queue.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from callqueue.shared.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueueItemStatus(str, Enum):
    """Queue item lifecycle state."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class QueueItem(Base):
    """One requested outbound call, kept after dispatch as the audit trail."""

    __tablename__ = "call_queue"
    __table_args__ = (
        Index("ix_call_queue_admission", "status", "priority", "queued_at"),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    client_id: Mapped[UUID] = mapped_column(
        Uuid,
        nullable=False,
        index=True,
    )
    # No FK constraints on lead/agent: a deleted reference must surface as a
    # per-item failure at dispatch time, not block the delete.
    lead_id: Mapped[UUID] = mapped_column(
        Uuid,
        nullable=False,
    )
    agent_id: Mapped[UUID] = mapped_column(
        Uuid,
        nullable=False,
    )
    call_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("calls.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[QueueItemStatus] = mapped_column(
        SQLEnum(
            QueueItemStatus,
            name="queue_item_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=QueueItemStatus.PENDING,
    )
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    queued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    retry_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<QueueItem(id={self.id}, status={self.status}, priority={self.priority})>"
