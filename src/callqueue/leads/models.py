"""
SQLAlchemy models for leads.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Enum as SQLEnum, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from callqueue.shared.database import Base


class LeadStage(str, Enum):
    """Sales pipeline stage of a lead."""

    NEW = "new"
    CONTACTED = "contacted"
    INTERESTED = "interested"
    SITE_VISIT_DONE = "site_visit_done"
    NEGOTIATION = "negotiation"
    TOKEN_PAID = "token_paid"
    CLOSED = "closed"
    LOST = "lost"


class Lead(Base):
    """Lead, restricted to the columns the dispatcher reads or writes."""

    __tablename__ = "real_estate_leads"

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
    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    phone_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    stage: Mapped[LeadStage] = mapped_column(
        SQLEnum(
            LeadStage,
            name="lead_stage",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=LeadStage.NEW,
    )
    last_call_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Lead(id={self.id}, phone={self.phone_number}, stage={self.stage})>"
