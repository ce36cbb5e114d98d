"""
Lead pipeline bookkeeping after a successful dispatch.
"""

from datetime import datetime
from uuid import UUID

from callqueue.leads.models import LeadStage
from callqueue.leads.repository import LeadRepositoryProtocol
from callqueue.shared.logging import get_logger

logger = get_logger(__name__)


class LeadStateUpdater:
    """Records a placed call on the lead without clobbering concurrent stage edits."""

    def __init__(self, repository: LeadRepositoryProtocol) -> None:
        self._repository = repository

    async def record_call_placed(self, lead_id: UUID, called_at: datetime) -> bool:
        """Stamp ``last_call_at`` and advance ``new`` leads to ``contacted``.

        The stage write is a compare-and-set; a lead someone already moved
        past ``new`` keeps its stage and this is not treated as an error.

        Returns:
            True if the stage was advanced.
        """
        await self._repository.touch_last_call(lead_id, called_at)
        advanced = await self._repository.advance_stage(
            lead_id,
            expected=LeadStage.NEW,
            target=LeadStage.CONTACTED,
        )

        logger.info(
            "Lead call recorded",
            extra={"lead_id": str(lead_id), "stage_advanced": advanced},
        )
        return advanced
