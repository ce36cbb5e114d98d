"""
Per-item dispatch: claim a queue item, place the call, record the result.

Each item runs in its own session and its own failure boundary. A failure
on one item marks that item failed and never stops the rest of the batch.
"""

import asyncio
from collections.abc import Callable, Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from callqueue.agents.repository import AgentRepository
from callqueue.calls.repository import CallRecordRepository
from callqueue.dispatch.errors import CallRecordError, ReferenceMissingError
from callqueue.dispatch.models import utcnow
from callqueue.dispatch.outcomes import DispatchOutcome, QueuedCall
from callqueue.dispatch.repository import QueueRepository
from callqueue.leads.repository import LeadRepository
from callqueue.leads.service import LeadStateUpdater
from callqueue.shared.logging import get_logger
from callqueue.telephony.interface import CallProvider, CallUserData, MakeCallRequest

logger = get_logger(__name__)

DEFAULT_LEAD_NAME = "Customer"
CALL_SOURCE = "bulk_queue"


class QueueDispatcher:
    """Drives selected queue items through the call provider."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        provider: CallProvider,
        *,
        max_concurrent: int,
        max_parallel: int = 1,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if max_parallel <= 0:
            raise ValueError("max_parallel must be > 0")
        self._session_factory = session_factory
        self._provider = provider
        self._max_concurrent = max_concurrent
        self._max_parallel = max_parallel
        self._clock = clock

    async def dispatch_all(self, items: Sequence[QueuedCall]) -> list[DispatchOutcome]:
        """Dispatch a batch; outcomes come back in selection order."""
        pool_size = min(len(items), self._max_parallel)
        if pool_size <= 1:
            return [await self._dispatch_isolated(item) for item in items]

        semaphore = asyncio.Semaphore(pool_size)

        async def _bounded(item: QueuedCall) -> DispatchOutcome:
            async with semaphore:
                return await self._dispatch_isolated(item)

        return list(await asyncio.gather(*(_bounded(item) for item in items)))

    async def _dispatch_isolated(self, item: QueuedCall) -> DispatchOutcome:
        try:
            return await self.dispatch(item)
        except Exception as exc:
            # Only reached when the failure bookkeeping itself could not be written.
            logger.exception(
                "Queue item dispatch aborted",
                extra={"queue_item_id": str(item.id)},
            )
            return DispatchOutcome(queue_item_id=item.id, success=False, error=str(exc))

    async def dispatch(self, item: QueuedCall) -> DispatchOutcome:
        """Claim and dispatch a single queue item.

        Returns an outcome with ``claimed=False`` when the item was taken by
        another dispatcher or capacity filled up in the meantime.
        """
        async with self._session_factory() as session:
            queue_repo = QueueRepository(session)

            claimed = await queue_repo.claim(item.id, self._clock(), self._max_concurrent)
            await session.commit()
            if not claimed:
                logger.info(
                    "Queue item not claimed; skipping",
                    extra={"queue_item_id": str(item.id)},
                )
                return DispatchOutcome(queue_item_id=item.id, success=False, claimed=False)

            try:
                outcome = await self._place_call(session, item)
            except Exception as exc:
                await session.rollback()
                message = str(exc) or exc.__class__.__name__
                logger.warning(
                    "Queue item dispatch failed",
                    extra={
                        "queue_item_id": str(item.id),
                        "lead_id": str(item.lead_id),
                        "error": message,
                        "error_type": exc.__class__.__name__,
                    },
                )
                await queue_repo.mark_failed(item.id, message, self._clock())
                await session.commit()
                return DispatchOutcome(queue_item_id=item.id, success=False, error=message)

            await self._record_on_lead(session, item.lead_id)
            return outcome

    async def _place_call(self, session: AsyncSession, item: QueuedCall) -> DispatchOutcome:
        lead = await LeadRepository(session).get_by_id(item.lead_id)
        if lead is None:
            raise ReferenceMissingError(f"Lead {item.lead_id} not found for queue item {item.id}")
        agent = await AgentRepository(session).get_by_id(item.agent_id)
        if agent is None:
            raise ReferenceMissingError(f"Agent {item.agent_id} not found for queue item {item.id}")

        lead_name = lead.name or DEFAULT_LEAD_NAME
        phone_number = lead.phone_number
        external_agent_id = agent.external_agent_id

        call_repo = CallRecordRepository(session)
        try:
            call = await call_repo.create(
                agent_id=item.agent_id,
                client_id=item.client_id,
                lead_id=item.lead_id,
                metadata={
                    "source": CALL_SOURCE,
                    "queue_item_id": str(item.id),
                    "lead_name": lead_name,
                },
            )
            call_id = call.id
            await session.commit()
        except SQLAlchemyError as e:
            raise CallRecordError(f"Failed to create call record: {e}") from e

        response = await self._provider.make_call(
            MakeCallRequest(
                external_agent_id=external_agent_id,
                recipient_phone_number=phone_number,
                user_data=CallUserData(
                    lead_id=item.lead_id,
                    lead_name=lead_name,
                    call_id=call_id,
                    queue_item_id=item.id,
                ),
            )
        )

        await call_repo.mark_queued(call_id, response.execution_id, self._clock())
        await QueueRepository(session).link_call(item.id, call_id)
        await session.commit()

        if response.execution_id is None:
            logger.warning(
                "Queue item dispatched without a provider execution id",
                extra={"queue_item_id": str(item.id), "call_id": str(call_id)},
            )
        logger.info(
            "Queue item dispatched",
            extra={
                "queue_item_id": str(item.id),
                "call_id": str(call_id),
                "execution_id": response.execution_id,
            },
        )
        return DispatchOutcome(
            queue_item_id=item.id,
            success=True,
            call_id=call_id,
            execution_id=response.execution_id,
        )

    async def _record_on_lead(self, session: AsyncSession, lead_id: UUID) -> None:
        """Best-effort lead bookkeeping; the call is already placed."""
        try:
            await LeadStateUpdater(LeadRepository(session)).record_call_placed(
                lead_id, self._clock()
            )
            await session.commit()
        except Exception:
            await session.rollback()
            logger.warning(
                "Lead update failed after dispatch",
                extra={"lead_id": str(lead_id)},
                exc_info=True,
            )
