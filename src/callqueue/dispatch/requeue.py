from dataclasses import dataclass
from datetime import datetime, timedelta

from callqueue.config import Settings
from callqueue.dispatch.repository import QueueRepository
from callqueue.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class FailedItemRequeuePolicy:
    """When failed queue items go back to ``pending``.

    Disabled unless configured. An item is eligible once it has been failed
    for ``cooldown_minutes`` and has been retried fewer than ``max_retries``
    times. Each requeue bumps ``retry_count`` and resets ``queued_at``, so a
    retried item queues behind fresh work of the same priority.
    """

    enabled: bool = False
    cooldown_minutes: int = 3
    max_retries: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> "FailedItemRequeuePolicy":
        return cls(
            enabled=settings.requeue_failed_enabled,
            cooldown_minutes=settings.requeue_cooldown_minutes,
            max_retries=settings.requeue_max_retries,
        )

    def cutoff(self, now: datetime) -> datetime:
        return now - timedelta(minutes=self.cooldown_minutes)

    async def apply(self, repository: QueueRepository, now: datetime) -> int:
        """Requeue eligible items. The caller owns the commit."""
        if not self.enabled or self.max_retries <= 0:
            return 0

        requeued = await repository.requeue_failed(
            cutoff=self.cutoff(now),
            max_retries=self.max_retries,
            requeued_at=now,
        )
        if requeued:
            logger.info(
                "Failed queue items requeued",
                extra={
                    "requeued": requeued,
                    "cooldown_minutes": self.cooldown_minutes,
                    "max_retries": self.max_retries,
                },
            )
        return requeued
