"""
Page-side appointment submission with an offline queue fallback.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from shared.errors import NetworkError, OfflineSubmissionNotRecorded, QueueStoreError
from shared.logging import get_logger

from .sync.coordinator import SYNC_TAG

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from .adapters.appointments_client import AppointmentsClient
    from .host import SyncRegistry
    from .queue.store import SubmissionQueueStore


class SubmissionOutcome(str, Enum):
    DELIVERED = "delivered"
    REJECTED = "rejected"
    QUEUED = "queued"


@dataclass
class SubmissionResult:
    outcome: SubmissionOutcome
    status_code: Optional[int] = None
    queued_id: Optional[int] = None


class AppointmentSubmitter:
    """Submits appointment forms, queueing them when the network is down."""

    def __init__(
        self,
        client: "AppointmentsClient",
        queue: "SubmissionQueueStore",
        sync_registry: "SyncRegistry",
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.client = client
        self.queue = queue
        self.sync_registry = sync_registry
        self.metrics = metrics
        self.logger = get_logger("offline_agent.submissions")

    async def submit(self, payload: Dict[str, Any]) -> SubmissionResult:
        try:
            response = await self.client.submit(payload)
        except NetworkError:
            return await self._queue_offline(payload)

        if response.is_success:
            return SubmissionResult(SubmissionOutcome.DELIVERED, status_code=response.status_code)
        return SubmissionResult(SubmissionOutcome.REJECTED, status_code=response.status_code)

    async def _queue_offline(self, payload: Dict[str, Any]) -> SubmissionResult:
        try:
            submission_id = await self.queue.enqueue(payload)
        except QueueStoreError as exc:
            self.logger.error("Error storing appointment offline", error=exc.message)
            raise OfflineSubmissionNotRecorded(details=exc.details) from exc

        await self.sync_registry.register(SYNC_TAG)
        await self._update_queue_depth()
        return SubmissionResult(SubmissionOutcome.QUEUED, queued_id=submission_id)

    async def _update_queue_depth(self) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.set_gauge("queue_depth", await self.queue.count())
        except QueueStoreError as exc:
            self.logger.debug("Queue depth unavailable", error=str(exc))
