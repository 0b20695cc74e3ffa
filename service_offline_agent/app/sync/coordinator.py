"""
Sync coordinator: replays queued appointment submissions.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from shared.errors import NetworkError, NotFoundError, QueueStoreError, SyncItemFailure
from shared.logging import get_logger

from ..models import QueuedSubmission

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from ..adapters.appointments_client import AppointmentsClient
    from ..queue.store import SubmissionQueueStore


SYNC_TAG = "appointment-sync"


@dataclass
class SyncReport:
    """Outcome of one drain pass."""

    attempted: int = 0
    delivered: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)

    def to_dict(self):
        return {
            "attempted": self.attempted,
            "delivered": list(self.delivered),
            "failed": list(self.failed),
        }


class SyncCoordinator:
    """Drains the submission queue against the appointments endpoint.

    Items are attempted one after another and independently: a failed item
    stays queued for the next connectivity signal and never stops the pass.
    There is no backoff or attempt cap.
    """

    def __init__(
        self,
        queue: "SubmissionQueueStore",
        client: "AppointmentsClient",
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.queue = queue
        self.client = client
        self.metrics = metrics
        self.logger = get_logger("offline_agent.sync")
        self._pass_lock = asyncio.Lock()

    async def handle_sync(self, tag: str) -> Optional[SyncReport]:
        """Entry point for the host's background-sync signal."""
        if tag != SYNC_TAG:
            self.logger.debug("Ignoring sync tag", tag=tag)
            return None
        self.logger.info("Background sync for appointments")
        return await self.drain()

    async def drain(self) -> SyncReport:
        report = SyncReport()
        # overlapping signals run back to back rather than double-posting
        async with self._pass_lock:
            start = time.perf_counter()
            try:
                pending = await self.queue.list_all()
            except QueueStoreError as exc:
                self.logger.error("Error handling offline appointments", error=str(exc))
                return report

            for submission in pending:
                report.attempted += 1
                try:
                    await self._deliver(submission)
                except Exception as exc:
                    # one broken item never stops the rest of the pass
                    failure = exc if isinstance(exc, SyncItemFailure) else SyncItemFailure(
                        submission.id, "Unexpected delivery error", {"error": repr(exc)}
                    )
                    report.failed.append(submission.id)
                    self.logger.info(
                        "Failed to sync appointment",
                        id=submission.id,
                        reason=failure.message,
                        details=failure.details,
                    )
                    self._count("failed")
                    continue
                report.delivered.append(submission.id)
                self._count("delivered")

            self._observe(time.perf_counter() - start)

        await self._update_queue_depth()
        return report

    async def _deliver(self, submission: QueuedSubmission) -> None:
        try:
            response = await self.client.submit(submission.payload)
        except NetworkError as exc:
            raise SyncItemFailure(submission.id, "Network error", {"error": exc.message}) from exc

        if not response.is_success:
            raise SyncItemFailure(submission.id, "Endpoint rejected submission", {"status_code": response.status_code})

        try:
            await self.queue.remove(submission.id)
        except NotFoundError:
            self.logger.warning("Synced appointment already removed", id=submission.id)
        except QueueStoreError as exc:
            raise SyncItemFailure(submission.id, "Delivered but could not be dequeued", {"error": exc.message}) from exc

        self.logger.info("Offline appointment synced", id=submission.id)

    async def _update_queue_depth(self) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.set_gauge("queue_depth", await self.queue.count())
        except QueueStoreError as exc:
            self.logger.debug("Queue depth unavailable", error=str(exc))

    def _count(self, result: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("sync_items_total", result=result)

    def _observe(self, duration: float) -> None:
        if self.metrics:
            self.metrics.observe_histogram("sync_pass_duration_seconds", duration)
