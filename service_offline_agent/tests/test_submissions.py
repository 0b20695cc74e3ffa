"""
Unit tests for appointment submission with offline queueing.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_offline_agent.app.adapters.appointments_client import AppointmentsClient
from service_offline_agent.app.host import SyncRegistry
from service_offline_agent.app.queue.store import SubmissionQueueStore
from service_offline_agent.app.submissions import AppointmentSubmitter, SubmissionOutcome
from service_offline_agent.app.sync.coordinator import SYNC_TAG
from shared.errors import OfflineSubmissionNotRecorded, QueueStoreError
from shared.metrics import MetricsCollector

from conftest import ORIGIN


class TestAppointmentSubmitter:
    """Test cases for AppointmentSubmitter."""

    @pytest.fixture
    def queue(self, tmp_path):
        return SubmissionQueueStore(tmp_path / "MallikarjunaHospitalDB.sqlite3")

    @pytest.fixture
    def registry(self):
        return SyncRegistry()

    @pytest.fixture
    def submitter(self, site, queue, registry):
        client = AppointmentsClient(f"{ORIGIN}/api/appointments", transport=site.transport)
        return AppointmentSubmitter(client, queue, registry)

    @pytest.fixture
    def appointment(self):
        return {"name": "Ravi Kumar", "department": "Orthopedics", "date": "2026-11-05"}

    @pytest.mark.asyncio
    async def test_online_submission_delivered(self, submitter, site, queue, registry, appointment):
        result = await submitter.submit(appointment)

        assert result.outcome == SubmissionOutcome.DELIVERED
        assert result.status_code == 201
        assert site.appointments == [appointment]
        assert await queue.count() == 0
        assert registry.pending == set()

    @pytest.mark.asyncio
    async def test_rejected_submission_not_queued(self, submitter, site, queue, appointment):
        """An HTTP error is the server's answer, not an offline condition."""
        site.appointment_status = lambda payload: 422

        result = await submitter.submit(appointment)

        assert result.outcome == SubmissionOutcome.REJECTED
        assert result.status_code == 422
        assert await queue.count() == 0

    @pytest.mark.asyncio
    async def test_offline_submission_queued_and_sync_registered(self, submitter, site, queue, registry, appointment):
        site.offline = True

        result = await submitter.submit(appointment)

        assert result.outcome == SubmissionOutcome.QUEUED
        items = await queue.list_all()
        assert [item.id for item in items] == [result.queued_id]
        assert items[0].payload == appointment
        assert registry.pending == {SYNC_TAG}

    @pytest.mark.asyncio
    async def test_unrecorded_offline_submission_raises(self, submitter, site, queue, registry, appointment):
        """When the queue is unavailable the caller is told nothing was saved."""
        site.offline = True

        with patch.object(queue, "enqueue", new_callable=AsyncMock) as mock_enqueue:
            mock_enqueue.side_effect = QueueStoreError("disk full")
            with pytest.raises(OfflineSubmissionNotRecorded):
                await submitter.submit(appointment)

        assert registry.pending == set()

    @pytest.mark.asyncio
    async def test_undecodable_response_queues_submission(self, site, queue, registry, appointment):
        """A response that cannot be read is treated like no response at all."""
        def garbled(request):
            return httpx.Response(201, content=b"not gzip", headers={"Content-Encoding": "gzip"})

        client = AppointmentsClient(f"{ORIGIN}/api/appointments", transport=httpx.MockTransport(garbled))
        submitter = AppointmentSubmitter(client, queue, registry)

        result = await submitter.submit(appointment)

        assert result.outcome == SubmissionOutcome.QUEUED
        assert await queue.count() == 1
        assert registry.pending == {SYNC_TAG}

    @pytest.mark.asyncio
    async def test_offline_submission_updates_queue_depth(self, site, queue, registry, appointment):
        metrics = MetricsCollector("offline_agent")
        client = AppointmentsClient(f"{ORIGIN}/api/appointments", transport=site.transport)
        submitter = AppointmentSubmitter(client, queue, registry, metrics=metrics)
        site.offline = True

        await submitter.submit(appointment)
        await submitter.submit(dict(appointment, date="2026-11-06"))

        assert metrics.registry.get_sample_value("queue_depth") == 2
