"""Unit tests for the notification worker tasks."""

from __future__ import annotations

from functools import partial
from uuid import UUID

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from taskiq import InMemoryBroker

from notification_service.core.exceptions import TransientInfraError
from notification_service.core.settings import NotificationSettings
from notification_service.features.notifications.channels import ChannelRegistry
from notification_service.features.notifications.event_handlers import on_create_notification
from notification_service.features.notifications.models import NotificationContent, NotificationDelivery
from notification_service.features.notifications.processor import DeliveryProcessor
from notification_service.features.notifications.service import NotificationService
from notification_service.infra.tasks import broker, start_taskiq, stop_taskiq
from notification_service.workers.notifications import tasks
from tests.fixtures.notifications import (
    CONFIRMED_USER,
    FailingJobQueue,
    InMemoryDirectory,
    InMemoryJobQueue,
    RecordingSender,
    default_users,
    load_deliveries,
)


@pytest.fixture
def wired_tasks(
    monkeypatch: pytest.MonkeyPatch,
    session_factory,
    notification_service: NotificationService,
    delivery_processor: DeliveryProcessor,
):
    """Point the task module at the test session, coordinator and processor."""
    monkeypatch.setattr(tasks, "get_async_session", session_factory)
    monkeypatch.setattr(tasks, "get_delivery_processor", lambda: delivery_processor)
    monkeypatch.setattr(tasks, "get_notification_service", lambda: notification_service)
    monkeypatch.setattr(
        tasks,
        "on_create_notification",
        partial(on_create_notification, service=notification_service, session_factory=session_factory),
    )
    return tasks


@pytest.mark.unit
class TestCreateNotificationTask:
    """Tests for create_notification_task."""

    @pytest.mark.asyncio
    async def test_creates_notification(self, wired_tasks, job_queue: InMemoryJobQueue):
        result = await wired_tasks.create_notification_task(
            {"tenant_id": "tenant-1", "recipient_ids": ["u-1", "u-2"], "text": "test"}
        )

        assert result["status"] == "created"
        assert result["content_id"]
        assert len(job_queue.jobs) == 2

    @pytest.mark.asyncio
    async def test_invalid_request_is_rejected_not_retried(self, wired_tasks, job_queue):
        result = await wired_tasks.create_notification_task(
            {"tenant_id": "tenant-1", "recipient_ids": ["u-1"], "channel": "carrier-pigeon"}
        )

        assert result["status"] == "rejected"
        assert result["error"]["type"] == "invalid-input"
        assert job_queue.jobs == []

    @pytest.mark.asyncio
    async def test_enqueue_failure_does_not_duplicate_fan_out(
        self,
        monkeypatch: pytest.MonkeyPatch,
        session_factory,
        db_session: AsyncSession,
        notification_settings: NotificationSettings,
    ):
        queue = FailingJobQueue(succeed_first=1)
        service = NotificationService(queue=queue, settings=notification_settings)
        monkeypatch.setattr(tasks, "get_async_session", session_factory)
        monkeypatch.setattr(tasks, "get_notification_service", lambda: service)
        monkeypatch.setattr(
            tasks,
            "on_create_notification",
            partial(on_create_notification, service=service, session_factory=session_factory),
        )
        event = {"tenant_id": "tenant-1", "recipient_ids": [CONFIRMED_USER, "u-2"], "text": "test"}

        result = await tasks.create_notification_task(event)

        assert result["status"] == "partially_enqueued"
        assert len(result["delivery_ids"]) == 1
        assert len(queue.jobs) == 1
        assert await db_session.scalar(select(func.count()).select_from(NotificationContent)) == 1
        assert await db_session.scalar(select(func.count()).select_from(NotificationDelivery)) == 2

        # Broker is back: only the deliveries that missed their job are enqueued
        queue.succeed_first = 10
        again = await tasks.enqueue_pending_deliveries_task(
            result["tenant_id"], result["content_id"], result["delivery_ids"]
        )

        assert again == {"status": "enqueued", "content_id": result["content_id"], "count": 1}
        assert [str(job.delivery_id) for job in queue.jobs[1:]] == result["delivery_ids"]
        deliveries = await load_deliveries(db_session, UUID(result["content_id"]))
        assert {job.delivery_id for job in queue.jobs} == {d.id for d in deliveries}
        assert await db_session.scalar(select(func.count()).select_from(NotificationContent)) == 1

    @pytest.mark.asyncio
    async def test_other_transient_errors_are_raised_for_retry(self, monkeypatch: pytest.MonkeyPatch):
        async def unavailable(event):
            raise TransientInfraError("database unreachable", operation="connect")

        monkeypatch.setattr(tasks, "on_create_notification", unavailable)

        with pytest.raises(TransientInfraError):
            await tasks.create_notification_task({"tenant_id": "tenant-1", "recipient_ids": ["u-1"]})


@pytest.mark.unit
class TestEnqueuePendingDeliveriesTask:
    """Tests for enqueue_pending_deliveries_task."""

    @pytest.mark.asyncio
    async def test_skips_finished_deliveries(
        self,
        wired_tasks,
        db_session: AsyncSession,
        notification_service: NotificationService,
        job_queue: InMemoryJobQueue,
    ):
        content_id = await notification_service.create_notification(
            db_session, "tenant-1", [CONFIRMED_USER, "u-2"], "test"
        )
        first = job_queue.jobs[0]
        await wired_tasks.process_delivery_task("tenant-1", str(first.delivery_id))

        result = await wired_tasks.enqueue_pending_deliveries_task("tenant-1", str(content_id))

        assert result["count"] == 1
        assert job_queue.jobs[-1].delivery_id == job_queue.jobs[1].delivery_id

    @pytest.mark.asyncio
    async def test_other_tenant_enqueues_nothing(
        self,
        wired_tasks,
        db_session: AsyncSession,
        notification_service: NotificationService,
        job_queue: InMemoryJobQueue,
    ):
        content_id = await notification_service.create_notification(
            db_session, "tenant-1", ["u-1"], "test"
        )

        result = await wired_tasks.enqueue_pending_deliveries_task("tenant-2", str(content_id))

        assert result["count"] == 0
        assert len(job_queue.jobs) == 1

    @pytest.mark.asyncio
    async def test_malformed_content_id(self, wired_tasks):
        result = await wired_tasks.enqueue_pending_deliveries_task("tenant-1", "not-a-uuid")

        assert result == {"status": "error", "reason": "invalid_uuid"}


@pytest.mark.unit
class TestProcessDeliveryTask:
    """Tests for process_delivery_task."""

    @pytest.mark.asyncio
    async def test_completes_delivery(
        self,
        wired_tasks,
        db_session: AsyncSession,
        notification_service: NotificationService,
        job_queue: InMemoryJobQueue,
    ):
        await notification_service.create_notification(db_session, "tenant-1", [CONFIRMED_USER], "test")
        [job] = job_queue.jobs

        result = await wired_tasks.process_delivery_task("tenant-1", str(job.delivery_id))

        assert result["status"] == "completed"
        assert result["state"] == "succeeded"
        assert result["delivery_id"] == str(job.delivery_id)

        again = await wired_tasks.process_delivery_task("tenant-1", str(job.delivery_id))
        assert again["status"] == "already_terminal"

    @pytest.mark.asyncio
    async def test_unknown_delivery_is_discarded(self, wired_tasks):
        result = await wired_tasks.process_delivery_task(
            "tenant-1", "01900000-0000-7000-8000-000000000000"
        )

        assert result == {
            "status": "discarded",
            "reason": "not_found",
            "delivery_id": "01900000-0000-7000-8000-000000000000",
        }

    @pytest.mark.asyncio
    async def test_malformed_delivery_id(self, wired_tasks):
        result = await wired_tasks.process_delivery_task("tenant-1", "not-a-uuid")

        assert result == {"status": "error", "reason": "invalid_uuid"}

    @pytest.mark.asyncio
    async def test_transient_failure_is_raised_for_retry(
        self,
        monkeypatch: pytest.MonkeyPatch,
        session_factory,
        db_session: AsyncSession,
        notification_service: NotificationService,
        notification_settings: NotificationSettings,
        job_queue: InMemoryJobQueue,
    ):
        registry = ChannelRegistry()
        registry.register(
            "sms",
            InMemoryDirectory(default_users(), error=TimeoutError()),
            RecordingSender(),
        )
        processor = DeliveryProcessor(registry=registry, settings=notification_settings)
        monkeypatch.setattr(tasks, "get_async_session", session_factory)
        monkeypatch.setattr(tasks, "get_delivery_processor", lambda: processor)

        await notification_service.create_notification(db_session, "tenant-1", [CONFIRMED_USER])
        [job] = job_queue.jobs

        with pytest.raises(TransientInfraError):
            await tasks.process_delivery_task("tenant-1", str(job.delivery_id))


@pytest.mark.unit
def test_tasks_are_registered_with_retries():
    assert tasks.process_delivery_task.labels.get("retry_on_error") is True
    assert tasks.create_notification_task.labels.get("retry_on_error") is True
    assert tasks.enqueue_pending_deliveries_task.labels.get("retry_on_error") is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_in_memory_broker_lifecycle():
    assert isinstance(broker, InMemoryBroker)
    assert broker.find_task(tasks.process_delivery_task.task_name) is not None

    await start_taskiq()
    await stop_taskiq()
