"""Notification fan-out and per-recipient delivery.

A creation request becomes one immutable content row plus one pending
delivery per recipient entry, committed together; one processing job per
delivery is enqueued afterwards. Each job resolves the recipient through the
channel's directory, sends through the channel's sender and records a
terminal state exactly once.

Architecture:
    - Models: NotificationContent, NotificationDelivery, DeliveryState
    - Channels: DirectoryAdapter + ChannelSender bindings in a ChannelRegistry
    - Service: NotificationService (fan-out coordinator)
    - Processor: DeliveryProcessor (resolve, send, compare-and-set)
    - Event Handlers: creation from CreateNotificationEvent payloads

Example:
    ```python
    async with get_async_session() as session:
        content_id = await get_notification_service().create_notification(
            session,
            tenant_id="t-1",
            recipient_ids=["u-1", "u-2"],
            text="test",
            properties={"MyProperty": "123456"},
        )
    ```
"""

from notification_service.features.notifications.event_handlers import on_create_notification
from notification_service.features.notifications.failures import FailureReason
from notification_service.features.notifications.models import (
    DeliveryState,
    NotificationContent,
    NotificationDelivery,
)
from notification_service.features.notifications.processor import (
    DeliveryOutcome,
    DeliveryProcessor,
    get_delivery_processor,
)
from notification_service.features.notifications.queue import (
    JobQueue,
    get_job_queue,
    set_job_queue,
)
from notification_service.features.notifications.repository import (
    NotificationContentRepository,
    NotificationDeliveryRepository,
    get_notification_content_repository,
    get_notification_delivery_repository,
)
from notification_service.features.notifications.schemas import (
    CreateNotificationEvent,
    CreateNotificationRequest,
    DeliveryJob,
    DeliveryStateCounts,
)
from notification_service.features.notifications.service import (
    NotificationService,
    get_notification_service,
)

__all__ = [
    "CreateNotificationEvent",
    "CreateNotificationRequest",
    "DeliveryJob",
    "DeliveryOutcome",
    "DeliveryProcessor",
    "DeliveryState",
    "DeliveryStateCounts",
    "FailureReason",
    "JobQueue",
    "NotificationContent",
    "NotificationContentRepository",
    "NotificationDelivery",
    "NotificationDeliveryRepository",
    "NotificationService",
    "get_delivery_processor",
    "get_job_queue",
    "get_notification_content_repository",
    "get_notification_delivery_repository",
    "get_notification_service",
    "on_create_notification",
    "set_job_queue",
]
