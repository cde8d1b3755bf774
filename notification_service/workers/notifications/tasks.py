"""Notification task definitions.

This module provides:
- Creation of notifications from ``CreateNotificationEvent`` payloads
- Per-delivery processing jobs enqueued by the fan-out coordinator
- Re-enqueueing of deliveries a fan-out could not enqueue

Retryable errors (``StorageError``, ``TransientInfraError``,
``ChannelNotConfiguredError``) are re-raised so ``SimpleRetryMiddleware``
redelivers the job. Permanent outcomes end the job with a status dict. The
one exception is an enqueue failure after a fan-out committed: creation is
not retried, and ``enqueue_pending_deliveries_task`` finishes the job.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from notification_service.core.exceptions import (
    DeliveryNotFoundError,
    InvalidInputError,
    TransientInfraError,
)
from notification_service.core.settings import get_notification_settings
from notification_service.features.notifications.event_handlers import on_create_notification
from notification_service.features.notifications.processor import get_delivery_processor
from notification_service.features.notifications.service import get_notification_service
from notification_service.infra.database.session import get_async_session
from notification_service.infra.tasks.broker import broker

logger = logging.getLogger(__name__)

settings = get_notification_settings()


@broker.task(retry_on_error=True, max_retries=settings.max_job_retries)
async def create_notification_task(event: dict[str, Any]) -> dict[str, Any]:
    """Fan out a notification from a creation event payload.

    Args:
        event: JSON form of ``CreateNotificationEvent``.

    Returns:
        ``{"status": "created", "content_id": ...}``, or
        ``{"status": "rejected", ...}`` for an invalid request, or
        ``{"status": "partially_enqueued", "content_id": ..., "delivery_ids": [...]}``
        when the fan-out committed but some jobs could not be enqueued.

    Example:
        task = await create_notification_task.kiq(
            {"tenant_id": "t-1", "recipient_ids": ["u-1", "u-2"], "text": "test"}
        )
    """
    try:
        content_id = await on_create_notification(event)
    except InvalidInputError as e:
        logger.warning(
            "Create-notification event rejected",
            extra={"tenant_id": event.get("tenant_id"), "error": e.detail},
        )
        return {"status": "rejected", "error": e.to_dict()}
    except TransientInfraError as e:
        if e.operation != "enqueue":
            raise
        # The fan-out is committed; re-running the event would create it twice
        logger.error(
            "Notification created but some delivery jobs were not enqueued",
            extra={"tenant_id": event.get("tenant_id"), **e.extra},
        )
        return {
            "status": "partially_enqueued",
            "tenant_id": event.get("tenant_id"),
            "content_id": e.extra["content_id"],
            "delivery_ids": e.extra["delivery_ids"],
        }

    return {"status": "created", "content_id": str(content_id)}


@broker.task(retry_on_error=True, max_retries=settings.max_job_retries)
async def enqueue_pending_deliveries_task(
    tenant_id: str | None,
    content_id: str,
    delivery_ids: list[str] | None = None,
) -> dict[str, Any]:
    """Enqueue processing jobs for deliveries a fan-out left unqueued.

    Args:
        tenant_id: Tenant the notification belongs to (None in single-tenant mode).
        content_id: UUID of the notification content.
        delivery_ids: Deliveries to enqueue, as reported by a
            ``partially_enqueued`` creation result; every unfinished
            delivery of the content when omitted.

    Returns:
        ``{"status": "enqueued", "content_id": ..., "count": ...}``.

    Example:
        await enqueue_pending_deliveries_task.kiq(
            result["tenant_id"], result["content_id"], result["delivery_ids"]
        )
    """
    try:
        uuid_id = UUID(content_id)
        uuid_ids = [UUID(value) for value in delivery_ids] if delivery_ids is not None else None
    except ValueError:
        logger.exception(
            "Invalid id format in re-enqueue request",
            extra={"content_id": content_id, "tenant_id": tenant_id},
        )
        return {"status": "error", "reason": "invalid_uuid"}

    service = get_notification_service()

    async with get_async_session() as session:
        count = await service.enqueue_pending(session, uuid_id, tenant_id, delivery_ids=uuid_ids)

    return {"status": "enqueued", "content_id": content_id, "count": count}


@broker.task(retry_on_error=True, max_retries=settings.max_job_retries)
async def process_delivery_task(tenant_id: str | None, delivery_id: str) -> dict[str, Any]:
    """Process one delivery job.

    Args:
        tenant_id: Tenant the delivery belongs to (None in single-tenant mode).
        delivery_id: UUID of the delivery.

    Returns:
        Outcome dict: ``status`` is ``completed``, ``already_terminal``,
        ``discarded`` (lost race or unknown delivery) or ``error``.
    """
    try:
        uuid_id = UUID(delivery_id)
    except ValueError:
        logger.exception(
            "Invalid delivery_id format",
            extra={"delivery_id": delivery_id, "tenant_id": tenant_id},
        )
        return {"status": "error", "reason": "invalid_uuid"}

    processor = get_delivery_processor()

    async with get_async_session() as session:
        try:
            outcome = await processor.process_delivery(session, tenant_id, uuid_id)
        except DeliveryNotFoundError:
            logger.exception(
                "Delivery not found; discarding job",
                extra={"delivery_id": delivery_id, "tenant_id": tenant_id},
            )
            return {"status": "discarded", "reason": "not_found", "delivery_id": delivery_id}

    if outcome.already_terminal:
        status = "already_terminal"
    elif outcome.applied:
        status = "completed"
    else:
        status = "discarded"

    return {"status": status, **outcome.to_dict()}


__all__ = [
    "create_notification_task",
    "enqueue_pending_deliveries_task",
    "process_delivery_task",
]
