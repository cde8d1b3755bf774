"""Fan-out coordinator: turn one creation request into content, deliveries and jobs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from notification_service.core.database import generate_uuid7
from notification_service.core.exceptions import (
    InvalidInputError,
    StorageError,
    TransientInfraError,
)
from notification_service.core.services.base import BaseService
from notification_service.core.settings import get_notification_settings
from notification_service.features.notifications.metrics import (
    delivery_created_total,
    delivery_jobs_enqueued_total,
    notification_created_total,
)
from notification_service.features.notifications.models import (
    DeliveryState,
    NotificationContent,
    NotificationDelivery,
)
from notification_service.features.notifications.queue import JobQueue, get_job_queue
from notification_service.features.notifications.repository import (
    NotificationContentRepository,
    NotificationDeliveryRepository,
    get_notification_content_repository,
    get_notification_delivery_repository,
)
from notification_service.features.notifications.schemas import (
    CreateNotificationRequest,
    DeliveryJob,
    DeliveryStateCounts,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.core.database import SearchResult
    from notification_service.core.settings import NotificationSettings


class NotificationService(BaseService):
    """Create notifications and observe their delivery outcomes.

    ``create_notification`` persists one content row and one pending
    delivery per recipient entry in a single transaction, commits, and only
    then enqueues one processing job per delivery. Nothing is sent here.
    """

    def __init__(
        self,
        queue: JobQueue | None = None,
        content_repository: NotificationContentRepository | None = None,
        delivery_repository: NotificationDeliveryRepository | None = None,
        settings: NotificationSettings | None = None,
    ) -> None:
        """Initialize with collaborators.

        Args:
            queue: Job queue; the process-wide taskiq queue when omitted
            content_repository: Optional content repository
            delivery_repository: Optional delivery repository
            settings: Notification settings; the cached settings when omitted
        """
        super().__init__()
        self._queue = queue or get_job_queue()
        self._content_repository = content_repository or get_notification_content_repository()
        self._delivery_repository = delivery_repository or get_notification_delivery_repository()
        self._settings = settings or get_notification_settings()

    async def create_notification(
        self,
        session: AsyncSession,
        tenant_id: str | None,
        recipient_ids: Iterable[str],
        text: str = "",
        properties: Any = None,
        *,
        channel: str | None = None,
    ) -> UUID:
        """Fan a notification out to its recipients.

        Args:
            session: Database session; committed by this call
            tenant_id: Tenant scope (None in single-tenant mode)
            recipient_ids: Ordered recipient ids; may be empty, may repeat
            text: Free-text body (may be empty)
            properties: Mapping, or sequence of (key, value) pairs
            channel: Target channel; the configured default when omitted

        Returns:
            Id of the created content.

        Raises:
            InvalidInputError: Malformed request, unknown channel, or too many
                recipients. Nothing is persisted.
            StorageError: The transaction failed and was rolled back. No job
                is enqueued.
            TransientInfraError: The fan-out committed but some jobs could not
                be enqueued; ``extra`` lists the content id and affected
                deliveries, which stay pending until ``enqueue_pending``
                picks them up. Retrying the creation would duplicate the
                fan-out.
        """
        request = self._validate(tenant_id, recipient_ids, text, properties, channel)
        recipients = self._effective_recipients(request.recipient_ids)

        content = NotificationContent(
            id=generate_uuid7(),
            tenant_id=request.tenant_id,
            channel=request.channel,
            text=request.text,
            properties=request.properties,
        )
        deliveries = [
            NotificationDelivery(
                id=generate_uuid7(),
                tenant_id=request.tenant_id,
                content_id=content.id,
                recipient_id=recipient_id,
                channel=request.channel,
                state=DeliveryState.PENDING.value,
                success=False,
            )
            for recipient_id in recipients
        ]

        try:
            await self._content_repository.create(session, content)
            await self._delivery_repository.create_many(session, deliveries)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            self.logger.error(
                "Notification fan-out failed; transaction rolled back",
                extra={
                    "tenant_id": request.tenant_id,
                    "channel": request.channel,
                    "recipient_count": len(recipients),
                    "error": str(e),
                },
            )
            raise StorageError(
                "Failed to persist notification",
                extra={"tenant_id": request.tenant_id, "channel": request.channel},
            ) from e

        notification_created_total.labels(channel=request.channel).inc()
        delivery_created_total.labels(channel=request.channel).inc(len(deliveries))

        self.logger.info(
            "Notification created",
            extra={
                "content_id": str(content.id),
                "tenant_id": request.tenant_id,
                "channel": request.channel,
                "delivery_count": len(deliveries),
            },
        )

        await self._enqueue_jobs(content.id, request.tenant_id, deliveries)
        return content.id

    def _validate(
        self,
        tenant_id: str | None,
        recipient_ids: Iterable[str],
        text: str,
        properties: Any,
        channel: str | None,
    ) -> CreateNotificationRequest:
        try:
            request = CreateNotificationRequest(
                tenant_id=tenant_id,
                recipient_ids=list(recipient_ids),
                text=text,
                properties=properties,
                channel=channel or self._settings.default_channel,
            )
        except ValidationError as e:
            raise InvalidInputError(
                f"Invalid notification request: {e.error_count()} validation error(s)",
                extra={
                    "errors": e.errors(
                        include_url=False, include_context=False, include_input=False
                    )
                },
            ) from e

        if request.channel not in self._settings.enabled_channels:
            raise InvalidInputError(
                f"Channel {request.channel!r} is not enabled",
                extra={"channel": request.channel, "enabled": self._settings.enabled_channels},
            )

        limit = self._settings.max_recipients_per_request
        if len(request.recipient_ids) > limit:
            raise InvalidInputError(
                f"Too many recipients: {len(request.recipient_ids)} > {limit}",
                extra={"recipient_count": len(request.recipient_ids), "limit": limit},
            )
        return request

    def _effective_recipients(self, recipient_ids: list[str]) -> list[str]:
        if not self._settings.deduplicate_recipients:
            return list(recipient_ids)
        # dict preserves first-seen order
        unique = list(dict.fromkeys(recipient_ids))
        if len(unique) != len(recipient_ids):
            self._lazy.debug(
                lambda: f"fan-out: collapsed {len(recipient_ids) - len(unique)} duplicate recipient(s)"
            )
        return unique

    async def enqueue_pending(
        self,
        session: AsyncSession,
        content_id: UUID,
        tenant_id: str | None,
        *,
        delivery_ids: Sequence[UUID] | None = None,
    ) -> int:
        """Enqueue processing jobs again for deliveries that are still unfinished.

        Recovery path for a fan-out whose jobs could not all be enqueued:
        creation is never re-run, so the rows it committed are picked up here
        instead. Terminal deliveries are skipped, and a job that was already
        enqueued once may be enqueued again; the processor tolerates both.

        Args:
            session: Database session; the read transaction ends before enqueueing
            content_id: Notification whose deliveries to enqueue
            tenant_id: Tenant scope (None in single-tenant mode)
            delivery_ids: Only these deliveries (e.g. the ones a failed
                fan-out reported); every unfinished one when omitted

        Returns:
            Number of jobs enqueued.

        Raises:
            StorageError: The deliveries could not be loaded.
            TransientInfraError: Some jobs could not be enqueued.
        """
        try:
            deliveries = await self._delivery_repository.list_unfinished(
                session, content_id, tenant_id, delivery_ids
            )
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise StorageError(
                "Failed to load unfinished deliveries",
                extra={"content_id": str(content_id)},
            ) from e

        self.logger.info(
            "Re-enqueueing unfinished deliveries",
            extra={
                "content_id": str(content_id),
                "tenant_id": tenant_id,
                "delivery_count": len(deliveries),
            },
        )
        await self._enqueue_jobs(content_id, tenant_id, deliveries)
        return len(deliveries)

    async def _enqueue_jobs(
        self,
        content_id: UUID,
        tenant_id: str | None,
        deliveries: list[NotificationDelivery],
    ) -> None:
        failed: list[str] = []
        last_error: Exception | None = None
        for delivery in deliveries:
            job = DeliveryJob(tenant_id=tenant_id, delivery_id=delivery.id)
            try:
                await self._queue.enqueue(job)
            except Exception as e:  # noqa: BLE001
                failed.append(str(delivery.id))
                last_error = e
            else:
                delivery_jobs_enqueued_total.labels(channel=delivery.channel).inc()

        if failed:
            self.logger.error(
                "Failed to enqueue delivery jobs; deliveries remain pending",
                extra={
                    "content_id": str(content_id),
                    "failed_count": len(failed),
                    "delivery_ids": failed,
                    "error": str(last_error),
                },
            )
            raise TransientInfraError(
                f"{len(failed)} of {len(deliveries)} delivery jobs could not be enqueued",
                operation="enqueue",
                extra={"content_id": str(content_id), "delivery_ids": failed},
            ) from last_error

    # ------------------------------------------------------------------
    # Outcome queries
    # ------------------------------------------------------------------

    async def get_content(
        self,
        session: AsyncSession,
        content_id: UUID,
        tenant_id: str | None,
    ) -> NotificationContent | None:
        return await self._content_repository.get_for_tenant(session, content_id, tenant_id)

    async def list_deliveries(
        self,
        session: AsyncSession,
        content_id: UUID,
        tenant_id: str | None,
        *,
        state: DeliveryState | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> SearchResult[NotificationDelivery]:
        """Page through the deliveries fanned out from one content."""
        return await self._delivery_repository.list_for_content(
            session, content_id, tenant_id, state=state, limit=limit, offset=offset
        )

    async def get_delivery_counts(
        self,
        session: AsyncSession,
        content_id: UUID,
        tenant_id: str | None,
    ) -> DeliveryStateCounts:
        """Summarize how far the fan-out of one content has progressed."""
        counts = await self._delivery_repository.count_by_state(session, content_id, tenant_id)
        return DeliveryStateCounts(**counts)


_notification_service: NotificationService | None = None


def get_notification_service() -> NotificationService:
    """Get NotificationService singleton instance."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service


__all__ = ["NotificationService", "get_notification_service"]
