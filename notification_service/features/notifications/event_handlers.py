"""Handler for notification creation events.

Other services request notifications by publishing a ``CreateNotificationEvent``
(through ``create_notification_task``). The handler owns the session for
the fan-out; everything else is the coordinator's job.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from notification_service.core.exceptions import InvalidInputError
from notification_service.features.notifications.schemas import CreateNotificationEvent
from notification_service.features.notifications.service import get_notification_service
from notification_service.infra.database.session import get_async_session
from notification_service.infra.logging import log_context

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.features.notifications.service import NotificationService

logger = logging.getLogger(__name__)


async def on_create_notification(
    event: CreateNotificationEvent | dict[str, Any],
    *,
    service: NotificationService | None = None,
    session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]] | None = None,
) -> UUID:
    """Create the notification described by ``event``.

    Args:
        event: The event, or its JSON payload
        service: Coordinator; the process-wide one when omitted
        session_factory: Session context manager factory (defaults to
            ``get_async_session``)

    Returns:
        Id of the created content.

    Raises:
        InvalidInputError: The event payload or the request it carries is invalid.
        StorageError: The fan-out could not be persisted.
        TransientInfraError: Some delivery jobs could not be enqueued.
    """
    if not isinstance(event, CreateNotificationEvent):
        try:
            event = CreateNotificationEvent.model_validate(event)
        except ValidationError as e:
            raise InvalidInputError(
                "Malformed create-notification event",
                extra={
                    "errors": e.errors(
                        include_url=False, include_context=False, include_input=False
                    )
                },
            ) from e

    service = service or get_notification_service()
    session_factory = session_factory or get_async_session

    with log_context(tenant_id=event.tenant_id):
        logger.info(
            "Handling create-notification event",
            extra={"recipient_count": len(event.recipient_ids), "channel": event.channel},
        )
        async with session_factory() as session:
            return await service.create_notification(
                session,
                event.tenant_id,
                event.recipient_ids,
                event.text,
                event.properties,
                channel=event.channel,
            )


__all__ = ["on_create_notification"]
