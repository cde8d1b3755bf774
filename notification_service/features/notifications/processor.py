"""Delivery processor: drive one delivery from pending to a terminal state.

One call handles one job ``(tenant_id, delivery_id)``:

    load (tenant-scoped) -> already terminal? return
                         -> resolve contact -> not usable? failed(ReceiverInfoNotFound)
                         -> send            -> ChannelError? failed(reason)
                         -> compare-and-set terminal write

No transaction is open while the directory or the sender is awaited. Timeouts
and connectivity problems surface as ``TransientInfraError`` and leave the
row pending for the redelivered job.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from notification_service.core.exceptions import (
    AppException,
    ChannelError,
    DeliveryNotFoundError,
    StorageError,
    TransientInfraError,
)
from notification_service.core.services.base import BaseService
from notification_service.core.settings import get_notification_settings
from notification_service.features.notifications.channels import get_channel_registry
from notification_service.features.notifications.failures import (
    FailureReason,
    classify_exception,
    truncate_error_message,
)
from notification_service.features.notifications.metrics import (
    delivery_completed_total,
    delivery_discarded_total,
    delivery_processing_duration_seconds,
    delivery_transient_errors_total,
)
from notification_service.features.notifications.models import DeliveryState
from notification_service.features.notifications.repository import (
    NotificationContentRepository,
    NotificationDeliveryRepository,
    get_notification_content_repository,
    get_notification_delivery_repository,
)
from notification_service.infra.logging import log_context

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.core.settings import NotificationSettings
    from notification_service.features.notifications.channels import (
        ChannelBinding,
        ChannelRegistry,
        ContactLookup,
    )


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    """What one ``process_delivery`` call did.

    Attributes:
        delivery_id: Delivery the job referred to
        state: Terminal state decided (or found) for the delivery
        failure_reason: Reason when ``state`` is failed
        applied: This call performed the terminal write
        already_terminal: The delivery was terminal before the call started
    """

    delivery_id: UUID
    state: DeliveryState
    failure_reason: str | None = None
    applied: bool = False
    already_terminal: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["delivery_id"] = str(self.delivery_id)
        data["state"] = self.state.value
        return data


@dataclass(frozen=True, slots=True)
class _Decision:
    state: DeliveryState
    failure_reason: str | None = None
    error_message: str | None = None


class DeliveryProcessor(BaseService):
    """Process delivery jobs against the channel registry."""

    def __init__(
        self,
        registry: ChannelRegistry | None = None,
        content_repository: NotificationContentRepository | None = None,
        delivery_repository: NotificationDeliveryRepository | None = None,
        settings: NotificationSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize with collaborators.

        Args:
            registry: Channel bindings; the process-wide registry when omitted
            content_repository: Optional content repository
            delivery_repository: Optional delivery repository
            settings: Notification settings; the cached settings when omitted
            clock: Source of completion timestamps (UTC now by default)
        """
        super().__init__()
        self._registry = registry
        self._content_repository = content_repository or get_notification_content_repository()
        self._delivery_repository = delivery_repository or get_notification_delivery_repository()
        self._settings = settings or get_notification_settings()
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def registry(self) -> ChannelRegistry:
        # Resolved on first use so importing the worker does not build HTTP adapters
        if self._registry is None:
            self._registry = get_channel_registry()
        return self._registry

    async def process_delivery(
        self,
        session: AsyncSession,
        tenant_id: str | None,
        delivery_id: UUID,
    ) -> DeliveryOutcome:
        """Run one delivery job.

        Args:
            session: Database session; committed by this call
            tenant_id: Tenant the job was enqueued for
            delivery_id: Delivery to process

        Returns:
            The outcome. Permanent failures are reported here, not raised.

        Raises:
            DeliveryNotFoundError: No such delivery for this tenant.
            TransientInfraError: Directory or sender unavailable or timed out;
                the delivery stays pending.
            StorageError: Loading or writing the delivery failed.
            ChannelNotConfiguredError: No binding for the delivery's channel.
        """
        with log_context(tenant_id=tenant_id, delivery_id=str(delivery_id)):
            return await self._process(session, tenant_id, delivery_id)

    async def _process(
        self,
        session: AsyncSession,
        tenant_id: str | None,
        delivery_id: UUID,
    ) -> DeliveryOutcome:
        started = time.perf_counter()

        try:
            delivery = await self._delivery_repository.get_for_tenant(
                session, delivery_id, tenant_id
            )
        except SQLAlchemyError as e:
            await session.rollback()
            raise StorageError(
                "Failed to load delivery", extra={"delivery_id": str(delivery_id)}
            ) from e

        if delivery is None:
            await session.rollback()
            delivery_discarded_total.labels(cause="not_found").inc()
            raise DeliveryNotFoundError(delivery_id, tenant_id)

        if delivery.is_terminal:
            state = delivery.delivery_state
            reason = delivery.failure_reason
            await session.rollback()
            self._lazy.debug(lambda: f"delivery {delivery_id} already {state}; nothing to do")
            return DeliveryOutcome(
                delivery_id=delivery_id,
                state=state,
                failure_reason=reason,
                applied=False,
                already_terminal=True,
            )

        channel = delivery.channel
        recipient_id = delivery.recipient_id
        content_id = delivery.content_id

        try:
            content = await self._content_repository.get_for_tenant(
                session, content_id, tenant_id
            )
        except SQLAlchemyError as e:
            await session.rollback()
            raise StorageError(
                "Failed to load notification content",
                extra={"content_id": str(content_id)},
            ) from e
        if content is None:
            await session.rollback()
            raise StorageError(
                "Delivery references missing content",
                extra={"content_id": str(content_id), "delivery_id": str(delivery_id)},
            )

        text = content.text
        properties = dict(content.properties or {})

        # End the read transaction before any network call
        await session.commit()

        binding = self.registry.get(channel)

        if self._settings.persist_sending_state:
            await self._mark_sending(session, delivery_id)

        try:
            decision = await self._deliver(binding, tenant_id, recipient_id, text, properties)
        except TransientInfraError as e:
            delivery_transient_errors_total.labels(
                channel=channel, operation=e.operation or "unknown"
            ).inc()
            self.logger.warning(
                "Delivery attempt aborted by transient failure; leaving it for redelivery",
                extra={"channel": channel, "operation": e.operation, "error": e.detail},
            )
            if self._settings.persist_sending_state:
                await self._release_sending(session, delivery_id)
            raise

        applied = await self._complete(session, delivery_id, decision)

        if applied:
            delivery_completed_total.labels(
                channel=channel,
                state=decision.state.value,
                reason=decision.failure_reason or "none",
            ).inc()
            delivery_processing_duration_seconds.labels(channel=channel).observe(
                time.perf_counter() - started
            )
            self.logger.info(
                "Delivery completed",
                extra={
                    "channel": channel,
                    "state": decision.state.value,
                    "failure_reason": decision.failure_reason,
                },
            )
        else:
            delivery_discarded_total.labels(cause="lost_race").inc()
            self.logger.info(
                "Delivery already completed by another worker; result discarded",
                extra={"channel": channel, "state": decision.state.value},
            )

        return DeliveryOutcome(
            delivery_id=delivery_id,
            state=decision.state,
            failure_reason=decision.failure_reason,
            applied=applied,
        )

    async def _deliver(
        self,
        binding: ChannelBinding,
        tenant_id: str | None,
        recipient_id: str,
        text: str,
        properties: dict[str, Any],
    ) -> _Decision:
        lookup = await self._resolve(binding, tenant_id, recipient_id)
        if not lookup.usable:
            self._lazy.debug(
                lambda: f"recipient {recipient_id!r} not reachable on {binding.channel}: {lookup.status}"
            )
            return _Decision(
                state=DeliveryState.FAILED,
                failure_reason=FailureReason.RECEIVER_INFO_NOT_FOUND,
                error_message=f"Recipient contact {lookup.status} for channel {binding.channel}",
            )

        assert lookup.contact is not None
        try:
            async with asyncio.timeout(self._settings.send_timeout_seconds):
                result = await binding.sender.send(lookup.contact, text, properties)
        except ChannelError as e:
            return self._channel_failure(binding.channel, e)
        except Exception as e:
            classified = classify_exception(e, operation="send")
            if classified is e:
                raise
            raise classified from e

        self._lazy.debug(
            lambda: f"sent via {binding.channel}: provider_message_id={result.provider_message_id}"
        )
        return _Decision(state=DeliveryState.SUCCEEDED)

    async def _resolve(
        self,
        binding: ChannelBinding,
        tenant_id: str | None,
        recipient_id: str,
    ) -> ContactLookup:
        try:
            async with asyncio.timeout(self._settings.resolve_timeout_seconds):
                return await binding.directory.resolve(tenant_id, recipient_id, binding.channel)
        except AppException:
            raise
        except Exception as e:
            classified = classify_exception(e, operation="resolve")
            if classified is e:
                raise
            raise classified from e

    def _channel_failure(self, channel: str, error: ChannelError) -> _Decision:
        reason = error.reason
        if reason == FailureReason.RECEIVER_INFO_NOT_FOUND:
            # Reserved for directory lookups
            self.logger.warning(
                "Channel sender reported a directory failure reason; recording it as rejected",
                extra={"channel": channel, "reported_reason": reason},
            )
            reason = FailureReason.CHANNEL_REJECTED
        return _Decision(
            state=DeliveryState.FAILED,
            failure_reason=reason,
            error_message=truncate_error_message(error.detail),
        )

    async def _mark_sending(self, session: AsyncSession, delivery_id: UUID) -> None:
        try:
            moved = await self._delivery_repository.mark_sending(session, delivery_id)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise StorageError(
                "Failed to record sending state", extra={"delivery_id": str(delivery_id)}
            ) from e
        if not moved:
            self._lazy.debug(lambda: f"delivery {delivery_id} was not pending; reprocessing it")

    async def _release_sending(self, session: AsyncSession, delivery_id: UUID) -> None:
        # A failed reset must not hide the transient error; sending is reprocessed anyway
        try:
            await self._delivery_repository.release_sending(session, delivery_id)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            self.logger.warning(
                "Could not reset delivery to pending after aborted attempt",
                extra={"error": str(e)},
            )

    async def _complete(
        self,
        session: AsyncSession,
        delivery_id: UUID,
        decision: _Decision,
    ) -> bool:
        try:
            applied = await self._delivery_repository.complete(
                session,
                delivery_id,
                state=decision.state,
                failure_reason=decision.failure_reason,
                error_message=truncate_error_message(decision.error_message),
                completion_time=self._clock(),
            )
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            self.logger.error(
                "Failed to persist delivery outcome",
                extra={"state": decision.state.value, "error": str(e)},
            )
            raise StorageError(
                "Failed to persist delivery outcome",
                extra={"delivery_id": str(delivery_id), "state": decision.state.value},
            ) from e
        return applied


_delivery_processor: DeliveryProcessor | None = None


def get_delivery_processor() -> DeliveryProcessor:
    """Get DeliveryProcessor singleton instance."""
    global _delivery_processor
    if _delivery_processor is None:
        _delivery_processor = DeliveryProcessor()
    return _delivery_processor


__all__ = ["DeliveryOutcome", "DeliveryProcessor", "get_delivery_processor"]
