"""Fakes for the notification channel and queue seams.

The directory resolves SMS contacts from a dict of user documents shaped
like the HTTP directory's payload; the sender records what it was asked to
send. Both can be told to fail or stall.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from notification_service.features.notifications.channels import ContactLookup, SendResult
from notification_service.features.notifications.models import NotificationDelivery

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.features.notifications.schemas import DeliveryJob

CONFIRMED_USER = "confirmed-user"
UNCONFIRMED_USER = "unconfirmed-user"
NO_PHONE_USER = "no-phone-user"
UNKNOWN_USER = "unknown-user"


def default_users() -> dict[str, dict[str, Any]]:
    return {
        CONFIRMED_USER: {"phone_number": "+15550000001", "phone_number_confirmed": True},
        UNCONFIRMED_USER: {"phone_number": "+15550000002", "phone_number_confirmed": False},
        NO_PHONE_USER: {"phone_number": None, "phone_number_confirmed": False},
    }


class InMemoryDirectory:
    """Directory adapter backed by a dict; optional failure, delay or gate."""

    def __init__(
        self,
        users: dict[str, dict[str, Any]] | None = None,
        *,
        error: BaseException | None = None,
        delay: float = 0.0,
    ) -> None:
        self.users = users or {}
        self.error = error
        self.delay = delay
        self.gate: asyncio.Event | None = None
        self.calls: list[tuple[str | None, str, str]] = []

    async def resolve(self, tenant_id: str | None, recipient_id: str, channel: str) -> ContactLookup:
        self.calls.append((tenant_id, recipient_id, channel))
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

        user = self.users.get(recipient_id)
        if user is None:
            return ContactLookup.not_found()
        phone = user.get("phone_number")
        if not phone:
            return ContactLookup.not_found()
        if not user.get("phone_number_confirmed"):
            return ContactLookup.unconfirmed()
        return ContactLookup.found(phone)


class RecordingSender:
    """Channel sender that records sends and optionally raises."""

    def __init__(self, *, error: BaseException | None = None, delay: float = 0.0) -> None:
        self.error = error
        self.delay = delay
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    async def send(self, contact: str, text: str, properties: dict[str, Any]) -> SendResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.sent.append((contact, text, properties))
        return SendResult(provider_message_id=f"msg-{len(self.sent)}")


class InMemoryJobQueue:
    """Job queue that keeps enqueued jobs in a list."""

    def __init__(self) -> None:
        self.jobs: list[DeliveryJob] = []

    async def enqueue(self, job: DeliveryJob) -> None:
        self.jobs.append(job)


class FailingJobQueue:
    """Job queue whose broker is unreachable after ``succeed_first`` jobs."""

    def __init__(self, succeed_first: int = 0) -> None:
        self.succeed_first = succeed_first
        self.jobs: list[DeliveryJob] = []

    async def enqueue(self, job: DeliveryJob) -> None:
        if len(self.jobs) >= self.succeed_first:
            raise ConnectionError("broker unreachable")
        self.jobs.append(job)


async def load_delivery(session: AsyncSession, delivery_id: UUID) -> NotificationDelivery:
    """Read a delivery as stored, bypassing the session's identity map."""
    return await session.get(NotificationDelivery, delivery_id, populate_existing=True)


async def load_deliveries(session: AsyncSession, content_id: UUID) -> list[NotificationDelivery]:
    stmt = (
        select(NotificationDelivery)
        .where(NotificationDelivery.content_id == content_id)
        .order_by(NotificationDelivery.id)
        .execution_options(populate_existing=True)
    )
    return list((await session.execute(stmt)).scalars().all())
