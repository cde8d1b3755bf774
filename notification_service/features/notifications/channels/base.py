"""Protocols and result types shared by channel adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol


class LookupStatus(StrEnum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    UNCONFIRMED = "unconfirmed"


@dataclass(frozen=True, slots=True)
class ContactLookup:
    """Outcome of resolving a recipient for one channel.

    Attributes:
        status: found / not_found / unconfirmed
        contact: Channel address (phone number, email address, device token)
            when found
        metadata: Adapter-specific details, for logging only
    """

    status: LookupStatus
    contact: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def found(cls, contact: str, **metadata: Any) -> ContactLookup:
        return cls(LookupStatus.FOUND, contact, metadata)

    @classmethod
    def not_found(cls, **metadata: Any) -> ContactLookup:
        return cls(LookupStatus.NOT_FOUND, None, metadata)

    @classmethod
    def unconfirmed(cls, **metadata: Any) -> ContactLookup:
        return cls(LookupStatus.UNCONFIRMED, None, metadata)

    @property
    def usable(self) -> bool:
        """Only a found lookup with a non-empty address can be sent to."""
        return self.status is LookupStatus.FOUND and bool(self.contact)


@dataclass(frozen=True, slots=True)
class SendResult:
    """Successful send as reported by a channel sender.

    Rejections are not results: senders raise ``ChannelError`` (permanent)
    or ``TransientInfraError`` instead.

    Attributes:
        provider_message_id: Identifier assigned by the provider, if any
        status_code: HTTP status of the provider call, if any
        response_time_ms: Time taken by the provider call
        metadata: Channel-specific details, for logging only
    """

    provider_message_id: str | None = None
    status_code: int | None = None
    response_time_ms: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class DirectoryAdapter(Protocol):
    """Resolves recipients to channel contact data.

    Implementations return ``ContactLookup.not_found()`` /
    ``ContactLookup.unconfirmed()`` for recipients that cannot be reached and
    raise (timeouts, connection errors, ``TransientInfraError``) only when
    the directory itself is unavailable.
    """

    async def resolve(
        self,
        tenant_id: str | None,
        recipient_id: str,
        channel: str,
    ) -> ContactLookup: ...


class ChannelSender(Protocol):
    """Sends content to one resolved contact.

    Raises:
        ChannelError: The channel permanently rejected the message.
        TransientInfraError: The provider is unavailable; try again later.
    """

    async def send(
        self,
        contact: str,
        text: str,
        properties: dict[str, Any],
    ) -> SendResult: ...


__all__ = [
    "ChannelSender",
    "ContactLookup",
    "DirectoryAdapter",
    "LookupStatus",
    "SendResult",
]
