"""Channel registry: which directory adapter and sender serve each channel."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from notification_service.core.exceptions import ChannelNotConfiguredError
from notification_service.core.settings import get_notification_settings
from notification_service.features.notifications.channels.directory import HttpUserDirectory
from notification_service.features.notifications.channels.sms import (
    HttpSmsSender,
    LoggingSmsSender,
)

if TYPE_CHECKING:
    from notification_service.core.settings import NotificationSettings
    from notification_service.features.notifications.channels.base import (
        ChannelSender,
        DirectoryAdapter,
    )

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChannelBinding:
    """Capabilities the processor needs for one channel."""

    channel: str
    directory: DirectoryAdapter
    sender: ChannelSender


class ChannelRegistry:
    """Maps channel names to their directory adapter and sender.

    The processor's state machine is the same for every channel; only the
    binding looked up here differs.
    """

    def __init__(self) -> None:
        self._bindings: dict[str, ChannelBinding] = {}

    def register(
        self,
        channel: str,
        directory: DirectoryAdapter,
        sender: ChannelSender,
    ) -> ChannelBinding:
        """Bind (or rebind) a channel."""
        binding = ChannelBinding(channel=channel, directory=directory, sender=sender)
        if channel in self._bindings:
            logger.warning("Replacing channel binding", extra={"channel": channel})
        self._bindings[channel] = binding
        return binding

    def get(self, channel: str) -> ChannelBinding:
        """Return the binding for ``channel``.

        Raises:
            ChannelNotConfiguredError: No binding is registered.
        """
        try:
            return self._bindings[channel]
        except KeyError:
            raise ChannelNotConfiguredError(channel) from None

    def __contains__(self, channel: object) -> bool:
        return channel in self._bindings

    @property
    def channels(self) -> list[str]:
        return sorted(self._bindings)


def build_channel_registry(settings: NotificationSettings | None = None) -> ChannelRegistry:
    """Build the registry for the configured deployment.

    The SMS channel is bound to the HTTP user directory plus either the
    Twilio-compatible HTTP sender or the logging sender, depending on
    ``sms_backend``.
    """
    settings = settings or get_notification_settings()
    registry = ChannelRegistry()

    directory = HttpUserDirectory(
        settings.directory_base_url,
        api_token=(
            settings.directory_api_token.get_secret_value()
            if settings.directory_api_token
            else None
        ),
        timeout_seconds=settings.resolve_timeout_seconds,
    )

    if "sms" in settings.enabled_channels:
        sender: ChannelSender
        if settings.sms_backend == "http":
            sender = HttpSmsSender(
                settings.sms_api_url,
                settings.sms_account_sid or "",
                settings.sms_auth_token.get_secret_value() if settings.sms_auth_token else "",
                settings.sms_from_number or "",
                timeout_seconds=settings.send_timeout_seconds,
            )
        else:
            sender = LoggingSmsSender()
        registry.register("sms", directory, sender)

    unbound = [c for c in settings.enabled_channels if c not in registry]
    if unbound:
        logger.warning(
            "Enabled channels have no sender binding; their deliveries will be retried",
            extra={"channels": unbound},
        )

    return registry


_registry: ChannelRegistry | None = None


def get_channel_registry() -> ChannelRegistry:
    """Get or create the process-wide channel registry."""
    global _registry
    if _registry is None:
        _registry = build_channel_registry()
    return _registry


def set_channel_registry(registry: ChannelRegistry | None) -> None:
    """Replace the process-wide registry (tests, custom channel wiring)."""
    global _registry
    _registry = registry


__all__ = [
    "ChannelBinding",
    "ChannelRegistry",
    "build_channel_registry",
    "get_channel_registry",
    "set_channel_registry",
]
