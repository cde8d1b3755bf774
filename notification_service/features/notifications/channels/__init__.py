"""Channel adapters for notification delivery.

Each channel is served by two capabilities:
- a DirectoryAdapter resolving recipients to contact data
- a ChannelSender delivering text + properties to that contact

Bindings live in a ChannelRegistry keyed by channel name. The SMS channel
ships with an HTTP user directory and a Twilio-compatible sender.
"""

from __future__ import annotations

from notification_service.features.notifications.channels.base import (
    ChannelSender,
    ContactLookup,
    DirectoryAdapter,
    LookupStatus,
    SendResult,
)
from notification_service.features.notifications.channels.directory import HttpUserDirectory
from notification_service.features.notifications.channels.registry import (
    ChannelBinding,
    ChannelRegistry,
    build_channel_registry,
    get_channel_registry,
    set_channel_registry,
)
from notification_service.features.notifications.channels.sms import (
    HttpSmsSender,
    LoggingSmsSender,
)

__all__ = [
    "ChannelBinding",
    "ChannelRegistry",
    "ChannelSender",
    "ContactLookup",
    "DirectoryAdapter",
    "HttpSmsSender",
    "HttpUserDirectory",
    "LoggingSmsSender",
    "LookupStatus",
    "SendResult",
    "build_channel_registry",
    "get_channel_registry",
    "set_channel_registry",
]
