"""Unit tests for channel bindings."""

from __future__ import annotations

import pytest
from pydantic import SecretStr

from notification_service.core.exceptions import ChannelNotConfiguredError
from notification_service.core.settings import NotificationSettings
from notification_service.features.notifications.channels import (
    ChannelRegistry,
    HttpSmsSender,
    HttpUserDirectory,
    LoggingSmsSender,
    build_channel_registry,
    get_channel_registry,
    set_channel_registry,
)
from tests.fixtures.notifications import InMemoryDirectory, RecordingSender


@pytest.mark.unit
class TestChannelRegistry:
    """Tests for ChannelRegistry."""

    def test_get_returns_binding(self):
        registry = ChannelRegistry()
        directory, sender = InMemoryDirectory(), RecordingSender()
        registry.register("sms", directory, sender)

        binding = registry.get("sms")

        assert binding.channel == "sms"
        assert binding.directory is directory
        assert binding.sender is sender
        assert "sms" in registry

    def test_missing_channel_raises(self):
        with pytest.raises(ChannelNotConfiguredError) as exc_info:
            ChannelRegistry().get("email")

        assert exc_info.value.channel == "email"
        assert exc_info.value.retryable is True

    def test_register_replaces_binding(self):
        registry = ChannelRegistry()
        registry.register("sms", InMemoryDirectory(), RecordingSender())
        replacement = RecordingSender()

        registry.register("sms", InMemoryDirectory(), replacement)

        assert registry.get("sms").sender is replacement
        assert registry.channels == ["sms"]


@pytest.mark.unit
class TestBuildChannelRegistry:
    """Tests for build_channel_registry."""

    def test_log_backend(self):
        registry = build_channel_registry(NotificationSettings(sms_backend="log"))

        binding = registry.get("sms")
        assert isinstance(binding.directory, HttpUserDirectory)
        assert isinstance(binding.sender, LoggingSmsSender)

    def test_http_backend(self):
        settings = NotificationSettings(
            sms_backend="http",
            sms_account_sid="AC123",
            sms_auth_token=SecretStr("secret"),
            sms_from_number="+15550009999",
            directory_api_token=SecretStr("dir-token"),
        )

        binding = build_channel_registry(settings).get("sms")

        assert isinstance(binding.sender, HttpSmsSender)
        assert binding.sender.account_sid == "AC123"
        assert binding.directory.api_token == "dir-token"

    def test_enabled_channel_without_sender_stays_unbound(self):
        registry = build_channel_registry(
            NotificationSettings(enabled_channels=["sms", "email"])
        )

        assert registry.channels == ["sms"]
        with pytest.raises(ChannelNotConfiguredError):
            registry.get("email")


@pytest.mark.unit
def test_process_registry_can_be_replaced():
    custom = ChannelRegistry()
    try:
        set_channel_registry(custom)
        assert get_channel_registry() is custom
    finally:
        set_channel_registry(None)
