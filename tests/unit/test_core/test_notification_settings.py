"""Unit tests for Pydantic settings."""

from __future__ import annotations

import pytest
from pydantic import SecretStr, ValidationError

from notification_service.core.settings.loader import (
    clear_all_caches,
    get_notification_settings,
    get_rabbit_settings,
)
from notification_service.core.settings.logs import LoggingSettings
from notification_service.core.settings.notifications import NotificationSettings
from notification_service.core.settings.rabbit import RabbitSettings


@pytest.fixture
def fresh_settings():
    """Clear cached settings before and after a test that changes the environment."""
    clear_all_caches()
    yield
    clear_all_caches()


@pytest.mark.unit
class TestNotificationSettings:
    """Test suite for NotificationSettings."""

    def test_defaults(self):
        settings = NotificationSettings()

        assert settings.default_channel == "sms"
        assert settings.enabled_channels == ["sms"]
        assert settings.deduplicate_recipients is False
        assert settings.persist_sending_state is False

    def test_frozen(self):
        settings = NotificationSettings()

        with pytest.raises(ValidationError):
            settings.send_timeout_seconds = 1.0

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("NOTIFY_SEND_TIMEOUT_SECONDS", "15")
        monkeypatch.setenv("NOTIFY_ENABLED_CHANNELS", '["sms", "email"]')
        monkeypatch.setenv("NOTIFY_DEDUPLICATE_RECIPIENTS", "true")

        settings = NotificationSettings()

        assert settings.send_timeout_seconds == 15
        assert settings.enabled_channels == ["sms", "email"]
        assert settings.deduplicate_recipients is True

    def test_default_channel_must_be_enabled(self):
        with pytest.raises(ValidationError, match="not in enabled_channels"):
            NotificationSettings(default_channel="email", enabled_channels=["sms"])

    def test_enabled_channels_must_not_be_empty(self):
        with pytest.raises(ValidationError, match="must not be empty"):
            NotificationSettings(enabled_channels=[])

    def test_http_backend_requires_credentials(self):
        with pytest.raises(ValidationError, match="sms_account_sid"):
            NotificationSettings(sms_backend="http", sms_account_sid="AC123")

    def test_http_backend_with_credentials(self):
        settings = NotificationSettings(
            sms_backend="http",
            sms_account_sid="AC123",
            sms_auth_token=SecretStr("secret"),
            sms_from_number="+15550009999",
        )

        assert settings.sms_auth_token.get_secret_value() == "secret"

    @pytest.mark.parametrize(
        "field",
        ["resolve_timeout_seconds", "send_timeout_seconds"],
    )
    def test_timeouts_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            NotificationSettings(**{field: 0})


@pytest.mark.unit
class TestRabbitSettings:
    """Test suite for RabbitSettings."""

    def test_disabled_by_default(self):
        settings = RabbitSettings(enabled=False)

        assert settings.is_configured is False
        with pytest.raises(ValueError, match="not enabled"):
            settings.get_url()

    def test_enabled(self):
        settings = RabbitSettings(enabled=True, url=SecretStr("amqp://user:pw@rabbit:5672/"))

        assert settings.is_configured is True
        assert settings.get_url() == "amqp://user:pw@rabbit:5672/"

    def test_queue_name_pattern(self):
        with pytest.raises(ValidationError):
            RabbitSettings(queue_name="bad queue name")


@pytest.mark.unit
def test_logging_settings_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("LOG_JSON_LOGS", "false")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    settings = LoggingSettings()

    assert settings.json_logs is False
    assert settings.level == "DEBUG"


@pytest.mark.unit
def test_loaders_cache_until_cleared(monkeypatch: pytest.MonkeyPatch, fresh_settings):
    first = get_notification_settings()
    assert get_notification_settings() is first

    monkeypatch.setenv("NOTIFY_MAX_JOB_RETRIES", "9")
    assert get_notification_settings().max_job_retries == first.max_job_retries

    clear_all_caches()

    assert get_notification_settings().max_job_retries == 9
    assert get_rabbit_settings().enabled is False
