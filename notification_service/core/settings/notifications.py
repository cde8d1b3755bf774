"""Notification dispatch settings.

Covers fan-out limits, processing timeouts and the endpoints of the
concrete channel adapters (user directory and SMS provider).
"""

from __future__ import annotations

from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SmsBackend = Literal["http", "log"]


class NotificationSettings(BaseSettings):
    """Configuration for notification fan-out and delivery processing.

    Environment variables use NOTIFY_ prefix.
    Example: NOTIFY_SEND_TIMEOUT_SECONDS=15, NOTIFY_ENABLED_CHANNELS='["sms"]'
    """

    # Channels
    default_channel: str = Field(
        default="sms",
        min_length=1,
        max_length=50,
        description="Channel used when a creation request does not name one",
    )
    enabled_channels: list[str] = Field(
        default_factory=lambda: ["sms"],
        description="Channels that creation requests may target",
    )

    # Fan-out
    deduplicate_recipients: bool = Field(
        default=False,
        description=(
            "Collapse repeated recipient ids in one request to a single delivery "
            "(first occurrence wins). Off by default: every entry gets its own delivery."
        ),
    )
    max_recipients_per_request: int = Field(
        default=10_000,
        ge=1,
        le=1_000_000,
        description="Upper bound on recipient entries in one creation request",
    )

    # Processing
    resolve_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=300,
        description="Timeout for a directory lookup (seconds); expiry is a transient failure",
    )
    send_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Timeout for a channel send (seconds); expiry is a transient failure",
    )
    persist_sending_state: bool = Field(
        default=False,
        description="Write the intermediate 'sending' state before calling the channel sender",
    )
    max_job_retries: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Redelivery budget handed to the job queue for transient failures",
    )

    # User directory
    directory_base_url: str = Field(
        default="http://localhost:8001",
        description="Base URL of the user directory service",
    )
    directory_api_token: SecretStr | None = Field(
        default=None,
        description="Bearer token for the user directory service",
    )

    # SMS provider
    sms_backend: SmsBackend = Field(
        default="log",
        description="'http' posts to the SMS provider, 'log' only logs (local development)",
    )
    sms_api_url: str = Field(
        default="https://api.twilio.com/2010-04-01",
        description="SMS provider REST base URL (Twilio-compatible)",
    )
    sms_account_sid: str | None = Field(
        default=None,
        description="SMS provider account identifier",
    )
    sms_auth_token: SecretStr | None = Field(
        default=None,
        description="SMS provider auth token",
    )
    sms_from_number: str | None = Field(
        default=None,
        description="Sender phone number in E.164 format",
    )

    @model_validator(mode="after")
    def _check_channels(self) -> Self:
        if not self.enabled_channels:
            raise ValueError("enabled_channels must not be empty")
        if self.default_channel not in self.enabled_channels:
            raise ValueError(
                f"default_channel {self.default_channel!r} is not in enabled_channels"
            )
        if self.sms_backend == "http" and not (
            self.sms_account_sid and self.sms_auth_token and self.sms_from_number
        ):
            raise ValueError(
                "sms_backend='http' requires sms_account_sid, sms_auth_token and sms_from_number"
            )
        return self

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
