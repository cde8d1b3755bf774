"""Logging settings for worker and producer processes."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """How records are formatted and where they go.

    Environment variables use LOG_ prefix.
    Example: LOG_LEVEL=DEBUG, LOG_JSON_LOGS=false, LOG_FILE_ENABLED=true

    Workers log JSON Lines to stderr by default so a collector can index the
    ``tenant_id`` / ``delivery_id`` fields every processing record carries.
    """

    service_name: str = Field(
        default="notification-service",
        description="Static 'service' field on every JSON record",
    )
    level: LogLevel = Field(default="INFO", description="Root logger level")
    json_logs: bool = Field(
        default=True,
        description="JSON Lines output; plain text when false (local runs)",
    )

    # Destinations
    console_enabled: bool = Field(default=True, description="Write records to stderr")
    file_enabled: bool = Field(default=False, description="Also write a rotating file")
    file_path: Path = Field(
        default=Path("logs/notification-service.log.jsonl"),
        description="Rotating file location (used when file_enabled)",
    )
    file_max_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Rotate the file once it reaches this size",
    )
    file_backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Rotated files to keep",
    )

    # Record enrichment
    include_context: bool = Field(
        default=True,
        description="Copy the tenant/delivery log context onto each record",
    )
    include_process_info: bool = Field(
        default=False,
        description="Add process id and name (several workers per host)",
    )

    def to_logging_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``configure_logging``."""
        return {
            "log_level": self.level,
            "service_name": self.service_name,
            "json_logs": self.json_logs,
            "console_enabled": self.console_enabled,
            "file_path": self.file_path if self.file_enabled else None,
            "file_max_bytes": self.file_max_bytes,
            "file_backup_count": self.file_backup_count,
            "include_context": self.include_context,
            "include_process_info": self.include_process_info,
        }

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
