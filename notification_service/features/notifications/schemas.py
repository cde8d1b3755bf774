"""Pydantic schemas for notification creation, jobs and events."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_properties(value: Any) -> dict[str, Any]:
    """Validate and canonicalize notification properties.

    Accepts a mapping or a sequence of ``(key, value)`` pairs. Keys must be
    unique strings and values must be JSON representable (no NaN/Infinity,
    no arbitrary objects). The result is a fresh plain ``dict`` whose values
    went through a JSON round-trip, so what is stored is exactly what will be
    read back.

    Raises:
        ValueError: On non-string or duplicate keys, malformed pairs, or
            values that are not JSON serializable.
    """
    if value is None:
        return {}

    if isinstance(value, Mapping):
        items = list(value.items())
    elif isinstance(value, (list, tuple)):
        items = []
        for index, pair in enumerate(value):
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                raise ValueError(f"properties[{index}] must be a (key, value) pair")
            items.append((pair[0], pair[1]))
    else:
        raise ValueError("properties must be a mapping or a sequence of (key, value) pairs")

    result: dict[str, Any] = {}
    for key, item in items:
        if not isinstance(key, str):
            raise ValueError(f"property keys must be strings, got {type(key).__name__}")
        if key in result:
            raise ValueError(f"duplicate property key {key!r}")
        result[key] = item

    try:
        encoded = json.dumps(result, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValueError(f"properties must be JSON serializable: {e}") from e
    return json.loads(encoded)


def _coerce_recipient_ids(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [str(r) if isinstance(r, UUID) else r for r in value]
    return value


class CreateNotificationRequest(BaseModel):
    """Validated input of the fan-out coordinator.

    ``recipient_ids`` keeps order and duplicates; the coordinator decides
    whether to collapse them.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    tenant_id: str | None = Field(
        default=None,
        max_length=255,
        description="Tenant scope; None in single-tenant mode",
    )
    recipient_ids: list[str] = Field(
        default_factory=list,
        description="Ordered recipient identifiers (duplicates allowed)",
    )
    text: str = Field(default="", description="Free-text body")
    properties: dict[str, Any] = Field(
        default_factory=dict,
        description="Structured properties (unique string keys, JSON values)",
    )
    channel: str = Field(..., min_length=1, max_length=50)

    @field_validator("recipient_ids", mode="before")
    @classmethod
    def _stringify_recipient_ids(cls, value: Any) -> Any:
        return _coerce_recipient_ids(value)

    @field_validator("recipient_ids")
    @classmethod
    def _check_recipient_ids(cls, value: list[str]) -> list[str]:
        for index, recipient_id in enumerate(value):
            if not recipient_id or len(recipient_id) > 255:
                raise ValueError(f"recipient_ids[{index}] must be 1-255 characters")
        return value

    @field_validator("properties", mode="before")
    @classmethod
    def _normalize_properties(cls, value: Any) -> dict[str, Any]:
        return normalize_properties(value)


class CreateNotificationEvent(BaseModel):
    """Creation trigger published by other services.

    ``properties`` may arrive as an object or, when the producer needs to
    preserve key order or may repeat keys, as a list of ``[key, value]``
    pairs; both are validated by the coordinator.
    """

    model_config = ConfigDict(frozen=True)

    tenant_id: str | None = None
    recipient_ids: list[str] = Field(default_factory=list)
    text: str = ""
    properties: Any = Field(default_factory=dict)
    channel: str | None = Field(
        default=None,
        description="Target channel; the configured default channel when omitted",
    )

    @field_validator("recipient_ids", mode="before")
    @classmethod
    def _stringify_recipient_ids(cls, value: Any) -> Any:
        return _coerce_recipient_ids(value)


class DeliveryJob(BaseModel):
    """Payload of one processing job: which delivery, in which tenant."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str | None
    delivery_id: UUID


class DeliveryStateCounts(BaseModel):
    """Number of deliveries per state for one notification."""

    pending: int = 0
    sending: int = 0
    succeeded: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.sending + self.succeeded + self.failed

    @property
    def completed(self) -> bool:
        """Whether every delivery has reached a terminal state."""
        return self.pending == 0 and self.sending == 0

