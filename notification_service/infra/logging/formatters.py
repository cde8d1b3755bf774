"""JSON Lines formatter with trace correlation."""
from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from opentelemetry import trace

# Attributes every LogRecord has; anything else came from ``extra`` or the context filter
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}

# Correlation fields placed right after the fixed keys so they are easy to spot
_LEADING_FIELDS = ("tenant_id", "delivery_id", "content_id")


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON object on one line.

    Fixed keys come first (``level``, ``logger``, ``message``, ``timestamp``),
    then the correlation ids, then any other ``extra`` field. When an
    OpenTelemetry span is active its ``trace_id`` / ``span_id`` are added so
    worker logs line up with traces. Values JSON cannot encode (UUIDs,
    datetimes) are rendered with ``str``.

    Example output:
        ```json
        {"level": "INFO", "logger": "notification_service.features.notifications.processor", "message": "Delivery completed", "timestamp": "2026-01-01T00:00:00.123Z", "tenant_id": "t-1", "delivery_id": "0190...", "state": "succeeded"}
        ```
    """

    def __init__(
        self,
        fmt_keys: dict[str, str] | None = None,
        static: dict[str, Any] | None = None,
        include_process_info: bool = False,
    ) -> None:
        """Initialize JSON formatter.

        Args:
            fmt_keys: Output key -> LogRecord attribute for the fixed keys.
            static: Fields added to every record (e.g., {"service": "notification-service"}).
            include_process_info: Include process ID and name.
        """
        super().__init__()
        self.fmt_keys = fmt_keys or {"level": "levelname", "logger": "name", "message": "message"}
        self.static = static or {}
        self.include_process_info = include_process_info

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        data: dict[str, Any] = {key: getattr(record, attr, None) for key, attr in self.fmt_keys.items()}
        data["timestamp"] = (
            datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )

        extras = {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}
        for key in _LEADING_FIELDS:
            if key in extras:
                data[key] = extras.pop(key)

        if self.include_process_info:
            data["process_id"] = record.process
            data["process_name"] = record.processName

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            data["trace_id"] = format(span_context.trace_id, "032x")
            data["span_id"] = format(span_context.span_id, "016x")

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info).replace("\n", "\\n")
        if record.stack_info:
            data["stack_trace"] = record.stack_info.replace("\n", "\\n")

        data.update(self.static)
        for key, value in extras.items():
            data.setdefault(key, value)

        return json.dumps(data, ensure_ascii=False, default=str)
