"""Logging configuration setup.

Builds the root logger with:
- dictConfig for formatters and filters
- QueueHandler + QueueListener so handler I/O never blocks the event loop
- ContextInjectingFilter so tenant/delivery context reaches every record
- JSONL (default) or plain-text output
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import TYPE_CHECKING, Any

from notification_service.infra.logging.context import ContextInjectingFilter
from notification_service.infra.logging.formatters import JSONFormatter

if TYPE_CHECKING:
    from notification_service.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)

_TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
_TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"

_listener: QueueListener | None = None
_queue_handler: QueueHandler | None = None
_LOGGING_INITIALIZED = False


def shutdown() -> None:
    """Stop the QueueListener, flushing pending records, and detach its handler."""
    global _listener, _queue_handler

    if _listener is not None:
        _listener.stop()
        _listener = None

    if _queue_handler is not None:
        logging.getLogger().removeHandler(_queue_handler)
        _queue_handler = None


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Configure logging once per process.

    Args:
        log_settings: Logging settings; loaded via get_logging_settings() when omitted.
        force: Reconfigure even if logging was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    if log_settings is None:
        from notification_service.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    configure_logging(**{**log_settings.to_logging_kwargs(), **configure_kwargs})
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    *,
    service_name: str = "notification-service",
    json_logs: bool = True,
    console_enabled: bool = True,
    file_path: str | Path | None = None,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    include_context: bool = True,
    include_process_info: bool = False,
    capture_warnings: bool = True,
    **kwargs: Any,
) -> None:
    """Configure the root logger.

    All output handlers hang off a single QueueListener; the root logger only
    carries the QueueHandler. Application loggers propagate to root.

    Args:
        log_level: Root logger level.
        service_name: Static ``service`` field added to JSON records.
        json_logs: Emit JSON Lines instead of plain text.
        console_enabled: Log to stderr.
        file_path: Rotating log file path, or None to disable file logging.
        file_max_bytes: Maximum file size before rotation.
        file_backup_count: Number of rotated files to keep.
        include_context: Attach ContextInjectingFilter to the queue handler.
        include_process_info: Include process ID and name in records.
        capture_warnings: Forward ``warnings`` to logging.
        **kwargs: Ignored (logged at DEBUG).
    """
    global _listener, _queue_handler

    shutdown()

    if capture_warnings:
        logging.captureWarnings(True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "root": {"level": log_level.upper(), "handlers": []},
        }
    )

    formatter = _build_formatter(
        json_logs=json_logs,
        service_name=service_name,
        include_process_info=include_process_info,
    )

    handlers: list[logging.Handler] = []
    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=file_max_bytes,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    log_queue: Queue[logging.LogRecord] = Queue()
    _queue_handler = QueueHandler(log_queue)
    # Context must be read on the emitting task, not on the listener thread
    if include_context:
        _queue_handler.addFilter(ContextInjectingFilter())
    logging.getLogger().addHandler(_queue_handler)

    if handlers:
        _listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
        _listener.start()
        atexit.register(shutdown)

    if kwargs:
        logger.debug("Unused logging kwargs supplied: %s", ", ".join(sorted(kwargs)))


def _build_formatter(
    *,
    json_logs: bool,
    service_name: str,
    include_process_info: bool,
) -> logging.Formatter:
    if json_logs:
        return JSONFormatter(
            fmt_keys={"level": "levelname", "logger": "name", "message": "message"},
            static={"service": service_name},
            include_process_info=include_process_info,
        )
    fmt = _TEXT_FORMAT
    if include_process_info:
        fmt = "%(asctime)s - %(levelname)s - [%(processName)s:%(process)d] - %(name)s - %(message)s"
    return logging.Formatter(fmt=fmt, datefmt=_TEXT_DATEFMT)
