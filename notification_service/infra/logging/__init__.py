"""Logging infrastructure.

Structured logging for the API-less worker process:
- JSONL output with OpenTelemetry trace correlation
- Automatic context injection (tenant_id, delivery_id, ...)
- QueueHandler + QueueListener for non-blocking I/O
- Lazy evaluation for DEBUG messages

Basic usage:
    from notification_service.infra.logging import get_lazy_logger, log_context
    import logging

    logger = logging.getLogger(__name__)

    with log_context(tenant_id="t-1", delivery_id="0190..."):
        logger.info("Processing delivery")  # carries tenant_id and delivery_id

    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"Row: {row!r}")  # only formatted when DEBUG is on
"""

from notification_service.infra.logging.config import (
    configure_logging,
    setup_logging,
    shutdown,
)
from notification_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    log_context,
    set_log_context,
)
from notification_service.infra.logging.formatters import JSONFormatter
from notification_service.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
