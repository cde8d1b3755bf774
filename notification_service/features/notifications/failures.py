"""Failure reasons and exception classification for delivery processing.

Only two things can end a delivery as ``failed``: the recipient's contact
data could not be resolved (``ReceiverInfoNotFound``), or the channel
rejected the send with its own reason. Everything that smells of flaky
infrastructure is turned into ``TransientInfraError`` here so the processor
can leave the delivery untouched and let the queue redeliver.
"""

from __future__ import annotations

import httpx

from notification_service.core.exceptions import AppException, TransientInfraError

MAX_ERROR_MESSAGE_LENGTH = 1000

# HTTP statuses that mean "try again later" rather than "never"
RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


class FailureReason:
    """Failure reasons recorded on deliveries by the engine itself.

    Channel senders report their own reasons through ``ChannelError``; the
    constants here are the ones the stock adapters use.
    """

    RECEIVER_INFO_NOT_FOUND = "ReceiverInfoNotFound"
    INVALID_DESTINATION = "InvalidDestination"
    CHANNEL_REJECTED = "ChannelRejected"


def is_retryable_status(status_code: int) -> bool:
    """Whether an HTTP status from a provider or directory is transient."""
    return status_code in RETRYABLE_STATUS_CODES or status_code >= 500


def classify_exception(exc: BaseException, *, operation: str) -> BaseException:
    """Map infrastructure exceptions onto the engine's taxonomy.

    Args:
        exc: Exception raised by a directory or sender call.
        operation: ``"resolve"`` or ``"send"``; recorded on the error.

    Returns:
        A ``TransientInfraError`` for timeouts, connectivity problems and
        retryable HTTP statuses. ``AppException`` subclasses and anything
        unrecognized are returned unchanged so the caller re-raises the
        original.
    """
    if isinstance(exc, AppException):
        return exc

    if isinstance(exc, TimeoutError | httpx.TimeoutException):
        return TransientInfraError(
            f"{operation} timed out",
            operation=operation,
            extra={"error_type": type(exc).__name__},
        )

    if isinstance(exc, httpx.HTTPStatusError) and is_retryable_status(
        exc.response.status_code
    ):
        return TransientInfraError(
            f"{operation} failed with HTTP {exc.response.status_code}",
            operation=operation,
            extra={"status_code": exc.response.status_code},
        )

    if isinstance(exc, httpx.TransportError | ConnectionError | OSError):
        return TransientInfraError(
            f"{operation} failed: {exc}",
            operation=operation,
            extra={"error_type": type(exc).__name__},
        )

    return exc


def truncate_error_message(message: str | None) -> str | None:
    """Clip diagnostic text to what the delivery row stores."""
    if message is None:
        return None
    if len(message) <= MAX_ERROR_MESSAGE_LENGTH:
        return message
    return message[: MAX_ERROR_MESSAGE_LENGTH - 3] + "..."


__all__ = [
    "MAX_ERROR_MESSAGE_LENGTH",
    "RETRYABLE_STATUS_CODES",
    "FailureReason",
    "classify_exception",
    "is_retryable_status",
    "truncate_error_message",
]
