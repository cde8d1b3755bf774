"""Custom exception classes for the service.

Every error the dispatch engine raises derives from ``AppException``. The
``retryable`` flag tells the job layer what to do with an error that escapes
a task: retryable errors are re-raised so the broker redelivers the job,
permanent ones are either recorded on the delivery or end the job.

    ==========================  ==========  ===========================================
    Error                       retryable   Effect
    ==========================  ==========  ===========================================
    InvalidInputError           no          creation rejected, nothing persisted
    StorageError                yes         creation aborted / processing job redelivered
    TransientInfraError         yes         delivery left pending, job redelivered
    DirectoryError              yes         unusable directory response, as above
    ChannelError(reason)        no          delivery failed with ``reason``
    DeliveryNotFoundError       no          job discarded
    ChannelNotConfiguredError   yes         deployment error, job redelivered
    ==========================  ==========  ===========================================
"""

from __future__ import annotations

from typing import Any, ClassVar


class AppException(Exception):
    """Base application exception.

    Attributes:
        detail: Human-readable error message.
        type: Stable machine-readable error identifier.
        title: Short, human-readable summary of the problem type.
        extra: Additional context-specific information about the error.
        retryable: Whether re-running the failed operation may succeed.

    Example:
        raise AppException(
            detail="Directory returned malformed payload",
            type="directory-error",
            extra={"recipient_id": "u-1"},
        )
    """

    retryable: ClassVar[bool] = False
    default_title: ClassVar[str] = "Error"

    def __init__(
        self,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.detail = detail
        self.type = type
        self.title = title or self.default_title
        self.extra = extra or {}
        super().__init__(detail)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logs and task results."""
        return {
            "type": self.type,
            "title": self.title,
            "detail": self.detail,
            "retryable": self.retryable,
            **self.extra,
        }


class InvalidInputError(AppException):
    """Malformed creation request, rejected before anything is persisted.

    Example:
        raise InvalidInputError(
            detail="Duplicate property key 'MyProperty'",
            extra={"field": "properties", "key": "MyProperty"},
        )
    """

    default_title = "Invalid Input"

    def __init__(
        self,
        detail: str,
        type: str = "invalid-input",
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(detail=detail, type=type, extra=extra)


class StorageError(AppException):
    """Persistence layer unavailable or a write failed.

    Raised from creation after the transaction was rolled back, and from
    processing when a load or terminal write fails.
    """

    retryable = True
    default_title = "Storage Error"

    def __init__(
        self,
        detail: str,
        type: str = "storage-error",
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(detail=detail, type=type, extra=extra)


class TransientInfraError(AppException):
    """Timeout or connectivity failure talking to a directory or sender.

    The delivery is left non-terminal; the error is surfaced so the queue
    can redeliver the job.

    Attributes:
        operation: Which call failed (``"resolve"`` or ``"send"``), when known.
    """

    retryable = True
    default_title = "Transient Infrastructure Error"

    def __init__(
        self,
        detail: str,
        *,
        operation: str | None = None,
        type: str = "transient-infra-error",
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.operation = operation
        merged = {**(extra or {})}
        if operation is not None:
            merged.setdefault("operation", operation)
        super().__init__(detail=detail, type=type, extra=merged)


class DirectoryError(TransientInfraError):
    """The user directory answered, but not with a usable user document.

    Covers auth or conflict statuses and bodies that are not a JSON object
    (a proxy error page, a truncated response). The recipient may well
    exist, so the delivery stays pending and the job is redelivered.

    Example:
        raise DirectoryError("Directory returned HTTP 403", status_code=403)
    """

    default_title = "Directory Error"

    def __init__(
        self,
        detail: str,
        *,
        status_code: int | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        merged = {**(extra or {})}
        if status_code is not None:
            merged["status_code"] = status_code
        super().__init__(detail, operation="resolve", type="directory-error", extra=merged)


class ChannelError(AppException):
    """The channel explicitly rejected a send.

    ``reason`` is a short, stable classification stored as the delivery's
    failure reason (e.g. ``"InvalidDestination"``).

    Example:
        raise ChannelError("InvalidDestination", detail="Provider returned 400")
    """

    default_title = "Channel Error"

    def __init__(
        self,
        reason: str,
        detail: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        if not reason:
            raise ValueError("ChannelError requires a non-empty reason")
        self.reason = reason
        super().__init__(
            detail=detail or reason,
            type="channel-error",
            extra={"reason": reason, **(extra or {})},
        )


class DeliveryNotFoundError(AppException):
    """No delivery with this id exists for the tenant; the job is discarded."""

    default_title = "Delivery Not Found"

    def __init__(self, delivery_id: Any, tenant_id: str | None) -> None:
        self.delivery_id = delivery_id
        self.tenant_id = tenant_id
        super().__init__(
            detail=f"Delivery {delivery_id} not found for tenant {tenant_id!r}",
            type="delivery-not-found",
            extra={"delivery_id": str(delivery_id), "tenant_id": tenant_id},
        )


class ChannelNotConfiguredError(AppException):
    """A delivery targets a channel with no directory/sender binding."""

    retryable = True
    default_title = "Channel Not Configured"

    def __init__(self, channel: str) -> None:
        self.channel = channel
        super().__init__(
            detail=f"No channel binding registered for {channel!r}",
            type="channel-not-configured",
            extra={"channel": channel},
        )


__all__ = [
    "AppException",
    "ChannelError",
    "ChannelNotConfiguredError",
    "DeliveryNotFoundError",
    "DirectoryError",
    "InvalidInputError",
    "StorageError",
    "TransientInfraError",
]
