"""Contextvars-backed log context.

Job handlers call ``set_log_context(tenant_id=..., delivery_id=...)`` (or use
the ``log_context`` block) and every record emitted further down the call
stack carries those fields once ``ContextInjectingFilter`` is installed.
Each asyncio task works on its own copy of the context, so concurrent
deliveries never see each other's identifiers.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the log context of the current task."""
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Return a copy of the current log context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Drop every field from the current log context."""
    _log_context.set({})


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Scope extra log fields to a block, restoring the previous context on exit.

    Example:
        ```python
        with log_context(tenant_id="t-1", delivery_id=str(delivery_id)):
            await processor.process_delivery(session, "t-1", delivery_id)
        ```
    """
    merged = {**_log_context.get(), **kwargs}
    token = _log_context.set(merged)
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextInjectingFilter(logging.Filter):
    """Copy the current log context onto each ``LogRecord``.

    Attach it to handlers (or the root logger) in the dictConfig; formatters
    then see ``record.tenant_id`` and friends like any ``extra`` field.
    Attributes already present on the record win over context values.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
