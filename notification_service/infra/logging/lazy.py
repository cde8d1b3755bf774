"""Lazy evaluation for log messages.

DEBUG lines in the repositories and services describe rows, counts and
state transitions. Building those strings on every call is wasted work when
DEBUG is off, so messages may be passed as zero-argument callables:

    logger.debug(lambda: f"db.get: {model}({id}) -> {found}")

The callable only runs when the level is enabled.
"""

from __future__ import annotations

import logging
from typing import Any


class LazyLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that evaluates callable messages and arguments on demand."""

    def log(
        self,
        level: int,
        msg: Any,
        *args: Any,
        **kwargs: Any,
    ) -> None:
        """Log ``msg`` at ``level``, resolving callables only when enabled.

        Args:
            level: Numeric log level (e.g., logging.DEBUG).
            msg: Log message or callable returning message.
            *args: Format arguments (may include callables).
            **kwargs: Additional kwargs for logging.
        """
        if not self.isEnabledFor(level):
            return

        if callable(msg):
            msg = msg()

        if args:
            args = tuple(arg() if callable(arg) else arg for arg in args)

        super().log(level, msg, *args, **kwargs)

    def debug(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.ERROR, msg, *args, **kwargs)


def get_lazy_logger(name: str, **context: Any) -> LazyLoggerAdapter:
    """Get a lazily evaluating logger, optionally with bound ``extra`` fields.

    Example:
        ```python
        logger = get_lazy_logger(__name__)
        logger.debug(lambda: f"Outcome: {outcome!r}")
        ```
    """
    return LazyLoggerAdapter(logging.getLogger(name), context or {})
