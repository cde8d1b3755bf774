"""Base service class for business logic."""

from __future__ import annotations

import logging

from notification_service.infra.logging import get_lazy_logger


class BaseService:
    """Base class for services that own a unit of work.

    Loggers:
        - self.logger: standard logger for INFO/WARNING/ERROR
        - self._lazy: lazy logger for DEBUG (messages may be lambdas)

    Both are named ``<module>.<ClassName>`` so they inherit the level of the
    service's package logger.
    """

    def __init__(self) -> None:
        name = f"{type(self).__module__}.{type(self).__name__}"
        self.logger = logging.getLogger(name)
        self._lazy = get_lazy_logger(name)
