"""Service base classes."""

from notification_service.core.services.base import BaseService

__all__ = ["BaseService"]
