"""Notification tasks.

- Creation of notifications from events
- Per-delivery processing (resolve, send, record)
"""

from __future__ import annotations

from .tasks import create_notification_task, process_delivery_task

__all__ = ["create_notification_task", "process_delivery_task"]
