"""Job queue abstraction between the coordinator and delivery workers.

The coordinator only needs ``enqueue(job)``. Delivery is at-least-once and
unordered; duplicates are harmless because the processor's terminal write
is a compare-and-set.
"""

from __future__ import annotations

from typing import Protocol

from notification_service.features.notifications.schemas import DeliveryJob


class JobQueue(Protocol):
    async def enqueue(self, job: DeliveryJob) -> None: ...


class TaskiqJobQueue:
    """Enqueue delivery jobs as ``process_delivery_task`` messages on the taskiq broker."""

    async def enqueue(self, job: DeliveryJob) -> None:
        # The task module imports the coordinator, which imports this module
        from notification_service.workers.notifications.tasks import process_delivery_task

        await process_delivery_task.kiq(
            tenant_id=job.tenant_id,
            delivery_id=str(job.delivery_id),
        )


_queue: JobQueue | None = None


def get_job_queue() -> JobQueue:
    """Get the process-wide job queue (taskiq-backed by default)."""
    global _queue
    if _queue is None:
        _queue = TaskiqJobQueue()
    return _queue


def set_job_queue(queue: JobQueue | None) -> None:
    """Replace the process-wide job queue (tests, embedding)."""
    global _queue
    _queue = queue


__all__ = ["DeliveryJob", "JobQueue", "TaskiqJobQueue", "get_job_queue", "set_job_queue"]
