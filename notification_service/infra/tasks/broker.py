"""Taskiq broker for notification jobs.

Two deployments share one broker module:

1. **RabbitMQ (taskiq-aio-pika)** when ``RABBIT_ENABLED=true``
   - Jobs survive worker restarts and are redelivered on failure
   - Run worker: `taskiq worker notification_service.infra.tasks.broker:broker`

2. **In-process (taskiq InMemoryBroker)** otherwise
   - Jobs run as asyncio tasks inside the enqueuing process
   - Local development and the test-suite

Both carry ``SimpleRetryMiddleware``, which re-sends a job whose task raised
and was declared with ``retry_on_error=True`` until ``max_retries`` is spent.
"""

from __future__ import annotations

import logging

from taskiq import AsyncBroker, InMemoryBroker, TaskiqEvents, TaskiqState
from taskiq.middlewares import SimpleRetryMiddleware
from taskiq_aio_pika import AioPikaBroker

from notification_service.core.settings import get_notification_settings, get_rabbit_settings
from notification_service.infra.database.session import close_database, init_database
from notification_service.infra.logging.config import setup_logging

logger = logging.getLogger(__name__)

rabbit_settings = get_rabbit_settings()
notification_settings = get_notification_settings()
setup_logging()


def _create_broker() -> AsyncBroker:
    """Build the broker for the configured deployment."""
    retry = SimpleRetryMiddleware(default_retry_count=notification_settings.max_job_retries)

    if rabbit_settings.is_configured:
        rabbit_broker = AioPikaBroker(
            url=rabbit_settings.get_url(),
            queue_name=rabbit_settings.queue_name,
            qos=rabbit_settings.prefetch_count,
            declare_exchange=True,
            declare_queues=True,
        ).with_middlewares(retry)

        logger.info(
            "Taskiq RabbitMQ broker configured",
            extra={
                "queue": rabbit_settings.queue_name,
                "prefetch_count": rabbit_settings.prefetch_count,
                "max_retries": notification_settings.max_job_retries,
            },
        )
        return rabbit_broker

    logger.warning("RabbitMQ not configured - jobs run in-process (InMemoryBroker)")
    return InMemoryBroker().with_middlewares(retry)


broker: AsyncBroker = _create_broker()


@broker.on_event(TaskiqEvents.WORKER_STARTUP)
async def on_worker_startup(state: TaskiqState) -> None:
    """Check the database before the worker starts taking jobs."""
    await init_database()


@broker.on_event(TaskiqEvents.WORKER_SHUTDOWN)
async def on_worker_shutdown(state: TaskiqState) -> None:
    await close_database()


async def start_taskiq() -> None:
    """Start the broker for enqueuing.

    Workers started by ``taskiq worker`` manage the broker themselves; this is
    for processes that only create notifications.

    Raises:
        ConnectionError: If unable to connect to RabbitMQ.
    """
    logger.info("Starting Taskiq broker")

    try:
        await broker.startup()
        logger.info("Taskiq broker started successfully")
    except Exception as e:
        logger.exception("Failed to start Taskiq broker", extra={"error": str(e)})
        raise


async def stop_taskiq() -> None:
    """Stop the broker, closing the RabbitMQ connection if any."""
    logger.info("Stopping Taskiq broker")

    try:
        await broker.shutdown()
        logger.info("Taskiq broker stopped successfully")
    except Exception as e:
        logger.exception("Error stopping Taskiq broker", extra={"error": str(e)})


# =============================================================================
# Task Module Imports
# =============================================================================
# The worker imports: taskiq worker notification_service.infra.tasks.broker:broker
# Importing the task modules here registers them with the broker.

import notification_service.workers.notifications.tasks  # noqa: E402, F401
