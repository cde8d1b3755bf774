"""Task execution infrastructure using Taskiq.

- broker.py: Taskiq broker configuration (taskiq-aio-pika for RabbitMQ,
  InMemoryBroker otherwise)

For task definitions (the actual work), see the `workers/` package.

Run the worker to execute tasks:
    taskiq worker notification_service.infra.tasks.broker:broker
"""

from __future__ import annotations

from notification_service.infra.tasks.broker import broker, start_taskiq, stop_taskiq

__all__ = ["broker", "start_taskiq", "stop_taskiq"]
