"""Prometheus metrics for notification fan-out and delivery.

Usage:
    from notification_service.features.notifications.metrics import (
        delivery_completed_total,
    )

    delivery_completed_total.labels(
        channel="sms",
        state="failed",
        reason="ReceiverInfoNotFound",
    ).inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Fan-out
# =============================================================================

notification_created_total = Counter(
    "notification_created_total",
    "Total number of notifications created",
    labelnames=["channel"],
)

delivery_created_total = Counter(
    "notification_delivery_created_total",
    "Total number of pending deliveries created by fan-out",
    labelnames=["channel"],
)

delivery_jobs_enqueued_total = Counter(
    "notification_delivery_jobs_enqueued_total",
    "Total number of delivery processing jobs enqueued",
    labelnames=["channel"],
)

# =============================================================================
# Processing
# =============================================================================

delivery_completed_total = Counter(
    "notification_delivery_completed_total",
    "Deliveries that reached a terminal state",
    labelnames=["channel", "state", "reason"],
)
"""
Labels:
    channel: sms, email, push
    state: succeeded or failed
    reason: failure reason, "none" for succeeded
"""

delivery_transient_errors_total = Counter(
    "notification_delivery_transient_errors_total",
    "Processing attempts aborted by a transient infrastructure failure",
    labelnames=["channel", "operation"],
)

delivery_discarded_total = Counter(
    "notification_delivery_discarded_total",
    "Processing results dropped (lost compare-and-set race or missing delivery)",
    labelnames=["cause"],
)

delivery_processing_duration_seconds = Histogram(
    "notification_delivery_processing_duration_seconds",
    "Time from job start to terminal write",
    labelnames=["channel"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)
