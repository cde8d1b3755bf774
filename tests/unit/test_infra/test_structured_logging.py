"""Tests for log context propagation, lazy logging and the JSON formatter."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import pytest

from notification_service.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    clear_log_context,
    get_lazy_logger,
    get_log_context,
    log_context,
    set_log_context,
)


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="notification_service.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _clean_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.mark.unit
class TestLogContext:
    """Tests for contextvars-backed log context."""

    def test_set_and_clear(self):
        set_log_context(tenant_id="t-1")
        set_log_context(delivery_id="d-1")

        assert get_log_context() == {"tenant_id": "t-1", "delivery_id": "d-1"}

        clear_log_context()
        assert get_log_context() == {}

    def test_block_restores_previous_context(self):
        set_log_context(tenant_id="t-1")

        with log_context(delivery_id="d-1"):
            assert get_log_context() == {"tenant_id": "t-1", "delivery_id": "d-1"}

        assert get_log_context() == {"tenant_id": "t-1"}

    @pytest.mark.asyncio
    async def test_concurrent_tasks_are_isolated(self):
        seen: dict[str, dict] = {}

        async def worker(delivery_id: str) -> None:
            with log_context(delivery_id=delivery_id):
                await asyncio.sleep(0)
                seen[delivery_id] = get_log_context()

        await asyncio.gather(worker("d-1"), worker("d-2"))

        assert seen == {"d-1": {"delivery_id": "d-1"}, "d-2": {"delivery_id": "d-2"}}

    def test_filter_injects_context_without_overwriting(self):
        record = _record(delivery_id="explicit")

        with log_context(tenant_id="t-1", delivery_id="from-context"):
            assert ContextInjectingFilter().filter(record) is True

        assert record.tenant_id == "t-1"
        assert record.delivery_id == "explicit"


@pytest.mark.unit
class TestLazyLogger:
    """Tests for the lazy logger adapter."""

    def test_lazy_message_not_built_when_disabled(self, caplog: pytest.LogCaptureFixture):
        calls: list[int] = []

        def build() -> str:
            calls.append(1)
            return "expensive"

        lazy_logger = get_lazy_logger("notification_service.test.lazy")

        with caplog.at_level(logging.INFO, logger="notification_service.test.lazy"):
            lazy_logger.debug(build)
        assert calls == []

        with caplog.at_level(logging.DEBUG, logger="notification_service.test.lazy"):
            lazy_logger.debug(build)
        assert calls == [1]
        assert caplog.records[-1].getMessage() == "expensive"


@pytest.mark.unit
class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_formats_one_json_line(self):
        formatter = JSONFormatter(static={"service": "notification-service"})

        line = formatter.format(_record("Delivery completed", delivery_id="d-1", state="succeeded"))

        assert "\n" not in line
        data = json.loads(line)
        assert data["level"] == "INFO"
        assert data["logger"] == "notification_service.test"
        assert data["message"] == "Delivery completed"
        assert data["service"] == "notification-service"
        assert data["delivery_id"] == "d-1"
        assert data["state"] == "succeeded"
        assert data["timestamp"].endswith("Z")
        assert "trace_id" not in data

    def test_exception_is_single_line(self):
        formatter = JSONFormatter()
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record("failed")
            record.exc_info = sys.exc_info()

        data = json.loads(formatter.format(record))

        assert "RuntimeError: boom" in data["exception"]

    def test_non_serializable_extra_uses_str(self):
        data = json.loads(JSONFormatter().format(_record(content_id=object())))

        assert data["content_id"].startswith("<object object")
