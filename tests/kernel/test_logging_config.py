"""Tests for the structured logging system (gls_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from gls_kernel.exceptions import BillNotEligibleError
from gls_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from gls_kernel.models.audit_event import AuditAction


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite configuration."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "gls.test"
        assert "ts" in record

    def test_extra_fields_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        bill_id = uuid4()
        get_logger("test").info(
            "bill_logged",
            extra={
                "bill_id": bill_id,
                "amount": Decimal("10000.50"),
                "due_date": date(2024, 3, 31),
                "action": AuditAction.BILL_CREATED,
            },
        )

        record = _parse_log(stream)
        assert record["bill_id"] == str(bill_id)
        assert record["amount"] == "10000.50"
        assert record["due_date"] == "2024-03-31"
        assert record["action"] == "bill_created"

    def test_exception_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        bill_id = uuid4()
        try:
            raise BillNotEligibleError(bill_id, "bill is on open proposal PROP-2024-00001")
        except BillNotEligibleError:
            get_logger("test").error("create_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "BillNotEligibleError"
        assert record["exc_code"] == "BILL_NOT_ELIGIBLE"
        assert record["exc_kind"] == "conflict"
        assert record["exc_bill_id"] == str(bill_id)
        assert "traceback" in record

    def test_below_level_is_dropped(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        get_logger("test").info("quiet")
        assert stream.getvalue() == ""


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:
    """Request-scoped context fields."""

    def test_context_fields_added_to_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="req-1", actor_id="u-1", actor_role="owner")
        get_logger("test").info("one")
        get_logger("test").info("two")

        for record in _parse_all_logs(stream):
            assert record["correlation_id"] == "req-1"
            assert record["actor_id"] == "u-1"
            assert record["actor_role"] == "owner"

    def test_bind_restores_previous_values(self):
        LogContext.set(operation="outer")
        with LogContext.bind(operation="inner", entity_id=uuid4()):
            assert LogContext.get_all()["operation"] == "inner"
            assert "entity_id" in LogContext.get_all()
        assert LogContext.get_all() == {"operation": "outer"}

    def test_bind_skips_none(self):
        with LogContext.bind(actor_id="u-1", entity_id=None):
            assert LogContext.get_all() == {"actor_id": "u-1"}

    def test_clear(self):
        LogContext.set(correlation_id="x", operation="y")
        LogContext.clear()
        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        first, first_stream = _make_handler()
        second, second_stream = _make_handler()
        configure_logging(handler=first)
        configure_logging(handler=second)
        get_logger("test").info("once")

        assert len(_parse_all_logs(first_stream)) == 1
        assert second_stream.getvalue() == ""

    def test_reset_allows_reconfiguration(self):
        first, _ = _make_handler()
        configure_logging(handler=first)
        reset_logging()
        second, second_stream = _make_handler()
        configure_logging(handler=second)
        get_logger("test").info("again")
        assert _parse_log(second_stream)["message"] == "again"

    def test_namespace_does_not_propagate_to_root(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        assert logging.getLogger("gls").propagate is False
