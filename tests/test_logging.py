"""Tests for the structured logging system (workflow_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from enum import Enum
from io import StringIO
from uuid import uuid4

import pytest

from workflow_kernel.exceptions import StaleTransitionError
from workflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


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
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "workflow_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("transition_fired", extra={"sequence": 3, "status": "active"})

        record = _parse_log(stream)
        assert record["sequence"] == 3
        assert record["status"] == "active"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", instance_id="inst-456")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["instance_id"] == "inst-456"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Workflow kernel exceptions carry a .code attribute."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        try:
            raise StaleTransitionError("inst-1", "tr-1", "act-1")
        except StaleTransitionError:
            logger.error("stale", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "STALE_TRANSITION"
        assert record["exc_type"] == "StaleTransitionError"
        assert record["exc_instance_id"] == "inst-1"
        assert record["exc_transition_id"] == "tr-1"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "instance_id" not in record

    def test_uuid_and_set_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "with_uuid", extra={"action_id": uid, "codes": frozenset({"B", "A"})},
        )

        record = _parse_log(stream)
        assert record["action_id"] == str(uid)
        assert record["codes"] == ["A", "B"]

    def test_enum_and_unknown_types_serialized(self):
        class Colour(Enum):
            RED = 1

        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "with_enum", extra={"colour": Colour.RED, "amount": Decimal("1.50")},
        )

        record = _parse_log(stream)
        assert record["colour"] == 1
        assert record["amount"] == "1.50"

    def test_level_filtering(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", member_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "member_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(instance_id="outer")
        with LogContext.bind(instance_id="inner"):
            assert LogContext.get_all()["instance_id"] == "inner"
        assert LogContext.get_all()["instance_id"] == "outer"

    def test_bind_restores_none(self):
        assert "instance_id" not in LogContext.get_all()
        with LogContext.bind(instance_id="temp"):
            assert LogContext.get_all()["instance_id"] == "temp"
        assert "instance_id" not in LogContext.get_all()

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(instance_id="i", unknown="u"):
            assert LogContext.get_all() == {"instance_id": "i"}

    def test_all_fields(self):
        LogContext.set(correlation_id="c", instance_id="i", member_id="m", trace_id="t")
        ctx = LogContext.get_all()
        assert len(ctx) == 4
        assert ctx["member_id"] == "m"
        assert ctx["trace_id"] == "t"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        root = logging.getLogger("workflow_kernel")
        assert h1 in root.handlers
        assert h2 not in root.handlers

    def test_get_logger_returns_child(self):
        logger = get_logger("services.instance")
        assert logger.name == "workflow_kernel.services.instance"

    def test_logger_hierarchy(self):
        """Child loggers inherit the workflow_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "workflow_kernel.deep.nested.module"
