"""Tests for the structured logging system (revcon_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from revcon_kernel.exceptions import LockedProjectError
from revcon_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state, then restore the suite-wide configuration."""
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


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        (record,) = _parse_all_logs(stream)
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "revcon.test"
        assert "ts" in record

    def test_extra_fields_are_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        project_id = uuid4()
        get_logger("test").info(
            "project_locked",
            extra={"project_id": project_id, "amount": Decimal("12.50")},
        )

        (record,) = _parse_all_logs(stream)
        assert record["project_id"] == str(project_id)
        assert record["amount"] == "12.50"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise LockedProjectError("p-1", "PRJ-1")
        except LockedProjectError:
            get_logger("test").exception("write_failed")

        (record,) = _parse_all_logs(stream)
        assert record["exc_type"] == "LockedProjectError"
        assert record["exc_code"] == LockedProjectError.code
        assert record["exc_project_code"] == "PRJ-1"
        assert "traceback" in record

    def test_level_filtering(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        log = get_logger("test")
        log.info("quiet")
        log.warning("loud")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["loud"]

    def test_configure_is_idempotent(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        get_logger("test").info("once")

        assert len(_parse_all_logs(stream)) == 1


class TestLogContext:
    def test_context_fields_are_attached(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(actor_id="actor-1", correlation_id="req-9")
        get_logger("test").info("with_context")

        (record,) = _parse_all_logs(stream)
        assert record["actor_id"] == "actor-1"
        assert record["correlation_id"] == "req-9"

    def test_bind_restores_previous_values(self):
        LogContext.set(scan_id="outer")
        with LogContext.bind(scan_id="inner", project_id="p-1"):
            assert LogContext.get_all() == {"scan_id": "inner", "project_id": "p-1"}
        assert LogContext.get_all() == {"scan_id": "outer"}

    def test_bind_ignores_none(self):
        with LogContext.bind(scan_id=None):
            assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(actor_id="a", scan_id="s")
        LogContext.clear()
        assert LogContext.get_all() == {}
