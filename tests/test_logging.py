"""Tests for the structured logging system (charges_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from charges_kernel.domain.charge import ChargeStatus
from charges_kernel.exceptions import ChargeNotDeletableError
from charges_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
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
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "charges.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("charge_created", extra={"amount": 230000, "currency": "DZD"})

        record = _parse_log(stream)
        assert record["amount"] == 230000
        assert record["currency"] == "DZD"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", charge_id="chg-1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["charge_id"] == "chg-1"

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
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ChargeNotDeletableError("chg-9", "approved")
        except ChargeNotDeletableError:
            logger.error("delete_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "CHARGE_NOT_DELETABLE"
        assert record["exc_type"] == "ChargeNotDeletableError"
        assert record["exc_charge_id"] == "chg-9"
        assert record["exc_status"] == "approved"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "charge_id" not in record

    def test_uuid_decimal_and_enum_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("typed", extra={
            "entity": uid,
            "total": Decimal("2300.00"),
            "status": ChargeStatus.APPROVED,
        })

        record = _parse_log(stream)
        assert record["entity"] == str(uid)
        assert record["total"] == "2300.00"
        assert record["status"] == "approved"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO, so the debug record is dropped
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= set(record)


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_set_and_get(self):
        LogContext.set(correlation_id="x", batch_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "batch_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_restores_none(self):
        assert "operation_id" not in LogContext.get_all()
        with LogContext.bind(operation_id="op-1"):
            assert LogContext.get_all()["operation_id"] == "op-1"
        assert "operation_id" not in LogContext.get_all()

    def test_bind_skips_none_values(self):
        with LogContext.bind(charge_id="c", actor_id=None):
            assert LogContext.get_all() == {"charge_id": "c"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            company_id="co",
            charge_id="ch",
            batch_id="b",
            operation_id="o",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 6
        assert ctx["company_id"] == "co"
        assert ctx["operation_id"] == "o"

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            LogContext.set(tenant_id="t-1")
        with pytest.raises(ValueError):
            with LogContext.bind(user="u"):
                pass


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        reset_logging()
        h1, stream = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2, level=logging.DEBUG)

        handlers = logging.getLogger("charges").handlers
        assert h1 in handlers
        assert h2 not in handlers
        get_logger("idempotency").debug("ignored")
        assert stream.getvalue() == ""

    def test_get_logger_returns_child(self):
        assert get_logger("services.ledger").name == "charges.services.ledger"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "charges.deep.nested.module"
