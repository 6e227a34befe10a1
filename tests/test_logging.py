"""Tests for the structured logging system (fueleu_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from fueleu_kernel.logging_config import (
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
    configure_logging(level=logging.DEBUG, stream=StringIO())


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
    """Parse all JSON log lines from a stream."""
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
        assert record["logger"] == "fueleu.test"
        assert "ts" in record

    def test_decimal_and_uuid_extras_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        entry_id = uuid4()
        get_logger("test").info(
            "ledger_deposit_completed",
            extra={"amount": Decimal("1234.50"), "entry_id": entry_id, "year": 2025},
        )

        record = _parse_log(stream)
        assert record["amount"] == "1234.50"
        assert record["entry_id"] == str(entry_id)
        assert record["year"] == 2025

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", ship_id="IMO9000001")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["ship_id"] == "IMO9000001"

    def test_fueleu_exception_code_and_limits_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from fueleu_kernel.exceptions import InsufficientBankedAmountError

        try:
            raise InsufficientBankedAmountError("S1", Decimal("120"), Decimal("100"))
        except InsufficientBankedAmountError:
            get_logger("test").error("withdraw_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INSUFFICIENT_BANKED_AMOUNT"
        assert record["exc_type"] == "InsufficientBankedAmountError"
        assert record["exc_available"] == "100"
        assert record["exc_requested"] == "120"
        assert "traceback" in record


class TestLogContext:
    def test_bind_restores_previous_values(self):
        LogContext.set(ship_id="outer")
        with LogContext.bind(ship_id="inner", operation="deposit"):
            assert LogContext.get_all() == {"ship_id": "inner", "operation": "deposit"}
        assert LogContext.get_all() == {"ship_id": "outer"}

    def test_clear(self):
        LogContext.set(correlation_id="c", pool_id="p")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            LogContext.set(vessel_name="Aurora")
        assert LogContext.get_all() == {}


class TestConfigureLogging:
    def test_idempotent(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        get_logger("test").info("once")

        assert len(_parse_all_logs(stream)) == 1

    def test_level_filters_records(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        logger = get_logger("test")
        logger.info("dropped")
        logger.warning("kept")

        messages = [r["message"] for r in _parse_all_logs(stream)]
        assert messages == ["kept"]
