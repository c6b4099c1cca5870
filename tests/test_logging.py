"""Tests for structured JSON logging and LogContext."""

import json
import logging
import sys
from decimal import Decimal
from uuid import uuid4

from stock_kernel.exceptions import InsufficientStockError
from stock_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _format(record: logging.LogRecord) -> dict:
    return json.loads(StructuredFormatter().format(record))


def _record(msg="event", **extra) -> logging.LogRecord:
    record = logging.LogRecord("stock_kernel.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_envelope():
    payload = _format(_record("movement_recorded"))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "stock_kernel.test"
    assert payload["message"] == "movement_recorded"
    assert "ts" in payload


def test_extra_fields_serialized():
    movement_id = uuid4()

    payload = _format(_record(movement_id=movement_id, quantity_delta=Decimal("1.5")))

    assert payload["movement_id"] == str(movement_id)
    assert payload["quantity_delta"] == "1.5"


def test_context_fields_included():
    transfer_id = uuid4()

    with LogContext.bind(transfer_id=transfer_id, actor_id=None):
        payload = _format(_record())

    assert payload["transfer_id"] == str(transfer_id)
    assert "actor_id" not in payload


def test_bind_restores_previous_values():
    LogContext.set(correlation_id="outer")

    with LogContext.bind(correlation_id="inner"):
        assert LogContext.get_all()["correlation_id"] == "inner"

    assert LogContext.get_all() == {"correlation_id": "outer"}


def test_correlate_binds_fresh_id_and_restores():
    with LogContext.correlate() as correlation_id:
        assert LogContext.get_all()["correlation_id"] == correlation_id

    assert "correlation_id" not in LogContext.get_all()


def test_correlate_reuses_bound_id():
    with LogContext.bind(correlation_id="req-7"):
        with LogContext.correlate() as correlation_id:
            assert correlation_id == "req-7"


def test_kernel_error_fields():
    try:
        raise InsufficientStockError("p-1", "warehouse:w-1", "6", "10")
    except InsufficientStockError:
        record = logging.LogRecord(
            "stock_kernel.test", logging.WARNING, __file__, 1, "failed", (), sys.exc_info()
        )

    payload = _format(record)

    assert payload["exc_type"] == "InsufficientStockError"
    assert payload["exc_code"] == "INSUFFICIENT_STOCK"
    assert payload["exc_available"] == "6"
    assert "traceback" in payload


def test_get_logger_namespace():
    assert get_logger("services.x").name == "stock_kernel.services.x"
