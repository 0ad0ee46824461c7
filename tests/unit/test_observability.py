"""Unit tests for structured logging utilities in ``observability``."""

from __future__ import annotations

import logging

import pytest

from lib_proxy_config import bind_trace_id, get_logger
from lib_proxy_config.observability import TRACE_ID, log_info, log_warning, make_event


def test_null_handler_present() -> None:
    """Package logger should always include a NullHandler to avoid surprises."""

    logger = get_logger()
    assert logger.name == "lib_proxy_config"
    assert any(isinstance(handler, logging.NullHandler) for handler in logger.handlers)


def test_trace_id_in_log(caplog: pytest.LogCaptureFixture) -> None:
    """Structured logs should include the bound trace identifier and contextual fields."""

    caplog.set_level(logging.INFO, logger="lib_proxy_config")
    bind_trace_id("trace-123")
    log_info("config_compiled", modules=4, inbounds=1)
    record = caplog.records[-1]
    assert record.getMessage() == "config_compiled"
    assert getattr(record, "context") == {"trace_id": "trace-123", "modules": 4, "inbounds": 1}
    bind_trace_id(None)


def test_warning_level(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="lib_proxy_config")
    log_warning("deprecated_field", field="port")
    assert caplog.records[-1].levelno == logging.WARNING


def test_bind_trace_id_clears_context() -> None:
    bind_trace_id("trace-temp")
    bind_trace_id(None)
    assert TRACE_ID.get() is None


def test_make_event_merges_optional_payload() -> None:
    assert make_event("load", None, {"keys": 3}) == {"stage": "load", "tag": None, "keys": 3}
    assert make_event("inbound", "in") == {"stage": "inbound", "tag": "in"}
