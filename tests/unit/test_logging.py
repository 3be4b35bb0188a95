"""Tests for structured logging setup."""

from __future__ import annotations

import io
import json
import logging
import sys

import structlog

from marketpulse.utils.logging import (
    get_correlation_id,
    get_logger,
    request_context,
    set_correlation_id,
    setup_logging,
)


def _capture(log_format: str, emit: object) -> str:
    captured = io.StringIO()
    old_stderr = sys.stderr
    sys.stderr = captured
    try:
        setup_logging(level="INFO", log_format=log_format)
        emit()  # type: ignore[operator]
    finally:
        sys.stderr = old_stderr
    return captured.getvalue().strip()


class TestSetupLogging:
    """Test logging configuration."""

    def test_setup_logging_returns_none(self) -> None:
        result = setup_logging(level="INFO", log_format="json")
        assert result is None

    def test_get_logger_returns_bound_logger(self) -> None:
        setup_logging(level="INFO", log_format="json")
        logger = get_logger("test")
        assert logger is not None

    def test_noisy_loggers_quieted(self) -> None:
        setup_logging(level="INFO", log_format="json")
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_debug_keeps_transport_loggers(self) -> None:
        logging.getLogger("httpcore").setLevel(logging.NOTSET)
        setup_logging(level="DEBUG", log_format="json")
        assert logging.getLogger("httpcore").level == logging.NOTSET


class TestJsonFormat:
    """Test JSON log output."""

    def test_json_output_is_valid(self) -> None:
        output = _capture(
            "json",
            lambda: get_logger("test_json").info("test message", extra_key="v"),
        )
        if output:
            parsed = json.loads(output)
            assert parsed["event"] == "test message"
            assert parsed["extra_key"] == "v"
            assert "timestamp" in parsed
            assert "level" in parsed


class TestConsoleFormat:
    """Test console (pretty-print) log output."""

    def test_console_output_is_not_json(self) -> None:
        output = _capture(
            "console",
            lambda: get_logger("test_console").info("console test"),
        )
        if output:
            try:
                json.loads(output)
                is_json = True
            except json.JSONDecodeError:
                is_json = False
            assert not is_json


class TestCorrelationId:
    """Test correlation ID context variable."""

    def test_set_and_get_correlation_id(self) -> None:
        set_correlation_id("corr-123")
        assert get_correlation_id() == "corr-123"

    def test_default_correlation_id(self) -> None:
        set_correlation_id("")
        assert get_correlation_id() == ""

    def test_correlation_id_in_log(self) -> None:
        def emit() -> None:
            set_correlation_id("corr-456")
            get_logger("test_corr").info("correlated event")

        output = _capture("json", emit)
        if output:
            parsed = json.loads(output)
            assert parsed.get("correlation_id") == "corr-456"

    def test_bound_contextvars_in_log(self) -> None:
        def emit() -> None:
            with structlog.contextvars.bound_contextvars(symbol="BTC"):
                get_logger("test_ctx").info("bound event")

        output = _capture("json", emit)
        if output:
            parsed = json.loads(output)
            assert parsed.get("symbol") == "BTC"


class TestRequestContext:
    """Test the per-request logging scope."""

    def test_fresh_id_and_restore(self) -> None:
        set_correlation_id("outer")
        with request_context(symbol="BTC") as cid:
            assert cid != "outer"
            assert get_correlation_id() == cid
            assert structlog.contextvars.get_contextvars()["symbol"] == "BTC"
        assert get_correlation_id() == "outer"
        assert "symbol" not in structlog.contextvars.get_contextvars()

    def test_request_fields_in_log(self) -> None:
        def emit() -> None:
            with request_context(symbol="ETH", source="crypto"):
                get_logger("test_request").info("request event")

        output = _capture("json", emit)
        if output:
            parsed = json.loads(output)
            assert parsed["symbol"] == "ETH"
            assert parsed["source"] == "crypto"
            assert len(parsed["correlation_id"]) == 12
