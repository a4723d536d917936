"""Tests for logging helpers."""

import builtins
import logging

import pytest
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer

from syndic_api import logger as logger_module


class RecordingLogger:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict]] = []

    def _record(self, level: str, event: str, **kwargs) -> None:
        self.calls.append((level, event, kwargs))

    def info(self, event: str, **kwargs) -> None:
        self._record("info", event, **kwargs)

    def warning(self, event: str, **kwargs) -> None:
        self._record("warning", event, **kwargs)

    def error(self, event: str, **kwargs) -> None:
        self._record("error", event, **kwargs)


def test_build_otlp_logs_endpoint() -> None:
    assert logger_module._build_otlp_logs_endpoint("http://collector:4318/") == "http://collector:4318/v1/logs"
    assert logger_module._build_otlp_logs_endpoint("http://collector:4318/v1/logs") == "http://collector:4318/v1/logs"


def test_select_renderer(monkeypatch) -> None:
    monkeypatch.setattr(logger_module.settings, "debug", True)
    assert isinstance(logger_module._select_renderer(), ConsoleRenderer)
    monkeypatch.setattr(logger_module.settings, "debug", False)
    assert isinstance(logger_module._select_renderer(), JSONRenderer)


def test_configure_otel_logging_missing_dependency_warns(monkeypatch, caplog) -> None:
    monkeypatch.setattr(logger_module.settings, "otel_exporter_otlp_endpoint", "http://collector:4318")
    original_import = builtins.__import__

    def blocked_import(name, globals=None, locals=None, fromlist=(), level=0):
        if name.startswith("opentelemetry"):
            raise ImportError("opentelemetry not installed")
        return original_import(name, globals, locals, fromlist, level)

    monkeypatch.setattr(builtins, "__import__", blocked_import)

    with caplog.at_level(logging.WARNING):
        logger_module._configure_otel_logging()

    assert "OTEL log exporter not available" in caplog.text


@pytest.mark.asyncio
async def test_async_log_timing_reports_context() -> None:
    log = RecordingLogger()

    async with logger_module.async_log_timing("auto_match", logger=log, tenant_id="t1") as ctx:
        ctx["matched"] = 3

    [(level, event, kwargs)] = log.calls
    assert level == "info"
    assert event == "auto_match completed"
    assert kwargs["tenant_id"] == "t1"
    assert kwargs["matched"] == 3
    assert kwargs["duration_ms"] >= 0


@pytest.mark.asyncio
async def test_log_external_api_records_success_and_failure() -> None:
    log = RecordingLogger()

    @logger_module.log_external_api("webhook", logger=log)
    async def ok() -> str:
        return "sent"

    @logger_module.log_external_api("webhook", logger=log)
    async def boom() -> None:
        raise RuntimeError("connection reset")

    assert await ok() == "sent"
    with pytest.raises(RuntimeError):
        await boom()

    assert [(level, kwargs["success"]) for level, _, kwargs in log.calls] == [
        ("info", True),
        ("error", False),
    ]
    assert log.calls[1][2]["error_type"] == "RuntimeError"


def test_log_exception_includes_error_details() -> None:
    log = RecordingLogger()

    logger_module.log_exception(
        log,
        ValueError("bad"),
        "Auto-match entry skipped",
        level="warning",
        include_traceback=False,
        reconciliation_id="r1",
    )

    [(level, event, kwargs)] = log.calls
    assert level == "warning"
    assert event == "Auto-match entry skipped"
    assert kwargs == {
        "error": "bad",
        "error_type": "ValueError",
        "error_module": "builtins",
        "reconciliation_id": "r1",
    }
