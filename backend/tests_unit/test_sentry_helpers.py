"""Sentry helper tests: disabled fallback and scoped forwarding."""

import logging
from unittest.mock import Mock

import sentry_sdk

from attribution_engine.telemetry import sentry as sentry_helpers


def test_capture_message_logs_when_sentry_disabled(monkeypatch, caplog):
    monkeypatch.setattr(sentry_sdk, "is_initialized", lambda: False)
    forwarded = Mock()
    monkeypatch.setattr(sentry_sdk, "capture_message", forwarded)

    with caplog.at_level(logging.WARNING):
        sentry_helpers.capture_message("ResilientBatchProcessor.process: FAILED", level="warning")

    forwarded.assert_not_called()
    assert "Sentry disabled" in caplog.text


def test_capture_message_forwards_inside_isolated_scope(monkeypatch):
    monkeypatch.setattr(sentry_sdk, "is_initialized", lambda: True)
    forwarded = Mock()
    monkeypatch.setattr(sentry_sdk, "capture_message", forwarded)

    sentry_helpers.capture_message("run failed", level="warning", extra={"phase": "fetch_orders"})

    forwarded.assert_called_once_with("run failed", level="warning")


def test_capture_exception_forwards_when_enabled(monkeypatch):
    monkeypatch.setattr(sentry_sdk, "is_initialized", lambda: True)
    forwarded = Mock()
    monkeypatch.setattr(sentry_sdk, "capture_exception", forwarded)
    error = RuntimeError("distribution does not sum to 100")

    sentry_helpers.capture_exception(error, extra={"phase": "aggregation"})

    forwarded.assert_called_once_with(error)
