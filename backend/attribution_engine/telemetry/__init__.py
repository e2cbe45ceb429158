"""
Telemetry Module
================

Observability stack for the attribution engine.

Components:
- sentry.py: Error tracking (Sentry)
- monitoring.py: ValidationMonitor, the structured event sink analytics runs emit to

Environment Variables:
- SENTRY_DSN: Sentry project DSN (optional)

Usage:
    from attribution_engine.telemetry import init_observability, shutdown_observability

    init_observability()      # app startup
    shutdown_observability()  # app shutdown
"""

import sentry_sdk

from attribution_engine.telemetry.sentry import (
    init_sentry,
    sentry_enabled,
    set_user_context,
    capture_exception,
    capture_message,
)
from attribution_engine.telemetry.monitoring import ObservabilitySink, ValidationMonitor


def init_observability() -> dict:
    """
    Initialize all observability tools.

    Returns:
        Dict with status of each tool initialization, e.g. {"sentry": False}
    """
    return {
        "sentry": init_sentry(),
    }


def shutdown_observability() -> None:
    """Flush pending Sentry events on application shutdown."""
    if sentry_enabled():
        sentry_sdk.flush(timeout=2.0)


__all__ = [
    "init_observability",
    "shutdown_observability",
    "init_sentry",
    "sentry_enabled",
    "set_user_context",
    "capture_exception",
    "capture_message",
    "ObservabilitySink",
    "ValidationMonitor",
]
