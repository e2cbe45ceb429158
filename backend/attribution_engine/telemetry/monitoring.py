"""
Validation Monitor
==================

Structured success/failure events for analytics runs.

WHAT:
    - ObservabilitySink: the contract the attribution engine emits to
    - ValidationMonitor: default sink (logging + counters + Sentry forwarding)

WHY:
    The batch processor must record every skipped order somewhere visible
    without letting monitoring influence control flow. Keeping the contract
    small lets tests assert on emitted events with a Mock.

THREAD SAFETY:
    Events arrive from batch worker threads; counters are guarded by one lock.

Related files:
- services/attribution/batch.py: records per-order failures
- services/attribution/engine.py: records run-level success/failure
- telemetry/sentry.py: failures are forwarded as Sentry messages
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from .sentry import capture_message, sentry_enabled

logger = logging.getLogger(__name__)


class ObservabilitySink(Protocol):
    def record_success(
        self,
        service: str,
        operation: str,
        pattern: str,
        duration_ms: Optional[int] = None,
        description: Optional[str] = None,
    ) -> None:
        ...

    def record_failure(
        self,
        context: str,
        error_code: str,
        message: str,
        pattern: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...

    def record_data_quality_issue(
        self,
        issue_type: str,
        description: str,
        severity: str,
        entity: str,
        entity_id: Optional[str] = None,
    ) -> None:
        ...


class ValidationMonitor:
    """
    Default observability sink.

    Usage:
        monitor = ValidationMonitor()
        monitor.record_failure(
            context="ResilientBatchProcessor.process",
            error_code="ORDER_ATTRIBUTION_PROCESSING_FAILED",
            message="Failed to process order o-7: lookup timed out",
            pattern="resilient_processing",
        )
        monitor.metrics()["validation_errors"]  # -> 1
    """

    LOG_PREFIX = "[MONITOR]"

    def __init__(self, forward_to_sentry: bool = True):
        self.forward_to_sentry = forward_to_sentry
        self._lock = threading.Lock()
        self._pattern_successes = 0
        self._validation_errors = 0
        self._data_quality_issues = 0
        self._last_updated = datetime.now(timezone.utc)

    def record_success(
        self,
        service: str,
        operation: str,
        pattern: str,
        duration_ms: Optional[int] = None,
        description: Optional[str] = None,
    ) -> None:
        with self._lock:
            self._pattern_successes += 1
            self._last_updated = datetime.now(timezone.utc)

        logger.info(
            "%s %s.%s succeeded (pattern=%s, duration_ms=%s)%s",
            self.LOG_PREFIX, service, operation, pattern, duration_ms,
            f": {description}" if description else "",
        )

    def record_failure(
        self,
        context: str,
        error_code: str,
        message: str,
        pattern: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        with self._lock:
            self._validation_errors += 1
            self._last_updated = datetime.now(timezone.utc)

        logger.warning(
            "%s %s [%s] %s (pattern=%s)",
            self.LOG_PREFIX, context, error_code, message, pattern,
        )

        if self.forward_to_sentry and sentry_enabled():
            capture_message(
                f"{context}: {error_code}",
                level="warning",
                extra={"message": message, "pattern": pattern, **(extra or {})},
            )

    def record_data_quality_issue(
        self,
        issue_type: str,
        description: str,
        severity: str,
        entity: str,
        entity_id: Optional[str] = None,
    ) -> None:
        """Record malformed upstream data that was tolerated (e.g. missing names)."""
        with self._lock:
            self._data_quality_issues += 1
            self._last_updated = datetime.now(timezone.utc)

        logger.warning(
            "%s data quality issue %s on %s %s: %s (severity=%s)",
            self.LOG_PREFIX, issue_type, entity, entity_id or "-", description, severity,
        )

    def metrics(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "pattern_successes": self._pattern_successes,
                "validation_errors": self._validation_errors,
                "data_quality_issues": self._data_quality_issues,
                "last_updated": self._last_updated.isoformat(),
            }

    def reset(self) -> None:
        with self._lock:
            self._pattern_successes = 0
            self._validation_errors = 0
            self._data_quality_issues = 0
            self._last_updated = datetime.now(timezone.utc)
