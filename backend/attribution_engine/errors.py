"""
Attribution Engine Exceptions
=============================

Exception types raised by the order attribution analytics engine.

WHY THIS FILE EXISTS
--------------------
An analytics run has two very different failure modes:
- Run-level failures (permission denied, order store down) abort the run
  and are surfaced to the caller with the phase that failed.
- Order-level failures (one bad order, one failed lookup) are recovered
  by the batch processor: logged, counted as skipped, never surfaced.

These exceptions make that split explicit so callers can catch exactly
what they can handle.

RELATED FILES
-------------
- services/attribution/engine.py: Raises PermissionDenied, RepositoryUnavailable
- services/attribution/resolver.py: Raises ResolutionFailed
- services/attribution/batch.py: Recovers ResolutionFailed
- routers/analytics.py: Maps run-level errors to HTTP responses
"""

from typing import Optional


class AttributionEngineError(Exception):
    """
    Base exception for all attribution engine errors.

    PARAMETERS:
        message: Human-readable error description
        phase: Run phase that failed (e.g. "fetch_orders"), if known
    """

    def __init__(self, message: str, phase: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.phase = phase

    def to_user_message(self) -> str:
        """String suitable for display to end users."""
        return self.message


class PermissionDenied(AttributionEngineError):
    """
    Caller lacks the capability required to run analytics.

    Raised before any repository is queried. Not retried.
    """

    def __init__(self, user_id: Optional[str], capability: str):
        self.user_id = user_id
        self.capability = capability
        super().__init__(
            f"User {user_id} lacks '{capability}' capability for marketing analytics",
            phase="permission_check",
        )

    def to_user_message(self) -> str:
        return "Insufficient permissions for marketing analytics access"


class ResolutionFailed(AttributionEngineError):
    """
    A single order could not be attributed.

    WHAT:
        Wraps the underlying lookup/segmentation error with the order id.

    RECOVERY:
        The batch processor records it and skips the order. It never
        propagates past the batch boundary.
    """

    def __init__(self, order_id: Optional[str], cause: BaseException | str):
        self.order_id = order_id
        self.cause = cause
        super().__init__(f"Failed to process order {order_id}: {cause}", phase="resolve_order")


class RepositoryUnavailable(AttributionEngineError):
    """
    An upstream store is unreachable for a batch-level fetch.

    Fatal for the run: without orders there is nothing to attribute.
    """

    def __init__(self, repository: str, phase: str, cause: Optional[BaseException] = None):
        self.repository = repository
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{repository} unavailable during {phase}{detail}", phase=phase)

    def to_user_message(self) -> str:
        return "Marketing analytics data is temporarily unavailable. Please try again shortly."


class AggregationInconsistency(AttributionEngineError):
    """
    An aggregation invariant was violated.

    Indicates a programming error (e.g. distribution not summing to 100),
    not bad user input.
    """

    def __init__(self, detail: str):
        super().__init__(f"Aggregation invariant violated: {detail}", phase="aggregation")
