"""Resilient Batch Processor - per-order fault isolation for attribution runs.

WHAT:
    Drives the resolver across every order in the window. Successful orders
    become AttributionRecords; failed orders are recorded to the
    observability sink and counted as skipped. One failing order never
    aborts the batch.

HOW:
    - Resolution is I/O-bound and independent per order, so orders fan out
      over a ThreadPoolExecutor (max_workers=1 gives a sequential run).
    - Results are collected with as_completed on the calling thread, which
      is the single accumulation point. Output order is not input order.
    - An optional run timeout bounds total time. Orders still in flight when
      it elapses are abandoned and counted as skipped.
    - No retries. Callers re-run the whole batch if they want another attempt.

INVARIANT:
    processed + skipped == total. A violation raises AggregationInconsistency.

REFERENCES:
    - services/snapshot_sync_service.py (_sync_connections_parallel): same fan-out shape
    - services/attribution/resolver.py: resolve_safely()
    - telemetry/monitoring.py: sink contract
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout, as_completed
from typing import Optional, Sequence

from ...errors import AggregationInconsistency
from .resolver import AttributionResolver
from .types import BatchResult, Order, ResolutionFailure

logger = logging.getLogger(__name__)

PROCESSING_FAILED = "ORDER_ATTRIBUTION_PROCESSING_FAILED"
PATTERN = "resilient_processing"


class ResilientBatchProcessor:
    """
    Resolves a batch of orders with skip-on-error semantics.

    Usage:
        processor = ResilientBatchProcessor(resolver, ValidationMonitor(), max_workers=8)
        result = processor.process(orders)
        result.processed, result.skipped  # processed + skipped == len(orders)
    """

    def __init__(
        self,
        resolver: AttributionResolver,
        sink,
        max_workers: int = 8,
        timeout_seconds: Optional[float] = None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.resolver = resolver
        self.sink = sink
        self.max_workers = max_workers
        self.timeout_seconds = timeout_seconds

    def process(self, orders: Sequence[Order]) -> BatchResult:
        orders = list(orders)
        result = BatchResult(total=len(orders))
        if not orders:
            self._record_summary(result, duration_ms=0)
            return result

        started = time.monotonic()
        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(orders)),
            thread_name_prefix="attribution",
        )
        futures = {executor.submit(self.resolver.resolve_safely, order): order for order in orders}
        pending = set(futures)

        try:
            for future in as_completed(futures, timeout=self.timeout_seconds):
                pending.discard(future)
                order = futures[future]
                try:
                    resolution = future.result()
                except Exception as e:
                    # resolve_safely only returns; anything here escaped the resolver
                    self._skip(result, order.id, e)
                    continue

                if resolution.ok:
                    result.records.append(resolution.record)
                    result.processed += 1
                else:
                    self._skip(result, order.id, resolution.error.cause)
        except FuturesTimeout:
            logger.warning(
                "[BATCH] Run timeout of %ss elapsed with %d orders pending",
                self.timeout_seconds, len(pending),
            )
            for future in pending:
                future.cancel()
                self._skip(result, futures[future].id, TimeoutError("attribution run timed out"))
        finally:
            executor.shutdown(wait=not pending, cancel_futures=True)

        if result.processed + result.skipped != result.total:
            raise AggregationInconsistency(
                f"processed ({result.processed}) + skipped ({result.skipped}) "
                f"!= total ({result.total})"
            )

        self._record_summary(result, duration_ms=int((time.monotonic() - started) * 1000))
        return result

    def _skip(self, result: BatchResult, order_id: Optional[str], cause) -> None:
        result.skipped += 1
        result.failures.append(ResolutionFailure(order_id=order_id, cause=str(cause)))

        message = f"Failed to process order {order_id}: {cause}"
        logger.warning("[BATCH] %s", message)
        self.sink.record_failure(
            context="ResilientBatchProcessor.process",
            error_code=PROCESSING_FAILED,
            message=message,
            pattern=PATTERN,
            extra={"order_id": order_id, "cause_type": type(cause).__name__},
        )

    def _record_summary(self, result: BatchResult, duration_ms: int) -> None:
        logger.info(
            "[BATCH] Processed %d orders, skipped %d due to errors (total=%d)",
            result.processed, result.skipped, result.total,
        )
        self.sink.record_success(
            service="ResilientBatchProcessor",
            operation="process",
            pattern=PATTERN,
            duration_ms=duration_ms,
            description=f"Processed {result.processed} orders, skipped {result.skipped} due to errors",
        )
