"""Marketing analytics endpoints.

WHAT:
    - GET /analytics/marketing/dashboard: overview, revenue and order attribution
    - GET /analytics/marketing/attribution-insights: attribution + recommendations

WHY:
    Marketing teams need to see which campaigns and content actually drive
    orders. The engine itself is storage-agnostic; this router wires it to
    the SQL adapters per request.

ERRORS:
    PermissionDenied -> 403, RepositoryUnavailable -> 503,
    AggregationInconsistency -> 500. Per-order failures never reach here;
    they show up as `skipped` counts.

REFERENCES:
    - services/attribution/engine.py
    - schemas.py: response models
"""

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..database import get_session_factory
from ..deps import Settings, get_current_caller, get_settings
from ..errors import (
    AggregationInconsistency,
    AttributionEngineError,
    PermissionDenied,
    RepositoryUnavailable,
)
from ..schemas import AttributionInsightsResponse, DashboardAnalyticsResponse, ErrorResponse
from ..services.attribution.config import AttributionConfig
from ..services.attribution.engine import MarketingAnalyticsEngine
from ..services.attribution.permissions import SqlRolePermissionChecker
from ..services.attribution.repositories import (
    SqlBundleMembershipRepository,
    SqlBundlePerformanceRepository,
    SqlCampaignInteractionRepository,
    SqlCampaignPerformanceRepository,
    SqlContentEngagementRepository,
    SqlContentPerformanceRepository,
    SqlCustomerOrderHistoryRepository,
    SqlOrderRepository,
    SqlPageViewRepository,
)
from ..services.attribution.types import TimeRange
from ..telemetry import ValidationMonitor, capture_exception, set_user_context

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/analytics/marketing",
    tags=["Marketing Analytics"],
)

ERROR_RESPONSES = {
    401: {"description": "Missing or invalid access token"},
    403: {"model": ErrorResponse, "description": "Caller lacks campaigns:view"},
    503: {"model": ErrorResponse, "description": "Order store unavailable"},
}


@lru_cache()
def get_monitor() -> ValidationMonitor:
    """Process-wide monitor so counters accumulate across requests."""
    return ValidationMonitor()


def build_engine(
    session_factory: Callable[[], Session],
    settings: Settings,
    sink=None,
) -> MarketingAnalyticsEngine:
    """Wire the engine to the SQL adapters.

    WHAT: Explicit constructor injection, one engine per request
    WHY: Runs stay independent; tests swap the factory for an in-memory one
    """
    return MarketingAnalyticsEngine(
        orders=SqlOrderRepository(session_factory),
        interactions=SqlCampaignInteractionRepository(session_factory),
        engagements=SqlContentEngagementRepository(session_factory),
        bundles=SqlBundleMembershipRepository(session_factory),
        history=SqlCustomerOrderHistoryRepository(session_factory),
        permissions=SqlRolePermissionChecker(session_factory),
        sink=sink if sink is not None else get_monitor(),
        config=AttributionConfig.from_settings(settings),
        page_views=SqlPageViewRepository(session_factory),
        campaign_performance=SqlCampaignPerformanceRepository(session_factory),
        content_performance=SqlContentPerformanceRepository(session_factory),
        bundle_performance=SqlBundlePerformanceRepository(session_factory),
    )


def _time_range(start: Optional[datetime], end: Optional[datetime], settings: Settings) -> Optional[TimeRange]:
    if start is None and end is None:
        return None

    def _aware(value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if start is None or end is None:
        fallback = TimeRange.last_days(settings.DEFAULT_WINDOW_DAYS, now=_aware(end) if end else None)
        start = start or fallback.start
        end = end or fallback.end

    try:
        return TimeRange(start=_aware(start), end=_aware(end))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


def _to_http_error(error: AttributionEngineError) -> HTTPException:
    if isinstance(error, PermissionDenied):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, RepositoryUnavailable):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(error, AggregationInconsistency):
        capture_exception(error, extra={"phase": error.phase})
        logger.error("[ANALYTICS] %s", error)

    return HTTPException(
        status_code=code,
        detail=error.to_user_message(),
        headers={"X-Analytics-Phase": error.phase or "unknown"},
    )


@router.get(
    "/dashboard",
    response_model=DashboardAnalyticsResponse,
    responses=ERROR_RESPONSES,
    summary="Marketing dashboard with order attribution",
    description="""
    Overview metrics, per-entity performance (active campaigns, published
    content and active bundles), revenue by channel and growth, and order attribution
    (per-campaign and per-content summaries plus the source distribution)
    for the requested window. Defaults to the last DEFAULT_WINDOW_DAYS days.
    """,
)
def get_dashboard(
    start: Optional[datetime] = Query(default=None, description="Window start (ISO 8601)"),
    end: Optional[datetime] = Query(default=None, description="Window end (ISO 8601)"),
    caller_id: str = Depends(get_current_caller),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
):
    set_user_context(caller_id)
    engine = build_engine(session_factory, settings)

    try:
        result = engine.run_dashboard_analytics(_time_range(start, end, settings), caller_id)
    except AttributionEngineError as e:
        raise _to_http_error(e) from e

    return DashboardAnalyticsResponse.model_validate(result)


@router.get(
    "/attribution-insights",
    response_model=AttributionInsightsResponse,
    responses=ERROR_RESPONSES,
    summary="Order attribution insights and recommendations",
    description="""
    Per-campaign and per-content attribution, the source distribution,
    top performers and threshold-based recommendations for the window.
    """,
)
def get_attribution_insights(
    start: Optional[datetime] = Query(default=None, description="Window start (ISO 8601)"),
    end: Optional[datetime] = Query(default=None, description="Window end (ISO 8601)"),
    caller_id: str = Depends(get_current_caller),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
):
    set_user_context(caller_id)
    engine = build_engine(session_factory, settings)

    try:
        result = engine.run_attribution_insights(_time_range(start, end, settings), caller_id)
    except AttributionEngineError as e:
        raise _to_http_error(e) from e

    return AttributionInsightsResponse.model_validate(result)
