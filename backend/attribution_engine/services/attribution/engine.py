"""
Marketing Analytics Engine
==========================

Top-level entry points for order attribution analytics.

WHAT:
    - run_dashboard_analytics(): overview + per-entity performance + revenue
      metrics + order attribution
    - run_attribution_insights(): order attribution + ranked recommendations

FLOW (both entry points):
    1. Permission check (`campaigns:view`) before any repository is touched
    2. Fetch orders for the window (fatal on failure: RepositoryUnavailable)
    3. ResilientBatchProcessor resolves every order, skipping failures
    4. aggregate() reduces records into summaries + distribution
    5. Dashboard: overview, per-entity performance and revenue metrics /
       Insights: InsightGenerator

PER-ENTITY PERFORMANCE:
    Listing the active campaigns, published content or bundles is fatal on
    failure (RepositoryUnavailable with phase campaign_performance,
    content_performance or bundle_performance). Reading one entity's metrics
    is not: that entity falls back to an all-zero card and a warning is logged.

STATE:
    The engine holds only injected collaborators and config. Each call is
    independent, so one engine instance may serve concurrent runs.

MONITORING:
    Each run emits exactly one record_success (with duration) or one
    record_failure before the error is re-raised.

REFERENCES:
    - routers/analytics.py: builds the engine per request with SQL adapters
    - services/attribution/batch.py, aggregation.py, insights.py
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, TypeVar

from ...errors import AttributionEngineError, PermissionDenied, RepositoryUnavailable
from .aggregation import aggregate
from .batch import PATTERN, ResilientBatchProcessor
from .config import AttributionConfig
from .insights import InsightGenerator
from .performance import (
    summarize_bundle_performance,
    summarize_campaign_performance,
    summarize_content_performance,
)
from .permissions import CAMPAIGNS_VIEW, PermissionChecker
from .repositories import (
    BundleMembershipRepository,
    BundlePerformanceRepository,
    CampaignInteractionRepository,
    CampaignPerformanceRepository,
    ContentEngagementRepository,
    ContentPerformanceRepository,
    CustomerOrderHistoryRepository,
    OrderRepository,
    PageViewRepository,
)
from .resolver import AttributionResolver
from .types import (
    AttributionInsights,
    BundlePerformance,
    CampaignPerformance,
    ContentPerformance,
    DashboardAnalytics,
    EntityRef,
    Order,
    OrderAttributionAnalytics,
    OverviewMetrics,
    RevenueMetrics,
    TimeRange,
)

logger = logging.getLogger(__name__)

SERVICE = "MarketingAnalyticsEngine"
PERMISSION_DENIED = "PERMISSION_DENIED"
ANALYTICS_FETCH_FAILED = "ANALYTICS_FETCH_FAILED"
ATTRIBUTION_INSIGHTS_FAILED = "ATTRIBUTION_INSIGHTS_FAILED"

LIFETIME_VALUE_MULTIPLIER = 3
DEFAULT_CHANNEL = "direct"

Card = TypeVar("Card")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MarketingAnalyticsEngine:
    """
    Order attribution analytics over injected repositories.

    Usage:
        engine = MarketingAnalyticsEngine(
            orders=SqlOrderRepository(SessionLocal),
            interactions=SqlCampaignInteractionRepository(SessionLocal),
            engagements=SqlContentEngagementRepository(SessionLocal),
            bundles=SqlBundleMembershipRepository(SessionLocal),
            history=SqlCustomerOrderHistoryRepository(SessionLocal),
            permissions=SqlRolePermissionChecker(SessionLocal),
            sink=ValidationMonitor(),
        )
        insights = engine.run_attribution_insights(TimeRange.last_days(30), caller_id)
    """

    def __init__(
        self,
        orders: OrderRepository,
        interactions: CampaignInteractionRepository,
        engagements: ContentEngagementRepository,
        bundles: BundleMembershipRepository,
        history: CustomerOrderHistoryRepository,
        permissions: PermissionChecker,
        sink,
        config: AttributionConfig = AttributionConfig(),
        page_views: Optional[PageViewRepository] = None,
        campaign_performance: Optional[CampaignPerformanceRepository] = None,
        content_performance: Optional[ContentPerformanceRepository] = None,
        bundle_performance: Optional[BundlePerformanceRepository] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.orders = orders
        self.permissions = permissions
        self.sink = sink
        self.config = config
        self.page_views = page_views
        self.campaign_performance = campaign_performance
        self.content_performance = content_performance
        self.bundle_performance = bundle_performance
        self.clock = clock or _utcnow

        self.resolver = AttributionResolver.with_default_strategies(
            interactions, engagements, bundles, history, config, sink=sink
        )
        self.processor = ResilientBatchProcessor(
            self.resolver,
            sink,
            max_workers=config.max_workers,
            timeout_seconds=config.run_timeout_seconds,
        )
        self.insight_generator = InsightGenerator(config.insights)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run_dashboard_analytics(
        self,
        time_range: Optional[TimeRange],
        caller_id: Optional[str],
    ) -> DashboardAnalytics:
        operation = "run_dashboard_analytics"
        started = time.monotonic()
        try:
            self._require_permission(caller_id)
            window = self._window(time_range)
            orders = self._fetch_orders(window, phase="fetch_orders")

            result = DashboardAnalytics(
                time_range=window,
                overview=self._overview(window, orders),
                campaigns=self._campaign_performance(window),
                content=self._content_performance(window),
                bundles=self._bundle_performance(window),
                revenue=self._revenue(window, orders),
                order_attribution=self._order_attribution(orders),
            )
        except Exception as e:
            self._record_run_failure(operation, ANALYTICS_FETCH_FAILED, e)
            raise

        self._record_run_success(operation, started)
        return result

    def run_attribution_insights(
        self,
        time_range: Optional[TimeRange],
        caller_id: Optional[str],
    ) -> AttributionInsights:
        operation = "run_attribution_insights"
        started = time.monotonic()
        try:
            self._require_permission(caller_id)
            window = self._window(time_range)
            orders = self._fetch_orders(window, phase="fetch_orders")

            analytics = self._order_attribution(orders)
            insight_set = self.insight_generator.generate(
                analytics.campaigns, analytics.content, analytics.distribution
            )
            result = AttributionInsights(
                campaigns=analytics.campaigns,
                content=analytics.content,
                distribution=analytics.distribution,
                processed=analytics.processed,
                skipped=analytics.skipped,
                top_performing_campaigns=insight_set.top_performing_campaigns,
                top_influential_content=insight_set.top_influential_content,
                recommendations=insight_set.recommendations,
            )
        except Exception as e:
            self._record_run_failure(operation, ATTRIBUTION_INSIGHTS_FAILED, e)
            raise

        self._record_run_success(operation, started)
        return result

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _require_permission(self, caller_id: Optional[str]) -> None:
        try:
            allowed = bool(caller_id) and self.permissions.has_permission(caller_id, CAMPAIGNS_VIEW)
        except Exception as e:
            logger.warning("[ATTRIBUTION] Permission check failed for %s: %s", caller_id, e)
            allowed = False

        if not allowed:
            raise PermissionDenied(caller_id, CAMPAIGNS_VIEW)

    def _window(self, time_range: Optional[TimeRange]) -> TimeRange:
        if time_range is not None:
            return time_range
        return TimeRange.last_days(self.config.default_window_days, now=self.clock())

    def _fetch_orders(self, window: TimeRange, phase: str) -> List[Order]:
        try:
            return list(self.orders.fetch_orders(window))
        except Exception as e:
            raise RepositoryUnavailable("OrderRepository", phase, e) from e

    def _order_attribution(self, orders: List[Order]) -> OrderAttributionAnalytics:
        batch = self.processor.process(orders)
        campaigns, content, distribution = aggregate(batch.records, self.config.top_products_limit)
        return OrderAttributionAnalytics(
            campaigns=campaigns,
            content=content,
            distribution=distribution,
            processed=batch.processed,
            skipped=batch.skipped,
        )

    def _overview(self, window: TimeRange, orders: List[Order]) -> OverviewMetrics:
        total_orders = len(orders)
        total_revenue = sum(o.total for o in orders)

        page_views = 0
        if self.page_views is not None:
            try:
                page_views = self.page_views.count_page_views(window)
            except Exception as e:
                raise RepositoryUnavailable("PageViewRepository", "overview", e) from e

        return OverviewMetrics(
            total_revenue=total_revenue,
            total_orders=total_orders,
            average_order_value=total_revenue / total_orders if total_orders else 0.0,
            conversion_rate=total_orders / (page_views or 1) * 100,
        )

    def _campaign_performance(self, window: TimeRange) -> List[CampaignPerformance]:
        repo = self.campaign_performance
        if repo is None:
            return []
        return self._entity_performance(
            "CampaignPerformanceRepository",
            "campaign_performance",
            list_entities=lambda: repo.active_campaigns(window),
            read_metrics=lambda campaign: repo.campaign_metrics(campaign.id, window),
            summarize=summarize_campaign_performance,
        )

    def _content_performance(self, window: TimeRange) -> List[ContentPerformance]:
        repo = self.content_performance
        if repo is None:
            return []
        return self._entity_performance(
            "ContentPerformanceRepository",
            "content_performance",
            list_entities=lambda: repo.published_content(window),
            read_metrics=lambda content: repo.content_metrics(content.id, window),
            summarize=summarize_content_performance,
        )

    def _bundle_performance(self, window: TimeRange) -> List[BundlePerformance]:
        repo = self.bundle_performance
        if repo is None:
            return []
        return self._entity_performance(
            "BundlePerformanceRepository",
            "bundle_performance",
            list_entities=repo.active_bundles,
            read_metrics=lambda bundle: repo.bundle_sales(bundle.id, window),
            summarize=summarize_bundle_performance,
        )

    def _entity_performance(
        self,
        repository: str,
        phase: str,
        list_entities: Callable[[], Sequence[EntityRef]],
        read_metrics: Callable[[EntityRef], Sequence],
        summarize: Callable[[EntityRef, Sequence], Card],
    ) -> List[Card]:
        try:
            entities = list(list_entities())
        except Exception as e:
            raise RepositoryUnavailable(repository, phase, e) from e

        cards = []
        for entity in entities:
            try:
                rows = list(read_metrics(entity))
            except Exception as e:
                logger.warning("[ANALYTICS] %s: metrics for %s unavailable, using zeros: %s", phase, entity.id, e)
                rows = []
            cards.append(summarize(entity, rows))
        return cards

    def _revenue(self, window: TimeRange, orders: List[Order]) -> RevenueMetrics:
        previous_orders = self._fetch_orders(window.previous(), phase="revenue_metrics")

        total_revenue = sum(o.total for o in orders)
        previous_total = sum(o.total for o in previous_orders)

        by_channel = {}
        for order in orders:
            channel = order.channel or DEFAULT_CHANNEL
            by_channel[channel] = by_channel.get(channel, 0.0) + order.total

        growth = (total_revenue - previous_total) / previous_total * 100 if previous_total > 0 else 0.0
        average_order_value = total_revenue / len(orders) if orders else 0.0

        return RevenueMetrics(
            total_revenue=total_revenue,
            revenue_by_channel=by_channel,
            revenue_growth=growth,
            average_order_value=average_order_value,
            lifetime_value=average_order_value * LIFETIME_VALUE_MULTIPLIER,
        )

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def _record_run_success(self, operation: str, started: float) -> None:
        self.sink.record_success(
            service=SERVICE,
            operation=operation,
            pattern=PATTERN,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    def _record_run_failure(self, operation: str, error_code: str, error: Exception) -> None:
        if isinstance(error, PermissionDenied):
            error_code = PERMISSION_DENIED
        phase = error.phase if isinstance(error, AttributionEngineError) else None

        logger.warning("[ATTRIBUTION] %s failed in phase %s: %s", operation, phase, error)
        self.sink.record_failure(
            context=f"{SERVICE}.{operation}",
            error_code=error_code,
            message=str(error),
            pattern=PATTERN,
            extra={"phase": phase},
        )
