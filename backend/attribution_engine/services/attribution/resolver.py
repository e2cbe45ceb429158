"""Attribution Resolver - one order in, one AttributionRecord out.

WHAT:
    Decides which marketing touchpoint caused an order and classifies the
    purchasing customer.

HOW:
    An explicit, ordered list of strategies is tried until one matches:

        1. CampaignStrategy  - most recent campaign interaction
        2. ContentStrategy   - most recent content engagement
        3. BundleStrategy    - first line item whose product is in an active bundle
        4. (fallback)        - direct

    Later strategies are never invoked once an earlier one matches, so a
    campaign match can never be overridden by content or bundle data.
    Customer segmentation runs for every order regardless of the outcome.

ERRORS:
    Any lookup/segmentation error, or a malformed order, is wrapped in
    ResolutionFailed(order_id, cause). The resolver never decides retry/skip
    policy; that belongs to the batch processor.

REFERENCES:
    - services/attribution/batch.py: caller
    - services/attribution/config.py: SegmentThresholds and lookup limits
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol, Sequence, Tuple, TypeVar

from ...errors import ResolutionFailed
from .config import AttributionConfig, SegmentThresholds
from .repositories import (
    BundleMembershipRepository,
    CampaignInteractionRepository,
    ContentEngagementRepository,
    CustomerOrderHistoryRepository,
)
from .types import (
    AttributionRecord,
    AttributionSource,
    CustomerSegment,
    Order,
    ResolutionFailure,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNKNOWN_CAMPAIGN = "Unknown Campaign"
UNKNOWN_CONTENT = "Unknown Content"
UNKNOWN_BUNDLE = "Unknown Bundle"


# =============================================================================
# STRATEGIES
# =============================================================================

@dataclass(frozen=True)
class StrategyMatch:
    """Outcome of one strategy: either no match, or a record fragment."""

    matched: bool
    source: Optional[AttributionSource] = None
    source_id: Optional[str] = None
    source_name: Optional[str] = None
    conversion_path: Tuple[str, ...] = ()
    time_to_conversion_minutes: float = 0.0


NO_MATCH = StrategyMatch(matched=False)

DIRECT_MATCH = StrategyMatch(
    matched=True,
    source=AttributionSource.direct,
    conversion_path=("direct",),
)


class AttributionStrategy(Protocol):
    name: str

    def match(self, order: Order) -> StrategyMatch:
        ...


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _minutes_between(earlier: Optional[datetime], later: datetime) -> float:
    """Minutes from touchpoint to order, 0 when unknown."""
    if earlier is None:
        return 0.0
    delta = (_as_utc(later) - _as_utc(earlier)).total_seconds() / 60.0
    return max(delta, 0.0)


def _most_recent_eligible(
    touchpoints: Sequence[T],
    occurred_at: Callable[[T], Optional[datetime]],
    order_time: datetime,
    lookback_days: Optional[int],
) -> Optional[T]:
    """First touchpoint (list is most-recent-first) inside the lookback window.

    Touchpoints after the order never qualify. Touchpoints without a
    timestamp qualify with unknown timing.
    """
    order_time = _as_utc(order_time)
    window_start = order_time - timedelta(days=lookback_days) if lookback_days is not None else None

    for touchpoint in touchpoints:
        when = occurred_at(touchpoint)
        if when is None:
            return touchpoint
        when = _as_utc(when)
        if when > order_time:
            continue
        if window_start is not None and when < window_start:
            continue
        return touchpoint
    return None


class CampaignStrategy:
    """Credit the campaign of the customer's most recent interaction."""

    name = "campaign"

    def __init__(
        self,
        interactions: CampaignInteractionRepository,
        limit: int = 5,
        lookback_days: Optional[int] = 30,
        sink=None,
    ):
        self.interactions = interactions
        self.limit = limit
        self.lookback_days = lookback_days
        self.sink = sink

    def match(self, order: Order) -> StrategyMatch:
        if not order.customer_id:
            return NO_MATCH

        interactions = self.interactions.recent_interactions(
            order.customer_id, self.limit, before=order.created_at
        )
        interaction = _most_recent_eligible(
            interactions, lambda i: i.occurred_at, order.created_at, self.lookback_days
        )
        if interaction is None:
            return NO_MATCH

        name = interaction.campaign_name
        if not name:
            name = UNKNOWN_CAMPAIGN
            if self.sink is not None:
                self.sink.record_data_quality_issue(
                    "missing_field", "campaign has no name", "low",
                    "campaign", interaction.campaign_id,
                )

        return StrategyMatch(
            matched=True,
            source=AttributionSource.campaign,
            source_id=interaction.campaign_id,
            source_name=name,
            conversion_path=(interaction.interaction_type, "order"),
            time_to_conversion_minutes=_minutes_between(interaction.occurred_at, order.created_at),
        )


class ContentStrategy:
    """Credit the content of the customer's most recent engagement."""

    name = "content"

    def __init__(
        self,
        engagements: ContentEngagementRepository,
        limit: int = 3,
        lookback_days: Optional[int] = 30,
        sink=None,
    ):
        self.engagements = engagements
        self.limit = limit
        self.lookback_days = lookback_days
        self.sink = sink

    def match(self, order: Order) -> StrategyMatch:
        if not order.customer_id:
            return NO_MATCH

        engagements = self.engagements.recent_engagements(
            order.customer_id, self.limit, before=order.created_at
        )
        engagement = _most_recent_eligible(
            engagements, lambda e: e.occurred_at, order.created_at, self.lookback_days
        )
        if engagement is None:
            return NO_MATCH

        title = engagement.content_title
        if not title:
            title = UNKNOWN_CONTENT
            if self.sink is not None:
                self.sink.record_data_quality_issue(
                    "missing_field", "content has no title", "low",
                    "content", engagement.content_id,
                )

        return StrategyMatch(
            matched=True,
            source=AttributionSource.content,
            source_id=engagement.content_id,
            source_name=title,
            conversion_path=("content_view", "order"),
            time_to_conversion_minutes=_minutes_between(engagement.occurred_at, order.created_at),
        )


class BundleStrategy:
    """Credit the first active bundle containing one of the order's products."""

    name = "bundle"

    def __init__(self, bundles: BundleMembershipRepository):
        self.bundles = bundles

    def match(self, order: Order) -> StrategyMatch:
        for item in order.line_items:
            bundle = self.bundles.bundle_for_product(item.product_id)
            if bundle is None:
                continue
            return StrategyMatch(
                matched=True,
                source=AttributionSource.bundle,
                source_id=bundle.id,
                source_name=bundle.name or UNKNOWN_BUNDLE,
                conversion_path=("bundle_view", "order"),
                time_to_conversion_minutes=0.0,  # bundle purchases count as immediate
            )
        return NO_MATCH


# =============================================================================
# CUSTOMER SEGMENTATION
# =============================================================================

def classify_segment(
    order_count: int,
    total_value: float,
    thresholds: SegmentThresholds = SegmentThresholds(),
) -> CustomerSegment:
    """Segment from a customer's prior order aggregate."""
    if order_count <= 0:
        return CustomerSegment.new_customer

    average_value = total_value / order_count
    if total_value > thresholds.high_value_total:
        return CustomerSegment.high_value
    if average_value > thresholds.premium_average:
        return CustomerSegment.premium
    if order_count > thresholds.regular_order_count:
        return CustomerSegment.regular
    return CustomerSegment.occasional


class CustomerSegmenter:
    """Classifies the customer behind an order from their other orders."""

    def __init__(
        self,
        history: CustomerOrderHistoryRepository,
        thresholds: SegmentThresholds = SegmentThresholds(),
    ):
        self.history = history
        self.thresholds = thresholds

    def segment(self, order: Order) -> CustomerSegment:
        if not order.customer_id:
            return CustomerSegment.new_customer

        prior_orders = self.history.orders_excluding(order.customer_id, order.id)
        total_value = sum(o.total for o in prior_orders)
        return classify_segment(len(prior_orders), total_value, self.thresholds)


# =============================================================================
# RESOLVER
# =============================================================================

@dataclass(frozen=True)
class ResolutionResult:
    """Tagged result: exactly one of `record` / `error` is set."""

    order_id: Optional[str]
    record: Optional[AttributionRecord] = None
    error: Optional[ResolutionFailed] = None

    @property
    def ok(self) -> bool:
        return self.record is not None

    @property
    def failure(self) -> Optional[ResolutionFailure]:
        if self.error is None:
            return None
        return ResolutionFailure(order_id=self.order_id, cause=str(self.error.cause))


def _validate_order(order: Order) -> None:
    if not order.id:
        raise ValueError("order has no id")
    if order.created_at is None:
        raise ValueError("order has no created_at")
    if order.total is None or math.isnan(order.total) or order.total < 0:
        raise ValueError(f"order total is invalid: {order.total!r}")


class AttributionResolver:
    """
    Resolves one order into an AttributionRecord.

    Usage:
        resolver = AttributionResolver.with_default_strategies(
            interactions, engagements, bundles, history, config
        )
        record = resolver.resolve(order)          # raises ResolutionFailed
        result = resolver.resolve_safely(order)   # never raises
    """

    def __init__(
        self,
        strategies: Sequence[AttributionStrategy],
        segmenter: CustomerSegmenter,
    ):
        self.strategies = tuple(strategies)
        self.segmenter = segmenter

    @classmethod
    def with_default_strategies(
        cls,
        interactions: CampaignInteractionRepository,
        engagements: ContentEngagementRepository,
        bundles: BundleMembershipRepository,
        history: CustomerOrderHistoryRepository,
        config: AttributionConfig = AttributionConfig(),
        sink=None,
    ) -> "AttributionResolver":
        strategies = (
            CampaignStrategy(
                interactions,
                limit=config.campaign_interaction_limit,
                lookback_days=config.lookback_days,
                sink=sink,
            ),
            ContentStrategy(
                engagements,
                limit=config.content_engagement_limit,
                lookback_days=config.lookback_days,
                sink=sink,
            ),
            BundleStrategy(bundles),
        )
        return cls(strategies, CustomerSegmenter(history, config.segments))

    def first_match(self, order: Order) -> StrategyMatch:
        """Run strategies in priority order; direct when none match."""
        for strategy in self.strategies:
            match = strategy.match(order)
            if match.matched:
                logger.debug("[ATTRIBUTION] Order %s matched %s", order.id, strategy.name)
                return match
        return DIRECT_MATCH

    def resolve(self, order: Order) -> AttributionRecord:
        order_id = getattr(order, "id", None)
        try:
            _validate_order(order)
            match = self.first_match(order)
            segment = self.segmenter.segment(order)
        except ResolutionFailed:
            raise
        except Exception as e:
            raise ResolutionFailed(order_id, e) from e

        return AttributionRecord(
            order_id=order.id,
            order_value=float(order.total),
            customer_id=order.customer_id,
            customer_segment=segment,
            attribution_source=match.source,
            source_id=match.source_id,
            source_name=match.source_name,
            conversion_path=match.conversion_path,
            time_to_conversion_minutes=match.time_to_conversion_minutes,
            created_at=order.created_at,
            line_items=tuple(order.line_items),
        )

    def resolve_safely(self, order: Order) -> ResolutionResult:
        order_id = getattr(order, "id", None)
        try:
            return ResolutionResult(order_id=order_id, record=self.resolve(order))
        except ResolutionFailed as e:
            return ResolutionResult(order_id=order_id, error=e)
