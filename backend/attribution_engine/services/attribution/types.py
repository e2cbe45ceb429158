"""Domain types for order attribution analytics.

WHAT:
    Immutable value objects shared by the resolver, batch processor,
    aggregation engine and insight generator.

WHY:
    Every analytics run derives these fresh from repository data. Nothing here
    is persisted, so plain frozen dataclasses are enough and keep runs free of
    hidden state.

REFERENCES:
    - services/attribution/resolver.py: produces AttributionRecord
    - services/attribution/aggregation.py: consumes AttributionRecord
    - schemas.py: pydantic response models built from these dataclasses
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple


# Enums ---------------------------------------------------------

class AttributionSource(str, enum.Enum):
    """Touchpoint credited with an order. Exactly one per order."""
    campaign = "campaign"
    content = "content"
    bundle = "bundle"
    organic = "organic"
    direct = "direct"


class CustomerSegment(str, enum.Enum):
    """Customer class derived from prior order history (never stored)."""
    new_customer = "new_customer"
    occasional = "occasional"
    regular = "regular"
    premium = "premium"
    high_value = "high_value"


class RecommendationType(str, enum.Enum):
    campaign = "campaign"
    content = "content"
    general = "general"


class RecommendationPriority(str, enum.Enum):
    high = "high"
    medium = "medium"
    low = "low"


# Inputs ----------------------------------------------------------

@dataclass(frozen=True)
class TimeRange:
    """Closed analytics window [start, end]."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"TimeRange start {self.start} is after end {self.end}")

    @classmethod
    def last_days(cls, days: int, now: Optional[datetime] = None) -> "TimeRange":
        """Window covering the last `days` days up to `now`."""
        end = now or datetime.now(timezone.utc)
        return cls(start=end - timedelta(days=days), end=end)

    def previous(self) -> "TimeRange":
        """Equally long window ending where this one starts."""
        duration = self.end - self.start
        return TimeRange(start=self.start - duration, end=self.start)


@dataclass(frozen=True)
class LineItem:
    product_id: str
    quantity: int
    line_total: float
    product_name: Optional[str] = None


@dataclass(frozen=True)
class Order:
    """Order fact read from the order store.

    `customer_id` is the user id, or the customer email for guest checkouts.
    """

    id: str
    total: float
    customer_id: Optional[str]
    created_at: datetime
    line_items: Tuple[LineItem, ...] = ()
    channel: Optional[str] = None


@dataclass(frozen=True)
class CampaignInteraction:
    campaign_id: str
    campaign_name: Optional[str]
    interaction_type: str
    occurred_at: Optional[datetime] = None


@dataclass(frozen=True)
class ContentEngagement:
    content_id: str
    content_title: Optional[str]
    engagement_type: str
    occurred_at: Optional[datetime] = None


@dataclass(frozen=True)
class Bundle:
    id: str
    name: Optional[str]


# Attribution -----------------------------------------------------

@dataclass(frozen=True)
class AttributionRecord:
    """One resolved order.

    `source_id` and `source_name` are None only for direct/organic orders.
    `conversion_path` is never empty; `time_to_conversion_minutes` is >= 0,
    where 0 means immediate or unknown.
    """

    order_id: str
    order_value: float
    customer_id: Optional[str]
    customer_segment: CustomerSegment
    attribution_source: AttributionSource
    source_id: Optional[str]
    source_name: Optional[str]
    conversion_path: Tuple[str, ...]
    time_to_conversion_minutes: float
    created_at: datetime
    line_items: Tuple[LineItem, ...] = ()


@dataclass(frozen=True)
class ResolutionFailure:
    order_id: Optional[str]  # None when the order itself had no id
    cause: str


@dataclass
class BatchResult:
    """Output of one resilient batch run."""

    records: List[AttributionRecord] = field(default_factory=list)
    failures: List[ResolutionFailure] = field(default_factory=list)
    processed: int = 0
    skipped: int = 0
    total: int = 0

    def __repr__(self):
        return (
            f"BatchResult(total={self.total}, processed={self.processed}, "
            f"skipped={self.skipped})"
        )


# Per-entity performance ---------------------------------------

@dataclass(frozen=True)
class EntityRef:
    """Id and display name of a campaign, content piece or bundle."""

    id: str
    name: Optional[str]


@dataclass(frozen=True)
class CampaignMetricRow:
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    revenue: float = 0.0
    cost: float = 0.0


@dataclass(frozen=True)
class ContentMetricRow:
    views: int = 0
    engagement_rate: float = 0.0
    shares: int = 0
    time_on_page: float = 0.0


@dataclass(frozen=True)
class BundleSale:
    order_id: str
    quantity: int
    line_total: float


@dataclass(frozen=True)
class CampaignPerformance:
    """Delivery and return for one active campaign. Ratios are 0-100."""

    campaign_id: str
    campaign_name: str
    impressions: int
    clicks: int
    conversions: int
    revenue: float
    roi: float
    ctr: float
    conversion_rate: float
    cost_per_conversion: float


@dataclass(frozen=True)
class ContentPerformance:
    content_id: str
    content_title: str
    views: int
    engagement_rate: float
    share_count: int
    average_time_on_page: float


@dataclass(frozen=True)
class BundlePerformance:
    bundle_id: str
    bundle_name: str
    units_sold: int
    revenue: float
    average_order_value: float


# Aggregates ------------------------------------------------------

@dataclass(frozen=True)
class ConversionTimeStats:
    average: float = 0.0
    median: float = 0.0
    min: float = 0.0
    max: float = 0.0


@dataclass(frozen=True)
class SegmentShare:
    orders: int
    revenue: float
    percentage: float


@dataclass(frozen=True)
class ProductPerformance:
    product_id: str
    product_name: Optional[str]
    quantity: int
    revenue: float
    order_count: int


@dataclass(frozen=True)
class CampaignAttributionSummary:
    campaign_id: str
    campaign_name: str
    total_attributed_orders: int
    total_attributed_revenue: float
    average_order_value: float
    time_to_conversion: ConversionTimeStats
    customer_segment_breakdown: Dict[str, SegmentShare]
    top_products: List[ProductPerformance]


@dataclass(frozen=True)
class ContentAttributionSummary:
    content_id: str
    content_title: str
    total_attributed_orders: int
    total_attributed_revenue: float
    average_order_value: float
    conversion_impact: float
    average_influence_time: float
    time_to_conversion: ConversionTimeStats
    customer_segment_breakdown: Dict[str, SegmentShare]
    top_influenced_products: List[ProductPerformance]


@dataclass(frozen=True)
class AttributionDistribution:
    """Percentage of orders per attribution source."""

    campaign_driven: float = 0.0
    content_driven: float = 0.0
    bundle_driven: float = 0.0
    organic: float = 0.0
    direct: float = 0.0

    def share(self, source: AttributionSource) -> float:
        return {
            AttributionSource.campaign: self.campaign_driven,
            AttributionSource.content: self.content_driven,
            AttributionSource.bundle: self.bundle_driven,
            AttributionSource.organic: self.organic,
            AttributionSource.direct: self.direct,
        }[source]

    def total(self) -> float:
        return (
            self.campaign_driven
            + self.content_driven
            + self.bundle_driven
            + self.organic
            + self.direct
        )


@dataclass(frozen=True)
class Recommendation:
    type: RecommendationType
    priority: RecommendationPriority
    message: str
    action: str


@dataclass(frozen=True)
class OrderAttributionAnalytics:
    campaigns: List[CampaignAttributionSummary]
    content: List[ContentAttributionSummary]
    distribution: AttributionDistribution
    processed: int
    skipped: int


@dataclass(frozen=True)
class AttributionInsights:
    campaigns: List[CampaignAttributionSummary]
    content: List[ContentAttributionSummary]
    distribution: AttributionDistribution
    processed: int
    skipped: int
    top_performing_campaigns: List[CampaignAttributionSummary]
    top_influential_content: List[ContentAttributionSummary]
    recommendations: List[Recommendation]


@dataclass(frozen=True)
class OverviewMetrics:
    total_revenue: float
    total_orders: int
    average_order_value: float
    conversion_rate: float


@dataclass(frozen=True)
class RevenueMetrics:
    total_revenue: float
    revenue_by_channel: Dict[str, float]
    revenue_growth: float
    average_order_value: float
    lifetime_value: float


@dataclass(frozen=True)
class DashboardAnalytics:
    time_range: TimeRange
    overview: OverviewMetrics
    campaigns: List[CampaignPerformance]
    content: List[ContentPerformance]
    bundles: List[BundlePerformance]
    revenue: RevenueMetrics
    order_attribution: OrderAttributionAnalytics
