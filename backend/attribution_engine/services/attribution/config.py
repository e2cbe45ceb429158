"""Tunable thresholds for attribution analytics.

WHAT: Frozen dataclasses holding every business threshold the engine uses
WHY: Thresholds are configuration, not business law. They come from
     `deps.Settings` in production and are passed in explicitly in tests.
REFERENCES:
  - deps.py: Settings fields with matching names
  - services/attribution/resolver.py: SegmentThresholds, lookup limits
  - services/attribution/insights.py: InsightThresholds
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class SegmentThresholds:
    """
    Customer segmentation thresholds.

    Attributes:
        high_value_total: Historical revenue above which a customer is high_value
        premium_average: Average historical order value above which a customer is premium
        regular_order_count: Prior order count above which a customer is regular
    """

    high_value_total: float = 200.0
    premium_average: float = 50.0
    regular_order_count: int = 3


@dataclass(frozen=True)
class InsightThresholds:
    """
    Recommendation rule thresholds (percentages are 0-100).

    Attributes:
        campaign_share_floor: Flag campaigns when campaign share drops below this
        content_share_floor: Flag content when content share drops below this
        direct_share_ceiling: Flag tracking when direct share exceeds this
        high_revenue_campaign: Attributed revenue that makes a campaign worth replicating
        high_impact_content: Conversion impact that makes content worth replicating
        top_performers_limit: Cap for top campaign/content lists
    """

    campaign_share_floor: float = 30.0
    content_share_floor: float = 20.0
    direct_share_ceiling: float = 60.0
    high_revenue_campaign: float = 1000.0
    high_impact_content: float = 15.0
    top_performers_limit: int = 5


@dataclass(frozen=True)
class AttributionConfig:
    """Everything an analytics run needs besides its collaborators."""

    segments: SegmentThresholds = field(default_factory=SegmentThresholds)
    insights: InsightThresholds = field(default_factory=InsightThresholds)
    campaign_interaction_limit: int = 5
    content_engagement_limit: int = 3
    lookback_days: Optional[int] = 30
    max_workers: int = 8
    run_timeout_seconds: Optional[float] = None
    default_window_days: int = 30
    top_products_limit: int = 5

    @classmethod
    def from_settings(cls, settings) -> "AttributionConfig":
        """Build from `deps.Settings`."""
        return cls(
            segments=SegmentThresholds(
                high_value_total=settings.SEGMENT_HIGH_VALUE_TOTAL,
                premium_average=settings.SEGMENT_PREMIUM_AVERAGE,
                regular_order_count=settings.SEGMENT_REGULAR_ORDER_COUNT,
            ),
            insights=InsightThresholds(
                campaign_share_floor=settings.CAMPAIGN_SHARE_FLOOR,
                content_share_floor=settings.CONTENT_SHARE_FLOOR,
                direct_share_ceiling=settings.DIRECT_SHARE_CEILING,
                high_revenue_campaign=settings.HIGH_REVENUE_CAMPAIGN_THRESHOLD,
                high_impact_content=settings.HIGH_IMPACT_CONTENT_THRESHOLD,
                top_performers_limit=settings.TOP_PERFORMERS_LIMIT,
            ),
            campaign_interaction_limit=settings.CAMPAIGN_INTERACTION_LIMIT,
            content_engagement_limit=settings.CONTENT_ENGAGEMENT_LIMIT,
            lookback_days=settings.ATTRIBUTION_LOOKBACK_DAYS,
            max_workers=settings.ATTRIBUTION_MAX_WORKERS,
            run_timeout_seconds=settings.ATTRIBUTION_RUN_TIMEOUT_SECONDS,
            default_window_days=settings.DEFAULT_WINDOW_DAYS,
            top_products_limit=settings.TOP_PRODUCTS_LIMIT,
        )
