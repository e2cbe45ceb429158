"""Pydantic schemas for analytics responses.

Engine results are frozen dataclasses; these models validate them with
`from_attributes=True` so routers can return `Model.model_validate(result)`.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .services.attribution.types import (
    RecommendationPriority,
    RecommendationType,
)


class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service status", examples=["ok"])


class ErrorResponse(BaseModel):
    """Error body for failed analytics runs."""

    detail: str = Field(description="Human-readable reason; the failed run phase is in X-Analytics-Phase")


class TimeRangeOut(_FromAttributes):
    start: datetime
    end: datetime


class ConversionTimeStatsOut(_FromAttributes):
    """Minutes from touchpoint to order; zero-minute records are excluded."""

    average: float
    median: float
    min: float
    max: float


class SegmentShareOut(_FromAttributes):
    orders: int
    revenue: float
    percentage: float = Field(description="Share of the group's orders (0-100)")


class ProductPerformanceOut(_FromAttributes):
    product_id: str
    product_name: Optional[str] = None
    quantity: int
    revenue: float
    order_count: int


class CampaignAttributionOut(_FromAttributes):
    campaign_id: str
    campaign_name: str
    total_attributed_orders: int
    total_attributed_revenue: float
    average_order_value: float
    time_to_conversion: ConversionTimeStatsOut
    customer_segment_breakdown: Dict[str, SegmentShareOut]
    top_products: List[ProductPerformanceOut]


class ContentAttributionOut(_FromAttributes):
    content_id: str
    content_title: str
    total_attributed_orders: int
    total_attributed_revenue: float
    average_order_value: float
    conversion_impact: float = Field(description="Share of content-attributed orders (0-100)")
    average_influence_time: float = Field(description="Mean minutes from engagement to order")
    time_to_conversion: ConversionTimeStatsOut
    customer_segment_breakdown: Dict[str, SegmentShareOut]
    top_influenced_products: List[ProductPerformanceOut]


class AttributionDistributionOut(_FromAttributes):
    """Percentage of orders per attribution source (sums to 100, or all 0)."""

    campaign_driven: float
    content_driven: float
    bundle_driven: float
    organic: float
    direct: float


class RecommendationOut(_FromAttributes):
    type: RecommendationType
    priority: RecommendationPriority
    message: str
    action: str


class OrderAttributionOut(_FromAttributes):
    campaigns: List[CampaignAttributionOut]
    content: List[ContentAttributionOut]
    distribution: AttributionDistributionOut
    processed: int = Field(description="Orders attributed successfully")
    skipped: int = Field(description="Orders skipped due to errors or timeout")


class OverviewMetricsOut(_FromAttributes):
    total_revenue: float
    total_orders: int
    average_order_value: float
    conversion_rate: float = Field(description="Orders per page view x 100")


class RevenueMetricsOut(_FromAttributes):
    total_revenue: float
    revenue_by_channel: Dict[str, float]
    revenue_growth: float = Field(description="Percent change vs the previous equal-length window")
    average_order_value: float
    lifetime_value: float


class CampaignPerformanceOut(_FromAttributes):
    campaign_id: str
    campaign_name: str
    impressions: int
    clicks: int
    conversions: int
    revenue: float
    roi: float = Field(description="(revenue - cost) / cost as a percentage; 0 without cost")
    ctr: float = Field(description="Clicks per impression (0-100)")
    conversion_rate: float = Field(description="Conversions per click (0-100)")
    cost_per_conversion: float


class ContentPerformanceOut(_FromAttributes):
    content_id: str
    content_title: str
    views: int
    engagement_rate: float = Field(description="Daily mean of the 0-1 engagement rate")
    share_count: int
    average_time_on_page: float = Field(description="Daily mean, seconds")


class BundlePerformanceOut(_FromAttributes):
    bundle_id: str
    bundle_name: str
    units_sold: int
    revenue: float
    average_order_value: float


class DashboardAnalyticsResponse(_FromAttributes):
    """GET /analytics/marketing/dashboard"""

    time_range: TimeRangeOut
    overview: OverviewMetricsOut
    campaigns: List[CampaignPerformanceOut]
    content: List[ContentPerformanceOut]
    bundles: List[BundlePerformanceOut]
    revenue: RevenueMetricsOut
    order_attribution: OrderAttributionOut


class AttributionInsightsResponse(_FromAttributes):
    """GET /analytics/marketing/attribution-insights"""

    campaigns: List[CampaignAttributionOut]
    content: List[ContentAttributionOut]
    distribution: AttributionDistributionOut
    processed: int
    skipped: int
    top_performing_campaigns: List[CampaignAttributionOut]
    top_influential_content: List[ContentAttributionOut]
    recommendations: List[RecommendationOut]
