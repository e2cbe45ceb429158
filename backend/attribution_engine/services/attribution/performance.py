"""
Per-Entity Performance
======================

WHAT:
    Reduces daily campaign/content analytics rows and bundle sales into the
    per-entity performance cards shown on the marketing dashboard.

WHY:
    Attribution answers "what drove this order"; these cards answer "how did
    each active campaign, published content piece and bundle perform". They
    are independent of attribution and come from their own tables.

DEFAULTS:
    Summarizing an empty row list yields an all-zero card. The engine uses
    that as the fallback when one entity's metrics cannot be read, so a
    single broken entity never hides the others.

REFERENCES:
    - services/attribution/engine.py::_entity_performance
    - services/attribution/repositories.py: CampaignPerformanceRepository etc.
"""

from __future__ import annotations

from typing import Sequence

from .resolver import UNKNOWN_BUNDLE, UNKNOWN_CAMPAIGN, UNKNOWN_CONTENT
from .types import (
    BundlePerformance,
    BundleSale,
    CampaignMetricRow,
    CampaignPerformance,
    ContentMetricRow,
    ContentPerformance,
    EntityRef,
)


def _ratio(numerator: float, denominator: float, scale: float = 100.0) -> float:
    return numerator / denominator * scale if denominator > 0 else 0.0


def summarize_campaign_performance(
    campaign: EntityRef,
    rows: Sequence[CampaignMetricRow],
) -> CampaignPerformance:
    impressions = sum(r.impressions for r in rows)
    clicks = sum(r.clicks for r in rows)
    conversions = sum(r.conversions for r in rows)
    revenue = sum(r.revenue for r in rows)
    cost = sum(r.cost for r in rows)

    return CampaignPerformance(
        campaign_id=campaign.id,
        campaign_name=campaign.name or UNKNOWN_CAMPAIGN,
        impressions=impressions,
        clicks=clicks,
        conversions=conversions,
        revenue=revenue,
        roi=_ratio(revenue - cost, cost),
        ctr=_ratio(clicks, impressions),
        conversion_rate=_ratio(conversions, clicks),
        cost_per_conversion=_ratio(cost, conversions, scale=1.0),
    )


def summarize_content_performance(
    content: EntityRef,
    rows: Sequence[ContentMetricRow],
) -> ContentPerformance:
    """Views and shares are summed; engagement rate and time on page are daily means."""
    days = len(rows)
    return ContentPerformance(
        content_id=content.id,
        content_title=content.name or UNKNOWN_CONTENT,
        views=sum(r.views for r in rows),
        engagement_rate=_ratio(sum(r.engagement_rate for r in rows), days, scale=1.0),
        share_count=sum(r.shares for r in rows),
        average_time_on_page=_ratio(sum(r.time_on_page for r in rows), days, scale=1.0),
    )


def summarize_bundle_performance(
    bundle: EntityRef,
    sales: Sequence[BundleSale],
) -> BundlePerformance:
    revenue = sum(s.line_total for s in sales)
    order_count = len({s.order_id for s in sales})
    return BundlePerformance(
        bundle_id=bundle.id,
        bundle_name=bundle.name or UNKNOWN_BUNDLE,
        units_sold=sum(s.quantity for s in sales),
        revenue=revenue,
        average_order_value=_ratio(revenue, order_count, scale=1.0),
    )
