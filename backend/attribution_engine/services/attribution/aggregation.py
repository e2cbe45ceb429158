"""Aggregation Engine - reduce AttributionRecords into summaries.

WHAT:
    Pure functions that turn one batch of records into:
    - one CampaignAttributionSummary per campaign source_id
    - one ContentAttributionSummary per content source_id
    - the AttributionDistribution across all five sources

    Bundle, organic and direct records feed the distribution only.

WHY PURE FUNCTIONS:
    Summaries are built once per run and never updated incrementally, so
    there is no module state. Running aggregate() twice over the same
    records yields identical output.

MEDIAN:
    Conversion-time medians sort first and average the two middle values
    for even counts (statistics.median).

REFERENCES:
    - services/attribution/types.py: summary dataclasses
    - services/attribution/insights.py: consumes summaries + distribution
"""

from __future__ import annotations

import logging
import statistics
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ...errors import AggregationInconsistency
from .types import (
    AttributionDistribution,
    AttributionRecord,
    AttributionSource,
    CampaignAttributionSummary,
    ContentAttributionSummary,
    ConversionTimeStats,
    ProductPerformance,
    SegmentShare,
)

logger = logging.getLogger(__name__)

DISTRIBUTION_TOLERANCE = 0.01


# --- Building blocks --------------------------------------------------------

def conversion_time_stats(minutes: Iterable[float]) -> ConversionTimeStats:
    """Stats over strictly positive minutes; zero means immediate/unknown."""
    qualifying = [m for m in minutes if m > 0]
    if not qualifying:
        return ConversionTimeStats()

    return ConversionTimeStats(
        average=sum(qualifying) / len(qualifying),
        median=float(statistics.median(qualifying)),
        min=min(qualifying),
        max=max(qualifying),
    )


def segment_breakdown(records: Sequence[AttributionRecord]) -> Dict[str, SegmentShare]:
    """Orders, revenue and order-count percentage per customer segment present."""
    if not records:
        return {}

    counts: Dict[str, int] = {}
    revenue: Dict[str, float] = {}
    for record in records:
        key = record.customer_segment.value
        counts[key] = counts.get(key, 0) + 1
        revenue[key] = revenue.get(key, 0.0) + record.order_value

    total = len(records)
    return {
        key: SegmentShare(
            orders=count,
            revenue=revenue[key],
            percentage=count / total * 100,
        )
        for key, count in counts.items()
    }


def top_products(records: Sequence[AttributionRecord], limit: int = 5) -> List[ProductPerformance]:
    """Line items across records grouped by product, highest revenue first."""
    quantity: Dict[str, int] = {}
    revenue: Dict[str, float] = {}
    names: Dict[str, Optional[str]] = {}
    orders: Dict[str, set] = {}

    for record in records:
        for item in record.line_items:
            pid = item.product_id
            quantity[pid] = quantity.get(pid, 0) + item.quantity
            revenue[pid] = revenue.get(pid, 0.0) + item.line_total
            if names.get(pid) is None:
                names[pid] = item.product_name
            orders.setdefault(pid, set()).add(record.order_id)

    products = [
        ProductPerformance(
            product_id=pid,
            product_name=names.get(pid),
            quantity=quantity[pid],
            revenue=revenue[pid],
            order_count=len(orders[pid]),
        )
        for pid in quantity
    ]
    products.sort(key=lambda p: -p.revenue)
    return products[:limit]


def _group_by_source(
    records: Sequence[AttributionRecord],
    source: AttributionSource,
) -> Dict[str, List[AttributionRecord]]:
    groups: Dict[str, List[AttributionRecord]] = {}
    for record in records:
        if record.attribution_source != source or record.source_id is None:
            continue
        groups.setdefault(record.source_id, []).append(record)
    return groups


def _revenue_stats(group: Sequence[AttributionRecord]) -> Tuple[int, float, float]:
    count = len(group)
    revenue = sum(r.order_value for r in group)
    average = revenue / count if count else 0.0
    return count, revenue, average


# --- Summaries --------------------------------------------------------------

def summarize_campaigns(
    records: Sequence[AttributionRecord],
    top_products_limit: int = 5,
) -> List[CampaignAttributionSummary]:
    summaries = []
    for campaign_id, group in _group_by_source(records, AttributionSource.campaign).items():
        count, revenue, average = _revenue_stats(group)
        summaries.append(
            CampaignAttributionSummary(
                campaign_id=campaign_id,
                campaign_name=group[0].source_name,
                total_attributed_orders=count,
                total_attributed_revenue=revenue,
                average_order_value=average,
                time_to_conversion=conversion_time_stats(r.time_to_conversion_minutes for r in group),
                customer_segment_breakdown=segment_breakdown(group),
                top_products=top_products(group, top_products_limit),
            )
        )
    return summaries


def summarize_content(
    records: Sequence[AttributionRecord],
    top_products_limit: int = 5,
) -> List[ContentAttributionSummary]:
    """
    Per-content summaries.

    conversion_impact is the group's share of all content-attributed records
    (0-100), so impacts across the batch sum to 100.
    """
    groups = _group_by_source(records, AttributionSource.content)
    content_total = sum(len(group) for group in groups.values())

    summaries = []
    for content_id, group in groups.items():
        count, revenue, average = _revenue_stats(group)
        minutes = [r.time_to_conversion_minutes for r in group]
        summaries.append(
            ContentAttributionSummary(
                content_id=content_id,
                content_title=group[0].source_name,
                total_attributed_orders=count,
                total_attributed_revenue=revenue,
                average_order_value=average,
                conversion_impact=count / content_total * 100 if content_total else 0.0,
                average_influence_time=sum(minutes) / len(minutes) if minutes else 0.0,
                time_to_conversion=conversion_time_stats(minutes),
                customer_segment_breakdown=segment_breakdown(group),
                top_influenced_products=top_products(group, top_products_limit),
            )
        )
    return summaries


def attribution_distribution(records: Sequence[AttributionRecord]) -> AttributionDistribution:
    """Percentage of records per source; all zero for an empty batch."""
    total = len(records)
    if total == 0:
        return AttributionDistribution()

    counts = {source: 0 for source in AttributionSource}
    for record in records:
        counts[record.attribution_source] += 1

    def pct(source: AttributionSource) -> float:
        return counts[source] / total * 100

    return AttributionDistribution(
        campaign_driven=pct(AttributionSource.campaign),
        content_driven=pct(AttributionSource.content),
        bundle_driven=pct(AttributionSource.bundle),
        organic=pct(AttributionSource.organic),
        direct=pct(AttributionSource.direct),
    )


def validate_distribution(distribution: AttributionDistribution, record_count: int) -> None:
    """Raise AggregationInconsistency when percentages do not add up."""
    total = distribution.total()
    if record_count == 0:
        if any(distribution.share(source) != 0 for source in AttributionSource):
            raise AggregationInconsistency(f"empty batch has non-zero distribution {distribution}")
        return

    if abs(total - 100.0) > DISTRIBUTION_TOLERANCE:
        raise AggregationInconsistency(
            f"distribution sums to {total:.4f} over {record_count} records"
        )


def aggregate(
    records: Sequence[AttributionRecord],
    top_products_limit: int = 5,
) -> Tuple[List[CampaignAttributionSummary], List[ContentAttributionSummary], AttributionDistribution]:
    """Campaign summaries, content summaries and the validated distribution."""
    records = list(records)
    campaigns = summarize_campaigns(records, top_products_limit)
    content = summarize_content(records, top_products_limit)
    distribution = attribution_distribution(records)
    validate_distribution(distribution, len(records))

    logger.debug(
        "[AGGREGATION] %d records -> %d campaigns, %d content",
        len(records), len(campaigns), len(content),
    )
    return campaigns, content, distribution
