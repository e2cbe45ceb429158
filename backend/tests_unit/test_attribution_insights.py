"""
Insight Generator Tests (Unit)
==============================

WHAT: Threshold rules, emission order and top-performer ranking.
WHY: Recommendations are shown verbatim to marketing teams.

REFERENCES:
- backend/attribution_engine/services/attribution/insights.py
"""

import pytest

from attribution_engine.services.attribution.config import InsightThresholds
from attribution_engine.services.attribution.insights import InsightGenerator
from attribution_engine.services.attribution.types import (
    AttributionDistribution,
    CampaignAttributionSummary,
    ContentAttributionSummary,
    ConversionTimeStats,
    RecommendationPriority,
    RecommendationType,
)


def _campaign(campaign_id, revenue, orders=1, name=None):
    return CampaignAttributionSummary(
        campaign_id=campaign_id,
        campaign_name=name or campaign_id,
        total_attributed_orders=orders,
        total_attributed_revenue=revenue,
        average_order_value=revenue / orders,
        time_to_conversion=ConversionTimeStats(),
        customer_segment_breakdown={},
        top_products=[],
    )


def _content(content_id, impact, title=None):
    return ContentAttributionSummary(
        content_id=content_id,
        content_title=title or content_id,
        total_attributed_orders=1,
        total_attributed_revenue=10.0,
        average_order_value=10.0,
        conversion_impact=impact,
        average_influence_time=0.0,
        time_to_conversion=ConversionTimeStats(),
        customer_segment_breakdown={},
        top_influenced_products=[],
    )


def test_high_revenue_campaign_gets_single_replicate_recommendation():
    campaigns = [_campaign("camp-1", 1500.0, orders=2, name="spring-sale")]
    distribution = AttributionDistribution(campaign_driven=100.0)

    insights = InsightGenerator(InsightThresholds(high_revenue_campaign=1000)).generate(
        campaigns, [], distribution
    )

    replicate = [r for r in insights.recommendations if r.action.startswith("Analyze and replicate")]
    assert len(replicate) == 1
    assert replicate[0].priority == RecommendationPriority.medium
    assert replicate[0].type == RecommendationType.campaign
    assert replicate[0].message == (
        'Campaign "spring-sale" generated $1500.00 in attributed revenue. '
        "Consider scaling similar campaigns."
    )
    assert replicate[0].action == "Analyze and replicate success factors from spring-sale"


def test_revenue_equal_to_threshold_does_not_fire():
    insights = InsightGenerator().generate(
        [_campaign("camp-1", 1000.0)], [], AttributionDistribution(campaign_driven=100.0)
    )

    assert not any(r.action.startswith("Analyze and replicate") for r in insights.recommendations)


def test_mostly_direct_orders_flag_weak_tracking():
    distribution = AttributionDistribution(campaign_driven=35.0, direct=65.0)

    insights = InsightGenerator().generate([], [], distribution)

    tracking = [r for r in insights.recommendations if r.type == RecommendationType.general]
    assert len(tracking) == 1
    assert tracking[0].priority == RecommendationPriority.high
    assert tracking[0].message == (
        "Over 60% of orders are direct attribution. "
        "This may indicate poor attribution tracking or low marketing impact."
    )


def test_rules_emit_in_fixed_order():
    distribution = AttributionDistribution(campaign_driven=10.0, content_driven=10.0, direct=80.0)
    campaigns = [_campaign("camp-1", 2000.0)]
    content = [_content("content-1", 100.0, title="How to brew")]

    insights = InsightGenerator().generate(campaigns, content, distribution)

    assert [(r.type, r.priority) for r in insights.recommendations] == [
        (RecommendationType.campaign, RecommendationPriority.high),
        (RecommendationType.campaign, RecommendationPriority.medium),
        (RecommendationType.content, RecommendationPriority.medium),
        (RecommendationType.content, RecommendationPriority.low),
        (RecommendationType.general, RecommendationPriority.high),
    ]
    assert insights.recommendations[3].message == (
        'Content "How to brew" has 100.0% conversion impact. Consider creating similar content.'
    )


def test_healthy_distribution_emits_nothing():
    distribution = AttributionDistribution(campaign_driven=50.0, content_driven=30.0, direct=20.0)

    insights = InsightGenerator().generate([_campaign("camp-1", 200.0)], [_content("k-1", 10.0)], distribution)

    assert insights.recommendations == []


def test_empty_batch_has_no_recommendations():
    insights = InsightGenerator().generate([], [], AttributionDistribution())

    assert insights.recommendations == []
    assert insights.top_performing_campaigns == []
    assert insights.top_influential_content == []


def test_top_campaigns_sorted_stable_and_capped():
    campaigns = [
        _campaign("a", 100.0),
        _campaign("b", 300.0),
        _campaign("c", 100.0),
        _campaign("d", 500.0),
        _campaign("e", 100.0),
        _campaign("f", 50.0),
        _campaign("g", 300.0),
    ]

    insights = InsightGenerator().generate(campaigns, [], AttributionDistribution(campaign_driven=100.0))

    assert [c.campaign_id for c in insights.top_performing_campaigns] == ["d", "b", "g", "a", "c"]


def test_top_content_ranked_by_conversion_impact():
    content = [_content("k-1", 20.0), _content("k-2", 50.0), _content("k-3", 30.0)]

    insights = InsightGenerator(InsightThresholds(top_performers_limit=2)).generate(
        [], content, AttributionDistribution(content_driven=100.0)
    )

    assert [c.content_id for c in insights.top_influential_content] == ["k-2", "k-3"]


@pytest.mark.parametrize("campaign_share,fires", [(29.99, True), (30.0, False)])
def test_campaign_share_floor_is_strict(campaign_share, fires):
    distribution = AttributionDistribution(campaign_driven=campaign_share, direct=100.0 - campaign_share)

    insights = InsightGenerator().generate([], [], distribution)

    fired = any(r.action == "Review campaign strategy and budget allocation" for r in insights.recommendations)
    assert fired is fires
