"""Insight Generator - fixed threshold rules over aggregation output.

Pure and deterministic: same summaries + distribution in, same InsightSet out.

Rules (each evaluated independently, emitted in this order):
    1. campaign share < campaign_share_floor           -> high   / campaign
    2. top campaign revenue > high_revenue_campaign   -> medium / campaign
    3. content share < content_share_floor             -> medium / content
    4. top content impact > high_impact_content        -> low    / content
    5. direct share > direct_share_ceiling             -> high   / general
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from .config import InsightThresholds
from .types import (
    AttributionDistribution,
    CampaignAttributionSummary,
    ContentAttributionSummary,
    Recommendation,
    RecommendationPriority,
    RecommendationType,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InsightSet:
    top_performing_campaigns: List[CampaignAttributionSummary] = field(default_factory=list)
    top_influential_content: List[ContentAttributionSummary] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)


def rank_campaigns(
    campaigns: Sequence[CampaignAttributionSummary],
    limit: int = 5,
) -> List[CampaignAttributionSummary]:
    """Highest attributed revenue first; ties keep input order."""
    return sorted(campaigns, key=lambda c: -c.total_attributed_revenue)[:limit]


def rank_content(
    content: Sequence[ContentAttributionSummary],
    limit: int = 5,
) -> List[ContentAttributionSummary]:
    """Highest conversion impact first; ties keep input order."""
    return sorted(content, key=lambda c: -c.conversion_impact)[:limit]


class InsightGenerator:
    def __init__(self, thresholds: InsightThresholds = InsightThresholds()):
        self.thresholds = thresholds

    def generate(
        self,
        campaigns: Sequence[CampaignAttributionSummary],
        content: Sequence[ContentAttributionSummary],
        distribution: AttributionDistribution,
    ) -> InsightSet:
        t = self.thresholds
        top_campaigns = rank_campaigns(campaigns, t.top_performers_limit)
        top_content = rank_content(content, t.top_performers_limit)

        # An empty batch has nothing to recommend on
        if distribution.total() == 0:
            return InsightSet(top_campaigns, top_content, [])

        recommendations: List[Recommendation] = []

        if distribution.campaign_driven < t.campaign_share_floor:
            recommendations.append(Recommendation(
                type=RecommendationType.campaign,
                priority=RecommendationPriority.high,
                message=(
                    f"Campaign-driven conversions are below {t.campaign_share_floor:g}%. "
                    "Consider increasing campaign budget or improving targeting."
                ),
                action="Review campaign strategy and budget allocation",
            ))

        if top_campaigns and top_campaigns[0].total_attributed_revenue > t.high_revenue_campaign:
            best = top_campaigns[0]
            recommendations.append(Recommendation(
                type=RecommendationType.campaign,
                priority=RecommendationPriority.medium,
                message=(
                    f'Campaign "{best.campaign_name}" generated '
                    f"${best.total_attributed_revenue:.2f} in attributed revenue. "
                    "Consider scaling similar campaigns."
                ),
                action=f"Analyze and replicate success factors from {best.campaign_name}",
            ))

        if distribution.content_driven < t.content_share_floor:
            recommendations.append(Recommendation(
                type=RecommendationType.content,
                priority=RecommendationPriority.medium,
                message=(
                    f"Content-driven conversions are below {t.content_share_floor:g}%. "
                    "Consider creating more engaging content or improving content distribution."
                ),
                action="Audit content performance and create new content strategy",
            ))

        if top_content and top_content[0].conversion_impact > t.high_impact_content:
            best = top_content[0]
            recommendations.append(Recommendation(
                type=RecommendationType.content,
                priority=RecommendationPriority.low,
                message=(
                    f'Content "{best.content_title}" has {best.conversion_impact:.1f}% '
                    "conversion impact. Consider creating similar content."
                ),
                action=f"Create content similar to {best.content_title}",
            ))

        if distribution.direct > t.direct_share_ceiling:
            recommendations.append(Recommendation(
                type=RecommendationType.general,
                priority=RecommendationPriority.high,
                message=(
                    f"Over {t.direct_share_ceiling:g}% of orders are direct attribution. "
                    "This may indicate poor attribution tracking or low marketing impact."
                ),
                action="Improve attribution tracking and increase marketing touchpoints",
            ))

        logger.debug("[INSIGHTS] %d recommendations generated", len(recommendations))
        return InsightSet(top_campaigns, top_content, recommendations)
