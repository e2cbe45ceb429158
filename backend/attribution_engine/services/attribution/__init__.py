"""Order attribution analytics.

Components:
- resolver.py: one order -> one AttributionRecord (campaign > content > bundle > direct)
- batch.py: resolves a batch with skip-on-error semantics
- aggregation.py: records -> campaign/content summaries + distribution
- insights.py: threshold rules -> top performers + recommendations
- engine.py: permission-checked entry points over injected repositories

Usage:
    from attribution_engine.services.attribution import MarketingAnalyticsEngine, TimeRange
"""

from .config import AttributionConfig, InsightThresholds, SegmentThresholds
from .engine import MarketingAnalyticsEngine
from .types import AttributionInsights, DashboardAnalytics, TimeRange

__all__ = [
    "AttributionConfig",
    "InsightThresholds",
    "SegmentThresholds",
    "MarketingAnalyticsEngine",
    "AttributionInsights",
    "DashboardAnalytics",
    "TimeRange",
]
