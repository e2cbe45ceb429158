"""
Attribution Resolver Tests (Unit)
=================================

WHAT: Strategy priority, fallback, timing and segmentation for single orders.
WHY: The campaign > content > bundle > direct chain is the core business rule;
     a regression silently re-credits revenue to the wrong touchpoint.

NOTE:
These tests live outside `backend/attribution_engine/tests/` to avoid loading the
integration-test `conftest.py`, which configures a database not required here.

REFERENCES:
- backend/attribution_engine/services/attribution/resolver.py
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from attribution_engine.errors import ResolutionFailed
from attribution_engine.services.attribution.config import AttributionConfig, SegmentThresholds
from attribution_engine.services.attribution.resolver import (
    AttributionResolver,
    BundleStrategy,
    CustomerSegmenter,
    classify_segment,
)
from attribution_engine.services.attribution.types import (
    AttributionSource,
    Bundle,
    CampaignInteraction,
    ContentEngagement,
    CustomerSegment,
    LineItem,
    Order,
)

ORDER_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class _FakeInteractions:
    def __init__(self, by_customer=None, error=None):
        self.by_customer = by_customer or {}
        self.error = error
        self.calls = []

    def recent_interactions(self, customer_id, limit, before=None):
        self.calls.append((customer_id, limit, before))
        if self.error:
            raise self.error
        return list(self.by_customer.get(customer_id, []))[:limit]


class _FakeEngagements:
    def __init__(self, by_customer=None):
        self.by_customer = by_customer or {}
        self.calls = []

    def recent_engagements(self, customer_id, limit, before=None):
        self.calls.append((customer_id, limit, before))
        return list(self.by_customer.get(customer_id, []))[:limit]


class _FakeBundles:
    def __init__(self, by_product=None):
        self.by_product = by_product or {}
        self.calls = []

    def bundle_for_product(self, product_id):
        self.calls.append(product_id)
        return self.by_product.get(product_id)


class _FakeHistory:
    def __init__(self, by_customer=None, error=None):
        self.by_customer = by_customer or {}
        self.error = error

    def orders_excluding(self, customer_id, exclude_order_id):
        if self.error:
            raise self.error
        return [o for o in self.by_customer.get(customer_id, []) if o.id != exclude_order_id]


def _order(order_id, customer_id="c-1", total=40.0, line_items=(), created_at=ORDER_TIME):
    return Order(
        id=order_id,
        total=total,
        customer_id=customer_id,
        created_at=created_at,
        line_items=tuple(line_items),
    )


def _resolver(interactions=None, engagements=None, bundles=None, history=None, sink=None, config=None):
    return AttributionResolver.with_default_strategies(
        interactions or _FakeInteractions(),
        engagements or _FakeEngagements(),
        bundles or _FakeBundles(),
        history or _FakeHistory(),
        config or AttributionConfig(),
        sink=sink,
    )


def test_campaign_bundle_and_direct_orders_resolve_to_their_sources():
    """Campaign interaction, bundle line item and bare order in one batch."""
    interactions = _FakeInteractions({
        "c-a": [CampaignInteraction("camp-1", "spring-sale", "promo_click", ORDER_TIME - timedelta(hours=2))],
    })
    bundles = _FakeBundles({"p-starter": Bundle("b-1", "starter-pack")})
    resolver = _resolver(interactions=interactions, bundles=bundles)

    a = resolver.resolve(_order("A", customer_id="c-a"))
    b = resolver.resolve(_order("B", customer_id="c-b", line_items=[
        LineItem("p-other", 1, 10.0), LineItem("p-starter", 1, 30.0),
    ]))
    c = resolver.resolve(_order("C", customer_id="c-c"))

    assert a.attribution_source == AttributionSource.campaign
    assert a.source_id == "camp-1"
    assert a.source_name == "spring-sale"
    assert a.conversion_path == ("promo_click", "order")
    assert a.time_to_conversion_minutes == pytest.approx(120.0)

    assert b.attribution_source == AttributionSource.bundle
    assert b.source_name == "starter-pack"
    assert b.conversion_path == ("bundle_view", "order")
    assert b.time_to_conversion_minutes == 0

    assert c.attribution_source == AttributionSource.direct
    assert c.source_id is None
    assert c.source_name is None
    assert c.conversion_path == ("direct",)


def test_campaign_match_short_circuits_content_and_bundle_lookups():
    interactions = _FakeInteractions({
        "c-1": [CampaignInteraction("camp-1", "spring-sale", "email_open", ORDER_TIME - timedelta(minutes=5))],
    })
    engagements = _FakeEngagements({
        "c-1": [ContentEngagement("content-1", "How to brew", "view", ORDER_TIME - timedelta(minutes=1))],
    })
    bundles = _FakeBundles({"p-1": Bundle("b-1", "starter-pack")})
    resolver = _resolver(interactions=interactions, engagements=engagements, bundles=bundles)

    record = resolver.resolve(_order("o-1", line_items=[LineItem("p-1", 1, 40.0)]))

    assert record.attribution_source == AttributionSource.campaign
    assert engagements.calls == []
    assert bundles.calls == []


def test_content_engagement_used_when_no_campaign_interaction():
    engagements = _FakeEngagements({
        "c-1": [ContentEngagement("content-1", "How to brew", "view", ORDER_TIME - timedelta(minutes=30))],
    })
    record = _resolver(engagements=engagements).resolve(_order("o-1"))

    assert record.attribution_source == AttributionSource.content
    assert record.source_name == "How to brew"
    assert record.conversion_path == ("content_view", "order")
    assert record.time_to_conversion_minutes == pytest.approx(30.0)


def test_lookups_pass_limits_and_order_time():
    interactions = _FakeInteractions()
    engagements = _FakeEngagements()
    _resolver(interactions=interactions, engagements=engagements).resolve(_order("o-1"))

    assert interactions.calls == [("c-1", 5, ORDER_TIME)]
    assert engagements.calls == [("c-1", 3, ORDER_TIME)]


def test_interaction_outside_lookback_window_is_ignored():
    interactions = _FakeInteractions({
        "c-1": [CampaignInteraction("camp-1", "winter-sale", "promo_click", ORDER_TIME - timedelta(days=45))],
    })
    record = _resolver(interactions=interactions).resolve(_order("o-1"))

    assert record.attribution_source == AttributionSource.direct


def test_lookback_disabled_accepts_old_interactions():
    interactions = _FakeInteractions({
        "c-1": [CampaignInteraction("camp-1", "winter-sale", "promo_click", ORDER_TIME - timedelta(days=45))],
    })
    config = AttributionConfig(lookback_days=None)
    record = _resolver(interactions=interactions, config=config).resolve(_order("o-1"))

    assert record.attribution_source == AttributionSource.campaign
    assert record.time_to_conversion_minutes == pytest.approx(45 * 24 * 60)


def test_zero_day_lookback_rejects_earlier_interactions():
    interactions = _FakeInteractions({
        "c-1": [CampaignInteraction("camp-1", "winter-sale", "promo_click", ORDER_TIME - timedelta(days=400))],
    })
    config = AttributionConfig(lookback_days=0)
    record = _resolver(interactions=interactions, config=config).resolve(_order("o-1"))

    assert record.attribution_source == AttributionSource.direct


def test_interaction_after_order_does_not_qualify():
    interactions = _FakeInteractions({
        "c-1": [
            CampaignInteraction("camp-late", "late", "promo_click", ORDER_TIME + timedelta(minutes=10)),
            CampaignInteraction("camp-1", "spring-sale", "promo_click", ORDER_TIME - timedelta(minutes=10)),
        ],
    })
    record = _resolver(interactions=interactions).resolve(_order("o-1"))

    assert record.source_id == "camp-1"


def test_interaction_without_timestamp_counts_as_immediate():
    interactions = _FakeInteractions({
        "c-1": [CampaignInteraction("camp-1", "spring-sale", "promo_click", None)],
    })
    record = _resolver(interactions=interactions).resolve(_order("o-1"))

    assert record.attribution_source == AttributionSource.campaign
    assert record.time_to_conversion_minutes == 0


def test_missing_campaign_name_falls_back_and_reports_data_quality_issue():
    sink = Mock()
    interactions = _FakeInteractions({
        "c-1": [CampaignInteraction("camp-9", None, "promo_click", ORDER_TIME - timedelta(minutes=3))],
    })
    record = _resolver(interactions=interactions, sink=sink).resolve(_order("o-1"))

    assert record.source_name == "Unknown Campaign"
    sink.record_data_quality_issue.assert_called_once()
    assert sink.record_data_quality_issue.call_args.args[3:] == ("campaign", "camp-9")


def test_missing_bundle_name_falls_back():
    strategy = BundleStrategy(_FakeBundles({"p-1": Bundle("b-1", None)}))
    match = strategy.match(_order("o-1", line_items=[LineItem("p-1", 1, 5.0)]))

    assert match.matched
    assert match.source_name == "Unknown Bundle"


def test_order_without_customer_skips_campaign_and_content():
    interactions = _FakeInteractions()
    engagements = _FakeEngagements()
    record = _resolver(interactions=interactions, engagements=engagements).resolve(
        _order("o-1", customer_id=None)
    )

    assert record.attribution_source == AttributionSource.direct
    assert record.customer_segment == CustomerSegment.new_customer
    assert interactions.calls == []
    assert engagements.calls == []


@pytest.mark.parametrize(
    "order_count,total_value,expected",
    [
        (0, 0.0, CustomerSegment.new_customer),
        (1, 250.0, CustomerSegment.high_value),
        (1, 200.0, CustomerSegment.premium),       # total not above 200, average 200 > 50
        (2, 120.0, CustomerSegment.premium),
        (4, 80.0, CustomerSegment.regular),
        (3, 60.0, CustomerSegment.occasional),     # exactly 3 orders is not "more than 3"
        (2, 100.0, CustomerSegment.occasional),    # average exactly 50 is not premium
    ],
)
def test_classify_segment_thresholds(order_count, total_value, expected):
    assert classify_segment(order_count, total_value) == expected


def test_segment_thresholds_are_configurable():
    thresholds = SegmentThresholds(high_value_total=50.0, premium_average=10.0, regular_order_count=1)

    assert classify_segment(2, 60.0, thresholds) == CustomerSegment.high_value
    assert classify_segment(2, 30.0, thresholds) == CustomerSegment.premium
    assert classify_segment(2, 10.0, thresholds) == CustomerSegment.regular


def test_segmenter_excludes_current_order_from_history():
    current = _order("o-1", total=500.0)
    history = _FakeHistory({"c-1": [current, _order("o-0", total=30.0)]})

    segment = CustomerSegmenter(history).segment(current)

    assert segment == CustomerSegment.occasional


def test_segmentation_runs_for_campaign_attributed_orders():
    interactions = _FakeInteractions({
        "c-1": [CampaignInteraction("camp-1", "spring-sale", "promo_click", ORDER_TIME - timedelta(minutes=3))],
    })
    history = _FakeHistory({"c-1": [_order("o-0", total=300.0)]})
    record = _resolver(interactions=interactions, history=history).resolve(_order("o-1"))

    assert record.customer_segment == CustomerSegment.high_value


def test_lookup_error_is_wrapped_in_resolution_failed():
    interactions = _FakeInteractions(error=ConnectionError("store unavailable"))
    resolver = _resolver(interactions=interactions)

    with pytest.raises(ResolutionFailed) as exc_info:
        resolver.resolve(_order("o-7"))

    assert exc_info.value.order_id == "o-7"
    assert isinstance(exc_info.value.cause, ConnectionError)
    assert exc_info.value.phase == "resolve_order"


def test_segmentation_error_is_wrapped_in_resolution_failed():
    resolver = _resolver(history=_FakeHistory(error=RuntimeError("history down")))

    with pytest.raises(ResolutionFailed):
        resolver.resolve(_order("o-1"))


@pytest.mark.parametrize(
    "order",
    [
        _order("", total=10.0),
        _order("o-neg", total=-5.0),
        _order("o-nan", total=float("nan")),
    ],
)
def test_malformed_order_raises_resolution_failed(order):
    with pytest.raises(ResolutionFailed):
        _resolver().resolve(order)


def test_resolve_safely_returns_tagged_result():
    resolver = _resolver(interactions=_FakeInteractions(error=TimeoutError("slow store")))

    failed = resolver.resolve_safely(_order("o-1"))
    assert not failed.ok
    assert failed.record is None
    assert failed.failure.order_id == "o-1"
    assert "slow store" in failed.failure.cause

    ok = _resolver().resolve_safely(_order("o-2"))
    assert ok.ok
    assert ok.error is None
    assert ok.failure is None
    assert ok.record.order_id == "o-2"


def test_order_without_id_fails_with_empty_order_id():
    order = Order(id=None, total=10.0, customer_id="c-1", created_at=ORDER_TIME)

    result = _resolver().resolve_safely(order)

    assert not result.ok
    assert result.failure.order_id is None
    assert "no id" in result.failure.cause
