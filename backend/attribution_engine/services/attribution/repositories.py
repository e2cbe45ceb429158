"""Repository contracts and SQLAlchemy adapters for attribution analytics.

WHAT:
    - Protocol contracts the engine depends on (order reader, touchpoint
      lookups, customer history, page views, per-entity performance)
    - SQLAlchemy implementations over the tables in models.py

WHY:
    The engine consumes abstract repositories so runs are testable with
    in-memory fakes and independent of the storage engine. The SQL adapters
    are what production wiring (routers/analytics.py) injects.

CONCURRENCY:
    Lookups are called from batch worker threads. SQL adapters therefore take a
    session factory and open one short-lived session per call instead of
    sharing a Session across threads.

REFERENCES:
    - models.py: Order, OrderItem, CampaignInteraction, ContentEngagement,
      ProductBundleItem, AnalyticsEvent, CampaignAnalytics, ContentAnalytics
    - services/attribution/engine.py: consumer
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol

from sqlalchemy.orm import Session, selectinload

from ... import models
from .types import (
    Bundle,
    BundleSale,
    CampaignInteraction,
    CampaignMetricRow,
    ContentEngagement,
    ContentMetricRow,
    EntityRef,
    LineItem,
    Order,
    TimeRange,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


# =============================================================================
# CONTRACTS
# =============================================================================

class OrderRepository(Protocol):
    def fetch_orders(self, time_range: TimeRange) -> List[Order]:
        """Orders created inside the window, with nested line items."""
        ...


class CampaignInteractionRepository(Protocol):
    def recent_interactions(
        self,
        customer_id: str,
        limit: int,
        before: Optional[datetime] = None,
    ) -> List[CampaignInteraction]:
        """Most-recent-first interactions, optionally at or before `before`."""
        ...


class ContentEngagementRepository(Protocol):
    def recent_engagements(
        self,
        customer_id: str,
        limit: int,
        before: Optional[datetime] = None,
    ) -> List[ContentEngagement]:
        ...


class BundleMembershipRepository(Protocol):
    def bundle_for_product(self, product_id: str) -> Optional[Bundle]:
        ...


class CustomerOrderHistoryRepository(Protocol):
    def orders_excluding(self, customer_id: str, exclude_order_id: str) -> List[Order]:
        ...


class PageViewRepository(Protocol):
    def count_page_views(self, time_range: TimeRange) -> int:
        ...


class CampaignPerformanceRepository(Protocol):
    def active_campaigns(self, time_range: TimeRange) -> List[EntityRef]:
        """Active campaigns whose run lies inside the window."""
        ...

    def campaign_metrics(self, campaign_id: str, time_range: TimeRange) -> List[CampaignMetricRow]:
        ...


class ContentPerformanceRepository(Protocol):
    def published_content(self, time_range: TimeRange) -> List[EntityRef]:
        """Content published inside the window."""
        ...

    def content_metrics(self, content_id: str, time_range: TimeRange) -> List[ContentMetricRow]:
        ...


class BundlePerformanceRepository(Protocol):
    def active_bundles(self) -> List[EntityRef]:
        ...

    def bundle_sales(self, bundle_id: str, time_range: TimeRange) -> List[BundleSale]:
        """Bundle line items of orders created inside the window."""
        ...


# =============================================================================
# HELPERS
# =============================================================================

def _to_db_time(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _order_from_row(row: models.Order) -> Order:
    return Order(
        id=row.id,
        total=float(row.total_amount or 0),
        customer_id=row.user_id or row.customer_email,
        created_at=_from_db_time(row.created_at),
        line_items=tuple(
            LineItem(
                product_id=item.product_id,
                quantity=item.quantity or 0,
                line_total=float(item.total_price or 0),
                product_name=item.product_name,
            )
            for item in row.line_items
        ),
        channel=row.channel,
    )


def _customer_filter(customer_id: str):
    """Match on user id, or email for guest checkouts."""
    return (models.Order.user_id == customer_id) | (
        models.Order.user_id.is_(None) & (models.Order.customer_email == customer_id)
    )


# =============================================================================
# SQLALCHEMY ADAPTERS
# =============================================================================

class SqlOrderRepository:
    """Reads orders (newest first) with line items eagerly loaded."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def fetch_orders(self, time_range: TimeRange) -> List[Order]:
        with self.session_factory() as db:
            rows = (
                db.query(models.Order)
                .options(selectinload(models.Order.line_items))
                .filter(
                    models.Order.created_at >= _to_db_time(time_range.start),
                    models.Order.created_at <= _to_db_time(time_range.end),
                )
                .order_by(models.Order.created_at.desc())
                .all()
            )
            orders = [_order_from_row(row) for row in rows]

        logger.debug(
            "[ATTRIBUTION] Fetched %d orders for %s..%s",
            len(orders), time_range.start.isoformat(), time_range.end.isoformat(),
        )
        return orders


class SqlCampaignInteractionRepository:
    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def recent_interactions(
        self,
        customer_id: str,
        limit: int,
        before: Optional[datetime] = None,
    ) -> List[CampaignInteraction]:
        with self.session_factory() as db:
            query = (
                db.query(models.CampaignInteraction)
                .options(selectinload(models.CampaignInteraction.campaign))
                .filter(models.CampaignInteraction.user_id == customer_id)
            )
            if before is not None:
                query = query.filter(models.CampaignInteraction.created_at <= _to_db_time(before))
            rows = query.order_by(models.CampaignInteraction.created_at.desc()).limit(limit).all()

            return [
                CampaignInteraction(
                    campaign_id=row.campaign_id,
                    campaign_name=row.campaign.campaign_name if row.campaign else None,
                    interaction_type=row.interaction_type,
                    occurred_at=_from_db_time(row.created_at),
                )
                for row in rows
            ]


class SqlContentEngagementRepository:
    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def recent_engagements(
        self,
        customer_id: str,
        limit: int,
        before: Optional[datetime] = None,
    ) -> List[ContentEngagement]:
        with self.session_factory() as db:
            query = (
                db.query(models.ContentEngagement)
                .options(selectinload(models.ContentEngagement.content))
                .filter(models.ContentEngagement.user_id == customer_id)
            )
            if before is not None:
                query = query.filter(models.ContentEngagement.created_at <= _to_db_time(before))
            rows = query.order_by(models.ContentEngagement.created_at.desc()).limit(limit).all()

            return [
                ContentEngagement(
                    content_id=row.content_id,
                    content_title=row.content.title if row.content else None,
                    engagement_type=row.engagement_type,
                    occurred_at=_from_db_time(row.created_at),
                )
                for row in rows
            ]


class SqlBundleMembershipRepository:
    """Resolves a product to the first active bundle containing it."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def bundle_for_product(self, product_id: str) -> Optional[Bundle]:
        with self.session_factory() as db:
            row = (
                db.query(models.ProductBundle)
                .join(models.ProductBundleItem, models.ProductBundleItem.bundle_id == models.ProductBundle.id)
                .filter(
                    models.ProductBundleItem.product_id == product_id,
                    models.ProductBundle.is_active.is_(True),
                )
                .order_by(models.ProductBundle.name)
                .first()
            )
            if row is None:
                return None
            return Bundle(id=row.id, name=row.name)


class SqlCustomerOrderHistoryRepository:
    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def orders_excluding(self, customer_id: str, exclude_order_id: str) -> List[Order]:
        with self.session_factory() as db:
            rows = (
                db.query(models.Order)
                .options(selectinload(models.Order.line_items))
                .filter(_customer_filter(customer_id), models.Order.id != exclude_order_id)
                .all()
            )
            return [_order_from_row(row) for row in rows]


class SqlPageViewRepository:
    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def count_page_views(self, time_range: TimeRange) -> int:
        with self.session_factory() as db:
            return (
                db.query(models.AnalyticsEvent)
                .filter(
                    models.AnalyticsEvent.event_type == "page_view",
                    models.AnalyticsEvent.created_at >= _to_db_time(time_range.start),
                    models.AnalyticsEvent.created_at <= _to_db_time(time_range.end),
                )
                .count()
            )


class SqlCampaignPerformanceRepository:
    """Reads active campaigns and their daily `campaign_analytics` rows."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def active_campaigns(self, time_range: TimeRange) -> List[EntityRef]:
        with self.session_factory() as db:
            rows = (
                db.query(models.MarketingCampaign)
                .filter(
                    models.MarketingCampaign.campaign_status == models.CampaignStatusEnum.active,
                    models.MarketingCampaign.start_date >= _to_db_time(time_range.start),
                    models.MarketingCampaign.end_date <= _to_db_time(time_range.end),
                )
                .order_by(models.MarketingCampaign.campaign_name)
                .all()
            )
            return [EntityRef(id=row.id, name=row.campaign_name) for row in rows]

    def campaign_metrics(self, campaign_id: str, time_range: TimeRange) -> List[CampaignMetricRow]:
        with self.session_factory() as db:
            rows = (
                db.query(models.CampaignAnalytics)
                .filter(
                    models.CampaignAnalytics.campaign_id == campaign_id,
                    models.CampaignAnalytics.date >= _to_db_time(time_range.start),
                    models.CampaignAnalytics.date <= _to_db_time(time_range.end),
                )
                .order_by(models.CampaignAnalytics.date)
                .all()
            )
            return [
                CampaignMetricRow(
                    impressions=row.impressions or 0,
                    clicks=row.clicks or 0,
                    conversions=row.conversions or 0,
                    revenue=float(row.revenue or 0),
                    cost=float(row.cost or 0),
                )
                for row in rows
            ]


class SqlContentPerformanceRepository:
    """Reads published content and its daily `content_analytics` rows."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def published_content(self, time_range: TimeRange) -> List[EntityRef]:
        with self.session_factory() as db:
            rows = (
                db.query(models.ProductContent)
                .filter(
                    models.ProductContent.workflow_state == models.ContentWorkflowStateEnum.published,
                    models.ProductContent.published_at >= _to_db_time(time_range.start),
                    models.ProductContent.published_at <= _to_db_time(time_range.end),
                )
                .order_by(models.ProductContent.title)
                .all()
            )
            return [EntityRef(id=row.id, name=row.title) for row in rows]

    def content_metrics(self, content_id: str, time_range: TimeRange) -> List[ContentMetricRow]:
        with self.session_factory() as db:
            rows = (
                db.query(models.ContentAnalytics)
                .filter(
                    models.ContentAnalytics.content_id == content_id,
                    models.ContentAnalytics.date >= _to_db_time(time_range.start),
                    models.ContentAnalytics.date <= _to_db_time(time_range.end),
                )
                .order_by(models.ContentAnalytics.date)
                .all()
            )
            return [
                ContentMetricRow(
                    views=row.views or 0,
                    engagement_rate=float(row.engagement_rate or 0),
                    shares=row.shares or 0,
                    time_on_page=float(row.time_on_page or 0),
                )
                for row in rows
            ]


class SqlBundlePerformanceRepository:
    """Reads active bundles and the order items sold as part of them."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def active_bundles(self) -> List[EntityRef]:
        with self.session_factory() as db:
            rows = (
                db.query(models.ProductBundle)
                .filter(models.ProductBundle.is_active.is_(True))
                .order_by(models.ProductBundle.name)
                .all()
            )
            return [EntityRef(id=row.id, name=row.name) for row in rows]

    def bundle_sales(self, bundle_id: str, time_range: TimeRange) -> List[BundleSale]:
        with self.session_factory() as db:
            rows = (
                db.query(models.OrderItem)
                .join(models.Order, models.OrderItem.order_id == models.Order.id)
                .filter(
                    models.OrderItem.bundle_id == bundle_id,
                    models.Order.created_at >= _to_db_time(time_range.start),
                    models.Order.created_at <= _to_db_time(time_range.end),
                )
                .all()
            )
            return [
                BundleSale(
                    order_id=row.order_id,
                    quantity=row.quantity or 0,
                    line_total=float(row.total_price or 0),
                )
                for row in rows
            ]
