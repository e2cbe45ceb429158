"""SQLAlchemy ORM models and enums.

This module defines the marketing-operations tables the attribution engine
reads from: orders and their line items, campaign interactions and daily
campaign analytics, content engagement and daily content analytics, bundle
membership, user roles and page-view events. The engine
only ever reads these tables; writes belong to the rest of the platform.

String primary keys keep ids identical to the upstream order store.
"""

import uuid
from datetime import datetime
import enum

from sqlalchemy import Column, String, DateTime, Enum, Integer, Float, ForeignKey, Numeric, Boolean, UniqueConstraint, Index
from sqlalchemy.orm import relationship, declarative_base


# Single Base used by the entire application
Base = declarative_base()


def _uuid_str() -> str:
    return str(uuid.uuid4())


# Enums ---------------------------------------------------------

class RoleEnum(str, enum.Enum):
    admin = "admin"
    executive = "executive"
    marketing_staff = "marketing_staff"
    inventory_staff = "inventory_staff"
    staff = "staff"
    customer = "customer"


class CampaignStatusEnum(str, enum.Enum):
    planned = "planned"
    active = "active"
    paused = "paused"
    completed = "completed"
    cancelled = "cancelled"


class ContentWorkflowStateEnum(str, enum.Enum):
    draft = "draft"
    review = "review"
    approved = "approved"
    published = "published"


# Orders ----------------------------------------------------------

class Order(Base):
    """Order facts with nested line items.

    WHAT: Stores order totals, the purchasing customer and the sales channel
    WHY: Orders are the unit of attribution; every analytics run starts here
    NOTE: Guest checkouts have no user_id, only customer_email
    """
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_created_at", "created_at"),
        Index("ix_orders_user_id", "user_id"),
    )

    id = Column(String, primary_key=True, default=_uuid_str)
    user_id = Column(String, nullable=True)
    customer_email = Column(String, nullable=True)
    customer_name = Column(String, nullable=True)
    total_amount = Column(Numeric(18, 4), nullable=False, default=0)
    channel = Column(String, nullable=True)  # e.g. "web", "pos", "kiosk"
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    line_items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    def __str__(self):
        return f"Order {self.id} - ${self.total_amount}"


class OrderItem(Base):
    """Line item linking an order to a product."""
    __tablename__ = "order_items"

    id = Column(String, primary_key=True, default=_uuid_str)
    order_id = Column(String, ForeignKey("orders.id"), nullable=False)
    product_id = Column(String, nullable=False)
    product_name = Column(String, nullable=True)  # Product title at time of order
    quantity = Column(Integer, nullable=False, default=1)
    total_price = Column(Numeric(18, 4), nullable=False, default=0)
    bundle_id = Column(String, ForeignKey("product_bundles.id"), nullable=True)  # set when sold as part of a bundle

    order = relationship("Order", back_populates="line_items")

    def __str__(self):
        return f"{self.product_name or self.product_id} x{self.quantity}"


# Campaigns -------------------------------------------------------

class MarketingCampaign(Base):
    __tablename__ = "marketing_campaigns"

    id = Column(String, primary_key=True, default=_uuid_str)
    campaign_name = Column(String, nullable=False)
    campaign_status = Column(
        Enum(CampaignStatusEnum, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=CampaignStatusEnum.planned,
    )
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    def __str__(self):
        return self.campaign_name


class CampaignInteraction(Base):
    """A customer's interaction with a campaign (click, view, redeem...).

    WHAT: Interaction history used for campaign attribution
    WHY: The most recent interaction before an order credits the campaign
    """
    __tablename__ = "user_campaign_interactions"
    __table_args__ = (
        Index("ix_campaign_interactions_user_created", "user_id", "created_at"),
    )

    id = Column(String, primary_key=True, default=_uuid_str)
    user_id = Column(String, nullable=False)
    campaign_id = Column(String, ForeignKey("marketing_campaigns.id"), nullable=False)
    interaction_type = Column(String, nullable=False)  # e.g. "promo_click", "email_open"
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    campaign = relationship("MarketingCampaign")


class CampaignAnalytics(Base):
    """Daily delivery and spend totals per campaign.

    WHAT: One row per campaign per day (impressions, clicks, conversions, revenue, cost)
    WHY: Feeds per-campaign ROI, CTR and cost per conversion on the dashboard
    """
    __tablename__ = "campaign_analytics"
    __table_args__ = (
        Index("ix_campaign_analytics_campaign_date", "campaign_id", "date"),
    )

    id = Column(String, primary_key=True, default=_uuid_str)
    campaign_id = Column(String, ForeignKey("marketing_campaigns.id"), nullable=False)
    date = Column(DateTime, nullable=False)
    impressions = Column(Integer, nullable=False, default=0)
    clicks = Column(Integer, nullable=False, default=0)
    conversions = Column(Integer, nullable=False, default=0)
    revenue = Column(Numeric(18, 4), nullable=False, default=0)
    cost = Column(Numeric(18, 4), nullable=False, default=0)


# Content ---------------------------------------------------------

class ProductContent(Base):
    __tablename__ = "product_content"

    id = Column(String, primary_key=True, default=_uuid_str)
    title = Column(String, nullable=False)
    workflow_state = Column(
        Enum(ContentWorkflowStateEnum, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=ContentWorkflowStateEnum.draft,
    )
    published_at = Column(DateTime, nullable=True)

    def __str__(self):
        return self.title


class ContentEngagement(Base):
    """A customer's engagement with a piece of content."""
    __tablename__ = "content_engagement_log"
    __table_args__ = (
        Index("ix_content_engagement_user_created", "user_id", "created_at"),
    )

    id = Column(String, primary_key=True, default=_uuid_str)
    user_id = Column(String, nullable=False)
    content_id = Column(String, ForeignKey("product_content.id"), nullable=False)
    engagement_type = Column(String, nullable=False)  # e.g. "view", "share"
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    content = relationship("ProductContent")


class ContentAnalytics(Base):
    """Daily reach and engagement per piece of content."""
    __tablename__ = "content_analytics"
    __table_args__ = (
        Index("ix_content_analytics_content_date", "content_id", "date"),
    )

    id = Column(String, primary_key=True, default=_uuid_str)
    content_id = Column(String, ForeignKey("product_content.id"), nullable=False)
    date = Column(DateTime, nullable=False)
    views = Column(Integer, nullable=False, default=0)
    engagement_rate = Column(Float, nullable=False, default=0)  # 0-1 share of viewers who engaged
    shares = Column(Integer, nullable=False, default=0)
    time_on_page = Column(Float, nullable=False, default=0)  # seconds


# Bundles ---------------------------------------------------------

class ProductBundle(Base):
    __tablename__ = "product_bundles"

    id = Column(String, primary_key=True, default=_uuid_str)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    items = relationship("ProductBundleItem", back_populates="bundle", cascade="all, delete-orphan")

    def __str__(self):
        return self.name


class ProductBundleItem(Base):
    """Membership of a product in a bundle."""
    __tablename__ = "product_bundle_items"
    __table_args__ = (UniqueConstraint("bundle_id", "product_id", name="uq_bundle_product"),)

    id = Column(String, primary_key=True, default=_uuid_str)
    bundle_id = Column(String, ForeignKey("product_bundles.id"), nullable=False)
    product_id = Column(String, nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=1)

    bundle = relationship("ProductBundle", back_populates="items")


# Access control & events ----------------------------------------

class UserRole(Base):
    """Role assignment consulted by the permission checker."""
    __tablename__ = "user_roles"

    id = Column(String, primary_key=True, default=_uuid_str)
    user_id = Column(String, nullable=False, unique=True)
    role = Column(Enum(RoleEnum, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class AnalyticsEvent(Base):
    """Storefront events (page views etc.) used for conversion rates."""
    __tablename__ = "analytics_events"
    __table_args__ = (
        Index("ix_analytics_events_type_created", "event_type", "created_at"),
    )

    id = Column(String, primary_key=True, default=_uuid_str)
    event_type = Column(String, nullable=False)  # e.g. "page_view"
    user_id = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
