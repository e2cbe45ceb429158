"""Pytest configuration for attribution engine integration tests

WHAT: Provides shared fixtures for HTTP endpoint and SQL repository tests
WHY: Ensures consistent test setup, database isolation, and auth tokens
REFERENCES:
    - attribution_engine/main.py: FastAPI application
    - attribution_engine/database.py: Database configuration
    - attribution_engine/deps.py: Dependency injection
"""

import pytest
import os
from datetime import datetime, timedelta
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Ensure backend is in path
import sys
from pathlib import Path
BACKEND_ROOT = Path(__file__).resolve().parents[2]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

# Set test environment (database.py and security.py read these at import time)
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

# Fixed "now" for seeded data; tests query explicit windows around it
NOW = datetime(2025, 3, 31, 12, 0)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_db_engine():
    """Create in-memory test database engine shared across threads."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    from attribution_engine.models import Base
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    """Session factory the SQL repositories open per-call sessions from."""
    return sessionmaker(autocommit=False, autoflush=False, bind=test_db_engine)


@pytest.fixture
def test_db_session(session_factory) -> Generator[Session, None, None]:
    """Session used by tests to seed data."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# ============================================================================
# Application & Client Fixtures
# ============================================================================

@pytest.fixture
def app(session_factory):
    """Create FastAPI test application wired to the test database."""
    from attribution_engine.main import create_app
    from attribution_engine.database import get_session_factory
    from attribution_engine.deps import Settings, get_settings

    test_app = create_app()

    # One worker: SQLite connections are shared through a StaticPool
    test_settings = Settings(ATTRIBUTION_MAX_WORKERS=1)

    test_app.dependency_overrides[get_session_factory] = lambda: session_factory
    test_app.dependency_overrides[get_settings] = lambda: test_settings

    return test_app


@pytest.fixture
def client(app) -> TestClient:
    """Create TestClient for HTTP testing (lifespan not started)."""
    return TestClient(app)


# ============================================================================
# Authentication Fixtures
# ============================================================================

@pytest.fixture
def make_token():
    """Build a signed access token for any caller id."""
    from attribution_engine.security import create_access_token

    def _make(user_id: str) -> str:
        return create_access_token(user_id, expires_minutes=60)

    return _make


@pytest.fixture
def grant_role(test_db_session):
    """Assign a role to a user id."""
    from attribution_engine.models import RoleEnum, UserRole

    def _grant(user_id: str, role: str, is_active: bool = True) -> UserRole:
        row = UserRole(user_id=user_id, role=RoleEnum(role), is_active=is_active)
        test_db_session.add(row)
        test_db_session.commit()
        return row

    return _grant


# ============================================================================
# Seed Fixtures
# ============================================================================

@pytest.fixture
def seeded_store(test_db_session):
    """Seed a small store: one campaign order, one content order, one bundle
    order, one direct guest order, one prior order, and page views.
    """
    from attribution_engine import models

    db = test_db_session

    campaign = models.MarketingCampaign(
        id="camp-1",
        campaign_name="spring-sale",
        campaign_status=models.CampaignStatusEnum.active,
        start_date=NOW - timedelta(days=20),
        end_date=NOW - timedelta(days=1),
    )
    content = models.ProductContent(
        id="content-1",
        title="How to brew",
        workflow_state=models.ContentWorkflowStateEnum.published,
        published_at=NOW - timedelta(days=10),
    )
    bundle = models.ProductBundle(id="bundle-1", name="starter-pack", is_active=True)
    bundle.items.append(models.ProductBundleItem(product_id="p-kit", quantity=1))
    db.add_all([campaign, content, bundle])

    db.add_all([
        # Prior order makes customer u-1 an "occasional" customer
        models.Order(id="o-prior", user_id="u-1", total_amount=40, channel="web",
                     created_at=NOW - timedelta(days=60)),
        models.Order(id="o-campaign", user_id="u-1", total_amount=1500, channel="web",
                     created_at=NOW - timedelta(days=2),
                     line_items=[models.OrderItem(product_id="p-beans", product_name="Beans",
                                                  quantity=3, total_price=1500)]),
        models.Order(id="o-content", user_id="u-2", total_amount=80, channel="web",
                     created_at=NOW - timedelta(days=3)),
        models.Order(id="o-bundle", user_id="u-3", total_amount=60,
                     created_at=NOW - timedelta(days=4),
                     line_items=[models.OrderItem(product_id="p-kit", product_name="Starter kit",
                                                  quantity=1, total_price=60, bundle_id="bundle-1")]),
        models.Order(id="o-guest", user_id=None, customer_email="guest@example.com",
                     total_amount=20, channel="pos", created_at=NOW - timedelta(days=5)),
    ])

    db.add_all([
        models.CampaignInteraction(user_id="u-1", campaign_id="camp-1", interaction_type="promo_click",
                                   created_at=NOW - timedelta(days=2, minutes=45)),
        # After the order: never credited
        models.CampaignInteraction(user_id="u-1", campaign_id="camp-1", interaction_type="email_open",
                                   created_at=NOW - timedelta(days=1)),
        models.ContentEngagement(user_id="u-2", content_id="content-1", engagement_type="view",
                                 created_at=NOW - timedelta(days=3, minutes=10)),
    ])

    # Daily dashboard rows for the per-entity performance cards
    db.add_all([
        models.CampaignAnalytics(campaign_id="camp-1", date=NOW - timedelta(days=3), impressions=1000,
                                 clicks=50, conversions=5, revenue=1500, cost=500),
        models.CampaignAnalytics(campaign_id="camp-1", date=NOW - timedelta(days=2), impressions=1000,
                                 clicks=50, conversions=5, revenue=500, cost=500),
        models.ContentAnalytics(content_id="content-1", date=NOW - timedelta(days=3), views=100,
                                engagement_rate=0.2, shares=3, time_on_page=30),
        models.ContentAnalytics(content_id="content-1", date=NOW - timedelta(days=2), views=50,
                                engagement_rate=0.4, shares=1, time_on_page=60),
    ])

    db.add_all([
        models.AnalyticsEvent(event_type="page_view", created_at=NOW - timedelta(days=d))
        for d in range(1, 11)
    ] + [models.AnalyticsEvent(event_type="add_to_cart", created_at=NOW - timedelta(days=1))])

    db.commit()
    return db


@pytest.fixture
def window():
    """Last-30-days window ending at NOW, as ISO query params."""
    return {
        "start": (NOW - timedelta(days=30)).isoformat() + "Z",
        "end": NOW.isoformat() + "Z",
    }
