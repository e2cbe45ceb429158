"""Database session and base configuration.

WHAT:
    Provides the SQLAlchemy engine, the session factory and FastAPI
    dependencies for database access.

WHY:
    Attribution runs fan out over worker threads, and each SQL repository
    opens its own short-lived session per call. Routers therefore depend on
    the session *factory* (get_session_factory) rather than a single
    request-scoped Session.

USAGE:
    from attribution_engine.database import SessionLocal, init_db

    with SessionLocal() as db:
        db.query(models.Order).count()

REFERENCES:
    - services/attribution/repositories.py (consumers of the factory)
    - routers/analytics.py
"""

import logging
import os
from typing import Callable

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .utils.env import load_env_file

logger = logging.getLogger(__name__)


# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================

def _get_database_url() -> str:
    """Get DATABASE_URL from environment, loading .env if needed.

    Raises:
        RuntimeError: If DATABASE_URL is not configured
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        # Attempt to load from local .env for developer convenience
        load_env_file()
        database_url = os.getenv("DATABASE_URL")

    if not database_url:
        raise RuntimeError(
            "DATABASE_URL is not set. "
            "Ensure backend/.env is loaded or env var is exported."
        )

    return database_url


DATABASE_URL = _get_database_url()


# =============================================================================
# ENGINE
# =============================================================================

# Connection pool configuration:
# - pool_size: persistent connections (one per batch worker plus request handling)
# - pool_recycle: recreate connections after 1 hour to avoid stale connections
# - pool_pre_ping: check connection health before use
#
# NOTE: SQLite engines (tests/dev) do not support pool_size/max_overflow.
# In-memory SQLite needs a StaticPool so every thread sees the same database.
if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool if ":memory:" in DATABASE_URL else None,
    )
else:
    engine = create_engine(
        DATABASE_URL,
        pool_size=10,
        max_overflow=20,
        pool_recycle=3600,
        pool_pre_ping=True,
    )

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


# Base is defined in models to ensure a single registry across the app
from .models import Base  # noqa: E402


def init_db() -> None:
    """Create all tables. Used by tests and local development."""
    Base.metadata.create_all(bind=engine)
    logger.info("[DB] Tables created for %s", engine.url.render_as_string(hide_password=True))


# =============================================================================
# FASTAPI DEPENDENCIES
# =============================================================================

def get_session_factory() -> Callable[[], Session]:
    """Return the session factory the SQL repositories open sessions from.

    Tests override this dependency to point at their own engine.
    """
    return SessionLocal
