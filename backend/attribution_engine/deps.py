"""Dependency providers and settings management."""

from functools import lru_cache
from typing import Optional

from fastapi import Cookie, Header, HTTPException, status
from pydantic_settings import BaseSettings, SettingsConfigDict

from .security import decode_token


class Settings(BaseSettings):
    """Application settings loaded from environment or .env."""

    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"

    # Customer segmentation
    SEGMENT_HIGH_VALUE_TOTAL: float = 200.0
    SEGMENT_PREMIUM_AVERAGE: float = 50.0
    SEGMENT_REGULAR_ORDER_COUNT: int = 3

    # Touchpoint lookups
    CAMPAIGN_INTERACTION_LIMIT: int = 5
    CONTENT_ENGAGEMENT_LIMIT: int = 3
    ATTRIBUTION_LOOKBACK_DAYS: Optional[int] = 30

    # Batch processing
    ATTRIBUTION_MAX_WORKERS: int = 8
    ATTRIBUTION_RUN_TIMEOUT_SECONDS: Optional[float] = None  # None = unbounded

    # Insight rules (percentages are 0-100)
    CAMPAIGN_SHARE_FLOOR: float = 30.0
    CONTENT_SHARE_FLOOR: float = 20.0
    DIRECT_SHARE_CEILING: float = 60.0
    HIGH_REVENUE_CAMPAIGN_THRESHOLD: float = 1000.0
    HIGH_IMPACT_CONTENT_THRESHOLD: float = 15.0
    TOP_PERFORMERS_LIMIT: int = 5
    TOP_PRODUCTS_LIMIT: int = 5

    DEFAULT_WINDOW_DAYS: int = 30

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()  # type: ignore[call-arg]


def _strip_bearer(value: str) -> str:
    if value.startswith("Bearer "):
        return value[len("Bearer ") :]
    return value


def get_current_caller(
    access_token: Optional[str] = Cookie(default=None, alias="access_token"),
    authorization: Optional[str] = Header(default=None),
) -> str:
    """Resolve the caller id (JWT `sub`) from the `access_token` cookie or Bearer header.

    Role lookups happen in the permission checker, so only the identity is
    resolved here.
    """
    raw = access_token or authorization
    if not raw:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    try:
        payload = decode_token(_strip_bearer(raw))
    except Exception:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return subject
