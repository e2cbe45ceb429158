"""FastAPI application entrypoint.

Configures CORS and observability, includes the analytics router, and
exposes a healthcheck endpoint.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from .database import init_db
from .deps import get_settings
from .routers import analytics as analytics_router
from .telemetry import init_observability, shutdown_observability
from . import schemas


@asynccontextmanager
async def lifespan(app: FastAPI):
    status = init_observability()
    logger.info("[STARTUP] Observability: %s", status)
    init_db()
    yield
    shutdown_observability()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Marketing Attribution API",
        description="""
        Order attribution analytics for marketing teams.

        Each order in a time window is attributed to the campaign, content or
        bundle that drove it (or to direct). Results are aggregated into
        per-campaign and per-content summaries, a source distribution, and
        threshold-based recommendations.

        ## Authentication

        JWT in the `access_token` cookie or an `Authorization: Bearer` header.
        Callers need the `campaigns:view` capability.
        """,
        version="1.0.0",
        lifespan=lifespan,
    )

    settings = get_settings()
    allowed_origins = settings.cors_origins
    logger.info(f"[CORS] Allowed origins: {allowed_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Analytics-Phase"],
    )

    app.include_router(analytics_router.router)

    @app.get(
        "/health",
        response_model=schemas.HealthResponse,
        tags=["Health"],
        summary="Health check",
        description="""
        Simple health check endpoint to verify the API is running.
        Does not require authentication.
        """
    )
    def health():
        return schemas.HealthResponse(status="ok")

    return app


app = create_app()
