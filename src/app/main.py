"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, CRM
exception handlers, lifespan events for database initialization and
service wiring, and the /api router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.app.api.errors import register_exception_handlers
from src.app.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.app.api.v1 import health
from src.app.api.v1.router import router as api_router
from src.app.config import get_settings
from src.app.core.database import close_db, get_session, init_db
from src.app.core.monitoring import MetricsMiddleware, get_metrics_response
from src.app.crm.bot_links import BotLinkService
from src.app.crm.directory import DirectoryService
from src.app.crm.repository import CrmRepository
from src.app.crm.service import CrmService


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB and wire services on startup, close on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()
    await init_db()

    repository = CrmRepository(session_factory=get_session)
    crm_service = CrmService(
        repository,
        roster=settings.ASSIGNMENT_ROSTER,
        recent_clients_limit=settings.RECENT_CLIENTS_LIMIT,
    )
    app.state.crm_service = crm_service
    app.state.directory_service = DirectoryService(
        repository, max_row_errors=settings.IMPORT_MAX_ROW_ERRORS
    )
    app.state.bot_link_service = BotLinkService(repository, crm_service)
    if not settings.BOT_SECRET_KEY:
        log.warning("bot.secret_not_configured")
    log.info("app.started", environment=settings.ENVIRONMENT.value)

    yield

    await close_db()
    log.info("app.stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Maple CRM API",
        version="0.1.0",
        description="Leads, clients, projects and contact directories for Maple Advisors",
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # Middleware is added in reverse order (last added = outermost)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(health.router)
    app.include_router(api_router)

    # Prometheus metrics endpoint (infrastructure route, outside /api)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
