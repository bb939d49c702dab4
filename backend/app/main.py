"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from zoneinfo import ZoneInfo

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from backend.app.api.routes.documents import router as documents_router
from backend.app.api.routes.health import router as health_router
from backend.app.api.routes.metrics import router as metrics_router
from backend.app.api.routes.sessions import router as sessions_router
from backend.app.api.routes.usage import router as usage_router
from backend.app.config import Settings, get_settings
from backend.app.db.engine import Store
from backend.app.docs.retriever import PostgresFullTextSearch, RankedSearch, RetrievalEngine
from backend.app.errors import (
    AuthorizationError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    QuotaExceededError,
    ServiceError,
    TransientStoreError,
)
from backend.app.quota.ledger import QuotaLedger
from backend.app.quota.resolver import HttpPlanResolver, PlanResolver, StaticPlanResolver
from backend.app.sessions.tracker import SessionTracker
from backend.app.utils.logging import configure_logging

logger = logging.getLogger(__name__)

API_TITLE = "Book Voice API"
API_VERSION = "0.1.0"

ERROR_STATUS_MAP: dict[type[ServiceError], int] = {
    InvalidArgumentError: status.HTTP_400_BAD_REQUEST,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    QuotaExceededError: status.HTTP_402_PAYMENT_REQUIRED,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    TransientStoreError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def build_plan_resolver(settings: Settings) -> PlanResolver:
    """HTTP resolver when an identity provider is configured, else free tier for all."""
    if settings.plan_resolver_url:
        return HttpPlanResolver(
            settings.plan_resolver_url,
            api_key=settings.plan_resolver_api_key,
            timeout_s=settings.plan_resolver_timeout_s,
        )
    return StaticPlanResolver()


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render a ServiceError as ``{"error": {...}}`` with its mapped status."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, mapped in ERROR_STATUS_MAP.items():
        if isinstance(exc, error_type):
            status_code = mapped
            break
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


async def store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unhandled storage failures surface as 503 so clients may retry."""
    logger.error(
        f"[store] {request.method} {request.url.path} failed: {type(exc).__name__}: {exc}"
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": TransientStoreError("Storage is temporarily unavailable").to_dict()},
    )


def create_app(
    settings: Settings | None = None,
    store: Store | None = None,
    plan_resolver: PlanResolver | None = None,
    ranked_search: RankedSearch | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings (defaults to environment)
        store: Pre-opened store; when given, the caller owns its lifecycle
        plan_resolver: Plan lookup (defaults from settings)
        ranked_search: Ranked search tier (defaults to PostgreSQL full-text)
    """
    app_settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(app_settings.log_level)

        owns_store = store is None
        app_store = store or Store.open(app_settings)
        ledger = QuotaLedger(
            plan_resolver or build_plan_resolver(app_settings),
            billing_tz=ZoneInfo(app_settings.billing_timezone),
        )

        app.state.settings = app_settings
        app.state.store = app_store
        app.state.ledger = ledger
        app.state.retrieval = RetrievalEngine(
            ranked_search or PostgresFullTextSearch(app_settings.search_text_config)
        )
        app.state.tracker = SessionTracker(ledger)

        logger.info(
            f"[startup] dialect={app_store.dialect_name} "
            f"billing_tz={app_settings.billing_timezone}"
        )
        try:
            yield
        finally:
            if owns_store:
                await app_store.close()

    app = FastAPI(title=API_TITLE, version=API_VERSION, lifespan=lifespan)

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)

    # Register routes
    app.include_router(health_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(documents_router)
    app.include_router(sessions_router)
    app.include_router(usage_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": API_TITLE, "version": API_VERSION}

    return app


app = create_app()
