import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings, Settings
from .core.logging import init_logging, request_context_middleware
from .core import errors
from .db.dal import Database
from .db.schema import init_db
from .routers import fx, health
from .services.rate_service import ExchangeRateService
from .services.rates.base import RateProvider
from .services.rates.providers import make_rate_provider
from .services.rates.scheduler import RefreshScheduler

logger = logging.getLogger("fxrates")


def build_rate_service(
    settings: Settings, provider_override: RateProvider | None = None
) -> tuple[Database, ExchangeRateService]:
    """Wire store + provider + engine for the given settings (shared by API and CLI)."""
    init_db(settings.db_path)  # type: ignore[arg-type]
    db = Database(settings.db_path)  # type: ignore[arg-type]
    provider = provider_override or make_rate_provider(
        settings.exchange_rate_provider, settings
    )
    return db, ExchangeRateService(db, provider, settings.pivot_currency)


def create_app(
    settings_override: Settings | None = None,
    provider_override: RateProvider | None = None,
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment (e.g., temp DB). Falls back to cached get_settings().
    provider_override: replace the configured rate provider (tests, offline runs).
    """
    settings = settings_override or get_settings()
    if settings.db_path is None:
        settings.init_post_load()
    # Initialize logging early
    init_logging(debug=settings.debug)

    # Ensure database schema (idempotent) so test-injected fresh DBs have tables
    try:
        db, rate_service = build_rate_service(settings, provider_override)
    except Exception:
        # Failing to init DB is fatal; re-raise after logging
        logger.exception("failed to initialise rate store on startup")
        raise

    scheduler = RefreshScheduler(
        rate_service,
        interval_seconds=settings.refresh_interval_seconds,
        run_on_start=settings.refresh_on_startup,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.scheduler_enabled:
            scheduler.start()
        try:
            yield
        finally:
            await scheduler.stop()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = db
    app.state.rate_service = rate_service
    app.state.scheduler = scheduler

    # Middleware (request id / structured logging)
    app.middleware("http")(request_context_middleware)

    # Error handlers
    app.add_exception_handler(StarletteHTTPException, errors.http_error_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(errors.RateNotFound, errors.rate_not_found_handler)
    app.add_exception_handler(errors.StorageError, errors.storage_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(fx.router)

    @app.get("/")
    async def root():
        return {"message": settings.app_name, "version": settings.version}

    return app
