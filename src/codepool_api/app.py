from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from codepool_api.core.settings import settings
from codepool_api.db.session import engine
from .api.routes import api_router
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .observability.tracing import configure_tracing


APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Redemption service starting",
        lock_backend=settings.redeem_lock_backend,
        timeout_seconds=settings.redeem_timeout_seconds,
        replay_conflict=settings.redeem_conflict_on_replay,
    )
    if not settings.redeem_secret_key:
        logger.warning("REDEEM_SECRET_KEY is not configured; redeem calls will be rejected")
    if not settings.admin_secret_key:
        logger.warning("ADMIN_SECRET_KEY is not configured; admin calls will be rejected")

    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Redemption service stopped")


def create_app() -> FastAPI:
    """Application factory for the codepool redemption service."""
    configure_logging(
        service_name="codepool-api",
        environment=settings.environment,
        version=APP_VERSION,
        level=settings.log_level,
    )

    app = FastAPI(
        title="Codepool API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    if settings.tracing_enabled:
        configure_tracing(
            app,
            service_name="codepool-api",
            service_version=APP_VERSION,
            environment=settings.environment,
            sample_ratio=settings.tracing_sample_ratio,
        )

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
