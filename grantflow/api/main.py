"""GrantFlow verification FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware

from grantflow import __version__
from grantflow.api.auth import request_logging_middleware
from grantflow.config.logging import get_logger
from grantflow.config.settings import settings

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle handler."""
    if not settings.cron_secret and not settings.dev_mode:
        logger.warning("CRON_SECRET is not set: /api/verify-all will refuse requests")
    if not settings.app_password and not settings.dev_mode:
        logger.warning("APP_PASSWORD is not set: /api/verify-grant will refuse requests")
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set: verification endpoints will return 500")

    backend = "Supabase" if settings.supabase_configured else "in-memory"
    logger.info(f"GrantFlow API starting - store={backend}, model={settings.gemini_model}")
    yield

    components = getattr(app.state, "components", None)
    if components is not None:
        await components.close()
    store = getattr(app.state, "store", None)
    close = getattr(store, "close", None)
    if close is not None:
        await close()
    logger.info("GrantFlow API shutdown - clients closed")


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    app = FastAPI(
        title="GrantFlow Verification API",
        description="Grant re-verification triggers: on-demand single grant and scheduled batch",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(BaseHTTPMiddleware, dispatch=request_logging_middleware)

    from grantflow.api.routes.health import router as health_router
    from grantflow.api.routes.verification import router as verification_router

    app.include_router(health_router)
    app.include_router(verification_router)

    return app


app = create_app()
