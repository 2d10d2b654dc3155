"""Health check endpoint."""

from fastapi import APIRouter, Depends

from grantflow import __version__
from grantflow.api.dependencies import get_settings, get_store
from grantflow.api.models import HealthResponse
from grantflow.config.logging import get_logger
from grantflow.config.settings import Settings
from grantflow.data_management.grant_store import GrantStore

logger = get_logger("api.health")

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(
    store: GrantStore = Depends(get_store),
    cfg: Settings = Depends(get_settings),
) -> HealthResponse:
    """Check grant store connectivity and model configuration."""
    store_ok = await store.ping()
    if not store_ok:
        logger.warning("Grant store health check failed")
    model_ok = bool(cfg.gemini_api_key)

    status = "healthy"
    if not store_ok or not model_ok:
        status = "degraded"
    if not store_ok and not model_ok:
        status = "offline"

    return HealthResponse(
        status=status,
        version=__version__,
        store_reachable=store_ok,
        model_configured=model_ok,
        store_backend="supabase" if cfg.supabase_configured else "memory",
    )
