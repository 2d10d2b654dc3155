"""Verification trigger endpoints.

- POST /api/verify-grant: verify one grant on demand (x-app-password)
- GET  /api/verify-grant: service description
- GET  /api/verify-all:   scheduled batch re-verification (Bearer CRON_SECRET)
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException

from grantflow import __version__
from grantflow.api.auth import require_app_password, require_cron_secret
from grantflow.api.dependencies import get_components, get_settings
from grantflow.api.models import VerifyGrantRequest
from grantflow.config.logging import get_logger
from grantflow.config.settings import Settings
from grantflow.exceptions import (
    ConfigurationError,
    GrantNotFoundError,
    StoreError,
    StoreUnavailableError,
)
from grantflow.pipeline import VerificationBudget, VerificationComponents

logger = get_logger("api.verification")

router = APIRouter(prefix="/api", tags=["verification"])


@router.post("/verify-grant", dependencies=[Depends(require_app_password)])
async def verify_grant(
    payload: Optional[VerifyGrantRequest] = None,
    components: VerificationComponents = Depends(get_components),
) -> dict[str, Any]:
    """Verify a single grant and return its status, confidence and issues."""
    grant_id = payload.grant_id if payload else None
    if not grant_id:
        raise HTTPException(status_code=400, detail="grant_id is required")

    try:
        record = await components.verifier.verify(grant_id)
    except GrantNotFoundError as e:
        raise HTTPException(status_code=404, detail="Grant not found") from e
    except StoreError as e:
        logger.error(f"Store failure verifying {grant_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to save verification: {e}") from e

    return record.to_response()


@router.get("/verify-grant")
def describe_verify_grant() -> dict[str, Any]:
    """Describe the on-demand verification endpoint."""
    return {
        "endpoint": "POST /api/verify-grant",
        "description": "Three-phase grant verification: URL validation, source quality, cross-reference",
        "body": {"grant_id": "string"},
        "auth": "x-app-password header",
        "version": __version__,
    }


@router.get("/verify-all", dependencies=[Depends(require_cron_secret)])
async def verify_all(
    components: VerificationComponents = Depends(get_components),
    cfg: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Re-verify pipeline and stale grants within the batch budget."""
    budget = VerificationBudget(cfg.batch_budget_seconds)
    try:
        summary = await components.orchestrator.run(budget)
    except StoreUnavailableError as e:
        logger.error(f"Batch aborted, grant store unavailable: {e}")
        raise HTTPException(status_code=503, detail=f"Grant store unavailable: {e}") from e
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=f"Server misconfiguration: {e}") from e

    return summary.to_response()
