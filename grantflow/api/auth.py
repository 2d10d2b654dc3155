"""Shared-secret authentication for the verification triggers and request tracing.

Provides:
- Bearer ``CRON_SECRET`` check for the scheduled batch trigger
- ``x-app-password`` check for on-demand single-grant verification
- ``X-Request-ID`` response header and request logging
"""

import hmac
import time
import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from grantflow.api.dependencies import get_settings
from grantflow.config.logging import get_logger
from grantflow.config.settings import Settings

logger = get_logger("api")

_bearer_scheme = HTTPBearer(auto_error=False)


def _matches(provided: str, expected: str) -> bool:
    return hmac.compare_digest(provided.encode(), expected.encode())


def require_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    cfg: Settings = Depends(get_settings),
) -> str:
    """Validate the Bearer token against ``CRON_SECRET``.

    Without a configured secret the trigger is open only in dev mode;
    otherwise it is a server misconfiguration (500). Raises 401 if the
    token is missing or wrong.
    """
    if not cfg.cron_secret:
        if cfg.dev_mode:
            return "dev"
        raise HTTPException(
            status_code=500,
            detail="Server misconfiguration: CRON_SECRET is not set.",
        )

    if credentials is None or not _matches(credentials.credentials, cfg.cron_secret):
        raise HTTPException(
            status_code=401,
            detail="Unauthorized. Provide 'Authorization: Bearer <CRON_SECRET>' header.",
        )
    return "cron"


def require_app_password(
    x_app_password: Optional[str] = Header(default=None),
    cfg: Settings = Depends(get_settings),
) -> str:
    """Validate the ``x-app-password`` header against ``APP_PASSWORD``.

    Raises 401 if the header is missing and 403 if it is wrong.
    """
    if not cfg.app_password:
        if cfg.dev_mode:
            return "dev"
        raise HTTPException(
            status_code=500,
            detail="Server misconfiguration: APP_PASSWORD is not set.",
        )

    if not x_app_password:
        raise HTTPException(status_code=401, detail="Authentication required")
    if not _matches(x_app_password, cfg.app_password):
        raise HTTPException(status_code=403, detail="Invalid password")
    return "app"


async def request_logging_middleware(request: Request, call_next):
    """Add X-Request-ID header and log every request with timing."""
    request_id = str(uuid.uuid4())
    start = time.monotonic()

    response: Response = await call_next(request)

    elapsed_ms = int((time.monotonic() - start) * 1000)
    response.headers["X-Request-ID"] = request_id

    logger.bind(request_id=request_id).info(
        f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms} ms)"
    )
    return response
