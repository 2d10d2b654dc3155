"""FastAPI dependencies resolving settings, store and verification components.

Components are built lazily on first use and cached on app.state so every
request shares one store client. Tests override these dependencies.
"""

from fastapi import Depends, HTTPException, Request

from grantflow.config.settings import Settings, settings
from grantflow.data_management.grant_store import GrantStore
from grantflow.exceptions import ConfigurationError
from grantflow.pipeline import VerificationComponents, build_components, build_store


def get_settings() -> Settings:
    return settings


def get_components(
    request: Request,
    cfg: Settings = Depends(get_settings),
) -> VerificationComponents:
    """Return the shared verification components, building them on first use.

    Raises 500 if model or store credentials are missing.
    """
    components = getattr(request.app.state, "components", None)
    if components is None:
        try:
            components = build_components(cfg)
        except ConfigurationError as e:
            raise HTTPException(
                status_code=500,
                detail=f"Server misconfiguration: {e}",
            ) from e
        request.app.state.components = components
    return components


def get_store(
    request: Request,
    cfg: Settings = Depends(get_settings),
) -> GrantStore:
    """Return the grant store without requiring model credentials."""
    components = getattr(request.app.state, "components", None)
    if components is not None:
        return components.store
    store = getattr(request.app.state, "store", None)
    if store is None:
        try:
            store = build_store(cfg)
        except ConfigurationError as e:
            raise HTTPException(
                status_code=500,
                detail=f"Server misconfiguration: {e}",
            ) from e
        request.app.state.store = store
    return store
