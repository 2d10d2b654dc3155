"""Pydantic request/response models for the verification API."""

from typing import Optional

from pydantic import BaseModel, Field


class VerifyGrantRequest(BaseModel):
    grant_id: Optional[str] = Field(default=None, max_length=200)


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str = ""
    store_reachable: bool = False
    model_configured: bool = False
    store_backend: str = "memory"
