"""Grant and pipeline entry schemas.

Grants are owned by the surrounding application. The verification subsystem
reads the descriptive fields and writes only the verification fields:
verification_status, verification_confidence, last_verified_at and
verification_details.

Pipeline entries are read-only here. Only the grant reference and the
lifecycle stage matter for candidate selection.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, model_validator


class VerificationStatus(str, Enum):
    """Verification status of a grant (closed set).

    UNVERIFIED: Never checked. The only status without a confidence.
    VERIFIED: All three phases passed and combined confidence >= 80.
    PARTIALLY_VERIFIED: Completed check with mixed or middling evidence.
    OUTDATED: The application window has already closed.
    UNREACHABLE: Official URL unreachable and nothing corroborated the grant.
    DISPUTED: Cross-reference found facts contradicting the stored record.
    """

    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    PARTIALLY_VERIFIED = "partially_verified"
    OUTDATED = "outdated"
    UNREACHABLE = "unreachable"
    DISPUTED = "disputed"


class PipelineStage(str, Enum):
    """Ordered lifecycle stages of a pipeline entry."""

    DISCOVERED = "Discovered"
    RESEARCHING = "Researching"
    SERIOUS_CONSIDERATION = "Serious Consideration"
    PREPARING_APPLICATION = "Preparing Application"
    SUBMITTED = "Submitted"
    UNDER_REVIEW = "Under Review"
    AWARDED = "Awarded"
    REJECTED = "Rejected"
    FOLLOW_UP = "Follow-up"
    ARCHIVED = "Archived"


TERMINAL_STAGES: frozenset[str] = frozenset(
    {PipelineStage.ARCHIVED.value, PipelineStage.REJECTED.value}
)


class Grant(BaseModel):
    """A funding program record with its verification metadata.

    Invariant: verification_confidence is None if and only if
    verification_status is UNVERIFIED.
    """

    # Identity
    id: str = Field(..., description="Opaque unique grant identifier")

    # Descriptive fields (read-only for verification)
    name: str = Field(..., description="Program name")
    name_it: Optional[str] = Field(default=None, description="Italian program name")
    funding_source: Optional[str] = Field(
        default=None, description="EU, National, Regional, Local, Private, Mixed"
    )
    min_amount: Optional[float] = Field(default=None, description="Minimum award (EUR)")
    max_amount: Optional[float] = Field(default=None, description="Maximum award (EUR)")
    application_window_opens: Optional[date] = Field(default=None)
    application_window_closes: Optional[date] = Field(default=None)
    window_status: Optional[str] = Field(default=None)
    eligibility_summary: Optional[str] = Field(default=None)
    official_url: Optional[str] = Field(default=None)
    regulation_reference: Optional[str] = Field(default=None)

    # Verification fields
    verification_status: VerificationStatus = Field(
        default=VerificationStatus.UNVERIFIED,
        description="Current verification status",
    )
    verification_confidence: Optional[int] = Field(
        default=None,
        ge=0,
        le=100,
        description="Combined confidence 0-100, None while unverified",
    )
    last_verified_at: Optional[datetime] = Field(
        default=None,
        description="When the last verification attempt completed",
    )
    verification_details: dict[str, Any] = Field(
        default_factory=dict,
        description="Structured summary of the last verification",
    )
    updated_at: Optional[datetime] = Field(default=None)

    model_config = {"extra": "ignore"}

    @model_validator(mode="after")
    def check_confidence_matches_status(self) -> "Grant":
        """Enforce the confidence/status pairing."""
        unverified = self.verification_status == VerificationStatus.UNVERIFIED
        if unverified and self.verification_confidence is not None:
            raise ValueError("Unverified grants cannot carry a confidence")
        if not unverified and self.verification_confidence is None:
            raise ValueError(
                f"Status {self.verification_status.value} requires a confidence"
            )
        return self


class PipelineEntry(BaseModel):
    """Association between the tracked project and a grant.

    Stage values outside PipelineStage are kept as plain strings. They count
    as active because only the explicit terminal set excludes an entry.
    """

    id: Optional[str] = Field(default=None)
    grant_id: Optional[str] = Field(default=None)
    project_id: Optional[str] = Field(default=None)
    stage: Union[PipelineStage, str] = Field(default=PipelineStage.DISCOVERED)

    model_config = {"extra": "ignore"}

    @property
    def stage_name(self) -> str:
        return self.stage.value if isinstance(self.stage, PipelineStage) else str(self.stage)

    @property
    def is_active(self) -> bool:
        return self.stage_name not in TERMINAL_STAGES
