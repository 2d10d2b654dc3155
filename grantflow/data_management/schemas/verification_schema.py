"""Verification record schemas for the three-phase grant check.

Each phase produces a tagged result (UrlCheck | QualityCheck |
CrossReferenceCheck) carrying a normalized 0-100 sub-score and textual notes.
A single pure scoring function combines them into the final status and
confidence; the VerificationRecord captures the whole attempt.

Records are immutable once built. A newer record for the same grant
supersedes the old one, which stays in the history log.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from grantflow.data_management.schemas.grant_schema import VerificationStatus


UrlClassification = Literal[
    "reachable_2xx",
    "reachable_non_2xx",
    "unreachable",
    "no_url",
]


class CheckOutcome(BaseModel):
    """Single pass/fail check performed during verification."""

    name: str = Field(..., description="Check identifier, e.g. url_reachable")
    passed: bool = Field(..., description="Whether the check passed")
    detail: str = Field(default="", description="Human-readable detail")

    model_config = {"frozen": True}


class Issue(BaseModel):
    """Problem surfaced to the user alongside the verification status."""

    type: Literal["url", "source", "crossref", "window", "score"] = Field(
        ..., description="Which phase raised the issue"
    )
    severity: Literal["info", "warning", "critical"] = Field(...)
    message: str = Field(...)

    model_config = {"frozen": True}


class UrlCheck(BaseModel):
    """Phase 1: official URL resolution."""

    kind: Literal["url"] = "url"
    classification: UrlClassification = Field(...)
    url: Optional[str] = Field(default=None, description="Normalized URL requested")
    status_code: Optional[int] = Field(default=None)
    domain: str = Field(default="")
    mentions_grant_name: bool = Field(
        default=False,
        description="Page text mentions the grant name (2xx only)",
    )
    sub_score: int = Field(default=0, ge=0, le=100)
    notes: list[str] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.classification == "reachable_2xx"


class QualityCheck(BaseModel):
    """Phase 2: deterministic metadata completeness and consistency score."""

    kind: Literal["quality"] = "quality"
    sub_score: int = Field(default=0, ge=0, le=100)
    source_type: str = Field(
        default="unknown",
        description="official_government, government, institutional, third_party, unknown",
    )
    domain_authority: str = Field(default="low")
    passed: bool = Field(default=False)
    notes: list[str] = Field(default_factory=list)


class CrossReferenceCheck(BaseModel):
    """Phase 3: model-based cross-reference against public information.

    ran=False means "no signal": the call failed, was throttled, or the
    reply could not be parsed. It then contributes nothing.
    """

    kind: Literal["crossref"] = "crossref"
    ran: bool = Field(default=False)
    corroborated: bool = Field(default=False)
    confidence: Optional[int] = Field(
        default=None, ge=0, le=100, description="Model's own 0-100 judgment"
    )
    amount_match: Optional[bool] = Field(default=None)
    deadline_match: Optional[bool] = Field(default=None)
    eligibility_match: Optional[bool] = Field(default=None)
    discrepancies: list[dict[str, Any]] = Field(default_factory=list)
    contradictions: list[dict[str, Any]] = Field(default_factory=list)
    fresh_data: dict[str, Any] = Field(default_factory=dict)
    sources: list[str] = Field(default_factory=list)
    sub_score: int = Field(default=0, ge=0, le=100)
    notes: list[str] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.ran and self.corroborated and not self.contradictions


PhaseResult = Annotated[
    Union[UrlCheck, QualityCheck, CrossReferenceCheck],
    Field(discriminator="kind"),
]


class ScoringResult(BaseModel):
    """Output of the pure combination function."""

    status: VerificationStatus
    confidence: int = Field(..., ge=0, le=100)
    checks: list[CheckOutcome] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)


class VerificationRecord(BaseModel):
    """Append-only log entry for one verification attempt."""

    grant_id: str = Field(...)
    verified_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    checks: list[CheckOutcome] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)
    status: VerificationStatus = Field(...)
    confidence: int = Field(..., ge=0, le=100)
    duration_ms: int = Field(default=0, ge=0)
    phases: list[PhaseResult] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def checks_passed(self) -> int:
        return sum(1 for c in self.checks if c.passed)

    @property
    def checks_total(self) -> int:
        return len(self.checks)

    def phase(self, kind: str) -> Optional[Union[UrlCheck, QualityCheck, CrossReferenceCheck]]:
        """Return the phase result with the given kind tag, if present."""
        for result in self.phases:
            if result.kind == kind:
                return result
        return None

    def to_details(self) -> dict[str, Any]:
        """Build the verification_details payload written onto the grant."""
        quality = self.phase("quality")
        crossref = self.phase("crossref")
        return {
            "checks_passed": self.checks_passed,
            "checks_total": self.checks_total,
            "issues": [i.model_dump() for i in self.issues],
            "source_type": quality.source_type if quality else "unknown",
            "crossref_ran": bool(crossref and crossref.ran),
            "discrepancy_count": len(crossref.discrepancies) if crossref else 0,
            "fresh_data": crossref.fresh_data if crossref else {},
            "duration_ms": self.duration_ms,
            "checks": [c.model_dump() for c in self.checks],
        }

    def to_response(self) -> dict[str, Any]:
        """Single-grant verification response body."""
        quality = self.phase("quality")
        crossref = self.phase("crossref")
        return {
            "grant_id": self.grant_id,
            "status": self.status.value,
            "confidence": self.confidence,
            "checks_passed": self.checks_passed,
            "checks_total": self.checks_total,
            "issues": [i.model_dump() for i in self.issues],
            "source": {
                "source_quality_score": quality.sub_score if quality else 0,
                "source_type": quality.source_type if quality else "unknown",
                "source_domain_authority": quality.domain_authority if quality else "none",
            },
            "crossref_discrepancies": crossref.discrepancies if crossref else [],
            "fresh_data": crossref.fresh_data if crossref else {},
            "duration_ms": self.duration_ms,
        }
