"""Candidate selection and batch run schemas.

Batch runs are ephemeral: nothing here is persisted. The per-grant
VerificationRecords written during the run are what survives.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

TIMEOUT_SENTINEL = "TIMEOUT"


class CandidateSet(BaseModel):
    """Grant ids that need (re-)verification, with their provenance.

    pipeline_ids and stale_ids may overlap; grant_ids is their union.
    warnings holds one message per candidate source that could not be read.
    """

    pipeline_ids: set[str] = Field(default_factory=set)
    stale_ids: set[str] = Field(default_factory=set)
    warnings: list[str] = Field(default_factory=list)

    @property
    def grant_ids(self) -> set[str]:
        return self.pipeline_ids | self.stale_ids

    def ordered(self) -> list[str]:
        """Union as a sorted list (order carries no meaning, only stable logs)."""
        return sorted(self.grant_ids)

    def __len__(self) -> int:
        return len(self.grant_ids)


class BatchState(str, Enum):
    """Terminal state of a batch run. RUNNING is only seen mid-run."""

    RUNNING = "running"
    COMPLETE = "complete"
    TIMED_OUT = "timed_out"


class BatchItemResult(BaseModel):
    """Per-grant outcome inside a batch summary.

    Exactly one shape is populated:
    - success: status, confidence, checks, issues, duration_ms
    - failure: error
    - timeout sentinel: grant_id == "TIMEOUT" and message
    """

    grant_id: str
    status: Optional[str] = None
    confidence: Optional[int] = None
    checks: Optional[str] = None
    issues: Optional[int] = None
    duration_ms: Optional[int] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @property
    def is_timeout(self) -> bool:
        return self.grant_id == TIMEOUT_SENTINEL

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class BatchSummary(BaseModel):
    """Batch verification response.

    status is always "complete": partial failures and timeouts are
    normal outcomes, reported through state, failed and the results list.
    """

    status: str = "complete"
    state: BatchState = BatchState.COMPLETE
    run_id: Optional[str] = None
    message: Optional[str] = None
    total_queued: int = 0
    verified: int = 0
    failed: int = 0
    pipeline_grants: int = 0
    stale_grants: int = 0
    results: list[BatchItemResult] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    duration_ms: int = 0

    @property
    def timed_out(self) -> bool:
        return self.state == BatchState.TIMED_OUT

    def to_response(self) -> dict[str, Any]:
        body = self.model_dump(mode="json", exclude={"results"}, exclude_none=True)
        body["results"] = [r.to_response() for r in self.results]
        return body
