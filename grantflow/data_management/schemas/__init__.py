"""Schemas for grants, pipeline entries, verification records and batch runs.

Grant-side models:
- Grant, PipelineEntry: records owned by the surrounding application
- VerificationStatus, PipelineStage, TERMINAL_STAGES: closed vocabularies

Verification-side models:
- UrlCheck, QualityCheck, CrossReferenceCheck: tagged phase results
- CheckOutcome, Issue: individual checks and user-facing issues
- ScoringResult, VerificationRecord: combined outcome and history entry

Batch models:
- CandidateSet, BatchItemResult, BatchSummary, BatchState
"""

from grantflow.data_management.schemas.grant_schema import (
    Grant,
    PipelineEntry,
    PipelineStage,
    TERMINAL_STAGES,
    VerificationStatus,
)
from grantflow.data_management.schemas.verification_schema import (
    CheckOutcome,
    CrossReferenceCheck,
    Issue,
    PhaseResult,
    QualityCheck,
    ScoringResult,
    UrlCheck,
    UrlClassification,
    VerificationRecord,
)
from grantflow.data_management.schemas.batch_schema import (
    BatchItemResult,
    BatchState,
    BatchSummary,
    CandidateSet,
    TIMEOUT_SENTINEL,
)

__all__ = [
    # Grant
    "Grant",
    "PipelineEntry",
    "PipelineStage",
    "TERMINAL_STAGES",
    "VerificationStatus",
    # Verification
    "CheckOutcome",
    "CrossReferenceCheck",
    "Issue",
    "PhaseResult",
    "QualityCheck",
    "ScoringResult",
    "UrlCheck",
    "UrlClassification",
    "VerificationRecord",
    # Batch
    "BatchItemResult",
    "BatchState",
    "BatchSummary",
    "CandidateSet",
    "TIMEOUT_SENTINEL",
]
