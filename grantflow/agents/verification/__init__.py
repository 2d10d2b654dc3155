"""Grant verification agents.

Three-phase verification of a single grant:
- UrlValidator: official URL resolution (phase 1)
- SourceQualityScorer: deterministic metadata scoring (phase 2)
- CrossReferenceChecker: search-grounded cross-reference (phase 3)
- score_verification: pure combination into status and confidence
- GrantVerifier: runs the phases and persists the record

Batch support:
- CandidateSelector / select_candidates: which grants to re-verify
"""

from grantflow.agents.verification.candidate_selector import (
    CandidateSelector,
    select_candidates,
)
from grantflow.agents.verification.cross_reference import (
    CrossReferenceChecker,
    extract_json_object,
)
from grantflow.agents.verification.scoring import combine_scores, score_verification
from grantflow.agents.verification.source_quality import (
    SourceQualityScorer,
    classify_domain,
)
from grantflow.agents.verification.url_validator import UrlValidator
from grantflow.agents.verification.verification_agent import GrantVerifier

__all__ = [
    "CandidateSelector",
    "select_candidates",
    "CrossReferenceChecker",
    "extract_json_object",
    "combine_scores",
    "score_verification",
    "SourceQualityScorer",
    "classify_domain",
    "UrlValidator",
    "GrantVerifier",
]
