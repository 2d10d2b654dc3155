"""Single-grant verifier running the three-phase protocol.

Verification flow per grant:
1. Validate the official URL (UrlValidator)
2. Score source quality and metadata (SourceQualityScorer)
3. Cross-reference against public information (CrossReferenceChecker)
4. Combine into status and confidence (score_verification)
5. Persist verification fields and append history (GrantStore)

Phases 1 and 3 never raise; phase 2 is pure. Only store failures
propagate out of verify().

Usage:
    from grantflow.agents.verification import GrantVerifier

    verifier = GrantVerifier(store=store, crossref_checker=checker)
    record = await verifier.verify("grant-123")
"""

import asyncio
import time
from datetime import date
from typing import Callable, Optional

import structlog

from grantflow.agents.verification.cross_reference import CrossReferenceChecker
from grantflow.agents.verification.scoring import score_verification
from grantflow.agents.verification.source_quality import SourceQualityScorer
from grantflow.agents.verification.url_validator import UrlValidator
from grantflow.data_management.grant_store import GrantStore
from grantflow.data_management.schemas import Grant, VerificationRecord
from grantflow.exceptions import GrantNotFoundError


class GrantVerifier:
    """Verifies one grant and records the outcome.

    Collaborators are injectable. The default cross-reference checker
    needs model credentials.
    """

    def __init__(
        self,
        store: GrantStore,
        url_validator: Optional[UrlValidator] = None,
        quality_scorer: Optional[SourceQualityScorer] = None,
        crossref_checker: Optional[CrossReferenceChecker] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        """Initialize GrantVerifier.

        Args:
            store: Grant store to read from and write to.
            url_validator: Phase 1 URL validator.
            quality_scorer: Phase 2 source quality scorer.
            crossref_checker: Phase 3 checker (defaults to Gemini-backed).
            today: Callable returning the reference date (for tests).
        """
        self.store = store
        self.url_validator = url_validator or UrlValidator()
        self.quality_scorer = quality_scorer or SourceQualityScorer()
        self.crossref_checker = crossref_checker or CrossReferenceChecker()
        self._today = today or date.today
        self._logger = structlog.get_logger().bind(component="GrantVerifier")

    async def evaluate(self, grant: Grant) -> VerificationRecord:
        """Run all phases against a grant without persisting.

        Args:
            grant: Grant to evaluate.

        Returns:
            VerificationRecord with phases, checks, issues, status and confidence.
        """
        started = time.monotonic()
        today = self._today()

        url_check, crossref_check = await asyncio.gather(
            self.url_validator.validate(grant),
            self.crossref_checker.check(grant, today=today),
        )
        quality_check = self.quality_scorer.score(grant, today=today)

        result = score_verification(url_check, quality_check, crossref_check, grant, today)
        duration_ms = int((time.monotonic() - started) * 1000)

        return VerificationRecord(
            grant_id=grant.id,
            checks=result.checks,
            issues=result.issues,
            status=result.status,
            confidence=result.confidence,
            duration_ms=duration_ms,
            phases=[url_check, quality_check, crossref_check],
        )

    async def verify(self, grant_id: str) -> VerificationRecord:
        """Verify a grant by id and persist the result.

        Args:
            grant_id: Grant to verify.

        Returns:
            The persisted VerificationRecord.

        Raises:
            GrantNotFoundError: If the grant does not exist.
            StoreError: If reading or writing the store fails.
        """
        grant = await self.store.get_grant(grant_id)
        if grant is None:
            raise GrantNotFoundError(grant_id)

        record = await self.evaluate(grant)
        await self.store.save_verification(record)

        self._logger.info(
            "grant_verified",
            grant_id=grant_id,
            status=record.status.value,
            confidence=record.confidence,
            checks=f"{record.checks_passed}/{record.checks_total}",
            issues=len(record.issues),
            duration_ms=record.duration_ms,
        )
        return record
