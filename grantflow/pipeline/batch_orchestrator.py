"""Bounded-time batch re-verification of the grant catalog.

Drives the single-grant verifier over the candidate set one grant at a
time under a wall-clock budget. Per-grant failures are recorded and the
batch moves on; running out of budget appends a TIMEOUT sentinel and
stops. Neither is an error: the summary status is always "complete".

Usage:
    from grantflow.pipeline import BatchOrchestrator, VerificationBudget

    orchestrator = BatchOrchestrator(verifier=verifier, selector=selector)
    summary = await orchestrator.run(VerificationBudget(270))
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Optional

from grantflow.agents.verification.candidate_selector import CandidateSelector
from grantflow.agents.verification.verification_agent import GrantVerifier
from grantflow.config.settings import Settings, settings as default_settings
from grantflow.data_management.grant_store import GrantStore
from grantflow.data_management.schemas import (
    BatchItemResult,
    BatchState,
    BatchSummary,
    CandidateSet,
    TIMEOUT_SENTINEL,
)
from grantflow.utils.logging import get_correlation_id, get_structured_logger

DEFAULT_BUDGET_SECONDS = 270.0
DEFAULT_DELAY_SECONDS = 1.0

NO_CANDIDATES_MESSAGE = "No grants need verification"


class VerificationBudget:
    """Wall-clock budget for one batch run.

    Attributes:
        seconds: Total budget; zero or negative is expired immediately
    """

    def __init__(
        self,
        seconds: float = DEFAULT_BUDGET_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.seconds = seconds
        self._clock = clock
        self._started = clock()

    def elapsed(self) -> float:
        return self._clock() - self._started

    def remaining(self) -> float:
        return max(0.0, self.seconds - self.elapsed())

    def expired(self) -> bool:
        return self.seconds <= 0 or self.elapsed() >= self.seconds


class BatchOrchestrator:
    """Sequential, budgeted verification over a candidate set."""

    def __init__(
        self,
        verifier: GrantVerifier,
        selector: CandidateSelector,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize BatchOrchestrator.

        Args:
            verifier: Single-grant verifier (persists each record).
            selector: Candidate selector.
            delay_seconds: Pause between grants to pace external calls.
            sleep: Async sleep function (injectable for tests).
        """
        self.verifier = verifier
        self.selector = selector
        self.delay_seconds = delay_seconds
        self._sleep = sleep
        self._logger = get_structured_logger("BatchOrchestrator")

    async def run(self, budget: Optional[VerificationBudget] = None) -> BatchSummary:
        """Select candidates and verify them within the budget.

        The budget starts before selection so the selector's time counts.

        Args:
            budget: Wall-clock budget (default 270s).

        Returns:
            BatchSummary with per-grant results.

        Raises:
            StoreUnavailableError: If the store cannot be read at all.
        """
        budget = budget or VerificationBudget()
        candidates = await self.selector.select()
        return await self.run_candidates(candidates, budget)

    async def run_candidates(
        self,
        candidates: CandidateSet,
        budget: Optional[VerificationBudget] = None,
    ) -> BatchSummary:
        """Verify an explicit candidate set within the budget.

        Args:
            candidates: Grants to verify.
            budget: Wall-clock budget (default 270s).

        Returns:
            BatchSummary; never raises for per-grant failures or timeout.
        """
        budget = budget or VerificationBudget()
        run_id = get_correlation_id()
        log = self._logger.bind(run_id=run_id)

        summary = BatchSummary(
            run_id=run_id,
            state=BatchState.RUNNING,
            total_queued=len(candidates),
            pipeline_grants=len(candidates.pipeline_ids),
            stale_grants=len(candidates.stale_ids),
            warnings=list(candidates.warnings),
        )

        if not candidates.grant_ids:
            log.info("batch_empty", warnings=len(summary.warnings))
            summary.state = BatchState.COMPLETE
            summary.message = NO_CANDIDATES_MESSAGE
            summary.duration_ms = int(budget.elapsed() * 1000)
            return summary

        log.info(
            "batch_started",
            total_queued=summary.total_queued,
            pipeline_grants=summary.pipeline_grants,
            stale_grants=summary.stale_grants,
            budget_seconds=budget.seconds,
        )

        grant_ids = candidates.ordered()
        for index, grant_id in enumerate(grant_ids):
            if budget.expired():
                processed = summary.verified + summary.failed
                summary.results.append(
                    BatchItemResult(
                        grant_id=TIMEOUT_SENTINEL,
                        message=f"Stopped after {summary.verified} grants due to timeout",
                    )
                )
                summary.state = BatchState.TIMED_OUT
                log.warning(
                    "batch_timed_out",
                    processed=processed,
                    remaining=len(grant_ids) - index,
                    elapsed_seconds=round(budget.elapsed(), 1),
                )
                break

            try:
                record = await self.verifier.verify(grant_id)
            except Exception as e:
                summary.failed += 1
                summary.results.append(BatchItemResult(grant_id=grant_id, error=str(e)))
                log.error(
                    "grant_verification_failed",
                    grant_id=grant_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            else:
                summary.verified += 1
                summary.results.append(
                    BatchItemResult(
                        grant_id=grant_id,
                        status=record.status.value,
                        confidence=record.confidence,
                        checks=f"{record.checks_passed}/{record.checks_total}",
                        issues=len(record.issues),
                        duration_ms=record.duration_ms,
                    )
                )

            if index < len(grant_ids) - 1 and self.delay_seconds > 0:
                await self._sleep(self.delay_seconds)

        if summary.state == BatchState.RUNNING:
            summary.state = BatchState.COMPLETE
        summary.duration_ms = int(budget.elapsed() * 1000)

        log.info(
            "batch_complete",
            state=summary.state.value,
            verified=summary.verified,
            failed=summary.failed,
            duration_ms=summary.duration_ms,
        )
        return summary


@dataclass
class VerificationComponents:
    """Store, verifier, selector and orchestrator wired from settings."""

    store: GrantStore
    verifier: GrantVerifier
    selector: CandidateSelector
    orchestrator: BatchOrchestrator

    async def close(self) -> None:
        """Release HTTP clients held by the store and URL validator."""
        await self.verifier.url_validator.close()
        close = getattr(self.store, "close", None)
        if close is not None:
            await close()


def build_store(cfg: Optional[Settings] = None) -> GrantStore:
    """
    Pick the grant store from settings.

    Supabase when it is configured, otherwise the in-memory store
    (persisted to store_path when set).
    """
    from grantflow.data_management.grant_store import InMemoryGrantStore
    from grantflow.data_management.supabase_store import SupabaseGrantStore

    cfg = cfg or default_settings
    if cfg.supabase_configured:
        return SupabaseGrantStore.from_settings(cfg)
    return InMemoryGrantStore(persistence_path=cfg.store_path)


def build_components(
    cfg: Optional[Settings] = None,
    store: Optional[GrantStore] = None,
) -> VerificationComponents:
    """
    Wire the verification stack from settings.

    Args:
        cfg: Settings (defaults to the module singleton)
        store: Grant store to use instead of the one from build_store

    Returns:
        VerificationComponents

    Raises:
        ConfigurationError: If the Gemini API key is missing
    """
    from grantflow.agents.verification.cross_reference import CrossReferenceChecker
    from grantflow.agents.verification.url_validator import UrlValidator
    from grantflow.llm.gemini_client import GeminiSearchClient
    from grantflow.llm.rate_limiter import RateLimiter

    cfg = cfg or default_settings
    cfg.require("gemini_api_key")
    store = store or build_store(cfg)

    checker = CrossReferenceChecker(
        responder=GeminiSearchClient(cfg=cfg),
        rate_limiter=RateLimiter(max_rpm=cfg.max_rpm, max_tpm=cfg.max_tpm),
        project_context=cfg.project_context,
        timeout=cfg.crossref_timeout_seconds,
    )
    verifier = GrantVerifier(
        store=store,
        url_validator=UrlValidator(timeout=cfg.url_timeout_seconds),
        crossref_checker=checker,
    )
    selector = CandidateSelector(
        store=store,
        freshness_window=timedelta(days=cfg.freshness_window_days),
    )
    orchestrator = BatchOrchestrator(
        verifier=verifier,
        selector=selector,
        delay_seconds=cfg.inter_call_delay_seconds,
    )
    return VerificationComponents(
        store=store,
        verifier=verifier,
        selector=selector,
        orchestrator=orchestrator,
    )
