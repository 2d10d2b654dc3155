"""Tests for BatchOrchestrator and VerificationBudget.

Tests cover:
- Budget expiry and the TIMEOUT sentinel
- Per-grant failure isolation
- Pacing between grants
- Empty candidate sets and selector failures
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from grantflow.data_management.schemas import (
    BatchState,
    CandidateSet,
    VerificationRecord,
    VerificationStatus,
    CheckOutcome,
    Issue,
)
from grantflow.exceptions import StoreError, StoreUnavailableError
from grantflow.pipeline.batch_orchestrator import BatchOrchestrator, VerificationBudget


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _record(grant_id: str) -> VerificationRecord:
    return VerificationRecord(
        grant_id=grant_id,
        status=VerificationStatus.PARTIALLY_VERIFIED,
        confidence=55,
        duration_ms=800,
        checks=[CheckOutcome(name="url_reachable", passed=True), CheckOutcome(name="source_quality", passed=False)],
        issues=[Issue(type="source", severity="warning", message="low")],
    )


def _make_orchestrator(verify_side_effect=None, candidates: CandidateSet = None):
    verifier = MagicMock()
    verifier.verify = AsyncMock(side_effect=verify_side_effect or (lambda gid: _record(gid)))
    selector = MagicMock()
    selector.select = AsyncMock(return_value=candidates or CandidateSet())
    sleep = AsyncMock()
    orchestrator = BatchOrchestrator(verifier=verifier, selector=selector, delay_seconds=1.0, sleep=sleep)
    return orchestrator, verifier, sleep


# ── Budget ───────────────────────────────────────────────────────────────


class TestVerificationBudget:
    def test_elapsed_and_remaining(self) -> None:
        clock = FakeClock()
        budget = VerificationBudget(10, clock=clock)
        clock.now += 4
        assert budget.elapsed() == 4
        assert budget.remaining() == 6
        assert not budget.expired()
        clock.now += 6
        assert budget.expired()
        assert budget.remaining() == 0

    @pytest.mark.parametrize("seconds", [0, -1])
    def test_non_positive_budget_expired_at_once(self, seconds: float) -> None:
        assert VerificationBudget(seconds, clock=FakeClock()).expired()


# ── Runs ─────────────────────────────────────────────────────────────────


class TestRunCandidates:
    @pytest.mark.asyncio
    async def test_all_verified(self) -> None:
        orchestrator, verifier, sleep = _make_orchestrator()
        candidates = CandidateSet(pipeline_ids={"a", "b"}, stale_ids={"b", "c"})

        summary = await orchestrator.run_candidates(candidates, VerificationBudget(270, clock=FakeClock()))

        assert summary.status == "complete"
        assert summary.state == BatchState.COMPLETE
        assert summary.total_queued == 3
        assert summary.pipeline_grants == 2
        assert summary.stale_grants == 2
        assert summary.verified == 3
        assert summary.failed == 0
        assert verifier.verify.await_count == 3
        item = summary.results[0].to_response()
        assert item == {
            "grant_id": "a",
            "status": "partially_verified",
            "confidence": 55,
            "checks": "1/2",
            "issues": 1,
            "duration_ms": 800,
        }

    @pytest.mark.asyncio
    async def test_zero_budget_yields_sentinel(self) -> None:
        orchestrator, verifier, _ = _make_orchestrator()
        candidates = CandidateSet(stale_ids={"a", "b"})

        summary = await orchestrator.run_candidates(candidates, VerificationBudget(0, clock=FakeClock()))

        assert summary.verified == 0
        assert summary.state == BatchState.TIMED_OUT
        assert summary.status == "complete"
        assert [r.to_response() for r in summary.results] == [
            {"grant_id": "TIMEOUT", "message": "Stopped after 0 grants due to timeout"}
        ]
        verifier.verify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_budget_expires_mid_run(self) -> None:
        clock = FakeClock()

        def slow_verify(grant_id: str) -> VerificationRecord:
            clock.now += 100
            return _record(grant_id)

        orchestrator, verifier, _ = _make_orchestrator(verify_side_effect=slow_verify)
        candidates = CandidateSet(stale_ids={"a", "b", "c", "d"})

        summary = await orchestrator.run_candidates(candidates, VerificationBudget(250, clock=clock))

        assert summary.verified == 3
        assert summary.timed_out
        assert summary.results[-1].message == "Stopped after 3 grants due to timeout"

    @pytest.mark.asyncio
    async def test_timeout_message_counts_verified_only(self) -> None:
        clock = FakeClock()

        def slow_and_flaky(grant_id: str) -> VerificationRecord:
            clock.now += 100
            if grant_id == "a":
                raise StoreError("update_grant", "HTTP 500")
            return _record(grant_id)

        orchestrator, _, _ = _make_orchestrator(verify_side_effect=slow_and_flaky)
        candidates = CandidateSet(stale_ids={"a", "b", "c", "d"})

        summary = await orchestrator.run_candidates(candidates, VerificationBudget(250, clock=clock))

        assert summary.verified == 2
        assert summary.failed == 1
        assert summary.timed_out
        assert summary.results[-1].message == "Stopped after 2 grants due to timeout"

    @pytest.mark.asyncio
    async def test_failure_isolated(self) -> None:
        def flaky(grant_id: str) -> VerificationRecord:
            if grant_id == "b":
                raise StoreError("update_grant", "HTTP 500")
            return _record(grant_id)

        orchestrator, _, _ = _make_orchestrator(verify_side_effect=flaky)
        candidates = CandidateSet(stale_ids={"a", "b", "c"})

        summary = await orchestrator.run_candidates(candidates, VerificationBudget(270, clock=FakeClock()))

        assert summary.verified == 2
        assert summary.failed == 1
        failed = [r for r in summary.results if r.failed]
        assert failed[0].grant_id == "b"
        assert "HTTP 500" in failed[0].error
        assert summary.state == BatchState.COMPLETE

    @pytest.mark.asyncio
    async def test_unexpected_exception_isolated(self) -> None:
        orchestrator, _, _ = _make_orchestrator(verify_side_effect=RuntimeError("bug"))
        summary = await orchestrator.run_candidates(
            CandidateSet(stale_ids={"a"}), VerificationBudget(270, clock=FakeClock())
        )
        assert summary.failed == 1
        assert summary.results[0].error == "bug"

    @pytest.mark.asyncio
    async def test_paced_between_grants(self) -> None:
        orchestrator, _, sleep = _make_orchestrator()
        candidates = CandidateSet(stale_ids={"a", "b", "c"})

        await orchestrator.run_candidates(candidates, VerificationBudget(270, clock=FakeClock()))

        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.0)

    @pytest.mark.asyncio
    async def test_warnings_carried_into_summary(self) -> None:
        orchestrator, _, _ = _make_orchestrator()
        candidates = CandidateSet(stale_ids={"a"}, warnings=["Pipeline grants could not be read"])
        summary = await orchestrator.run_candidates(candidates, VerificationBudget(270, clock=FakeClock()))
        assert summary.warnings == ["Pipeline grants could not be read"]

    @pytest.mark.asyncio
    async def test_empty_candidates(self) -> None:
        orchestrator, verifier, _ = _make_orchestrator()
        summary = await orchestrator.run_candidates(CandidateSet(), VerificationBudget(270, clock=FakeClock()))

        assert summary.message == "No grants need verification"
        assert summary.total_queued == 0
        assert summary.results == []
        verifier.verify.assert_not_awaited()


class TestRun:
    @pytest.mark.asyncio
    async def test_run_uses_selector(self) -> None:
        orchestrator, verifier, _ = _make_orchestrator(candidates=CandidateSet(pipeline_ids={"x"}))
        summary = await orchestrator.run(VerificationBudget(270, clock=FakeClock()))
        assert summary.verified == 1
        verifier.verify.assert_awaited_once_with("x")

    @pytest.mark.asyncio
    async def test_store_unavailable_propagates(self) -> None:
        orchestrator, _, _ = _make_orchestrator()
        orchestrator.selector.select.side_effect = StoreUnavailableError("select_candidates", "down")
        with pytest.raises(StoreUnavailableError):
            await orchestrator.run(VerificationBudget(270, clock=FakeClock()))
