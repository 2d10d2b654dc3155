"""Tests for candidate selection.

Tests cover:
- Pure selection over in-memory records (pipeline, stale, union)
- Store-backed selection with one or both sources failing
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from grantflow.agents.verification.candidate_selector import (
    CandidateSelector,
    select_candidates,
)
from grantflow.data_management.grant_store import InMemoryGrantStore
from grantflow.data_management.schemas import Grant, PipelineEntry, VerificationStatus
from grantflow.exceptions import StoreError, StoreUnavailableError

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _make_grant(grant_id: str, verified_ago=None) -> Grant:
    if verified_ago is None:
        return Grant(id=grant_id, name=grant_id)
    return Grant(
        id=grant_id,
        name=grant_id,
        verification_status=VerificationStatus.VERIFIED,
        verification_confidence=90,
        last_verified_at=NOW - verified_ago,
    )


# ── Pure selection ───────────────────────────────────────────────────────


class TestSelectCandidates:
    def test_scenario_stale_archived_and_never_verified(self) -> None:
        grants = [
            _make_grant("A", timedelta(days=10)),
            _make_grant("B", timedelta(hours=1)),
            _make_grant("C"),
        ]
        entries = [
            PipelineEntry(grant_id="B", stage="Archived"),
            PipelineEntry(grant_id="C", stage="Rejected"),
        ]
        candidates = select_candidates(entries, grants, NOW)
        assert candidates.grant_ids == {"A", "C"}

    def test_active_pipeline_grant_included_even_if_fresh(self) -> None:
        grants = [_make_grant("A", timedelta(hours=1))]
        entries = [PipelineEntry(grant_id="A", stage="Preparing Application")]
        candidates = select_candidates(entries, grants, NOW)
        assert candidates.pipeline_ids == {"A"}
        assert candidates.stale_ids == set()

    def test_union_without_duplicates(self) -> None:
        grants = [_make_grant("A"), _make_grant("B", timedelta(days=30))]
        entries = [
            PipelineEntry(grant_id="A", stage="Researching"),
            PipelineEntry(grant_id="A", stage="Submitted"),
            PipelineEntry(grant_id="D", stage="Discovered"),
        ]
        candidates = select_candidates(entries, grants, NOW)
        assert candidates.ordered() == ["A", "B", "D"]
        assert len(candidates) == 3

    def test_exact_cutoff_is_fresh(self) -> None:
        grants = [_make_grant("A", timedelta(days=7))]
        assert len(select_candidates([], grants, NOW)) == 0
        assert len(select_candidates([], grants, NOW + timedelta(seconds=1))) == 1

    def test_null_grant_ids_skipped(self) -> None:
        entries = [PipelineEntry(grant_id=None, stage="Researching")]
        assert len(select_candidates(entries, [], NOW)) == 0

    def test_custom_window(self) -> None:
        grants = [_make_grant("A", timedelta(days=2))]
        assert len(select_candidates([], grants, NOW, freshness_window=timedelta(days=1))) == 1


# ── Store-backed selection ───────────────────────────────────────────────


class TestCandidateSelector:
    @pytest.mark.asyncio
    async def test_reads_both_sources(self) -> None:
        store = InMemoryGrantStore()
        await store.add_grant(_make_grant("A", timedelta(days=10)))
        await store.add_grant(_make_grant("B", timedelta(hours=1)))
        await store.add_pipeline_entry(PipelineEntry(grant_id="B", stage="Under Review"))

        candidates = await CandidateSelector(store).select(now=NOW)

        assert candidates.pipeline_ids == {"B"}
        assert candidates.stale_ids == {"A"}
        assert candidates.warnings == []

    @pytest.mark.asyncio
    async def test_empty_store(self) -> None:
        candidates = await CandidateSelector(InMemoryGrantStore()).select(now=NOW)
        assert len(candidates) == 0

    @pytest.mark.asyncio
    async def test_pipeline_failure_degrades_to_stale(self) -> None:
        store = AsyncMock()
        store.list_active_pipeline_grant_ids.side_effect = StoreError("list_active_pipeline_grant_ids", "HTTP 500")
        store.list_stale_grant_ids.return_value = {"A"}

        candidates = await CandidateSelector(store).select(now=NOW)

        assert candidates.grant_ids == {"A"}
        assert len(candidates.warnings) == 1
        assert "Pipeline" in candidates.warnings[0]

    @pytest.mark.asyncio
    async def test_stale_failure_degrades_to_pipeline(self) -> None:
        store = AsyncMock()
        store.list_active_pipeline_grant_ids.return_value = {"B"}
        store.list_stale_grant_ids.side_effect = StoreError("list_stale_grant_ids", "timeout")

        candidates = await CandidateSelector(store).select(now=NOW)

        assert candidates.grant_ids == {"B"}
        assert "Stale" in candidates.warnings[0]

    @pytest.mark.asyncio
    async def test_both_sources_failing_raises(self) -> None:
        store = AsyncMock()
        store.list_active_pipeline_grant_ids.side_effect = StoreError("a", "down")
        store.list_stale_grant_ids.side_effect = StoreError("b", "down")

        with pytest.raises(StoreUnavailableError):
            await CandidateSelector(store).select(now=NOW)

    @pytest.mark.asyncio
    async def test_cutoff_passed_to_store(self) -> None:
        store = AsyncMock()
        store.list_active_pipeline_grant_ids.return_value = set()
        store.list_stale_grant_ids.return_value = set()

        await CandidateSelector(store, freshness_window=timedelta(days=3)).select(now=NOW)

        store.list_stale_grant_ids.assert_awaited_once_with(NOW - timedelta(days=3))
