"""Candidate selection for batch re-verification.

A grant needs (re-)verification if either:
- an active pipeline entry references it (stage not Archived/Rejected), or
- it was never verified, or last verified before now - freshness window.

The two sources are read independently. One failing source degrades the
run to the other with a warning; both failing means the store is down.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import structlog

from grantflow.data_management.grant_store import GrantStore
from grantflow.data_management.schemas import CandidateSet, Grant, PipelineEntry
from grantflow.exceptions import StoreError, StoreUnavailableError

DEFAULT_FRESHNESS_WINDOW = timedelta(days=7)


def select_candidates(
    entries: Iterable[PipelineEntry],
    grants: Iterable[Grant],
    now: datetime,
    freshness_window: timedelta = DEFAULT_FRESHNESS_WINDOW,
) -> CandidateSet:
    """
    Compute the candidate set from in-memory records.

    A grant verified exactly at the cutoff is still fresh.

    Args:
        entries: Pipeline entries (null grant ids are skipped)
        grants: Grant records
        now: Reference time
        freshness_window: Maximum age of a verification

    Returns:
        CandidateSet with both sources and their union
    """
    cutoff = now - freshness_window
    pipeline_ids = {e.grant_id for e in entries if e.grant_id and e.is_active}
    stale_ids = {
        g.id
        for g in grants
        if g.last_verified_at is None or g.last_verified_at < cutoff
    }
    return CandidateSet(pipeline_ids=pipeline_ids, stale_ids=stale_ids)


class CandidateSelector:
    """Reads candidate sources from a grant store."""

    def __init__(
        self,
        store: GrantStore,
        freshness_window: timedelta = DEFAULT_FRESHNESS_WINDOW,
    ) -> None:
        self.store = store
        self.freshness_window = freshness_window
        self._logger = structlog.get_logger().bind(component="CandidateSelector")

    async def select(self, now: Optional[datetime] = None) -> CandidateSet:
        """Select grants needing verification.

        Args:
            now: Reference time (defaults to current UTC time).

        Returns:
            CandidateSet, possibly empty, with a warning per failed source.

        Raises:
            StoreUnavailableError: If neither source could be read.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - self.freshness_window
        warnings: list[str] = []
        errors: list[StoreError] = []

        try:
            pipeline_ids = await self.store.list_active_pipeline_grant_ids()
        except StoreError as e:
            self._logger.warning("pipeline_source_failed", error=str(e))
            warnings.append(f"Pipeline grants could not be read: {e}")
            errors.append(e)
            pipeline_ids = set()

        try:
            stale_ids = await self.store.list_stale_grant_ids(cutoff)
        except StoreError as e:
            self._logger.warning("stale_source_failed", error=str(e))
            warnings.append(f"Stale grants could not be read: {e}")
            errors.append(e)
            stale_ids = set()

        if len(errors) == 2:
            self._logger.error("candidate_sources_unavailable", errors=[str(e) for e in errors])
            raise StoreUnavailableError(
                "select_candidates",
                "neither pipeline nor stale grants could be read",
                errors[-1],
            )

        candidates = CandidateSet(
            pipeline_ids=pipeline_ids,
            stale_ids=stale_ids,
            warnings=warnings,
        )
        self._logger.info(
            "candidates_selected",
            pipeline=len(pipeline_ids),
            stale=len(stale_ids),
            total=len(candidates),
            cutoff=cutoff.isoformat(),
        )
        return candidates
