"""Grant store interface and in-memory implementation.

The verification subsystem touches the store through a narrow async
interface:
- read grants (one, all, stale ids)
- read active pipeline grant ids
- write verification fields and append a history record

InMemoryGrantStore follows the same patterns as the other local stores:
- O(1) lookup by grant id
- Thread-safe operations with asyncio locks
- Optional JSON persistence for development

Usage:
    from grantflow.data_management.grant_store import InMemoryGrantStore

    store = InMemoryGrantStore()
    await store.add_grant(grant)
    await store.save_verification(record)
    history = await store.get_history("grant-1")
"""

import asyncio
import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog

from grantflow.data_management.schemas import (
    Grant,
    PipelineEntry,
    VerificationRecord,
)
from grantflow.exceptions import StoreError


class GrantStore(ABC):
    """Narrow async interface the verification subsystem needs."""

    @abstractmethod
    async def get_grant(self, grant_id: str) -> Optional[Grant]:
        """Return a grant by id, or None if it does not exist."""

    @abstractmethod
    async def list_grants(self) -> list[Grant]:
        """Return every grant."""

    @abstractmethod
    async def list_stale_grant_ids(self, cutoff: datetime) -> set[str]:
        """Ids of grants never verified or last verified before cutoff."""

    @abstractmethod
    async def list_active_pipeline_grant_ids(self) -> set[str]:
        """Grant ids referenced by pipeline entries outside the terminal stages."""

    @abstractmethod
    async def save_verification(self, record: VerificationRecord) -> None:
        """Write verification fields onto the grant and append to history.

        Raises:
            StoreError: If either write fails.
        """

    @abstractmethod
    async def get_history(self, grant_id: str) -> list[VerificationRecord]:
        """Verification history for a grant, oldest first."""

    async def ping(self) -> bool:
        """Return True if the store is reachable."""
        return True


class InMemoryGrantStore(GrantStore):
    """Grant store kept in memory, optionally mirrored to a JSON file.

    Data structure:
    {
        "grants": {grant_id: Grant, ...},
        "pipeline": [PipelineEntry, ...],
        "history": {grant_id: [VerificationRecord, ...], ...}
    }
    """

    def __init__(self, persistence_path: Optional[str] = None) -> None:
        """Initialize InMemoryGrantStore.

        Args:
            persistence_path: Optional path to JSON file for persistence.
                            If None, storage is memory-only.
        """
        self._grants: dict[str, Grant] = {}
        self._pipeline: list[PipelineEntry] = []
        self._history: dict[str, list[VerificationRecord]] = {}
        self._lock = asyncio.Lock()
        self._persistence_path = Path(persistence_path) if persistence_path else None
        self._logger = structlog.get_logger().bind(component="InMemoryGrantStore")

        if self._persistence_path and self._persistence_path.exists():
            self._load_from_file()

    async def add_grant(self, grant: Grant) -> None:
        """Insert or replace a grant record."""
        async with self._lock:
            self._grants[grant.id] = grant
            if self._persistence_path:
                self._save_to_file()

    async def add_pipeline_entry(self, entry: PipelineEntry) -> None:
        """Append a pipeline entry."""
        async with self._lock:
            self._pipeline.append(entry)
            if self._persistence_path:
                self._save_to_file()

    async def get_grant(self, grant_id: str) -> Optional[Grant]:
        async with self._lock:
            return self._grants.get(grant_id)

    async def list_grants(self) -> list[Grant]:
        async with self._lock:
            return list(self._grants.values())

    async def list_pipeline_entries(self) -> list[PipelineEntry]:
        async with self._lock:
            return list(self._pipeline)

    async def list_stale_grant_ids(self, cutoff: datetime) -> set[str]:
        async with self._lock:
            return {
                g.id
                for g in self._grants.values()
                if g.last_verified_at is None or g.last_verified_at < cutoff
            }

    async def list_active_pipeline_grant_ids(self) -> set[str]:
        async with self._lock:
            return {
                e.grant_id
                for e in self._pipeline
                if e.grant_id and e.is_active
            }

    async def save_verification(self, record: VerificationRecord) -> None:
        async with self._lock:
            grant = self._grants.get(record.grant_id)
            if grant is None:
                raise StoreError(
                    "save_verification",
                    f"grant {record.grant_id} does not exist",
                )

            self._grants[record.grant_id] = grant.model_copy(
                update={
                    "verification_status": record.status,
                    "verification_confidence": record.confidence,
                    "last_verified_at": record.verified_at,
                    "verification_details": record.to_details(),
                    "updated_at": datetime.now(timezone.utc),
                }
            )
            self._history.setdefault(record.grant_id, []).append(record)

            self._logger.debug(
                "verification_saved",
                grant_id=record.grant_id,
                status=record.status.value,
                confidence=record.confidence,
            )

            if self._persistence_path:
                self._save_to_file()

    async def get_history(self, grant_id: str) -> list[VerificationRecord]:
        async with self._lock:
            return list(self._history.get(grant_id, []))

    async def get_stats(self) -> dict[str, Any]:
        """Counts of grants per verification status."""
        async with self._lock:
            status_counts: dict[str, int] = {}
            for grant in self._grants.values():
                key = grant.verification_status.value
                status_counts[key] = status_counts.get(key, 0) + 1
            return {
                "total": len(self._grants),
                "status_counts": status_counts,
                "pipeline_entries": len(self._pipeline),
                "history_records": sum(len(h) for h in self._history.values()),
            }

    def _save_to_file(self) -> None:
        """Save to JSON file (synchronous)."""
        if not self._persistence_path:
            return
        try:
            self._persistence_path.parent.mkdir(parents=True, exist_ok=True)
            data: dict[str, Any] = {
                "grants": {
                    gid: grant.model_dump(mode="json")
                    for gid, grant in self._grants.items()
                },
                "pipeline": [e.model_dump(mode="json") for e in self._pipeline],
                "history": {
                    gid: [r.model_dump(mode="json") for r in records]
                    for gid, records in self._history.items()
                },
            }
            with open(self._persistence_path, "w") as f:
                json.dump(data, f, indent=2, default=str)
        except OSError as e:
            raise StoreError("persist", str(e), e) from e

    def _load_from_file(self) -> None:
        """Load grants, pipeline entries and history from JSON."""
        try:
            with open(self._persistence_path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self._logger.error("load_failed", path=str(self._persistence_path), error=str(e))
            return

        self._grants = {
            gid: Grant.model_validate(raw)
            for gid, raw in data.get("grants", {}).items()
        }
        self._pipeline = [
            PipelineEntry.model_validate(raw) for raw in data.get("pipeline", [])
        ]
        self._history = {
            gid: [VerificationRecord.model_validate(r) for r in records]
            for gid, records in data.get("history", {}).items()
        }
        self._logger.info(
            "store_loaded",
            grants=len(self._grants),
            pipeline_entries=len(self._pipeline),
        )
