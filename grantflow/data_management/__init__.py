"""Data management package for grant verification.

Provides storage adapters and schemas for:
- Grants (Grant) - funding program records with verification metadata
- Pipeline entries (PipelineEntry) - read-only lifecycle references
- Verification history (VerificationRecord) - append-only attempt log

Storage adapters:
- GrantStore: async interface used by the verification subsystem
- InMemoryGrantStore: memory-backed store with optional JSON persistence
- SupabaseGrantStore: hosted store via PostgREST
"""

from grantflow.data_management.grant_store import GrantStore, InMemoryGrantStore
from grantflow.data_management.supabase_store import SupabaseGrantStore

__all__ = [
    "GrantStore",
    "InMemoryGrantStore",
    "SupabaseGrantStore",
]
