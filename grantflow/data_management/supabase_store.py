"""Grant store backed by the hosted Supabase database via its PostgREST API.

Tables used:
- grants: grant records with verification fields
- grant_applications: pipeline entries (grant_id, stage)
- grant_verifications: append-only verification history

Every HTTP failure is converted into StoreError, and into
StoreUnavailableError when the store cannot be reached at all.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from loguru import logger

from grantflow.config.settings import Settings, settings as default_settings
from grantflow.data_management.grant_store import GrantStore
from grantflow.data_management.schemas import (
    Grant,
    TERMINAL_STAGES,
    VerificationRecord,
    VerificationStatus,
)
from grantflow.exceptions import StoreError, StoreUnavailableError

# Statuses written by the earlier verifier into the same column
LEGACY_STATUSES = {
    "warning": VerificationStatus.PARTIALLY_VERIFIED.value,
    "failed": VerificationStatus.UNVERIFIED.value,
}

KNOWN_STATUSES = {s.value for s in VerificationStatus}


class SupabaseGrantStore(GrantStore):
    """
    Grant store talking to Supabase PostgREST with httpx.

    Attributes:
        base_url: PostgREST root (``<supabase_url>/rest/v1``)
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        supabase_url: str,
        api_key: str,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the Supabase store.

        Args:
            supabase_url: Project URL (without /rest/v1)
            api_key: Service role key (or anon key)
            timeout: Request timeout in seconds
            client: Optional pre-built AsyncClient (tests inject a MockTransport)
        """
        self.base_url = supabase_url.rstrip("/") + "/rest/v1"
        self.timeout = timeout
        self._api_key = api_key
        self._client = client
        self.logger = logger.bind(component="SupabaseGrantStore")

    @classmethod
    def from_settings(cls, cfg: Optional[Settings] = None) -> "SupabaseGrantStore":
        """Build a store from settings.

        Raises:
            ConfigurationError: If URL or key is missing.
        """
        cfg = cfg or default_settings
        cfg.require("supabase_url", "supabase_key")
        return cls(cfg.supabase_url, cfg.supabase_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_connections=10),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _headers(self, prefer: Optional[str] = None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        operation: str,
        method: str,
        table: str,
        params: Optional[dict[str, str]] = None,
        json_body: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        """Run one PostgREST request and decode the JSON body.

        Raises:
            StoreError: On transport errors, non-2xx responses or bad JSON.
        """
        client = await self._get_client()
        try:
            response = await client.request(
                method,
                f"{self.base_url}/{table}",
                params=params,
                json=json_body,
                headers=self._headers(prefer),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self.logger.error(
                f"{operation} failed with HTTP {e.response.status_code}",
                table=table,
            )
            raise StoreError(
                operation, f"HTTP {e.response.status_code}: {e.response.text[:200]}", e
            ) from e
        except httpx.TransportError as e:
            self.logger.error(f"{operation} could not reach the store: {e}", table=table)
            raise StoreUnavailableError(operation, f"store unreachable: {e}", e) from e
        except httpx.HTTPError as e:
            self.logger.error(f"{operation} request failed: {e}", table=table)
            raise StoreError(operation, f"request failed: {e}", e) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(operation, "response was not valid JSON", e) from e

    async def get_grant(self, grant_id: str) -> Optional[Grant]:
        rows = await self._request(
            "get_grant",
            "GET",
            "grants",
            params={"id": f"eq.{grant_id}", "select": "*"},
        )
        if not rows:
            return None
        return self._row_to_grant(rows[0])

    async def list_grants(self) -> list[Grant]:
        rows = await self._request(
            "list_grants", "GET", "grants", params={"select": "*"}
        )
        return [self._row_to_grant(row) for row in rows or []]

    async def list_stale_grant_ids(self, cutoff: datetime) -> set[str]:
        rows = await self._request(
            "list_stale_grant_ids",
            "GET",
            "grants",
            params={
                "select": "id",
                "or": f"(last_verified_at.is.null,last_verified_at.lt.{cutoff.isoformat()})",
            },
        )
        return {row["id"] for row in rows or [] if row.get("id")}

    async def list_active_pipeline_grant_ids(self) -> set[str]:
        terminal = ",".join(sorted(TERMINAL_STAGES))
        rows = await self._request(
            "list_active_pipeline_grant_ids",
            "GET",
            "grant_applications",
            params={
                "select": "grant_id",
                "stage": f"not.in.({terminal})",
            },
        )
        return {row["grant_id"] for row in rows or [] if row.get("grant_id")}

    async def save_verification(self, record: VerificationRecord) -> None:
        # History first: if the grant update fails afterwards, the attempt is still logged
        await self._request(
            "append_history",
            "POST",
            "grant_verifications",
            json_body=self._record_to_row(record),
            prefer="return=minimal",
        )
        await self._request(
            "update_grant",
            "PATCH",
            "grants",
            params={"id": f"eq.{record.grant_id}"},
            json_body={
                "verification_status": record.status.value,
                "verification_confidence": record.confidence,
                "last_verified_at": record.verified_at.isoformat(),
                "verification_details": record.to_details(),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            prefer="return=minimal",
        )
        self.logger.info(
            f"Saved verification for {record.grant_id}",
            status=record.status.value,
            confidence=record.confidence,
        )

    async def get_history(self, grant_id: str) -> list[VerificationRecord]:
        rows = await self._request(
            "get_history",
            "GET",
            "grant_verifications",
            params={
                "grant_id": f"eq.{grant_id}",
                "select": "*",
                "order": "verified_at.asc",
            },
        )
        return [self._row_to_record(row) for row in rows or []]

    async def ping(self) -> bool:
        try:
            await self._request(
                "ping", "GET", "grants", params={"select": "id", "limit": "1"}
            )
            return True
        except StoreError:
            return False

    def _row_to_grant(self, row: dict[str, Any]) -> Grant:
        """Convert a grants row to a Grant, normalizing legacy statuses."""
        data = dict(row)
        data["verification_details"] = data.get("verification_details") or {}
        status = data.get("verification_status") or "unverified"
        status = LEGACY_STATUSES.get(status, status)
        if status not in KNOWN_STATUSES or data.get("verification_confidence") is None:
            status = "unverified"
        data["verification_status"] = status
        if status == "unverified":
            data["verification_confidence"] = None
        try:
            return Grant.model_validate(data)
        except ValueError as e:
            raise StoreError("decode_grant", f"invalid grant row {row.get('id')}: {e}", e) from e

    def _record_to_row(self, record: VerificationRecord) -> dict[str, Any]:
        """Flatten a record into a grant_verifications row."""
        url = record.phase("url")
        quality = record.phase("quality")
        crossref = record.phase("crossref")
        return {
            "grant_id": record.grant_id,
            "verified_at": record.verified_at.isoformat(),
            "overall_confidence": record.confidence,
            "status": record.status.value,
            "url_valid": bool(url and url.passed),
            "url_status_code": url.status_code if url else None,
            "url_contains_grant_name": bool(url and url.mentions_grant_name),
            "url_domain": url.domain if url else "",
            "crossref_ran": bool(crossref and crossref.ran),
            "crossref_amount_match": crossref.amount_match if crossref else None,
            "crossref_deadline_match": crossref.deadline_match if crossref else None,
            "crossref_eligibility_match": crossref.eligibility_match if crossref else None,
            "crossref_discrepancies": crossref.discrepancies if crossref else [],
            "crossref_fresh_data": crossref.fresh_data if crossref else {},
            "source_quality_score": quality.sub_score if quality else 0,
            "source_type": quality.source_type if quality else "unknown",
            "source_domain_authority": quality.domain_authority if quality else "none",
            "checks_passed": record.checks_passed,
            "checks_total": record.checks_total,
            "checks": [c.model_dump() for c in record.checks],
            "issues": [i.model_dump() for i in record.issues],
            "phases": [p.model_dump(mode="json") for p in record.phases],
            "duration_ms": record.duration_ms,
        }

    def _row_to_record(self, row: dict[str, Any]) -> VerificationRecord:
        try:
            return VerificationRecord.model_validate(
                {
                    "grant_id": row["grant_id"],
                    "verified_at": row.get("verified_at") or row.get("created_at"),
                    "status": row["status"],
                    "confidence": row.get("overall_confidence") or 0,
                    "checks": row.get("checks") or [],
                    "issues": row.get("issues") or [],
                    "duration_ms": row.get("duration_ms") or 0,
                    "phases": row.get("phases") or [],
                }
            )
        except (KeyError, ValueError) as e:
            raise StoreError("decode_history", f"invalid history row: {e}", e) from e
