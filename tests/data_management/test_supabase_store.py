"""Tests for SupabaseGrantStore against a mocked PostgREST API.

Tests cover:
- Query construction (filters, headers, tables)
- Row decoding, including legacy rows without a verification status
- Verification writes: history insert then grant update
- HTTP failures surfacing as StoreError, transport failures as StoreUnavailableError
"""

import json
from datetime import datetime, timezone
from typing import Callable

import httpx
import pytest

from grantflow.config.settings import Settings
from grantflow.data_management.schemas import (
    CheckOutcome,
    CrossReferenceCheck,
    QualityCheck,
    UrlCheck,
    VerificationRecord,
    VerificationStatus,
)
from grantflow.data_management.supabase_store import SupabaseGrantStore
from grantflow.exceptions import ConfigurationError, StoreError, StoreUnavailableError

BASE = "https://project.supabase.co"


def _make_store(handler: Callable[[httpx.Request], httpx.Response]) -> SupabaseGrantStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseGrantStore(BASE, "service-key", client=client)


def _grant_row(**overrides) -> dict:
    row = {
        "id": "g-1",
        "name": "Voucher Digitale",
        "max_amount": 50000,
        "application_window_closes": "2026-12-31",
        "official_url": "https://www.mimit.gov.it/voucher",
        "verification_status": "verified",
        "verification_confidence": 85,
        "last_verified_at": "2026-05-01T10:00:00+00:00",
        "verification_details": {"checks_passed": 5},
        "created_at": "2025-01-01T00:00:00+00:00",
    }
    row.update(overrides)
    return row


def _make_record() -> VerificationRecord:
    return VerificationRecord(
        grant_id="g-1",
        verified_at=datetime(2026, 6, 1, tzinfo=timezone.utc),
        status=VerificationStatus.DISPUTED,
        confidence=52,
        checks=[CheckOutcome(name="url_reachable", passed=True)],
        phases=[
            UrlCheck(classification="reachable_2xx", status_code=200, domain="www.mimit.gov.it", sub_score=100),
            QualityCheck(sub_score=90, source_type="official_government", domain_authority="top_tier", passed=True),
            CrossReferenceCheck(
                ran=True,
                amount_match=False,
                contradictions=[{"field": "amount", "severity": "critical"}],
                discrepancies=[{"field": "amount", "severity": "critical"}],
            ),
        ],
    )


# ── Reads ────────────────────────────────────────────────────────────────


class TestReads:
    @pytest.mark.asyncio
    async def test_get_grant_builds_filter_and_headers(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[_grant_row()])

        store = _make_store(handler)
        grant = await store.get_grant("g-1")

        assert grant.id == "g-1"
        assert grant.verification_confidence == 85
        request = seen[0]
        assert request.url.path == "/rest/v1/grants"
        assert request.url.params["id"] == "eq.g-1"
        assert request.headers["apikey"] == "service-key"
        assert request.headers["Authorization"] == "Bearer service-key"

    @pytest.mark.asyncio
    async def test_get_grant_missing(self) -> None:
        store = _make_store(lambda request: httpx.Response(200, json=[]))
        assert await store.get_grant("nope") is None

    @pytest.mark.asyncio
    async def test_legacy_row_without_status_is_unverified(self) -> None:
        row = _grant_row(verification_status=None, verification_confidence=None)
        store = _make_store(lambda request: httpx.Response(200, json=[row]))
        grant = await store.get_grant("g-1")
        assert grant.verification_status == VerificationStatus.UNVERIFIED
        assert grant.verification_confidence is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, confidence, expected",
        [
            ("warning", 55, VerificationStatus.PARTIALLY_VERIFIED),
            ("failed", 20, VerificationStatus.UNVERIFIED),
            ("ai_generated", None, VerificationStatus.UNVERIFIED),
            ("verified", None, VerificationStatus.UNVERIFIED),
        ],
    )
    async def test_legacy_statuses_normalized(self, status, confidence, expected) -> None:
        row = _grant_row(verification_status=status, verification_confidence=confidence)
        store = _make_store(lambda request: httpx.Response(200, json=[row]))

        grant = await store.get_grant("g-1")

        assert grant.verification_status == expected
        if expected == VerificationStatus.UNVERIFIED:
            assert grant.verification_confidence is None
        else:
            assert grant.verification_confidence == confidence

    @pytest.mark.asyncio
    async def test_stale_filter(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"id": "a"}, {"id": "b"}])

        store = _make_store(handler)
        cutoff = datetime(2026, 5, 25, tzinfo=timezone.utc)
        ids = await store.list_stale_grant_ids(cutoff)

        assert ids == {"a", "b"}
        or_filter = seen[0].url.params["or"]
        assert "last_verified_at.is.null" in or_filter
        assert f"last_verified_at.lt.{cutoff.isoformat()}" in or_filter

    @pytest.mark.asyncio
    async def test_active_pipeline_filter(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json=[{"grant_id": "a"}, {"grant_id": "a"}, {"grant_id": None}]
            )

        store = _make_store(handler)
        ids = await store.list_active_pipeline_grant_ids()

        assert ids == {"a"}
        assert seen[0].url.path == "/rest/v1/grant_applications"
        assert seen[0].url.params["stage"] == "not.in.(Archived,Rejected)"


# ── Writes ───────────────────────────────────────────────────────────────


class TestSaveVerification:
    @pytest.mark.asyncio
    async def test_history_insert_then_grant_update(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201 if request.method == "POST" else 204)

        store = _make_store(handler)
        await store.save_verification(_make_record())

        assert [(r.method, r.url.path) for r in seen] == [
            ("POST", "/rest/v1/grant_verifications"),
            ("PATCH", "/rest/v1/grants"),
        ]
        history_row = json.loads(seen[0].content)
        assert history_row["status"] == "disputed"
        assert history_row["overall_confidence"] == 52
        assert history_row["url_valid"] is True
        assert history_row["crossref_amount_match"] is False
        assert history_row["source_type"] == "official_government"

        update = json.loads(seen[1].content)
        assert seen[1].url.params["id"] == "eq.g-1"
        assert update["verification_status"] == "disputed"
        assert update["verification_confidence"] == 52
        assert update["verification_details"]["discrepancy_count"] == 1

    @pytest.mark.asyncio
    async def test_failed_history_insert_skips_update(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(500, text="database error")

        store = _make_store(handler)
        with pytest.raises(StoreError) as exc_info:
            await store.save_verification(_make_record())

        assert exc_info.value.operation == "append_history"
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_history_rows_decoded(self) -> None:
        rows = [
            {
                "grant_id": "g-1",
                "verified_at": "2026-06-01T00:00:00+00:00",
                "status": "partially_verified",
                "overall_confidence": 48,
                "duration_ms": 900,
            }
        ]
        store = _make_store(lambda request: httpx.Response(200, json=rows))
        history = await store.get_history("g-1")
        assert history[0].status == VerificationStatus.PARTIALLY_VERIFIED
        assert history[0].confidence == 48


# ── Failures ─────────────────────────────────────────────────────────────


class TestFailures:
    @pytest.mark.asyncio
    async def test_transport_error_means_store_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        store = _make_store(handler)
        with pytest.raises(StoreUnavailableError):
            await store.list_grants()

    @pytest.mark.asyncio
    async def test_http_error_is_plain_store_error(self) -> None:
        store = _make_store(lambda r: httpx.Response(500, text="boom"))
        with pytest.raises(StoreError) as exc_info:
            await store.list_grants()
        assert not isinstance(exc_info.value, StoreUnavailableError)

    @pytest.mark.asyncio
    async def test_ping(self) -> None:
        assert await _make_store(lambda r: httpx.Response(200, json=[])).ping()
        assert not await _make_store(lambda r: httpx.Response(503)).ping()

    def test_from_settings_requires_credentials(self) -> None:
        cfg = Settings(_env_file=None, supabase_url="", supabase_service_role_key="")
        with pytest.raises(ConfigurationError) as exc_info:
            SupabaseGrantStore.from_settings(cfg)
        assert "SUPABASE_URL" in str(exc_info.value)

    def test_from_settings_prefers_service_role_key(self) -> None:
        cfg = Settings(
            _env_file=None,
            supabase_url=BASE,
            supabase_service_role_key="service",
            supabase_anon_key="anon",
        )
        store = SupabaseGrantStore.from_settings(cfg)
        assert store.base_url == f"{BASE}/rest/v1"
        assert store._api_key == "service"
