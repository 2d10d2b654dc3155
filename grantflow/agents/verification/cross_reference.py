"""Phase 3: independent cross-reference of a grant against public information.

A search-grounded model researches the program and compares what it finds
with the stored record. The reply is untrusted text. Any failure to
obtain a usable judgment (exception, throttling or malformed reply)
becomes "no signal", not an error.

Contradictions, which drive the disputed status:
- discrepancies reported with critical severity
- program_still_active is false
- amount_match or deadline_match is false

A program the model could not find is a critical discrepancy but not a
contradiction: absence of evidence only prevents corroboration.

Usage:
    checker = CrossReferenceChecker(responder=GeminiSearchClient())
    check = await checker.check(grant)
"""

import asyncio
import json
import math
import re
from datetime import date
from typing import Any, Optional

import structlog

from grantflow.config.prompts import (
    CROSS_REFERENCE_SYSTEM_PROMPT,
    CROSS_REFERENCE_USER_PROMPT,
)
from grantflow.data_management.schemas import CrossReferenceCheck, Grant
from grantflow.llm.gemini_client import CrossReferenceResponder
from grantflow.llm.rate_limiter import RateLimiter

SEVERITIES = {"critical", "warning", "info"}

# Sub-score adjustments
WARNING_PENALTY = 10
CONTRADICTION_PENALTY = 30
UNCORROBORATED_CAP = 60
NEUTRAL_BASE = 50

COMPARISON_KEYS = ("amount_match", "deadline_match", "eligibility_match")


def extract_json_object(response_text: str) -> Optional[dict[str, Any]]:
    """
    Extract a JSON object from a model reply, handling markdown blocks.

    Args:
        response_text: Raw reply text

    Returns:
        Parsed dict, or None if no JSON object could be parsed
    """
    text = (response_text or "").strip()
    if not text:
        return None

    fence_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
    if fence_match:
        text = fence_match.group(1).strip()

    object_match = re.search(r"\{[\s\S]*\}", text)
    if not object_match:
        return None

    try:
        parsed = json.loads(object_match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _as_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _as_confidence(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return max(0, min(100, round(value)))


def _format_amount(amount: Optional[float]) -> str:
    return f"€{amount:,.0f}" if amount is not None else "Not specified"


def _format_date(value: Optional[date]) -> str:
    return value.isoformat() if value else "Not specified"


class CrossReferenceChecker:
    """
    Runs the cross-reference phase through an injectable responder.

    Attributes:
        responder: Object answering prompts with raw text
        rate_limiter: Optional token bucket guarding the model API
        project_context: Project description included in the prompt
        timeout: Deadline in seconds for one cross-reference call
    """

    def __init__(
        self,
        responder: Optional[CrossReferenceResponder] = None,
        rate_limiter: Optional[RateLimiter] = None,
        project_context: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the checker.

        Args:
            responder: Cross-reference responder (defaults to GeminiSearchClient)
            rate_limiter: Token bucket limiter; None disables throttling
            project_context: Project description (defaults to settings)
            timeout: Deadline for the whole responder call, retries included
                (defaults to settings)

        Raises:
            ConfigurationError: If no responder is given and Gemini is not configured
        """
        if responder is None:
            from grantflow.llm.gemini_client import GeminiSearchClient

            responder = GeminiSearchClient()
        if project_context is None or timeout is None:
            from grantflow.config.settings import settings

            if project_context is None:
                project_context = settings.project_context
            if timeout is None:
                timeout = settings.crossref_timeout_seconds

        self.responder = responder
        self.rate_limiter = rate_limiter
        self.project_context = project_context or "Not specified"
        self.timeout = timeout
        self._logger = structlog.get_logger().bind(component="CrossReferenceChecker")

    def build_prompt(self, grant: Grant, today: date) -> str:
        """Fill the user prompt with the grant's stated facts."""
        return CROSS_REFERENCE_USER_PROMPT.format(
            name=grant.name,
            name_it_line=f"ITALIAN NAME: {grant.name_it}\n" if grant.name_it else "",
            funding_source=grant.funding_source or "Not specified",
            regulation_line=(
                f"REGULATION: {grant.regulation_reference}\n"
                if grant.regulation_reference
                else ""
            ),
            max_amount=_format_amount(grant.max_amount),
            min_amount=_format_amount(grant.min_amount),
            window_opens=_format_date(grant.application_window_opens),
            window_closes=_format_date(grant.application_window_closes),
            window_status=grant.window_status or "Not specified",
            eligibility=grant.eligibility_summary or "Not specified",
            official_url=grant.official_url or "Not specified",
            project_context=self.project_context,
            today=today.isoformat(),
        )

    async def check(self, grant: Grant, today: Optional[date] = None) -> CrossReferenceCheck:
        """
        Cross-reference a grant. Never raises.

        Args:
            grant: Grant to cross-reference
            today: Reference date for the prompt (defaults to today)

        Returns:
            CrossReferenceCheck; ran=False when no usable judgment was obtained
        """
        today = today or date.today()
        prompt = self.build_prompt(grant, today)

        if self.rate_limiter is not None:
            tokens = RateLimiter.estimate_tokens(CROSS_REFERENCE_SYSTEM_PROMPT + prompt)
            if not self.rate_limiter.can_proceed(tokens):
                self._logger.warning("crossref_throttled", grant_id=grant.id)
                return CrossReferenceCheck(notes=["Cross-reference skipped: rate limited"])

        try:
            reply = await asyncio.wait_for(
                self.responder.respond(prompt, CROSS_REFERENCE_SYSTEM_PROMPT),
                timeout=self.timeout,
            )
        except Exception as e:
            self._logger.warning(
                "crossref_call_failed",
                grant_id=grant.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return CrossReferenceCheck(
                notes=[f"Cross-reference failed: {type(e).__name__}"]
            )

        data = extract_json_object(reply)
        if data is None:
            self._logger.warning(
                "crossref_unparseable",
                grant_id=grant.id,
                reply_preview=(reply or "")[:200],
            )
            return CrossReferenceCheck(
                notes=["Cross-reference reply could not be parsed"]
            )

        try:
            check = self.interpret(data)
        except (TypeError, ValueError, OverflowError) as e:
            self._logger.warning(
                "crossref_uninterpretable",
                grant_id=grant.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return CrossReferenceCheck(
                notes=["Cross-reference reply could not be interpreted"]
            )

        self._logger.debug(
            "crossref_complete",
            grant_id=grant.id,
            corroborated=check.corroborated,
            contradictions=len(check.contradictions),
            sub_score=check.sub_score,
        )
        return check

    def interpret(self, data: dict[str, Any]) -> CrossReferenceCheck:
        """
        Turn a parsed reply into a CrossReferenceCheck.

        Args:
            data: Parsed JSON object from the model

        Returns:
            CrossReferenceCheck with ran=True
        """
        program_found = _as_bool(data.get("program_found"))
        still_active = _as_bool(data.get("program_still_active"))

        comparisons = data.get("comparisons")
        if not isinstance(comparisons, dict):
            comparisons = {}
        matches = {key: _as_bool(comparisons.get(key)) for key in COMPARISON_KEYS}

        discrepancies: list[dict[str, Any]] = []
        raw_discrepancies = data.get("discrepancies")
        for item in raw_discrepancies if isinstance(raw_discrepancies, list) else []:
            if not isinstance(item, dict):
                continue
            entry = dict(item)
            severity = str(entry.get("severity", "info")).lower()
            entry["severity"] = severity if severity in SEVERITIES else "info"
            discrepancies.append(entry)

        if program_found is False:
            discrepancies.append(
                {
                    "field": "program_found",
                    "severity": "critical",
                    "explanation": "Program not found in independent search",
                }
            )
        if still_active is False:
            discrepancies.append(
                {
                    "field": "program_status",
                    "database_value": "active",
                    "fresh_value": "inactive",
                    "severity": "critical",
                    "explanation": "Program appears to no longer be active",
                }
            )

        contradictions = [
            d
            for d in discrepancies
            if d["severity"] == "critical" and d.get("field") != "program_found"
        ]
        for key, field_hint in (("amount_match", "amount"), ("deadline_match", "deadline")):
            already = any(field_hint in str(d.get("field", "")).lower() for d in contradictions)
            if matches[key] is False and not already:
                contradictions.append(
                    {
                        "field": field_hint,
                        "severity": "critical",
                        "explanation": f"{key} reported false",
                    }
                )

        sources_raw = data.get("sources")
        sources = [s for s in sources_raw if isinstance(s, str) and s] if isinstance(sources_raw, list) else []

        known = [v for v in matches.values() if v is not None]
        corroborated = bool(program_found) and (any(known) or bool(sources))

        confidence = _as_confidence(data.get("confidence"))
        if confidence is not None:
            base = confidence
        elif known:
            base = round(100 * sum(1 for v in known if v) / len(known))
        else:
            base = NEUTRAL_BASE

        warnings = sum(1 for d in discrepancies if d["severity"] == "warning")
        sub_score = base - WARNING_PENALTY * warnings
        if contradictions:
            sub_score -= CONTRADICTION_PENALTY
        if not corroborated:
            sub_score = min(sub_score, UNCORROBORATED_CAP)

        fresh_data = data.get("fresh_data")
        notes_text = data.get("confidence_notes")
        return CrossReferenceCheck(
            ran=True,
            corroborated=corroborated,
            confidence=confidence,
            amount_match=matches["amount_match"],
            deadline_match=matches["deadline_match"],
            eligibility_match=matches["eligibility_match"],
            discrepancies=discrepancies,
            contradictions=contradictions,
            fresh_data=fresh_data if isinstance(fresh_data, dict) else {},
            sources=sources,
            sub_score=max(0, min(100, sub_score)),
            notes=[notes_text] if isinstance(notes_text, str) and notes_text else [],
        )
