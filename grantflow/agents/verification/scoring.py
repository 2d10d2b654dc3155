"""Pure combination of the three phase results into a status and confidence.

combined = gate(url) x (0.4 x quality + 0.6 x crossref), rounded, 0-100

Status precedence, first match wins:
1. outdated: application window closed before today
2. unreachable: official URL unreachable and nothing corroborated the grant
3. disputed: cross-reference found contradictions
4. verified: combined >= 80 and every phase passed
5. partially_verified: everything else (flagged as low confidence below 40)

A completed attempt never yields unverified.
"""

from datetime import date

from grantflow.data_management.schemas import (
    CheckOutcome,
    CrossReferenceCheck,
    Grant,
    Issue,
    QualityCheck,
    ScoringResult,
    UrlCheck,
    VerificationStatus,
)

URL_GATES: dict[str, float] = {
    "reachable_2xx": 1.0,
    "reachable_non_2xx": 0.8,
    "unreachable": 0.5,
    "no_url": 0.8,
}

QUALITY_WEIGHT = 0.4
CROSSREF_WEIGHT = 0.6

VERIFIED_THRESHOLD = 80
PARTIAL_THRESHOLD = 40


def combine_scores(url: UrlCheck, quality: QualityCheck, crossref: CrossReferenceCheck) -> int:
    """Weighted, URL-gated combination of the phase sub-scores."""
    crossref_score = crossref.sub_score if crossref.ran else 0
    raw = URL_GATES[url.classification] * (
        QUALITY_WEIGHT * quality.sub_score + CROSSREF_WEIGHT * crossref_score
    )
    return max(0, min(100, round(raw)))


def _build_checks(
    url: UrlCheck,
    quality: QualityCheck,
    crossref: CrossReferenceCheck,
    grant: Grant,
    today: date,
) -> list[CheckOutcome]:
    checks = [
        CheckOutcome(
            name="url_reachable",
            passed=url.passed,
            detail=url.notes[0] if url.notes else url.classification,
        )
    ]
    if url.classification == "reachable_2xx":
        checks.append(
            CheckOutcome(
                name="url_mentions_grant",
                passed=url.mentions_grant_name,
                detail=f"Page {'mentions' if url.mentions_grant_name else 'does not mention'} the grant name",
            )
        )
    checks.append(
        CheckOutcome(
            name="source_quality",
            passed=quality.passed,
            detail=f"{quality.sub_score}/100 ({quality.source_type})",
        )
    )
    if crossref.ran:
        checks.append(
            CheckOutcome(
                name="crossref_corroborated",
                passed=crossref.corroborated,
                detail=f"{len(crossref.sources)} source(s), {len(crossref.discrepancies)} discrepancy(ies)",
            )
        )
        for name, value in (
            ("crossref_amount", crossref.amount_match),
            ("crossref_deadline", crossref.deadline_match),
            ("crossref_eligibility", crossref.eligibility_match),
        ):
            if value is not None:
                checks.append(
                    CheckOutcome(
                        name=name,
                        passed=value,
                        detail="Matches independent research" if value else "Differs from independent research",
                    )
                )
    closes = grant.application_window_closes
    if closes is not None:
        is_open = closes >= today
        checks.append(
            CheckOutcome(
                name="window_open",
                passed=is_open,
                detail=f"Closes {closes.isoformat()}" if is_open else f"Closed {closes.isoformat()}",
            )
        )
    return checks


def _build_issues(
    url: UrlCheck,
    quality: QualityCheck,
    crossref: CrossReferenceCheck,
    grant: Grant,
    today: date,
) -> list[Issue]:
    issues: list[Issue] = []

    if url.classification == "no_url":
        issues.append(Issue(type="url", severity="warning", message="No official URL provided"))
    elif url.classification == "unreachable":
        detail = url.notes[0] if url.notes else "no response"
        issues.append(
            Issue(type="url", severity="critical", message=f"Official URL unreachable: {detail}")
        )
    elif url.classification == "reachable_non_2xx":
        severity = "info" if url.status_code == 403 else "warning"
        issues.append(
            Issue(type="url", severity=severity, message=f"Official URL returned HTTP {url.status_code}")
        )
    elif not url.mentions_grant_name:
        issues.append(
            Issue(
                type="url",
                severity="info",
                message="Official page does not appear to mention the grant",
            )
        )

    if not quality.passed:
        issues.append(
            Issue(
                type="source",
                severity="warning",
                message=f"Source quality score {quality.sub_score}/100 below threshold",
            )
        )
    for note in quality.notes:
        issues.append(Issue(type="source", severity="info", message=note))

    if not crossref.ran:
        reason = crossref.notes[0] if crossref.notes else "no usable reply"
        issues.append(
            Issue(type="crossref", severity="info", message=f"Cross-reference unavailable: {reason}")
        )
    else:
        for d in crossref.discrepancies:
            message = f"{d.get('field', 'unknown')}: {d.get('explanation', 'discrepancy reported')}"
            if d.get("database_value") is not None or d.get("fresh_value") is not None:
                message += f" (database: {d.get('database_value')}, found: {d.get('fresh_value')})"
            issues.append(Issue(type="crossref", severity=d["severity"], message=message))
        reported = {str(d.get("field")) for d in crossref.discrepancies}
        for c in crossref.contradictions:
            if str(c.get("field")) not in reported:
                issues.append(
                    Issue(
                        type="crossref",
                        severity="critical",
                        message=f"{c.get('field')}: {c.get('explanation')}",
                    )
                )

    closes = grant.application_window_closes
    if closes is not None and closes < today:
        issues.append(
            Issue(
                type="window",
                severity="critical",
                message=f"Application window closed on {closes.isoformat()}",
            )
        )
    return issues


def score_verification(
    url: UrlCheck,
    quality: QualityCheck,
    crossref: CrossReferenceCheck,
    grant: Grant,
    today: date,
) -> ScoringResult:
    """
    Combine phase results into a final status, confidence, checks and issues.

    Args:
        url: Phase 1 result
        quality: Phase 2 result
        crossref: Phase 3 result (ran=False contributes nothing)
        grant: The grant being verified (for window checks)
        today: Reference date

    Returns:
        ScoringResult; status is never UNVERIFIED
    """
    confidence = combine_scores(url, quality, crossref)
    checks = _build_checks(url, quality, crossref, grant, today)
    issues = _build_issues(url, quality, crossref, grant, today)

    closes = grant.application_window_closes
    if closes is not None and closes < today:
        status = VerificationStatus.OUTDATED
    elif url.classification == "unreachable" and not crossref.corroborated:
        status = VerificationStatus.UNREACHABLE
    elif crossref.contradictions:
        status = VerificationStatus.DISPUTED
    elif confidence >= VERIFIED_THRESHOLD and url.passed and quality.passed and crossref.passed:
        status = VerificationStatus.VERIFIED
    else:
        status = VerificationStatus.PARTIALLY_VERIFIED
        if confidence < PARTIAL_THRESHOLD:
            issues.append(
                Issue(
                    type="score",
                    severity="warning",
                    message=f"Low confidence ({confidence}/100): verify manually",
                )
            )

    return ScoringResult(status=status, confidence=confidence, checks=checks, issues=issues)
