"""Phase 2: deterministic source quality scoring.

Scores the stored grant record on two axes:
- Where its official URL lives (government, institutional, third-party)
- How complete and internally consistent its metadata is

Purely local: no network, no model, never fails.

Usage:
    scorer = SourceQualityScorer()
    check = scorer.score(grant)
"""

from datetime import date
from typing import Optional

from grantflow.agents.verification.url_validator import extract_domain
from grantflow.config.source_quality import (
    DOMAIN_AUTHORITY,
    DOMAIN_CLASS_POINTS,
    GOVERNMENT_DOMAIN_PATTERNS,
    INSTITUTIONAL_DOMAINS,
    KNOWN_FUNDING_SOURCES,
    MAX_PLAUSIBLE_AMOUNT,
    PROFESSIONAL_TLDS,
    QUALITY_PASS_THRESHOLD,
    QUALITY_POINTS,
    TOP_TIER_GOVERNMENT_DOMAINS,
)
from grantflow.data_management.schemas import Grant, QualityCheck


def _domain_matches(domain: str, pattern: str) -> bool:
    # Dotted patterns are fragments (".regione."); bare ones are registrable domains
    if pattern.startswith("."):
        return pattern in f".{domain}"
    return domain == pattern or domain.endswith(f".{pattern}")


def classify_domain(domain: str) -> str:
    """
    Classify a hostname into a source type.

    Args:
        domain: Lowercased hostname (may be empty)

    Returns:
        One of official_government, government, institutional, third_party, unknown
    """
    if not domain:
        return "unknown"
    if any(_domain_matches(domain, p) for p in TOP_TIER_GOVERNMENT_DOMAINS):
        return "official_government"
    if any(_domain_matches(domain, p) for p in GOVERNMENT_DOMAIN_PATTERNS):
        return "government"
    if any(_domain_matches(domain, p) for p in INSTITUTIONAL_DOMAINS):
        return "institutional"
    if any(domain.endswith(tld) for tld in PROFESSIONAL_TLDS):
        return "third_party"
    return "unknown"


class SourceQualityScorer:
    """
    Computes a 0-100 quality score for a grant record.

    Attributes:
        points: Points awarded per metadata criterion
        pass_threshold: Minimum score for the phase to pass
    """

    def __init__(
        self,
        points: Optional[dict[str, int]] = None,
        pass_threshold: int = QUALITY_PASS_THRESHOLD,
    ):
        self.points = points or QUALITY_POINTS
        self.pass_threshold = pass_threshold

    def score(self, grant: Grant, today: Optional[date] = None) -> QualityCheck:
        """
        Score a grant's source and metadata.

        Args:
            grant: Grant to score
            today: Reference date for window notes (defaults to today)

        Returns:
            QualityCheck with sub-score, source type, authority and notes
        """
        today = today or date.today()
        notes: list[str] = []
        total = 0

        # Source domain
        domain = extract_domain(grant.official_url) if grant.official_url else ""
        if domain:
            total += self.points["url_present"]
        elif grant.official_url:
            notes.append(f"Official URL could not be parsed: {grant.official_url}")
        else:
            notes.append("No official URL")

        source_type = classify_domain(domain)
        total += DOMAIN_CLASS_POINTS[source_type]
        if source_type == "third_party":
            notes.append(f"Source {domain} is not a government or institutional domain")

        if grant.regulation_reference:
            total += self.points["regulation_reference"]
        else:
            notes.append("No regulation reference")

        # Amounts
        low, high = grant.min_amount, grant.max_amount
        if high is not None and high > 0:
            total += self.points["max_amount"]
        elif high is None:
            notes.append("No maximum amount")

        if low is not None and high is not None:
            if low <= high:
                total += self.points["amount_order"]
            else:
                notes.append(f"Minimum amount {low:,.0f} exceeds maximum {high:,.0f}")
        elif low is not None or high is not None:
            total += self.points["amount_order"]

        amounts = [a for a in (low, high) if a is not None]
        if amounts:
            if any(a <= 0 for a in amounts):
                notes.append("Non-positive funding amount")
            elif any(a > MAX_PLAUSIBLE_AMOUNT for a in amounts):
                notes.append("Funding amount is implausibly large")
            else:
                total += self.points["amount_plausible"]

        # Application window
        opens, closes = grant.application_window_opens, grant.application_window_closes
        if closes is not None:
            total += self.points["window_closes"]
            if closes < today:
                notes.append(f"Application window closed on {closes.isoformat()}")
        else:
            notes.append("No application deadline")

        if opens is not None and closes is not None and opens > closes:
            notes.append(
                f"Window opens ({opens.isoformat()}) after it closes ({closes.isoformat()})"
            )
        else:
            total += self.points["window_order"]

        if grant.funding_source in KNOWN_FUNDING_SOURCES:
            total += self.points["funding_source"]
        elif grant.funding_source:
            notes.append(f"Unrecognized funding source: {grant.funding_source}")

        sub_score = max(0, min(100, total))
        return QualityCheck(
            sub_score=sub_score,
            source_type=source_type,
            domain_authority=DOMAIN_AUTHORITY[source_type],
            passed=sub_score >= self.pass_threshold,
            notes=notes,
        )
