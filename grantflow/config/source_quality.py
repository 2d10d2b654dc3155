"""Source quality configuration for grant verification.

Domain classes (from most to least authoritative):
1. Top-tier government / EU (europa.eu, gov.it, national agencies): 30 pts
2. Other government patterns (regions, ministries): 25 pts
3. Known institutional bodies (export credit, chambers): 20 pts
4. Generic professional TLDs (.it, .eu, .com, .org): 10 pts
5. Anything else: 0 pts

Metadata points are awarded for completeness and internal consistency of
the stored grant record. Totals are clamped to 0-100.
"""

from typing import Dict, List

# Substring patterns that mark a government or public-administration domain
GOVERNMENT_DOMAIN_PATTERNS: List[str] = [
    ".gov.it",
    ".europa.eu",
    ".regione.",
    ".governo.it",
    ".mise.gov",
    ".ismea.it",
    ".invitalia.it",
    ".gse.it",
    ".enea.it",
    ".agea.gov.it",
    ".politicheagricole.it",
    ".mase.gov.it",
    ".cultura.gov.it",
    ".beniculturali.it",
    ".toscana.it",
]

# Subset of government domains that publish calls directly
TOP_TIER_GOVERNMENT_DOMAINS: List[str] = [
    ".europa.eu",
    ".gov.it",
    "ismea.it",
    "invitalia.it",
    "gse.it",
]

# Public-interest institutions that are not government but are authoritative
INSTITUTIONAL_DOMAINS: List[str] = [
    "simest.it",
    "sace.it",
    "cdp.it",
    "ice.it",
    "unioncamere.it",
]

# Consulting / third-party sites usually live on these
PROFESSIONAL_TLDS: List[str] = [".it", ".eu", ".com", ".org"]

DOMAIN_CLASS_POINTS: Dict[str, int] = {
    "official_government": 30,
    "government": 25,
    "institutional": 20,
    "third_party": 10,
    "unknown": 0,
}

DOMAIN_AUTHORITY: Dict[str, str] = {
    "official_government": "top_tier",
    "government": "high",
    "institutional": "high",
    "third_party": "medium",
    "unknown": "low",
}

# Metadata completeness and consistency points (sum to 100 with a top-tier domain)
QUALITY_POINTS: Dict[str, int] = {
    "url_present": 15,
    "regulation_reference": 15,
    "max_amount": 10,
    "amount_order": 5,
    "amount_plausible": 5,
    "window_closes": 10,
    "window_order": 5,
    "funding_source": 5,
}

KNOWN_FUNDING_SOURCES = {"EU", "National", "Regional", "Local", "Private", "Mixed"}

# Anything above this is almost certainly a parsing error (EUR)
MAX_PLAUSIBLE_AMOUNT: float = 1_000_000_000.0

QUALITY_PASS_THRESHOLD: int = 50
