"""Phase 1: official URL validation.

Resolves the grant's official URL with a bounded timeout and classifies it:
- reachable_2xx: page loaded; its text is also searched for the grant name
- reachable_non_2xx: server answered with an error status (403 is usually
  bot protection, so it scores higher than other errors)
- unreachable: timeout, DNS/connection failure or an invalid URL
- no_url: the grant has no official URL (never reported as unreachable)

Never raises: every failure becomes a classification plus a note.
"""

from typing import Optional
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from grantflow.data_management.schemas import Grant, UrlCheck

USER_AGENT = "Mozilla/5.0 (compatible; GrantFlow-Verification/1.0)"

# Characters of page text kept for name matching
PAGE_TEXT_LIMIT = 4000

# Words shorter than this are too generic to count as name keywords
MIN_KEYWORD_LENGTH = 5

URL_SUB_SCORES = {
    "reachable_2xx": 100,
    "reachable_non_2xx": 40,
    "unreachable": 0,
    "no_url": 0,
}
FORBIDDEN_SUB_SCORE = 60


def normalize_url(url: str) -> str:
    """Prefix scheme-less URLs with https://."""
    url = url.strip()
    if not url.lower().startswith(("http://", "https://")):
        url = f"https://{url}"
    return url


def extract_domain(url: str) -> str:
    """Lowercased hostname of a URL, or empty string if it cannot be parsed."""
    try:
        return (urlparse(normalize_url(url)).hostname or "").lower()
    except ValueError:
        return ""


def html_to_text(html: str, limit: int = PAGE_TEXT_LIMIT) -> str:
    """Visible page text with scripts and styles removed, truncated."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style", "noscript"]):
        element.decompose()
    text = soup.get_text(separator=" ", strip=True)
    return " ".join(text.split())[:limit]


def mentions_grant_name(text: str, name: str) -> bool:
    """
    Fuzzy check that page text refers to the grant.

    True if the full name appears, or at least half of the name's
    significant words (5+ characters) do.
    """
    if not text or not name:
        return False
    text_lower = text.lower()
    name_lower = name.lower().strip()
    if name_lower in text_lower:
        return True
    keywords = [w for w in name_lower.split() if len(w) >= MIN_KEYWORD_LENGTH]
    if not keywords:
        return False
    matches = sum(1 for k in keywords if k in text_lower)
    return matches * 2 >= len(keywords)


class UrlValidator:
    """
    Check a grant's official URL with httpx.

    Attributes:
        timeout: Request timeout in seconds (default 10s)
    """

    def __init__(
        self,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize URL validator.

        Args:
            timeout: Request timeout in seconds
            client: Optional pre-built AsyncClient (tests inject a MockTransport)
        """
        self.timeout = timeout
        self._client = client
        self.logger = logger.bind(component="UrlValidator")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def validate(self, grant: Grant) -> UrlCheck:
        """
        Resolve and classify the grant's official URL.

        Args:
            grant: Grant whose official_url is checked

        Returns:
            UrlCheck with classification, status code, sub-score and notes
        """
        if not grant.official_url or not grant.official_url.strip():
            return UrlCheck(
                classification="no_url",
                sub_score=URL_SUB_SCORES["no_url"],
                notes=["No official URL provided"],
            )

        url = normalize_url(grant.official_url)
        domain = extract_domain(url)
        if not domain:
            return UrlCheck(
                classification="unreachable",
                url=url,
                sub_score=URL_SUB_SCORES["unreachable"],
                notes=[f"Official URL is not a valid URL: {grant.official_url}"],
            )

        try:
            client = await self._get_client()
            response = await client.get(url, follow_redirects=True)
        except httpx.TimeoutException:
            self.logger.warning(f"Timeout probing {url}", grant_id=grant.id)
            return UrlCheck(
                classification="unreachable",
                url=url,
                domain=domain,
                sub_score=URL_SUB_SCORES["unreachable"],
                notes=[f"Timed out after {self.timeout:.0f}s"],
            )
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            self.logger.warning(f"Request to {url} failed: {e}", grant_id=grant.id)
            return UrlCheck(
                classification="unreachable",
                url=url,
                domain=domain,
                sub_score=URL_SUB_SCORES["unreachable"],
                notes=[f"Request failed: {type(e).__name__}"],
            )

        status = response.status_code
        if not response.is_success:
            notes = [f"Official URL returned HTTP {status}"]
            sub_score = URL_SUB_SCORES["reachable_non_2xx"]
            if status == 403:
                notes.append("HTTP 403 is often bot protection; page may still be valid")
                sub_score = FORBIDDEN_SUB_SCORE
            return UrlCheck(
                classification="reachable_non_2xx",
                url=url,
                status_code=status,
                domain=domain,
                sub_score=sub_score,
                notes=notes,
            )

        page_text = html_to_text(response.text)
        names = [n for n in (grant.name, grant.name_it) if n]
        mentions = any(mentions_grant_name(page_text, n) for n in names)
        notes = [f"Official URL resolved (HTTP {status})"]
        if not mentions:
            notes.append("Page does not appear to contain grant-specific content")

        self.logger.debug(
            f"Checked {url}",
            grant_id=grant.id,
            status_code=status,
            mentions_grant_name=mentions,
        )
        return UrlCheck(
            classification="reachable_2xx",
            url=url,
            status_code=status,
            domain=domain,
            mentions_grant_name=mentions,
            sub_score=URL_SUB_SCORES["reachable_2xx"],
            notes=notes,
        )
