"""Trustpilot client: reads the TrustScore from a provider's public review page.

Page layout changes often, so extraction tries several patterns in order and
takes the first that yields a number.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import logging
import re

from bs4 import BeautifulSoup
import httpx

from ratings_api.services.errors import ExternalFetchFailed
from ratings_api.services.records import FetchedRating, is_valid_rating

logger = logging.getLogger("uvicorn.error")

REVIEW_URL = "https://uk.trustpilot.com/review/{domain}"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

_TRUSTSCORE_OUT_OF_RE = re.compile(r"TrustScore\s+(\d+(?:\.\d+)?)\s+out of\s+5", re.IGNORECASE)
_TRUSTSCORE_RE = re.compile(r"TrustScore\s+(\d+(?:\.\d+)?)", re.IGNORECASE)
_NUMBER_RE = re.compile(r"(\d+(?:\.\d+)?)")


def _first_number(text: str) -> float | None:
    match = _NUMBER_RE.search(text or "")
    return float(match.group(1)) if match else None


def _from_text(pattern: re.Pattern[str]) -> Callable[[BeautifulSoup], float | None]:
    def extract(soup: BeautifulSoup) -> float | None:
        match = pattern.search(soup.get_text(" ", strip=True))
        return float(match.group(1)) if match else None

    return extract


def _from_selector(selector: str) -> Callable[[BeautifulSoup], float | None]:
    def extract(soup: BeautifulSoup) -> float | None:
        node = soup.select_one(selector)
        return _first_number(node.get_text(" ", strip=True)) if node else None

    return extract


def _from_meta(soup: BeautifulSoup) -> float | None:
    node = soup.select_one('meta[itemprop="ratingValue"]')
    content = node.get("content") if node else None
    return _first_number(str(content)) if content else None


_EXTRACTORS: list[Callable[[BeautifulSoup], float | None]] = [
    _from_text(_TRUSTSCORE_OUT_OF_RE),
    _from_text(_TRUSTSCORE_RE),
    _from_selector(".headline__trustscore"),
    _from_selector(".trustscore"),
    _from_meta,
]


def extract_trustscore(html: str) -> float | None:
    """Extract the TrustScore (one decimal) from a review page, or None."""
    soup = BeautifulSoup(html, "html.parser")
    for extractor in _EXTRACTORS:
        value = extractor(soup)
        if value is not None and is_valid_rating(value):
            return round(value, 1)
    return None


class TrustpilotClient:
    """Fetches TrustScores for providers with a known review-page domain."""

    def __init__(self, domains: Mapping[str, str], http_client: httpx.AsyncClient | None = None):
        self.domains = domains
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=10.0,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def review_url(self, provider_key: str) -> str:
        domain = self.domains.get(provider_key)
        if not domain:
            raise ExternalFetchFailed(f"Provider {provider_key} not found in Trustpilot mapping")
        return REVIEW_URL.format(domain=domain)

    async def fetch_rating(self, display_name: str, provider_key: str) -> FetchedRating:
        """Fetch the TrustScore for a provider.

        Raises:
            ExternalFetchFailed: Unknown provider, request error, or no score on the page.
        """
        url = self.review_url(provider_key)
        logger.info(f"Fetching Trustpilot rating for {display_name} from {url}")

        client = await self._get_client()
        try:
            response = await client.get(url, headers={"User-Agent": USER_AGENT})
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ExternalFetchFailed(f"Trustpilot request failed for {provider_key}: {e}") from e

        value = extract_trustscore(response.text)
        if value is None:
            raise ExternalFetchFailed(f"Could not find TrustScore on {url}")
        return FetchedRating(value=value)
