"""Google Places client for provider ratings.

Two-step lookup per provider:
1. findplacefromtext: "<provider> money transfer" -> first candidate place_id
2. details: place_id -> rating + user_ratings_total

Cost control:
- Only called out of band by the refresh job, never on the request path
- place_id is cached in Redis for 30 days, so a refresh pays for details only
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from redis.exceptions import RedisError

from ratings_api.services.errors import ExternalFetchFailed
from ratings_api.services.records import FetchedRating, is_valid_rating
from ratings_api.settings import get_settings
from ratings_api.stores.redis import get_place_id_cache, set_place_id_cache

logger = logging.getLogger("uvicorn.error")


class GooglePlacesClient:
    """Client for the Google Places find-place and details endpoints."""

    BASE_URL = "https://maps.googleapis.com/maps/api/place"
    SEARCH_QUALIFIER = "money transfer"
    # Brand names that Places resolves better without the qualifier.
    PLAIN_QUERY_PROVIDERS = frozenset({"torfx"})

    def __init__(self, api_key: str | None = None, http_client: httpx.AsyncClient | None = None):
        """Initialize client with API key."""
        self.api_key = api_key if api_key is not None else get_settings().google_places_api_key
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=15.0)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def build_search_query(self, display_name: str) -> str:
        name = display_name.strip()
        if name.lower().replace(" ", "") in self.PLAIN_QUERY_PROVIDERS:
            return name
        return f"{name} {self.SEARCH_QUALIFIER}"

    async def _get_json(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        if not self.api_key:
            logger.error("GOOGLE_PLACES_API_KEY is not set - cannot query Google Places")
            raise ExternalFetchFailed("GOOGLE_PLACES_API_KEY is not set")

        client = await self._get_client()
        try:
            response = await client.get(f"{self.BASE_URL}/{path}", params={**params, "key": self.api_key})
            if response.status_code != 200:
                logger.error(f"Google Places {path} error: {response.status_code} - {response.text[:200]}")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise ExternalFetchFailed(f"Google Places {path} request failed: {e}") from e

        if not isinstance(data, dict):
            raise ExternalFetchFailed(f"Unexpected response from Google Places {path}")
        return data

    async def find_place_id(self, query: str, use_cache: bool = True) -> str:
        """Find the place id for a free-text query.

        Raises:
            ExternalFetchFailed: On request errors, non-OK status or zero candidates.
        """
        if use_cache:
            try:
                cached = await get_place_id_cache(query)
                if cached:
                    logger.info(f"Place id cache HIT for query={query!r}")
                    return cached
            except (RuntimeError, RedisError) as e:
                logger.warning(f"Redis place id cache read failed: {e}")

        logger.info(f"Place id cache MISS, calling findplacefromtext for query={query!r}")
        data = await self._get_json(
            "findplacefromtext/json",
            {"input": query, "inputtype": "textquery", "fields": "place_id,name"},
        )

        candidates = data.get("candidates") or []
        if data.get("status") != "OK" or not isinstance(candidates, list) or not candidates:
            raise ExternalFetchFailed(f"No place found for {query!r} (status={data.get('status')})")

        first = candidates[0]
        place_id = first.get("place_id") if isinstance(first, dict) else None
        if not place_id or not isinstance(place_id, str):
            raise ExternalFetchFailed(f"First candidate for {query!r} has no place_id")

        if use_cache:
            try:
                await set_place_id_cache(query, place_id)
            except (RuntimeError, RedisError) as e:
                logger.warning(f"Redis place id cache write failed: {e}")

        return place_id

    async def get_place_details(self, place_id: str) -> FetchedRating:
        """Get rating and review count for a place.

        Raises:
            ExternalFetchFailed: On request errors, non-OK status, or a missing/invalid rating.
        """
        data = await self._get_json(
            "details/json",
            {"place_id": place_id, "fields": "name,rating,user_ratings_total"},
        )
        if data.get("status") != "OK":
            raise ExternalFetchFailed(f"No details for place {place_id} (status={data.get('status')})")
        result = data.get("result") or {}
        if not isinstance(result, dict):
            raise ExternalFetchFailed(f"Malformed details for place {place_id}")
        return self._parse_details(result, place_id)

    def _parse_details(self, result: dict[str, Any], place_id: str) -> FetchedRating:
        rating = result.get("rating")
        if not is_valid_rating(rating):
            raise ExternalFetchFailed(f"Place {place_id} has no usable rating: {rating!r}")

        review_count = result.get("user_ratings_total")
        try:
            review_count = int(review_count) if review_count is not None else None
        except (TypeError, ValueError):
            review_count = None

        logger.info(f"Found details for {result.get('name', place_id)}: rating {rating}, reviews {review_count}")
        return FetchedRating(value=float(rating), review_count=review_count, place_id=place_id)

    async def fetch_rating(self, display_name: str, provider_key: str) -> FetchedRating:
        """Find a provider's place and return its rating.

        Raises:
            ExternalFetchFailed: If either step fails.
        """
        place_id = await self.find_place_id(self.build_search_query(display_name))
        return await self.get_place_details(place_id)
