"""Domain types shared by the resolver, stores and fetchers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


class RatingPlatform(Enum):
    """Third-party platform a rating comes from."""

    TRUSTPILOT = "trustpilot"
    GOOGLE = "google"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RatingRecord:
    """One stored rating per canonical provider key."""

    provider_key: str
    value: float
    last_updated: datetime
    review_count: int | None = None
    place_id: str | None = None
    is_fallback: bool = False  # synthesized after a failed fetch, never stored


@dataclass(frozen=True)
class RatingFound:
    """Resolved rating.

    source is "store" or "fallback". cached marks a request-cache hit;
    store_error marks a fallback served because the store read failed.
    """

    provider_key: str
    value: float
    source: str
    last_updated: datetime
    review_count: int | None = None
    cached: bool = False
    store_error: bool = False


@dataclass(frozen=True)
class RatingNotFound:
    """No stored rating and no fallback for the key."""

    provider_key: str
    cached: bool = False
    store_error: bool = False

    @property
    def message(self) -> str:
        return f"No rating available for {self.provider_key}"


RatingResult = RatingFound | RatingNotFound


def is_valid_rating(value: object) -> bool:
    """Check a rating is a real number within 0..5 (NaN fails both comparisons)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return 0.0 <= float(value) <= 5.0


@dataclass(frozen=True)
class FetchedRating:
    """Rating as returned by an external platform client."""

    value: float
    review_count: int | None = None
    place_id: str | None = None
