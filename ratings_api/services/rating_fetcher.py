"""Out-of-band rating refresh: fetch from an external platform, store the result.

Best effort by design:
- A failed external lookup yields a fallback record (not stored) instead of an error
- A batch run never stops because of one provider; every outcome lands in the report
- Providers are processed sequentially with a fixed pause between external calls
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import Any, Protocol

from ratings_api.services.errors import ExternalFetchFailed, RatingError
from ratings_api.services.normalizer import normalize_provider_key
from ratings_api.services.rating_tables import AliasTable
from ratings_api.services.records import FetchedRating, RatingPlatform, RatingRecord, utcnow
from ratings_api.stores.ratings import RatingStore

logger = logging.getLogger("uvicorn.error")

DEFAULT_FALLBACK_RATING = 4.0
DEFAULT_FALLBACK_REVIEW_COUNT = 100
DEFAULT_REFRESH_HORIZON = timedelta(days=7)


class RatingSource(Protocol):
    async def fetch_rating(self, display_name: str, provider_key: str) -> FetchedRating: ...


@dataclass
class RefreshReport:
    """Per-provider outcome of a refresh run."""

    platform: str
    stored: list[RatingRecord] = field(default_factory=list)
    fallbacks: list[str] = field(default_factory=list)
    skipped_fresh: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    def summary(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "stored": len(self.stored),
            "fallbacks": self.fallbacks,
            "skipped_fresh": len(self.skipped_fresh),
            "failed": self.failed,
        }


class RatingFetcher:
    """Fetch-and-store driver for one platform."""

    def __init__(
        self,
        platform: RatingPlatform,
        source: RatingSource,
        store: RatingStore,
        aliases: AliasTable,
        *,
        fallback_value: float = DEFAULT_FALLBACK_RATING,
        delay_seconds: float = 1.0,
        refresh_horizon: timedelta = DEFAULT_REFRESH_HORIZON,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.platform = platform
        self.source = source
        self.store = store
        self.aliases = aliases
        self.fallback_value = fallback_value
        self.delay_seconds = delay_seconds
        self.refresh_horizon = refresh_horizon
        self.clock = clock or utcnow
        self._sleep = sleep

    def is_stale(self, record: RatingRecord, now: datetime | None = None) -> bool:
        """True when the record is older than the refresh horizon."""
        now = now or self.clock()
        return now - record.last_updated >= self.refresh_horizon

    def _fallback_record(self, provider_key: str) -> RatingRecord:
        return RatingRecord(
            provider_key=provider_key,
            value=self.fallback_value,
            last_updated=self.clock(),
            review_count=DEFAULT_FALLBACK_REVIEW_COUNT,
            is_fallback=True,
        )

    async def fetch_and_store(self, display_name: str) -> RatingRecord:
        """Fetch one provider's rating and upsert it.

        Returns:
            The stored record, or an unstored fallback record if the external lookup failed.

        Raises:
            InvalidProviderKey: If the name normalizes to an empty key.
            StoreUnavailable: If the write fails.
        """
        provider_key = normalize_provider_key(display_name, self.aliases)
        try:
            fetched = await self.source.fetch_rating(display_name, provider_key)
        except ExternalFetchFailed as e:
            logger.warning(f"[{self.platform.value}] Fetch failed for {display_name}, using fallback: {e}")
            return self._fallback_record(provider_key)
        except Exception:
            # Malformed upstream replies must not end the batch.
            logger.exception(f"[{self.platform.value}] Unexpected error fetching {display_name}, using fallback")
            return self._fallback_record(provider_key)

        record = RatingRecord(
            provider_key=provider_key,
            value=fetched.value,
            last_updated=self.clock(),
            review_count=fetched.review_count,
            place_id=fetched.place_id,
        )
        saved = await self.store.upsert(record)
        logger.info(f"[{self.platform.value}] Updated rating for {provider_key}: {saved.value}")
        return saved

    async def _is_due(self, provider_key: str) -> bool:
        try:
            existing = await self.store.get(provider_key)
        except RatingError as e:
            logger.warning(f"[{self.platform.value}] Could not read {provider_key}, refreshing anyway: {e}")
            return True
        return existing is None or self.is_stale(existing)

    async def refresh_ratings(self, display_names: Iterable[str], *, force: bool = False) -> RefreshReport:
        """Refresh ratings for many providers, one at a time.

        Args:
            display_names: Provider names as sent to the external platform.
            force: Refresh even records younger than the refresh horizon.
        """
        report = RefreshReport(platform=self.platform.value)
        fetched_any = False

        for name in display_names:
            try:
                provider_key = normalize_provider_key(name, self.aliases)
                if not force and not await self._is_due(provider_key):
                    report.skipped_fresh.append(provider_key)
                    continue

                # Pause between external calls to respect platform rate limits.
                if fetched_any and self.delay_seconds > 0:
                    await self._sleep(self.delay_seconds)
                fetched_any = True

                record = await self.fetch_and_store(name)
            except RatingError as e:
                logger.error(f"[{self.platform.value}] Refresh failed for {name!r}: {e}")
                report.failed[name] = str(e)
                continue

            if record.is_fallback:
                report.fallbacks.append(record.provider_key)
            else:
                report.stored.append(record)

        logger.info(
            f"[{self.platform.value}] Refresh done: stored={len(report.stored)}, "
            f"fallbacks={len(report.fallbacks)}, fresh={len(report.skipped_fresh)}, "
            f"failed={len(report.failed)}"
        )
        return report
