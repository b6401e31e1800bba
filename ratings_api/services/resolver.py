"""Rating resolution service.

Flow for resolve():
1. Normalize the raw provider name (InvalidProviderKey on empty)
2. Request cache hit -> return immediately
3. Rating store hit -> "store" result, cached
4. Fallback table hit -> "fallback" result, cached
5. Otherwise -> not found, cached

Store read failures degrade to step 4 and are flagged with store_error; such
degraded results are not cached so the next request retries the store.

Administrative writes (update/delete) propagate store failures and invalidate
the cache entry for the key, so the next resolve reads the new state.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
import logging

from ratings_api.services.errors import InvalidRatingValue, StoreUnavailable
from ratings_api.services.normalizer import normalize_provider_key
from ratings_api.services.rating_tables import AliasTable, FallbackTable, RatingTables
from ratings_api.services.records import (
    RatingFound,
    RatingNotFound,
    RatingPlatform,
    RatingRecord,
    RatingResult,
    is_valid_rating,
    utcnow,
)
from ratings_api.services.request_cache import RequestCache
from ratings_api.stores.ratings import RatingStore

logger = logging.getLogger("uvicorn.error")

SOURCE_STORE = "store"
SOURCE_FALLBACK = "fallback"


class RatingResolver:
    """Single entry point for rating lookups and admin writes on one platform."""

    def __init__(
        self,
        store: RatingStore,
        aliases: AliasTable,
        fallbacks: FallbackTable,
        *,
        cache: RequestCache | None = None,
        clock: Callable[[], datetime] | None = None,
        name: str = "ratings",
    ):
        self.store = store
        self.aliases = aliases
        self.fallbacks = fallbacks
        self.clock = clock or utcnow
        self.cache = cache if cache is not None else RequestCache(clock=self.clock)
        self.name = name

    def normalize(self, raw_provider_name: str) -> str:
        return normalize_provider_key(raw_provider_name, self.aliases)

    async def resolve(self, raw_provider_name: str) -> RatingResult:
        """Resolve a provider's rating.

        Raises:
            InvalidProviderKey: If the name normalizes to an empty key.
        """
        provider_key = self.normalize(raw_provider_name)

        cached = self.cache.get(provider_key)
        if cached is not None:
            return replace(cached, cached=True)

        store_error = False
        record: RatingRecord | None = None
        try:
            record = await self.store.get(provider_key)
        except StoreUnavailable as e:
            store_error = True
            logger.warning(f"[{self.name}] Store read failed for {provider_key}, using fallback: {e}")

        result: RatingResult
        if record is not None:
            result = RatingFound(
                provider_key=provider_key,
                value=record.value,
                source=SOURCE_STORE,
                last_updated=record.last_updated,
                review_count=record.review_count,
            )
        else:
            fallback = self.fallbacks.get(provider_key)
            if fallback is not None:
                result = RatingFound(
                    provider_key=provider_key,
                    value=fallback,
                    source=SOURCE_FALLBACK,
                    last_updated=self.clock(),
                    store_error=store_error,
                )
            else:
                result = RatingNotFound(provider_key=provider_key, store_error=store_error)

        if not store_error:
            self.cache.set(provider_key, result)
        return result

    async def update(self, raw_provider_name: str, new_value: float) -> RatingRecord:
        """Set a provider's rating (admin).

        Raises:
            InvalidRatingValue: If new_value is outside 0..5. Nothing is written.
            InvalidProviderKey: If the name normalizes to an empty key.
            StoreUnavailable: If the write fails.
        """
        if not is_valid_rating(new_value):
            raise InvalidRatingValue(new_value)
        provider_key = self.normalize(raw_provider_name)

        # Full replace: a manual rating carries no place id or review count.
        record = RatingRecord(
            provider_key=provider_key,
            value=float(new_value),
            last_updated=self.clock(),
        )
        saved = await self.store.upsert(record)
        self.cache.invalidate(provider_key)
        logger.info(f"[{self.name}] Rating for {provider_key} set to {saved.value}")
        return saved

    async def delete(self, raw_provider_name: str) -> bool:
        """Remove a provider's stored rating (admin).

        Raises:
            InvalidProviderKey: If the name normalizes to an empty key.
            StoreUnavailable: If the delete fails.
        """
        provider_key = self.normalize(raw_provider_name)
        deleted = await self.store.delete(provider_key)
        self.cache.invalidate(provider_key)
        logger.info(f"[{self.name}] Rating for {provider_key} deleted={deleted}")
        return deleted

    async def list_ratings(self) -> list[RatingRecord]:
        """All stored ratings; empty when the store is unavailable."""
        try:
            return await self.store.find_all()
        except StoreUnavailable as e:
            logger.warning(f"[{self.name}] Store list failed, returning no ratings: {e}")
            return []

    async def ping(self) -> bool:
        return await self.store.ping()


# ============================================================
# Resolver registry (one resolver per platform, built at startup)
# ============================================================

_resolvers: dict[RatingPlatform, RatingResolver] = {}


def build_resolvers(
    tables: RatingTables,
    store_factory: Callable[[RatingPlatform], RatingStore],
    *,
    cache_ttl_seconds: float,
    clock: Callable[[], datetime] | None = None,
) -> dict[RatingPlatform, RatingResolver]:
    """Build one resolver (with its own request cache) per platform."""
    resolvers: dict[RatingPlatform, RatingResolver] = {}
    for platform in RatingPlatform:
        resolvers[platform] = RatingResolver(
            store=store_factory(platform),
            aliases=tables.aliases,
            fallbacks=tables.fallbacks_for(platform),
            cache=RequestCache(ttl_seconds=cache_ttl_seconds, clock=clock),
            clock=clock,
            name=platform.value,
        )
    return resolvers


def register_resolvers(resolvers: dict[RatingPlatform, RatingResolver]) -> None:
    _resolvers.clear()
    _resolvers.update(resolvers)


def clear_resolvers() -> None:
    _resolvers.clear()


def get_resolver(platform: RatingPlatform) -> RatingResolver:
    """Get the resolver for a platform."""
    resolver = _resolvers.get(platform)
    if resolver is None:
        raise RuntimeError(f"Rating resolver for {platform.value} not initialized.")
    return resolver


def registered_caches() -> list[RequestCache]:
    return [resolver.cache for resolver in _resolvers.values()]
