"""Redis store for external-lookup caching and batch locks.

Handles:
- Google Places place-id cache (saves the paid find-place call on refresh)
- Locks so two rating refresh runs never overlap

TTL policies:
- Place id by search phrase: 30 days
- Refresh lock: 1 hour (released explicitly when the run ends)

The per-request rating cache is process-local (services.request_cache), not Redis.
"""

import hashlib
import logging

import redis.asyncio as redis

from ratings_api.settings import get_settings

# TTL constants (in seconds)
TTL_PLACE_ID = 2592000  # 30 days
TTL_REFRESH_LOCK = 3600  # 1 hour

# Key prefixes
PREFIX_PLACE_ID = "places:place_id:"
PREFIX_LOCK = "lock:"

# Redis client (initialized on startup)
_redis: redis.Redis | None = None
logger = logging.getLogger("uvicorn.error")


async def init_redis() -> None:
    """Initialize Redis connection."""
    global _redis
    settings = get_settings()
    _redis = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    # Validate connectivity early (especially for `rediss://` in production).
    await _redis.ping()
    logger.info("Redis connected")


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def _get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


# ============================================================
# Generic cache operations
# ============================================================


async def cache_get(key: str) -> str | None:
    """Get value from cache.

    Args:
        key: Cache key.

    Returns:
        Cached value or None if not found.
    """
    return await _get_redis().get(key)


async def cache_set(key: str, value: str, ttl: int) -> None:
    """Set value in cache with TTL.

    Args:
        key: Cache key.
        value: Value to cache.
        ttl: Time-to-live in seconds.
    """
    await _get_redis().setex(key, ttl, value)


async def cache_delete(key: str) -> None:
    """Delete value from cache.

    Args:
        key: Cache key.
    """
    await _get_redis().delete(key)


# ============================================================
# Google Places place-id cache
# ============================================================


def _place_id_key(query: str) -> str:
    query_hash = hashlib.sha256(query.strip().lower().encode()).hexdigest()[:16]
    return f"{PREFIX_PLACE_ID}{query_hash}"


async def get_place_id_cache(query: str) -> str | None:
    """Get cached place id for a find-place search phrase."""
    return await cache_get(_place_id_key(query))


async def set_place_id_cache(query: str, place_id: str) -> None:
    """Cache place id for a find-place search phrase (TTL 30 days)."""
    await cache_set(_place_id_key(query), place_id, TTL_PLACE_ID)


# ============================================================
# Locks (prevent overlapping refresh runs)
# ============================================================


async def acquire_lock(key: str, ttl: int = TTL_REFRESH_LOCK) -> bool:
    """Acquire a lock.

    Args:
        key: Lock key (e.g., "ratings-refresh:google").
        ttl: Lock timeout in seconds.

    Returns:
        True if lock acquired, False if already locked.
    """
    lock_key = f"{PREFIX_LOCK}{key}"
    # SET NX (only if not exists) with TTL
    result = await _get_redis().set(lock_key, "1", nx=True, ex=ttl)
    return result is not None


async def release_lock(key: str) -> None:
    """Release a lock.

    Args:
        key: Lock key.
    """
    await cache_delete(f"{PREFIX_LOCK}{key}")
