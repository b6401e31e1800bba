"""Data stores for persistence and caching.

Stores handle:
- PostgreSQL: DB session, rating repositories, ORM operations
- Redis: place-id cache, batch locks, TTL policies

No resolution/fallback logic in stores - that belongs in services.
"""
