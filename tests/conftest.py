"""Shared fixtures: in-memory rating store, controllable clock, small rating tables."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from ratings_api.services.errors import StoreUnavailable
from ratings_api.services.rating_tables import AliasTable, FallbackTable
from ratings_api.services.records import RatingRecord
from ratings_api.services.request_cache import RequestCache
from ratings_api.services.resolver import RatingResolver


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class InMemoryRatingStore:
    """Dict-backed rating store with switchable failures."""

    def __init__(self):
        self.records: dict[str, RatingRecord] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.fail_write_keys: set[str] = set()
        self.reads = 0
        self.writes = 0

    async def get(self, provider_key: str) -> RatingRecord | None:
        self.reads += 1
        if self.fail_reads:
            raise StoreUnavailable("store down")
        return self.records.get(provider_key)

    async def upsert(self, record: RatingRecord) -> RatingRecord:
        if self.fail_writes or record.provider_key in self.fail_write_keys:
            raise StoreUnavailable("store down")
        self.writes += 1
        stored = replace(record, is_fallback=False)
        self.records[record.provider_key] = stored
        return stored

    async def find_all(self) -> list[RatingRecord]:
        if self.fail_reads:
            raise StoreUnavailable("store down")
        return [self.records[k] for k in sorted(self.records)]

    async def delete(self, provider_key: str) -> bool:
        if self.fail_writes:
            raise StoreUnavailable("store down")
        return self.records.pop(provider_key, None) is not None

    async def ping(self) -> bool:
        return not self.fail_reads


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_store():
    """Factory for fresh in-memory stores."""
    return InMemoryRatingStore


@pytest.fixture
def store() -> InMemoryRatingStore:
    return InMemoryRatingStore()


@pytest.fixture
def aliases() -> AliasTable:
    return AliasTable.from_dict({"transferwise": "wise", "tor": "torfx"})


@pytest.fixture
def fallbacks(aliases: AliasTable) -> FallbackTable:
    return FallbackTable.from_dict({"wise": 4.7, "torfx": 4.4}, aliases)


@pytest.fixture
def resolver(store, aliases, fallbacks, clock) -> RatingResolver:
    return RatingResolver(
        store,
        aliases,
        fallbacks,
        cache=RequestCache(ttl_seconds=300, clock=clock),
        clock=clock,
    )
