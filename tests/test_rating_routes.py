"""Tests for the rating endpoints."""

from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from ratings_api.main import app
from ratings_api.services.rating_tables import RatingTables
from ratings_api.services.records import RatingPlatform, RatingRecord
from ratings_api.services.resolver import build_resolvers, clear_resolvers, register_resolvers
from ratings_api.settings import get_settings

ADMIN_KEY = "s3cret-admin-key"
TRUSTPILOT = "/api/trustpilot-ratings"
GOOGLE = "/api/google-ratings"


@pytest.fixture(autouse=True)
def admin_key(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("RATINGS_ADMIN_KEY", ADMIN_KEY)
    get_settings.cache_clear()
    yield ADMIN_KEY
    get_settings.cache_clear()


@pytest.fixture
def stores(make_store):
    return {platform: make_store() for platform in RatingPlatform}


@pytest.fixture
def resolvers(stores, clock):
    tables = RatingTables.from_dict(
        {
            "aliases": {"transferwise": "wise"},
            "fallbacks": {"trustpilot": {"torfx": 4.4}, "google": {"western-union": 4.0}},
        }
    )
    built = build_resolvers(tables, lambda platform: stores[platform], cache_ttl_seconds=300, clock=clock)
    register_resolvers(built)
    yield built
    clear_resolvers()


@pytest.fixture
async def client(resolvers):
    """Create test client with in-memory rating stores."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


class TestGetRating:
    @pytest.mark.asyncio
    async def test_stored_rating(self, client: AsyncClient, stores):
        stores[RatingPlatform.TRUSTPILOT].records["wise"] = RatingRecord(
            "wise", 4.3, datetime(2025, 2, 20, tzinfo=timezone.utc)
        )

        response = await client.get(f"{TRUSTPILOT}/TransferWise")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["value"] == 4.3
        assert body["data"]["source"] == "store"
        assert body["data"]["cached"] is False
        assert body["data"]["lastUpdated"].startswith("2025-02-20T00:00:00")
        assert "reviewCount" not in body["data"]

    @pytest.mark.asyncio
    async def test_fallback_rating(self, client: AsyncClient):
        response = await client.get(f"{TRUSTPILOT}/provider-torfx")

        body = response.json()
        assert body["success"] is True
        assert body["data"]["value"] == 4.4
        assert body["data"]["source"] == "fallback"

    @pytest.mark.asyncio
    async def test_second_request_is_cached(self, client: AsyncClient):
        await client.get(f"{TRUSTPILOT}/torfx")
        response = await client.get(f"{TRUSTPILOT}/torfx")

        assert response.json()["data"]["cached"] is True

    @pytest.mark.asyncio
    async def test_not_found(self, client: AsyncClient):
        response = await client.get(f"{TRUSTPILOT}/unknown-bank")

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "message": "No rating available for unknownbank",
        }

    @pytest.mark.asyncio
    async def test_empty_key(self, client: AsyncClient):
        response = await client.get(f"{TRUSTPILOT}/---")

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_platforms_are_independent(self, client: AsyncClient):
        google = await client.get(f"{GOOGLE}/western-union")
        trustpilot = await client.get(f"{TRUSTPILOT}/western-union")

        assert google.json()["data"]["value"] == 4.0
        assert trustpilot.json()["success"] is False

    @pytest.mark.asyncio
    async def test_google_review_count(self, client: AsyncClient, stores, clock):
        stores[RatingPlatform.GOOGLE].records["westernunion"] = RatingRecord(
            "westernunion", 3.8, clock(), review_count=1532, place_id="ChIJwu"
        )

        response = await client.get(f"{GOOGLE}/Western Union")

        data = response.json()["data"]
        assert data["value"] == 3.8
        assert data["reviewCount"] == 1532

    @pytest.mark.asyncio
    async def test_store_down_serves_fallback(self, client: AsyncClient, stores):
        stores[RatingPlatform.GOOGLE].fail_reads = True

        response = await client.get(f"{GOOGLE}/western-union")

        assert response.status_code == 200
        assert response.json()["data"]["source"] == "fallback"


class TestUpdateRating:
    @pytest.mark.asyncio
    async def test_update(self, client: AsyncClient, stores):
        before = await client.get(f"{TRUSTPILOT}/torfx")
        assert before.json()["data"]["source"] == "fallback"

        response = await client.post(
            f"{TRUSTPILOT}/update",
            json={"providerName": "TorFX", "rating": 4.8, "authKey": ADMIN_KEY},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["provider"] == "torfx"
        assert body["data"]["rating"] == 4.8
        assert "lastUpdated" in body["data"]
        assert stores[RatingPlatform.TRUSTPILOT].records["torfx"].value == 4.8

        after = await client.get(f"{TRUSTPILOT}/torfx")
        assert after.json()["data"]["source"] == "store"
        assert after.json()["data"]["value"] == 4.8
        assert after.json()["data"]["cached"] is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("auth_key", ["wrong", ""])
    async def test_bad_auth_key(self, client: AsyncClient, stores, auth_key):
        response = await client.post(
            f"{TRUSTPILOT}/update",
            json={"providerName": "wise", "rating": 4.0, "authKey": auth_key},
        )

        assert response.status_code == 403
        assert response.json()["success"] is False
        assert stores[RatingPlatform.TRUSTPILOT].writes == 0

    @pytest.mark.asyncio
    async def test_missing_auth_key(self, client: AsyncClient):
        response = await client.post(f"{TRUSTPILOT}/update", json={"providerName": "wise", "rating": 4.0})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_writes_disabled_without_configured_key(self, client: AsyncClient, monkeypatch):
        monkeypatch.setenv("RATINGS_ADMIN_KEY", "")
        get_settings.cache_clear()

        response = await client.post(
            f"{TRUSTPILOT}/update",
            json={"providerName": "wise", "rating": 4.0, "authKey": ""},
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [5.1, -0.1])
    async def test_out_of_range(self, client: AsyncClient, stores, rating):
        response = await client.post(
            f"{TRUSTPILOT}/update",
            json={"providerName": "wise", "rating": rating, "authKey": ADMIN_KEY},
        )

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert stores[RatingPlatform.TRUSTPILOT].writes == 0

    @pytest.mark.asyncio
    async def test_malformed_body(self, client: AsyncClient):
        response = await client.post(
            f"{TRUSTPILOT}/update",
            json={"providerName": "wise", "rating": "great", "authKey": ADMIN_KEY},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Invalid request"

    @pytest.mark.asyncio
    async def test_empty_provider_key(self, client: AsyncClient):
        response = await client.post(
            f"{TRUSTPILOT}/update",
            json={"providerName": "!!!", "rating": 4.0, "authKey": ADMIN_KEY},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_store_down(self, client: AsyncClient, stores):
        stores[RatingPlatform.GOOGLE].fail_writes = True

        response = await client.post(
            f"{GOOGLE}/update",
            json={"providerName": "wise", "rating": 4.0, "authKey": ADMIN_KEY},
        )

        assert response.status_code == 503
        assert response.json() == {"success": False, "message": "Rating store unavailable"}


class TestDeleteRating:
    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, stores, clock):
        stores[RatingPlatform.TRUSTPILOT].records["torfx"] = RatingRecord("torfx", 4.9, clock())
        await client.get(f"{TRUSTPILOT}/torfx")

        response = await client.post(
            f"{TRUSTPILOT}/delete",
            json={"providerName": "provider-torfx", "authKey": ADMIN_KEY},
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"provider": "torfx", "deleted": True}
        after = await client.get(f"{TRUSTPILOT}/torfx")
        assert after.json()["data"]["source"] == "fallback"

    @pytest.mark.asyncio
    async def test_delete_requires_auth(self, client: AsyncClient):
        response = await client.post(f"{TRUSTPILOT}/delete", json={"providerName": "torfx", "authKey": "nope"})
        assert response.status_code == 403


class TestListAndHealth:
    @pytest.mark.asyncio
    async def test_list(self, client: AsyncClient, stores, clock):
        google = stores[RatingPlatform.GOOGLE]
        google.records["xe"] = RatingRecord("xe", 4.2, clock())
        google.records["wise"] = RatingRecord("wise", 4.6, clock(), review_count=900, place_id="ChIJwise")

        response = await client.get(GOOGLE)

        body = response.json()
        assert body["success"] is True
        assert body["count"] == 2
        assert [r["provider"] for r in body["data"]] == ["wise", "xe"]
        assert body["data"][0]["reviewCount"] == 900
        assert body["data"][0]["placeId"] == "ChIJwise"
        assert "reviewCount" not in body["data"][1]

    @pytest.mark.asyncio
    async def test_list_store_down(self, client: AsyncClient, stores):
        stores[RatingPlatform.TRUSTPILOT].fail_reads = True

        response = await client.get(TRUSTPILOT)

        assert response.json() == {"success": True, "count": 0, "data": []}

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient, stores):
        stores[RatingPlatform.GOOGLE].fail_reads = True

        google = await client.get(f"{GOOGLE}/health")
        trustpilot = await client.get(f"{TRUSTPILOT}/health")

        assert google.json()["database"] == {"connected": False}
        assert trustpilot.json()["database"] == {"connected": True}
        assert trustpilot.json()["success"] is True
