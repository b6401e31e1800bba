"""Rating endpoints, mounted once per platform.

GET  /health          - Store connectivity
GET  ""               - All stored ratings
GET  /{providerName}  - Resolved rating (store -> fallback), request-cached
POST /update          - Admin: set a rating (authKey required)
POST /delete          - Admin: remove a stored rating (authKey required)

Routers are thin: resolution, caching and fallback policy live in services.resolver.
End users never see raw errors: a missing rating is a 200 with success=false.
"""

import hmac
import logging

from fastapi import APIRouter, Path
from fastapi.responses import JSONResponse

from ratings_api.schemas import (
    DatabaseStatus,
    RatingData,
    RatingDeleteData,
    RatingDeleteRequest,
    RatingDeleteResponse,
    RatingFailure,
    RatingListResponse,
    RatingResponse,
    RatingsHealthResponse,
    RatingUpdateData,
    RatingUpdateRequest,
    RatingUpdateResponse,
    StoredRating,
)
from ratings_api.services.errors import InvalidProviderKey, InvalidRatingValue, StoreUnavailable
from ratings_api.services.records import RatingNotFound, RatingPlatform, utcnow
from ratings_api.services.resolver import get_resolver
from ratings_api.settings import get_settings

logger = logging.getLogger("uvicorn.error")


def failure_response(status_code: int, message: str, detail: list | dict | None = None) -> JSONResponse:
    """Build a { success: false, message } response."""
    payload = RatingFailure(message=message, detail=detail)
    return JSONResponse(status_code=status_code, content=payload.model_dump(exclude_none=True))


def is_authorized(auth_key: str) -> bool:
    """Compare an admin key against RATINGS_ADMIN_KEY in constant time.

    An unset RATINGS_ADMIN_KEY disables admin writes entirely.
    """
    expected = get_settings().ratings_admin_key
    if not expected or not auth_key:
        return False
    return hmac.compare_digest(auth_key.encode("utf-8"), expected.encode("utf-8"))


def build_ratings_router(platform: RatingPlatform) -> APIRouter:
    """Create the rating router for one platform."""
    router = APIRouter()
    label = platform.value

    @router.get("/health", response_model=RatingsHealthResponse)
    async def ratings_health() -> RatingsHealthResponse:
        """Check rating store connectivity."""
        connected = await get_resolver(platform).ping()
        logger.info(f"[{label}] Store connected={connected}")
        return RatingsHealthResponse(
            success=True,
            database=DatabaseStatus(connected=connected),
            timestamp=utcnow(),
        )

    @router.get("", response_model=RatingListResponse, response_model_exclude_none=True)
    async def list_ratings() -> RatingListResponse:
        """Get all stored ratings (empty if the store is unavailable)."""
        records = await get_resolver(platform).list_ratings()
        return RatingListResponse(
            success=True,
            count=len(records),
            data=[
                StoredRating(
                    provider=r.provider_key,
                    rating=r.value,
                    last_updated=r.last_updated,
                    review_count=r.review_count,
                    place_id=r.place_id,
                )
                for r in records
            ],
        )

    @router.get("/{provider_name}", response_model=RatingResponse, response_model_exclude_none=True)
    async def get_rating(
        provider_name: str = Path(
            description="Provider name, slug or legacy id (e.g. 'western-union', 'provider-wise')",
            min_length=1,
            max_length=200,
        ),
    ) -> RatingResponse | JSONResponse:
        """Get the rating for one provider.

        Returns:
            success=true with value/source/lastUpdated, or success=false when no rating exists.
        """
        try:
            result = await get_resolver(platform).resolve(provider_name)
        except InvalidProviderKey as e:
            return failure_response(400, str(e))

        if isinstance(result, RatingNotFound):
            return RatingResponse(success=False, message=result.message)

        return RatingResponse(
            success=True,
            data=RatingData(
                value=result.value,
                source=result.source,
                last_updated=result.last_updated,
                cached=result.cached,
                review_count=result.review_count,
            ),
        )

    @router.post("/update", response_model=RatingUpdateResponse)
    async def update_rating(request: RatingUpdateRequest) -> RatingUpdateResponse | JSONResponse:
        """Set a provider's rating.

        Raises nothing to the client: 403 bad key, 400 invalid input, 503 store down.
        """
        if not is_authorized(request.auth_key):
            logger.warning(f"[{label}] Rejected rating update for {request.provider_name!r}: bad auth key")
            return failure_response(403, "Invalid or missing auth key")

        try:
            record = await get_resolver(platform).update(request.provider_name, request.rating)
        except (InvalidRatingValue, InvalidProviderKey) as e:
            return failure_response(400, str(e))
        except StoreUnavailable as e:
            logger.error(f"[{label}] Rating update for {request.provider_name!r} failed: {e}")
            return failure_response(503, "Rating store unavailable")

        return RatingUpdateResponse(
            success=True,
            data=RatingUpdateData(
                provider=record.provider_key,
                rating=record.value,
                last_updated=record.last_updated,
            ),
        )

    @router.post("/delete", response_model=RatingDeleteResponse)
    async def delete_rating(request: RatingDeleteRequest) -> RatingDeleteResponse | JSONResponse:
        """Remove a provider's stored rating (the fallback table applies again)."""
        if not is_authorized(request.auth_key):
            logger.warning(f"[{label}] Rejected rating delete for {request.provider_name!r}: bad auth key")
            return failure_response(403, "Invalid or missing auth key")

        resolver = get_resolver(platform)
        try:
            provider_key = resolver.normalize(request.provider_name)
            deleted = await resolver.delete(provider_key)
        except InvalidProviderKey as e:
            return failure_response(400, str(e))
        except StoreUnavailable as e:
            logger.error(f"[{label}] Rating delete for {request.provider_name!r} failed: {e}")
            return failure_response(503, "Rating store unavailable")

        return RatingDeleteResponse(
            success=True,
            data=RatingDeleteData(provider=provider_key, deleted=deleted),
        )

    return router
