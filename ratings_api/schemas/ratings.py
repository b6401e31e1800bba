"""Schemas for the rating endpoints (/api/trustpilot-ratings, /api/google-ratings).

Field names are camelCase on the wire to match the frontend widgets.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class RatingData(BaseModel):
    """Resolved rating for one provider."""

    value: float
    source: str
    last_updated: datetime = Field(alias="lastUpdated")
    cached: bool = False
    review_count: int | None = Field(alias="reviewCount", default=None)

    model_config = {"populate_by_name": True}


class RatingResponse(BaseModel):
    """Response payload for GET /{providerName}."""

    success: bool
    data: RatingData | None = None
    message: str | None = None


class RatingFailure(BaseModel):
    """Failure payload: { "success": false, "message": str }."""

    success: bool = False
    message: str
    detail: list | dict | None = None


class StoredRating(BaseModel):
    """One stored rating record."""

    provider: str
    rating: float
    last_updated: datetime = Field(alias="lastUpdated")
    review_count: int | None = Field(alias="reviewCount", default=None)
    place_id: str | None = Field(alias="placeId", default=None)

    model_config = {"populate_by_name": True}


class RatingListResponse(BaseModel):
    """Response payload for GET / (all stored ratings)."""

    success: bool
    count: int = Field(ge=0)
    data: list[StoredRating] = Field(default_factory=list)


class RatingUpdateRequest(BaseModel):
    """Request body for POST /update."""

    provider_name: str = Field(alias="providerName", min_length=1, max_length=200)
    rating: float
    auth_key: str = Field(alias="authKey", default="")

    model_config = {"populate_by_name": True}


class RatingUpdateData(BaseModel):
    provider: str
    rating: float
    last_updated: datetime = Field(alias="lastUpdated")

    model_config = {"populate_by_name": True}


class RatingUpdateResponse(BaseModel):
    """Response payload for POST /update."""

    success: bool
    data: RatingUpdateData


class RatingDeleteRequest(BaseModel):
    """Request body for POST /delete."""

    provider_name: str = Field(alias="providerName", min_length=1, max_length=200)
    auth_key: str = Field(alias="authKey", default="")

    model_config = {"populate_by_name": True}


class RatingDeleteData(BaseModel):
    provider: str
    deleted: bool


class RatingDeleteResponse(BaseModel):
    """Response payload for POST /delete."""

    success: bool
    data: RatingDeleteData


class DatabaseStatus(BaseModel):
    connected: bool


class RatingsHealthResponse(BaseModel):
    """Response payload for GET /health."""

    success: bool
    database: DatabaseStatus
    timestamp: datetime
