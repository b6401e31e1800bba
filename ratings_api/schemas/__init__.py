"""Pydantic schemas for API request/response validation."""

from ratings_api.schemas.common import ErrorDetail, ErrorResponse
from ratings_api.schemas.ratings import (
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

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "DatabaseStatus",
    "RatingData",
    "RatingDeleteData",
    "RatingDeleteRequest",
    "RatingDeleteResponse",
    "RatingFailure",
    "RatingListResponse",
    "RatingResponse",
    "RatingsHealthResponse",
    "RatingUpdateData",
    "RatingUpdateRequest",
    "RatingUpdateResponse",
    "StoredRating",
]
