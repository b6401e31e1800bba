"""API routes."""

from fastapi import APIRouter

from ratings_api.routes.ratings import build_ratings_router
from ratings_api.services.records import RatingPlatform

api_router = APIRouter()

# Trustpilot TrustScores (frontend TrustpilotRating widget)
api_router.include_router(
    build_ratings_router(RatingPlatform.TRUSTPILOT),
    prefix="/api/trustpilot-ratings",
    tags=["trustpilot-ratings"],
)

# Google Places ratings (frontend GoogleRating widget)
api_router.include_router(
    build_ratings_router(RatingPlatform.GOOGLE),
    prefix="/api/google-ratings",
    tags=["google-ratings"],
)
