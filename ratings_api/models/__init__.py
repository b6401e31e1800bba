"""SQLAlchemy ORM models.

Models represent database tables:
- trustpilot_ratings: cached Trustpilot TrustScores per provider
- google_ratings: cached Google Places ratings per provider
"""

from ratings_api.models.rating import GoogleRating, TrustpilotRating, rating_model_for

__all__ = ["GoogleRating", "TrustpilotRating", "rating_model_for"]
