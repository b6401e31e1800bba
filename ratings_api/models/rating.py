"""Rating models.

One row per canonical provider key and platform. Rows are upserted as a whole
(value + last_updated) and never partially updated.
"""

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ratings_api.stores.postgres import Base
from ratings_api.services.records import RatingPlatform


class RatingColumnsMixin:
    """Columns shared by every rating table."""

    id: Mapped[int] = mapped_column(primary_key=True)

    # Canonical provider key (see services.normalizer)
    provider_key: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    # Rating on a 0-5 scale
    value: Mapped[float] = mapped_column(Float)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True,
    )


class TrustpilotRating(RatingColumnsMixin, Base):
    """Trustpilot TrustScore for a provider."""

    __tablename__ = "trustpilot_ratings"

    def __repr__(self) -> str:
        return f"<TrustpilotRating {self.provider_key}={self.value}>"


class GoogleRating(RatingColumnsMixin, Base):
    """Google Places rating for a provider."""

    __tablename__ = "google_ratings"

    place_id: Mapped[str | None] = mapped_column(String(200))
    review_count: Mapped[int | None] = mapped_column(Integer)

    def __repr__(self) -> str:
        return f"<GoogleRating {self.provider_key}={self.value} ({self.review_count} reviews)>"


_MODELS = {
    RatingPlatform.TRUSTPILOT: TrustpilotRating,
    RatingPlatform.GOOGLE: GoogleRating,
}


def rating_model_for(platform: RatingPlatform) -> type[TrustpilotRating] | type[GoogleRating]:
    return _MODELS[platform]
