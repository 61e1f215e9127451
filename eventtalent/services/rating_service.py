"""Rating aggregation over visible reviews."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from ..models.types import now_utc
from ..models.user import UserProfile
from ..repositories.factory import RepositoryFactory
from .base import BaseService

_RATING_QUANTUM = Decimal("0.01")


class RatingService(BaseService):
    """Recomputes a user's aggregate rating after a review becomes visible."""

    def __init__(self, db: Session) -> None:
        super().__init__(db)
        self.review_repository = RepositoryFactory.create_review_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    @BaseService.measure_operation("recompute_rating")
    def recompute_rating(self, user_id: str) -> UserProfile:
        """
        Write the mean of ``user_id``'s visible received ratings onto their profile.

        Runs inside the caller's transaction (no commit), so the profile moves
        together with the visibility flip that triggered it. No visible
        reviews leaves the average empty and the count at zero.
        """
        total, count = self.review_repository.get_visible_rating_stats(user_id)
        average = (
            (Decimal(total) / Decimal(count)).quantize(_RATING_QUANTUM, rounding=ROUND_HALF_UP)
            if count
            else None
        )
        profile = self.user_repository.upsert_rating(
            user_id, average_rating=average, total_reviews=count, updated_at=now_utc()
        )
        self.logger.debug(
            "Rating recomputed",
            extra={"user_id": user_id, "average_rating": str(average), "total_reviews": count},
        )
        return profile
