# eventtalent/repositories/review_repository.py
"""Review repository: double-blind lookups and rating aggregation queries."""

from datetime import datetime
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import ReviewerType
from ..core.exceptions import RepositoryException
from ..models.review import Review
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ReviewRepository(BaseRepository[Review]):
    def __init__(self, db: Session):
        super().__init__(db, Review)

    def get_for_booking_and_type(
        self, booking_id: str, reviewer_type: ReviewerType
    ) -> Optional[Review]:
        try:
            return (
                self.db.query(Review)
                .filter(
                    Review.booking_id == booking_id,
                    Review.reviewer_type == reviewer_type.value,
                )
                .populate_existing()
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting review for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve review: {str(e)}")

    def list_for_booking(self, booking_id: str) -> List[Review]:
        return (
            self.db.query(Review)
            .filter(Review.booking_id == booking_id)
            .order_by(Review.created_at.asc())
            .all()
        )

    def list_hidden_older_than(self, cutoff: datetime, limit: int = 500) -> List[Review]:
        """Invisible reviews created at or before ``cutoff``, oldest first."""
        try:
            return (
                self.db.query(Review)
                .filter(Review.is_visible.is_(False), Review.created_at <= cutoff)
                .order_by(Review.created_at.asc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing grace-period candidates: {str(e)}")
            raise RepositoryException(f"Failed to list hidden reviews: {str(e)}")

    def get_visible_rating_stats(self, receiver_id: str) -> Tuple[int, int]:
        """Return (sum of ratings, count) over visible reviews received by the user."""
        try:
            total, count = (
                self.db.query(func.sum(Review.rating), func.count(Review.id))
                .filter(Review.receiver_id == receiver_id, Review.is_visible.is_(True))
                .one()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating ratings for {receiver_id}: {str(e)}")
            raise RepositoryException(f"Failed to aggregate ratings: {str(e)}")
        return int(total or 0), int(count or 0)
