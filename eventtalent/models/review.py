# eventtalent/models/review.py
"""
Double-blind review model.

Design notes:
- One review per (booking, reviewer_type) via DB unique constraint
- Created invisible; revealed as a pair or by the grace-period sweep
- Only visible reviews count toward a receiver's aggregate rating
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
import ulid

from ..database import Base
from .types import UTCDateTime, now_utc


class Review(Base):
    """Rating and comment from one booking participant about the other."""

    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("booking_id", "reviewer_type", name="uq_reviews_booking_reviewer_type"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
        Index("ix_reviews_visible_created", "is_visible", "created_at"),
        Index("ix_reviews_receiver_visible", "receiver_id", "is_visible"),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    giver_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    reviewer_type = Column(String(20), nullable=False)

    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)

    is_visible = Column(Boolean, nullable=False, default=False)
    revealed_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=now_utc)

    booking = relationship("Booking", back_populates="reviews")

    def __repr__(self) -> str:
        return (
            f"<Review {self.id} booking={self.booking_id} {self.reviewer_type} "
            f"rating={self.rating} visible={self.is_visible}>"
        )
