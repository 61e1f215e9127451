# eventtalent/models/dispute.py
"""Dispute model: an arbitration case against one booking."""

from sqlalchemy import Column, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import DisputeStatus
from ..database import Base
from .types import Money, UTCDateTime, now_utc

ACTIVE_DISPUTE_STATUSES = (DisputeStatus.OPEN.value, DisputeStatus.UNDER_REVIEW.value)


class Dispute(Base):
    """
    Arbitration case.

    At most one OPEN/UNDER_REVIEW dispute exists per booking; filing is
    serialized through the booking row (see DisputeService.file_dispute).
    """

    __tablename__ = "disputes"
    __table_args__ = (Index("ix_disputes_booking_status", "booking_id", "status"),)

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    disputed_by_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    filer_role = Column(String(20), nullable=False)
    reason = Column(String(50), nullable=False)
    explanation = Column(Text, nullable=False)

    status = Column(String(30), nullable=False, default=DisputeStatus.OPEN.value, index=True)
    # Booking status at filing time, for audit
    booking_status_at_filing = Column(String(20), nullable=True)

    resolution_notes = Column(Text, nullable=True)
    refund_amount = Column(Money, nullable=True)
    payout_amount = Column(Money, nullable=True)
    reviewed_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    resolved_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=now_utc)
    review_started_at = Column(UTCDateTime, nullable=True)
    resolved_at = Column(UTCDateTime, nullable=True)

    booking = relationship("Booking", back_populates="disputes")
    disputed_by = relationship("User", foreign_keys=[disputed_by_id])

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_DISPUTE_STATUSES

    def __repr__(self) -> str:
        return f"<Dispute {self.id} booking={self.booking_id} {self.status}>"
