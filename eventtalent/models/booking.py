# eventtalent/models/booking.py
"""
Booking model for the EventTalent engine.

A booking is one paid engagement between an organizer and a talent for
one event. Money columns are snapshotted at creation time and satisfy
``platform_fee_amount + talent_amount == gross_amount`` for the life of the
row. Bookings are never hard-deleted.
"""

from datetime import datetime
import logging
from typing import Optional

from sqlalchemy import Boolean, Column, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import BookingStatus
from ..database import Base
from .types import Money, UTCDateTime, now_utc

logger = logging.getLogger(__name__)


class Booking(Base):
    """
    Engagement record and escrow state holder.

    Status transitions are applied through BookingRepository.transition_status
    (compare-and-swap); never assign ``status`` directly in service code.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_status_paid_out", "status", "is_paid_out"),
        Index("ix_bookings_organizer_status", "organizer_id", "status"),
        Index("ix_bookings_talent_status", "talent_id", "status"),
    )

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    organizer_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    talent_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    event_id = Column(String(26), ForeignKey("events.id"), nullable=False, index=True)

    # Fee split snapshot
    gross_amount = Column(Money, nullable=False)
    platform_fee_amount = Column(Money, nullable=False)
    talent_amount = Column(Money, nullable=False)
    currency = Column(String(3), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    proposed_date = Column(UTCDateTime, nullable=False)
    notes = Column(Text, nullable=True)

    is_paid_out = Column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at = Column(UTCDateTime, nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=now_utc)
    accepted_at = Column(UTCDateTime, nullable=True)
    paid_at = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)
    paid_out_at = Column(UTCDateTime, nullable=True)

    # Cancellation tracking
    cancelled_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    # Relationships
    organizer = relationship("User", foreign_keys=[organizer_id])
    talent = relationship("User", foreign_keys=[talent_id])
    cancelled_by = relationship("User", foreign_keys=[cancelled_by_id])
    event = relationship("Event", back_populates="bookings")
    transactions = relationship(
        "Transaction", back_populates="booking", order_by="Transaction.created_at"
    )
    disputes = relationship("Dispute", back_populates="booking", order_by="Dispute.created_at")
    reviews = relationship("Review", back_populates="booking")

    @property
    def status_enum(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def service_ends_at(self) -> Optional[datetime]:
        return self.event.ends_at if self.event is not None else None

    def service_date_elapsed(self, now: Optional[datetime] = None) -> bool:
        ends_at = self.service_ends_at
        if ends_at is None:
            return False
        return ends_at <= (now or now_utc())

    def __repr__(self) -> str:
        return f"<Booking {self.id} {self.status} gross={self.gross_amount}>"
