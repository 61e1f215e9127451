# eventtalent/models/event.py
"""Event model: the occasion a talent is booked for."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..database import Base
from .types import UTCDateTime, now_utc


class Event(Base):
    """
    An organizer's event.

    ``starts_at`` is the proposed service date of every booking for the
    event; the service date has elapsed once ``ends_at`` is in the past.
    """

    __tablename__ = "events"
    __table_args__ = (CheckConstraint("ends_at > starts_at", name="ck_events_time_order"),)

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    organizer_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    venue = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    starts_at = Column(UTCDateTime, nullable=False, index=True)
    ends_at = Column(UTCDateTime, nullable=False, index=True)

    created_at = Column(UTCDateTime, nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=now_utc)

    organizer = relationship("User", foreign_keys=[organizer_id])
    bookings = relationship("Booking", back_populates="event")

    def __repr__(self) -> str:
        return f"<Event {self.id} '{self.title}' {self.starts_at}>"
