# eventtalent/repositories/booking_repository.py
"""
Booking Repository for the EventTalent engine.

All status changes go through ``transition_status``, a compare-and-swap
``UPDATE ... WHERE status IN (...)``. Services treat a zero row count as
"a concurrent writer won" and re-read before deciding what to do. Every
expected -> target pair is checked against ``BOOKING_TRANSITIONS`` first.
"""

from datetime import datetime
import logging
from typing import Any, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..core.constants import can_transition
from ..core.enums import BookingStatus
from ..core.exceptions import IntegrityViolationException, RepositoryException
from ..models.booking import Booking
from ..models.event import Event
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access and status compare-and-swap."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Booking.event),
            selectinload(Booking.transactions),
        )

    def get_with_details(self, booking_id: str) -> Optional[Booking]:
        return self.get_by_id(booking_id, load_relationships=True)

    def transition_status(
        self,
        booking_id: str,
        expected: Iterable[BookingStatus],
        target: BookingStatus,
        **values: Any,
    ) -> bool:
        """
        Atomically move a booking to ``target`` if it is still in one of ``expected``.

        Extra column values are written in the same UPDATE. Returns True when
        this caller performed the transition. Raises IntegrityViolationException
        when any expected -> target pair is not a legal lifecycle move.
        """
        expected = list(expected)
        illegal = [status.value for status in expected if not can_transition(status, target)]
        if illegal:
            raise IntegrityViolationException(
                f"Illegal booking transition to {target.value}",
                details={"booking_id": booking_id, "from": illegal, "to": target.value},
            )
        expected_values = [status.value for status in expected]
        try:
            self.db.flush()
            updated = (
                self.db.query(Booking)
                .filter(Booking.id == booking_id, Booking.status.in_(expected_values))
                .update({"status": target.value, **values}, synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(
                "Error transitioning booking %s to %s: %s", booking_id, target.value, str(e)
            )
            raise RepositoryException(f"Failed to update booking status: {str(e)}")

        instance = self.db.get(Booking, booking_id)
        if instance is not None:
            self.db.refresh(instance)
        return updated == 1

    def mark_paid_out(self, booking_id: str, paid_out_at: datetime) -> bool:
        """Flip is_paid_out false -> true exactly once, only from COMPLETED."""
        try:
            self.db.flush()
            updated = (
                self.db.query(Booking)
                .filter(
                    Booking.id == booking_id,
                    Booking.status == BookingStatus.COMPLETED.value,
                    Booking.is_paid_out.is_(False),
                )
                .update(
                    {"is_paid_out": True, "paid_out_at": paid_out_at},
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as e:
            self.logger.error("Error marking booking %s paid out: %s", booking_id, str(e))
            raise RepositoryException(f"Failed to mark booking paid out: {str(e)}")

        instance = self.db.get(Booking, booking_id)
        if instance is not None:
            self.db.refresh(instance)
        return updated == 1

    def list_due_for_completion(self, now: datetime, limit: int = 500) -> List[Booking]:
        """PAID bookings whose event has ended."""
        try:
            return (
                self.db.query(Booking)
                .join(Event, Booking.event_id == Event.id)
                .filter(Booking.status == BookingStatus.PAID.value, Event.ends_at <= now)
                .order_by(Event.ends_at.asc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings due for completion: {str(e)}")
            raise RepositoryException(f"Failed to list due bookings: {str(e)}")

    def list_unsettled_completed(self, limit: int = 500) -> List[Booking]:
        """COMPLETED bookings whose payout has not gone through yet."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.status == BookingStatus.COMPLETED.value,
                    Booking.is_paid_out.is_(False),
                )
                .order_by(Booking.completed_at.asc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing unsettled bookings: {str(e)}")
            raise RepositoryException(f"Failed to list unsettled bookings: {str(e)}")

    def list_for_user(
        self, user_id: str, status: Optional[BookingStatus] = None, limit: int = 100
    ) -> List[Booking]:
        try:
            query = self.db.query(Booking).filter(
                (Booking.organizer_id == user_id) | (Booking.talent_id == user_id)
            )
            if status is not None:
                query = query.filter(Booking.status == status.value)
            return query.order_by(Booking.created_at.desc()).limit(limit).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")
