# eventtalent/services/booking_service.py
"""
Booking Service for the EventTalent engine.

Owns the booking lifecycle state machine:
PENDING -> ACCEPTED | DECLINED | CANCELLED, ACCEPTED -> PAID (via escrow),
PAID -> COMPLETED (then payout), and any open state -> DISPUTED (via the
dispute engine). Every transition is a compare-and-swap on the status
column while holding the per-booking mutex.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from sqlalchemy.orm import Session

from ..core.constants import (
    DEFAULT_SWEEP_BATCH_SIZE,
    NOTIFY_BOOKING_ACCEPTED,
    NOTIFY_BOOKING_CANCELLED,
    NOTIFY_BOOKING_COMPLETED,
    NOTIFY_BOOKING_DECLINED,
    NOTIFY_BOOKING_REQUESTED,
)
from ..core.enums import BookingDecision, BookingStatus, TransactionKind, TransactionStatus
from ..core.exceptions import (
    ConflictException,
    DomainException,
    GatewayException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..integrations.availability_client import AvailabilityClient
from ..models.booking import Booking
from ..models.event import Event
from ..models.types import now_utc
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingSweepResult, BookingView, EventSpec, project_booking
from .base import BaseService
from .config_service import ConfigService
from .money import compute_fee_split
from .notification_service import NotificationService

if TYPE_CHECKING:
    from .escrow_service import EscrowService


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BookingService(BaseService):
    """Booking lifecycle: creation, talent response, cancellation and completion."""

    def __init__(
        self,
        db: Session,
        availability_client: AvailabilityClient,
        notification_service: NotificationService,
        escrow_service: Optional["EscrowService"] = None,
        config_service: Optional[ConfigService] = None,
        payout_retry_scheduler: Optional[Callable[[str], Any]] = None,
    ) -> None:
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.transaction_repository = RepositoryFactory.create_transaction_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.event_repository = RepositoryFactory.create_event_repository(db)
        self.availability_client = availability_client
        self.notification_service = notification_service
        self.escrow_service = escrow_service
        self.config_service = config_service or ConfigService(db)
        self.payout_retry_scheduler = payout_retry_scheduler

    # Queries

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_with_details(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    def get_booking_for_viewer(self, booking_id: str, viewer: User) -> BookingView:
        booking = self.get_booking(booking_id)
        try:
            return project_booking(booking, viewer)
        except PermissionError as exc:
            raise ForbiddenException("You don't have access to this booking") from exc

    def list_bookings_for_user(
        self, user_id: str, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        return self.booking_repository.list_for_user(user_id, status=status)

    # Commands

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        organizer_id: str,
        talent_id: str,
        event_spec: EventSpec,
        gross_amount: Decimal,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Create a PENDING booking and its PENDING payment placeholder.

        Raises:
            ValidationException: non-positive amount, bad event window, self-booking
            NotFoundException: organizer/talent missing or inactive, unknown event
            ConflictException: talent unavailable for the event window
        """
        organizer = self.user_repository.get_active(organizer_id)
        if organizer is None or not organizer.is_organizer:
            raise NotFoundException("Organizer not found", details={"organizer_id": organizer_id})
        if organizer_id == talent_id:
            raise ValidationException("Organizers cannot book themselves")
        talent = self.user_repository.get_active(talent_id)
        if talent is None or not talent.is_talent:
            raise NotFoundException("Talent not found", details={"talent_id": talent_id})

        config = self.config_service.get_settlement_config()
        split = compute_fee_split(gross_amount, config.platform_fee_rate)

        existing_event: Optional[Event] = None
        if event_spec.event_id:
            existing_event = self.event_repository.get_by_id(event_spec.event_id)
            if existing_event is None or existing_event.organizer_id != organizer_id:
                raise NotFoundException(
                    "Event not found", details={"event_id": event_spec.event_id}
                )
            starts_at, ends_at = existing_event.starts_at, existing_event.ends_at
        else:
            if event_spec.starts_at is None or event_spec.ends_at is None:
                raise ValidationException("New events need both starts_at and ends_at")
            starts_at, ends_at = _as_utc(event_spec.starts_at), _as_utc(event_spec.ends_at)
            if ends_at <= starts_at:
                raise ValidationException("Event must end after it starts")
        if starts_at <= now_utc():
            raise ValidationException("Event must start in the future")

        # External check before any writes
        if not self.availability_client.is_available(talent_id, starts_at, ends_at):
            raise ConflictException(
                "Talent is not available for the requested time",
                code="TALENT_UNAVAILABLE",
                details={"talent_id": talent_id},
            )

        with self.transaction():
            event = existing_event or self.event_repository.create(
                organizer_id=organizer_id,
                title=event_spec.title,
                venue=event_spec.venue,
                description=event_spec.description,
                starts_at=starts_at,
                ends_at=ends_at,
            )
            booking = self.booking_repository.create(
                organizer_id=organizer_id,
                talent_id=talent_id,
                event_id=event.id,
                gross_amount=split.gross_amount,
                platform_fee_amount=split.platform_fee_amount,
                talent_amount=split.talent_amount,
                currency=config.currency,
                status=BookingStatus.PENDING.value,
                proposed_date=starts_at,
                notes=notes,
            )
            self.transaction_repository.create(
                booking_id=booking.id,
                user_id=organizer_id,
                kind=TransactionKind.BOOKING_PAYMENT.value,
                status=TransactionStatus.PENDING.value,
                amount=split.gross_amount,
                currency=config.currency,
                description="Booking payment (awaiting checkout)",
            )

        self.logger.info(
            "Booking created",
            extra={
                "booking_id": booking.id,
                "organizer_id": organizer_id,
                "talent_id": talent_id,
                "gross_amount": str(split.gross_amount),
            },
        )
        self.notification_service.notify(
            talent_id,
            NOTIFY_BOOKING_REQUESTED,
            {"booking_id": booking.id, "event_title": event.title, "starts_at": starts_at.isoformat()},
        )
        return self.get_booking(booking.id)

    @BaseService.measure_operation("respond_to_booking")
    def respond_to_booking(
        self, booking_id: str, talent_id: str, decision: BookingDecision
    ) -> Booking:
        """Talent accepts or declines a PENDING booking."""
        try:
            decision = BookingDecision(decision)
        except ValueError as exc:
            raise ValidationException(f"Unknown decision: {decision}") from exc

        booking = self.get_booking(booking_id)
        if booking.talent_id != talent_id:
            raise ValidationException("Only the booked talent can respond to this booking")
        if booking.status != BookingStatus.PENDING.value:
            raise InvalidStateException(
                f"Booking cannot be {decision.value.lower()} in status {booking.status}",
                current_state=booking.status,
            )

        target = BookingStatus(decision.value)
        now = now_utc()
        with self.booking_mutex(booking_id), self.transaction():
            values = {"accepted_at": now} if target is BookingStatus.ACCEPTED else {}
            if target is BookingStatus.DECLINED:
                self._void_pending_payments(booking_id, "booking_declined")
            if not self.booking_repository.transition_status(
                booking_id, [BookingStatus.PENDING], target, **values
            ):
                current = self.get_booking(booking_id)
                raise InvalidStateException(
                    "Booking changed while responding", current_state=current.status
                )

        self.log_operation("respond_to_booking", booking_id=booking_id, decision=decision.value)
        self.notification_service.notify(
            booking.organizer_id,
            NOTIFY_BOOKING_ACCEPTED if target is BookingStatus.ACCEPTED else NOTIFY_BOOKING_DECLINED,
            {"booking_id": booking_id},
        )
        return self.get_booking(booking_id)

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self, booking_id: str, organizer_id: str, reason: Optional[str] = None
    ) -> Booking:
        """Organizer cancels before any money has moved (PENDING or ACCEPTED)."""
        booking = self.get_booking(booking_id)
        if booking.organizer_id != organizer_id:
            raise ValidationException("You don't have permission to cancel this booking")
        cancellable = [BookingStatus.PENDING, BookingStatus.ACCEPTED]
        if booking.status not in {status.value for status in cancellable}:
            raise InvalidStateException(
                f"Booking cannot be cancelled - current status: {booking.status}",
                current_state=booking.status,
            )

        now = now_utc()
        with self.booking_mutex(booking_id), self.transaction():
            self._void_pending_payments(booking_id, "booking_cancelled")
            if not self.booking_repository.transition_status(
                booking_id,
                cancellable,
                BookingStatus.CANCELLED,
                cancelled_at=now,
                cancelled_by_id=organizer_id,
                cancellation_reason=(reason or "").strip() or None,
            ):
                current = self.get_booking(booking_id)
                raise InvalidStateException(
                    "Booking changed while cancelling", current_state=current.status
                )

        self.notification_service.notify(
            booking.talent_id, NOTIFY_BOOKING_CANCELLED, {"booking_id": booking_id}
        )
        return self.get_booking(booking_id)

    @BaseService.measure_operation("mark_completed")
    def mark_completed(
        self,
        booking_id: str,
        actor_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Complete a PAID booking whose event has ended, then settle the payout.

        Calling it again on a COMPLETED booking does not error. It only retries
        a payout that has not gone through yet, which settle_payout guards
        against duplicating. GatewayException from the payout propagates after
        the completion itself has committed; a retryable one first queues
        ``settle_booking_payout`` through the injected scheduler.
        """
        current_time = now or now_utc()
        booking = self.get_booking(booking_id)

        if booking.status == BookingStatus.COMPLETED.value:
            if not booking.is_paid_out:
                self._settle(booking_id)
            return self.get_booking(booking_id)
        if booking.status == BookingStatus.DISPUTED.value:
            raise InvalidStateException(
                "Booking is under dispute; completion is frozen until resolution",
                current_state=booking.status,
            )
        if booking.status != BookingStatus.PAID.value:
            raise InvalidStateException(
                "Only paid bookings can be completed", current_state=booking.status
            )
        if not booking.service_date_elapsed(current_time):
            raise InvalidStateException(
                "The event has not finished yet",
                current_state=booking.status,
                details={"ends_at": booking.service_ends_at.isoformat() if booking.service_ends_at else None},
            )

        with self.booking_mutex(booking_id), self.transaction():
            swapped = self.booking_repository.transition_status(
                booking_id,
                [BookingStatus.PAID],
                BookingStatus.COMPLETED,
                completed_at=current_time,
            )
        if not swapped:
            current = self.get_booking(booking_id)
            if current.status == BookingStatus.COMPLETED.value:
                # Another caller completed it first; it also owns the payout
                return current
            raise InvalidStateException(
                "Booking changed while completing", current_state=current.status
            )

        self.logger.info(
            "Booking completed", extra={"booking_id": booking_id, "actor_id": actor_id}
        )
        self.notification_service.notify_many(
            [booking.organizer_id, booking.talent_id],
            NOTIFY_BOOKING_COMPLETED,
            {"booking_id": booking_id},
        )
        self._settle(booking_id)
        return self.get_booking(booking_id)

    @BaseService.measure_operation("complete_due_bookings")
    def complete_due_bookings(self, now: Optional[datetime] = None) -> BookingSweepResult:
        """Scheduled sweep: complete every PAID booking whose event has ended."""
        current_time = now or now_utc()
        due = self.booking_repository.list_due_for_completion(
            current_time, limit=DEFAULT_SWEEP_BATCH_SIZE
        )
        completed = failed = 0
        for booking_id in [booking.id for booking in due]:
            try:
                self.mark_completed(booking_id, now=current_time)
                completed += 1
            except (DomainException, RepositoryException) as exc:
                failed += 1
                self.logger.warning(
                    "Completion sweep failed for booking",
                    extra={
                        "booking_id": booking_id,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
        result = BookingSweepResult(examined=len(due), completed=completed, failed=failed)
        self.logger.info("Completion sweep finished", extra=result.model_dump())
        return result

    # Helpers

    def _settle(self, booking_id: str) -> None:
        if self.escrow_service is None:
            self.logger.warning(
                "No escrow service wired; payout deferred to retry job",
                extra={"booking_id": booking_id},
            )
            return
        if self.escrow_service.is_settled_by_dispute(booking_id):
            return
        try:
            self.escrow_service.settle_payout(booking_id)
        except GatewayException as exc:
            if exc.retryable:
                self._schedule_payout_retry(booking_id, exc)
            raise

    def _schedule_payout_retry(self, booking_id: str, cause: GatewayException) -> None:
        if self.payout_retry_scheduler is None:
            return
        try:
            self.payout_retry_scheduler(booking_id)
        except Exception:
            # The periodic payout sweep still picks the booking up
            self.logger.warning(
                "Could not schedule payout retry",
                extra={"booking_id": booking_id, "reference": cause.reference},
                exc_info=True,
            )

    def _void_pending_payments(self, booking_id: str, reason: str) -> None:
        """Fail open checkout attempts so a late confirmation cannot revive the booking."""
        pending = self.transaction_repository.list_for_booking(
            booking_id, TransactionKind.BOOKING_PAYMENT, TransactionStatus.PENDING
        )
        for txn in pending:
            self.transaction_repository.mark_status(
                txn, TransactionStatus.FAILED, metadata={"voided": reason}
            )
