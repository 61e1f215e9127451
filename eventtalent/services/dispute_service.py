# eventtalent/services/dispute_service.py
"""
Dispute Resolution Engine for the EventTalent engine.

Filing a dispute freezes the booking (status DISPUTED), which blocks
payout. An admin resolution is the only way back out: it reallocates the
escrowed funds (refund, payout or a split) and moves the booking to a
terminal state.

Each money leg is written to the ledger as a PENDING row and committed
before the gateway is called, then flipped to SUCCESS or FAILED. A leg that
moved money therefore stays on the ledger even when the other leg fails,
and a retried resolution must agree with the amounts already recorded.
The booking and dispute only reach their terminal states once every leg
has succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.constants import (
    ALLOWED_DISPUTE_REASONS,
    DISPUTABLE_BOOKING_STATUSES,
    DISPUTE_REFERENCE_PREFIX,
    MAX_DISPUTE_EXPLANATION_LENGTH,
    MAX_RESOLUTION_NOTES_LENGTH,
    NOTIFY_DISPUTE_FILED,
    NOTIFY_DISPUTE_RESOLVED,
)
from ..core.enums import (
    BookingStatus,
    DisputeReason,
    DisputeResolution,
    DisputeStatus,
    RoleName,
    TransactionKind,
    TransactionStatus,
)
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    GatewayException,
    IntegrityViolationException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from ..integrations.paystack_client import PaystackClient
from ..models.booking import Booking
from ..models.dispute import Dispute
from ..models.transaction import Transaction
from ..models.types import now_utc
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .config_service import ConfigService
from .money import ZERO, to_money
from .notification_service import NotificationService

REFUND_LEG = "REFUND"
PAYOUT_LEG = "PAYOUT"


@dataclass(frozen=True)
class _Allocation:
    refund_amount: Decimal
    payout_amount: Decimal
    retained_amount: Decimal


@dataclass(frozen=True)
class _Plan:
    allocation: _Allocation
    refund_leg: Optional[Transaction]
    payout_leg: Optional[Transaction]


class DisputeService(BaseService):
    """Filing, review and resolution of booking disputes."""

    def __init__(
        self,
        db: Session,
        paystack: PaystackClient,
        notification_service: NotificationService,
        config_service: Optional[ConfigService] = None,
    ) -> None:
        super().__init__(db)
        self.dispute_repository = RepositoryFactory.create_dispute_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.transaction_repository = RepositoryFactory.create_transaction_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.paystack = paystack
        self.notification_service = notification_service
        self.config_service = config_service or ConfigService(db)

    # Queries

    def get_dispute(self, dispute_id: str) -> Dispute:
        dispute = self.dispute_repository.get_by_id(dispute_id)
        if dispute is None:
            raise NotFoundException("Dispute not found", details={"dispute_id": dispute_id})
        return dispute

    @BaseService.measure_operation("get_dispute_stats")
    def get_dispute_stats(self) -> Dict[str, Any]:
        return self.dispute_repository.get_stats()

    # Filing

    @BaseService.measure_operation("file_dispute")
    def file_dispute(
        self,
        booking_id: str,
        filer_id: str,
        reason: DisputeReason,
        explanation: str,
        now: Optional[datetime] = None,
    ) -> Dispute:
        """
        Open a dispute and freeze the booking.

        Args:
            booking_id: Booking under dispute
            filer_id: The organizer or talent of the booking
            reason: Must be in the filer's role-specific reason set
            explanation: Free text, required

        Returns:
            The OPEN dispute

        Raises:
            ValidationException: non-party filer, bad reason, missing explanation,
                or the event date has not passed
            ConflictException: an OPEN or UNDER_REVIEW dispute already exists
            InvalidStateException: booking declined, cancelled or already paid out
        """
        current_time = now or now_utc()
        booking = self._get_booking(booking_id)

        if filer_id == booking.organizer_id:
            filer_role = RoleName.ORGANIZER
        elif filer_id == booking.talent_id:
            filer_role = RoleName.TALENT
        else:
            raise ValidationException("Only booking participants can file a dispute")

        try:
            reason = DisputeReason(reason)
        except ValueError as exc:
            raise ValidationException(f"Unknown dispute reason: {reason}") from exc
        if reason not in ALLOWED_DISPUTE_REASONS[filer_role]:
            raise ValidationException(
                f"Reason {reason.value} is not available to the {filer_role.value}",
                details={"allowed": sorted(r.value for r in ALLOWED_DISPUTE_REASONS[filer_role])},
            )
        explanation = (explanation or "").strip()
        if not explanation:
            raise ValidationException("An explanation is required")
        if len(explanation) > MAX_DISPUTE_EXPLANATION_LENGTH:
            raise ValidationException(
                f"Explanation must be at most {MAX_DISPUTE_EXPLANATION_LENGTH} characters"
            )
        if booking.proposed_date > current_time:
            raise ValidationException(
                "Disputes can only be filed once the event date has passed",
                details={"proposed_date": booking.proposed_date.isoformat()},
            )

        if self.dispute_repository.get_active_for_booking(booking_id) is not None:
            raise ConflictException(
                "An active dispute already exists for this booking",
                code="DISPUTE_ALREADY_OPEN",
                details={"booking_id": booking_id},
            )
        self._assert_disputable(booking)

        with self.booking_mutex(booking_id), self.transaction():
            locked = self.booking_repository.get_by_id_for_update(booking_id)
            if self.dispute_repository.get_active_for_booking(booking_id) is not None:
                raise ConflictException(
                    "An active dispute already exists for this booking",
                    code="DISPUTE_ALREADY_OPEN",
                    details={"booking_id": booking_id},
                )
            self._assert_disputable(locked)
            status_at_filing = locked.status
            if not self.booking_repository.transition_status(
                booking_id, DISPUTABLE_BOOKING_STATUSES, BookingStatus.DISPUTED
            ):
                raise ConflictException(
                    "Booking changed while filing the dispute; retry",
                    details={"booking_id": booking_id},
                )
            dispute = self.dispute_repository.create(
                booking_id=booking_id,
                disputed_by_id=filer_id,
                filer_role=filer_role.value,
                reason=reason.value,
                explanation=explanation,
                status=DisputeStatus.OPEN.value,
                booking_status_at_filing=status_at_filing,
            )

        prometheus_metrics.record_dispute_event("filed")
        self.logger.info(
            "Dispute filed",
            extra={
                "dispute_id": dispute.id,
                "booking_id": booking_id,
                "filer_role": filer_role.value,
                "reason": reason.value,
                "booking_status_at_filing": status_at_filing,
            },
        )
        if self.config_service.get_settlement_config().notify_on_dispute:
            counterpart_id = (
                booking.talent_id if filer_role is RoleName.ORGANIZER else booking.organizer_id
            )
            admins = [admin.id for admin in self.user_repository.list_active_admins()]
            self.notification_service.notify_many(
                [counterpart_id, *admins],
                NOTIFY_DISPUTE_FILED,
                {"dispute_id": dispute.id, "booking_id": booking_id, "reason": reason.value},
            )
        return dispute

    # Review and resolution

    @BaseService.measure_operation("start_review")
    def start_review(self, dispute_id: str, admin_id: str) -> Dispute:
        """Move OPEN -> UNDER_REVIEW. Already under review is a no-op."""
        self._require_admin(admin_id)
        dispute = self.get_dispute(dispute_id)
        if dispute.status == DisputeStatus.UNDER_REVIEW.value:
            return dispute
        if dispute.status != DisputeStatus.OPEN.value:
            raise InvalidStateException(
                "Dispute is already resolved", current_state=dispute.status
            )
        with self.transaction():
            self._begin_review(dispute_id, admin_id)
        prometheus_metrics.record_dispute_event("review_started")
        return self.get_dispute(dispute_id)

    @BaseService.measure_operation("resolve_dispute")
    def resolve_dispute(
        self,
        dispute_id: str,
        admin_id: str,
        resolution: DisputeResolution,
        resolution_notes: str,
        refund_amount: Optional[Decimal] = None,
        payout_amount: Optional[Decimal] = None,
    ) -> Dispute:
        """
        Resolve a dispute and reallocate the escrowed funds.

        ORGANIZER_FAVOR refunds the gross and cancels the booking. TALENT_FAVOR
        pays the talent's net share and completes it. PARTIAL takes explicit
        amounts whose sum may not exceed the gross; any escrow left over is
        recorded as a DISPUTE_ADJUSTMENT retained by the platform.

        A refund or payout already recorded for this dispute by an earlier
        attempt is reused, never repeated, and the new resolution has to
        agree with its amount.

        Raises:
            ForbiddenException: caller is not an active admin
            ValidationException: amounts inconsistent with the resolution, missing notes
            InvalidStateException: dispute already resolved, or amounts exceed escrow
            ConflictException: amounts differ from a leg an earlier attempt recorded
            GatewayException: a money leg failed; dispute and booking keep their
                open states and every leg that moved money stays on the ledger
        """
        admin = self._require_admin(admin_id)
        try:
            resolution = DisputeResolution(resolution)
        except ValueError as exc:
            raise ValidationException(f"Unknown resolution: {resolution}") from exc

        dispute = self.get_dispute(dispute_id)
        if not dispute.is_active:
            raise InvalidStateException(
                "Dispute is already resolved", current_state=dispute.status
            )
        notes = (resolution_notes or "").strip()
        if not notes:
            raise ValidationException("Resolution notes are required")
        if len(notes) > MAX_RESOLUTION_NOTES_LENGTH:
            raise ValidationException(
                f"Resolution notes must be at most {MAX_RESOLUTION_NOTES_LENGTH} characters"
            )

        booking = self._get_booking(dispute.booking_id)
        if booking.status != BookingStatus.DISPUTED.value:
            raise IntegrityViolationException(
                "Active dispute on a booking that is not DISPUTED",
                details={"dispute_id": dispute_id, "booking_status": booking.status},
            )
        # Reject bad amounts before the dispute leaves OPEN
        self._plan(resolution, booking, dispute_id, refund_amount, payout_amount)

        if dispute.status == DisputeStatus.OPEN.value:
            with self.transaction():
                self._begin_review(dispute_id, admin.id)

        with self.booking_mutex(booking.id):
            with self.transaction():
                locked_booking = self._lock_for_resolution(booking.id, dispute_id)
            plan = self._plan(resolution, locked_booking, dispute_id, refund_amount, payout_amount)
            allocation = plan.allocation

            # Prepare: resolve the payout recipient before any money moves
            recipient_id: Optional[str] = None
            if allocation.payout_amount > ZERO and not (
                plan.payout_leg is not None and plan.payout_leg.is_success
            ):
                recipient_id = self._resolve_recipient(locked_booking)

            refund_txn: Optional[Transaction] = None
            if allocation.refund_amount > ZERO:
                refund_txn = self._execute_refund(
                    locked_booking, dispute_id, allocation, plan.refund_leg
                )

            if allocation.payout_amount > ZERO:
                try:
                    self._execute_payout(
                        locked_booking, dispute_id, allocation, plan.payout_leg, recipient_id
                    )
                except GatewayException as exc:
                    if refund_txn is None:
                        raise
                    refund_id = (refund_txn.metadata_json or {}).get("refund_id")
                    self.logger.error(
                        "Dispute payout failed after refund; dispute stays under review",
                        extra={
                            "dispute_id": dispute_id,
                            "booking_id": booking.id,
                            "refund_id": refund_id,
                            "refund_reference": refund_txn.external_reference,
                            "refund_amount": str(refund_txn.amount),
                            "retryable": exc.retryable,
                        },
                    )
                    raise GatewayException(
                        "Payout leg failed after the refund was issued",
                        reference=exc.reference,
                        amount=allocation.payout_amount,
                        retryable=exc.retryable,
                        code="DISPUTE_PAYOUT_FAILED",
                        details={
                            "refund_id": refund_id,
                            "refund_reference": refund_txn.external_reference,
                            "cause": exc.message,
                        },
                    ) from exc

            resolved_at = now_utc()
            with self.transaction():
                locked_booking = self._lock_for_resolution(booking.id, dispute_id)
                if allocation.retained_amount > ZERO:
                    self.transaction_repository.create(
                        booking_id=booking.id,
                        user_id=booking.organizer_id,
                        kind=TransactionKind.DISPUTE_ADJUSTMENT.value,
                        status=TransactionStatus.SUCCESS.value,
                        amount=allocation.retained_amount,
                        currency=booking.currency,
                        description="Escrow retained after dispute",
                        metadata_json={"dispute_id": dispute_id, "retained_by": "platform"},
                    )

                if not self.dispute_repository.transition_status(
                    dispute_id,
                    [DisputeStatus.UNDER_REVIEW],
                    resolution.terminal_status,
                    resolution_notes=notes,
                    refund_amount=allocation.refund_amount,
                    payout_amount=allocation.payout_amount,
                    resolved_by_id=admin.id,
                    resolved_at=resolved_at,
                ):
                    raise InvalidStateException("Dispute changed while resolving")

                target, booking_values = self._terminal_booking_values(
                    resolution, allocation, locked_booking, admin.id, resolved_at
                )
                if not self.booking_repository.transition_status(
                    booking.id, [BookingStatus.DISPUTED], target, **booking_values
                ):
                    raise IntegrityViolationException(
                        "Booking changed while resolving its dispute",
                        details={"booking_id": booking.id},
                    )

        prometheus_metrics.record_dispute_event(f"resolved_{resolution.value.lower()}")
        self.logger.info(
            "Dispute resolved",
            extra={
                "dispute_id": dispute_id,
                "booking_id": booking.id,
                "resolution": resolution.value,
                "refund_amount": str(allocation.refund_amount),
                "payout_amount": str(allocation.payout_amount),
                "retained_amount": str(allocation.retained_amount),
                "admin_id": admin.id,
            },
        )
        self.notification_service.notify_many(
            [booking.organizer_id, booking.talent_id],
            NOTIFY_DISPUTE_RESOLVED,
            {
                "dispute_id": dispute_id,
                "booking_id": booking.id,
                "resolution": resolution.value,
                "refund_amount": str(allocation.refund_amount),
                "payout_amount": str(allocation.payout_amount),
            },
        )
        return self.get_dispute(dispute_id)

    # Helpers

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_with_details(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    def _require_admin(self, admin_id: str) -> User:
        admin = self.user_repository.get_active(admin_id)
        if admin is None or not admin.is_admin:
            raise ForbiddenException("Admin access required")
        return admin

    def _begin_review(self, dispute_id: str, admin_id: str) -> None:
        if not self.dispute_repository.transition_status(
            dispute_id,
            [DisputeStatus.OPEN],
            DisputeStatus.UNDER_REVIEW,
            reviewed_by_id=admin_id,
            review_started_at=now_utc(),
        ):
            current = self.get_dispute(dispute_id)
            if current.status != DisputeStatus.UNDER_REVIEW.value:
                raise InvalidStateException(
                    "Dispute changed before review", current_state=current.status
                )

    def _lock_for_resolution(self, booking_id: str, dispute_id: str) -> Booking:
        locked_booking = self.booking_repository.get_by_id_for_update(booking_id)
        locked_dispute = self.dispute_repository.get_by_id_for_update(dispute_id)
        if locked_dispute is None or locked_dispute.status != DisputeStatus.UNDER_REVIEW.value:
            raise InvalidStateException(
                "Dispute changed while resolving",
                current_state=locked_dispute.status if locked_dispute else None,
            )
        if locked_booking is None or locked_booking.status != BookingStatus.DISPUTED.value:
            raise IntegrityViolationException(
                "Booking left DISPUTED while its dispute was open",
                details={"booking_id": booking_id},
            )
        return locked_booking

    def _assert_disputable(self, booking: Booking) -> None:
        status = BookingStatus(booking.status)
        if status not in DISPUTABLE_BOOKING_STATUSES:
            raise InvalidStateException(
                f"Bookings in status {status.value} cannot be disputed",
                current_state=status.value,
            )
        if status is BookingStatus.COMPLETED and booking.is_paid_out:
            raise InvalidStateException(
                "The payout for this booking has already been settled",
                current_state=status.value,
                code="ALREADY_PAID_OUT",
            )
        in_flight = self.transaction_repository.list_for_booking(
            booking.id, TransactionKind.PAYOUT, TransactionStatus.PENDING
        )
        if in_flight:
            raise InvalidStateException(
                "A payout for this booking is in progress",
                current_state=status.value,
                code="PAYOUT_IN_PROGRESS",
            )

    # Money legs

    @staticmethod
    def _leg_prefix(dispute_id: str, leg: str) -> str:
        return f"{DISPUTE_REFERENCE_PREFIX}-{dispute_id}-{leg}"

    def _recorded_leg(self, dispute_id: str, leg: str) -> Optional[Transaction]:
        """Latest attempt of this leg that may have moved money (PENDING or SUCCESS)."""
        attempts = self.transaction_repository.list_by_reference_prefix(
            self._leg_prefix(dispute_id, leg)
        )
        live = [txn for txn in attempts if txn.status != TransactionStatus.FAILED.value]
        return live[-1] if live else None

    def _plan(
        self,
        resolution: DisputeResolution,
        booking: Booking,
        dispute_id: str,
        refund_amount: Optional[Any],
        payout_amount: Optional[Any],
    ) -> _Plan:
        refund_leg = self._recorded_leg(dispute_id, REFUND_LEG)
        payout_leg = self._recorded_leg(dispute_id, PAYOUT_LEG)
        # Legs this dispute already settled count towards the escrow being divided
        released = sum(
            (leg.amount for leg in (refund_leg, payout_leg) if leg is not None and leg.is_success),
            ZERO,
        )
        escrow = self.transaction_repository.escrow_balance(booking.id) + released
        allocation = self._allocate(resolution, booking, escrow, refund_amount, payout_amount)

        for label, leg, amount in (
            ("refund", refund_leg, allocation.refund_amount),
            ("payout", payout_leg, allocation.payout_amount),
        ):
            if leg is not None and leg.amount != amount:
                raise ConflictException(
                    f"A {label} of {leg.amount} was already sent to the gateway for this dispute",
                    code="DISPUTE_LEG_ALREADY_RECORDED",
                    details={
                        "reference": leg.external_reference,
                        "status": leg.status,
                        "recorded_amount": str(leg.amount),
                        f"{label}_amount": str(amount),
                    },
                )
        return _Plan(allocation, refund_leg, payout_leg)

    def _resolve_recipient(self, booking: Booking) -> str:
        talent = self.user_repository.get_by_id(booking.talent_id, load_relationships=False)
        if talent is None or not talent.payout_account_handle:
            raise ValidationException(
                "Talent has no payout account on file",
                code="PAYOUT_ACCOUNT_MISSING",
                details={"talent_id": booking.talent_id},
            )
        return self.paystack.resolve_recipient(
            talent.payout_account_handle, name=talent.name, currency=booking.currency
        )

    def _execute_refund(
        self,
        booking: Booking,
        dispute_id: str,
        allocation: _Allocation,
        recorded: Optional[Transaction],
    ) -> Transaction:
        payment = self.transaction_repository.get_successful(
            booking.id, TransactionKind.BOOKING_PAYMENT
        )
        if payment is None:
            raise IntegrityViolationException(
                "Escrow balance without a successful payment",
                details={"booking_id": booking.id},
            )

        def send(reference: str) -> Dict[str, Any]:
            refund_id = self.paystack.refund(
                reference=payment.external_reference,
                amount=allocation.refund_amount,
                idempotency_key=reference,
            )
            return {"refund_id": refund_id}

        return self._run_leg(
            booking,
            dispute_id,
            REFUND_LEG,
            TransactionKind.REFUND,
            allocation.refund_amount,
            booking.organizer_id,
            "Dispute refund",
            recorded,
            send,
        )

    def _execute_payout(
        self,
        booking: Booking,
        dispute_id: str,
        allocation: _Allocation,
        recorded: Optional[Transaction],
        recipient_id: Optional[str],
    ) -> Transaction:
        def send(reference: str) -> Dict[str, Any]:
            if recipient_id is None:
                raise IntegrityViolationException(
                    "Payout leg reached the gateway without a recipient",
                    details={"dispute_id": dispute_id},
                )
            transfer = self.paystack.transfer(
                recipient_id=recipient_id,
                amount=allocation.payout_amount,
                reference=reference,
                currency=booking.currency,
                reason=f"Dispute {dispute_id} settlement",
            )
            return {"transfer_id": transfer.transfer_id, "recipient_id": recipient_id}

        return self._run_leg(
            booking,
            dispute_id,
            PAYOUT_LEG,
            TransactionKind.PAYOUT,
            allocation.payout_amount,
            booking.talent_id,
            "Dispute payout",
            recorded,
            send,
        )

    def _run_leg(
        self,
        booking: Booking,
        dispute_id: str,
        leg: str,
        kind: TransactionKind,
        amount: Decimal,
        user_id: str,
        description: str,
        recorded: Optional[Transaction],
        send: Callable[[str], Dict[str, Any]],
    ) -> Transaction:
        """
        Move one leg's money behind a committed ledger row.

        A SUCCESS attempt is returned as is. A PENDING attempt (timeout) is
        retried with its own reference so the gateway collapses it. Otherwise
        a new attempt row is committed first. Retryable failures leave the
        row PENDING; definitive ones mark it FAILED.
        """
        if recorded is not None and recorded.is_success:
            return recorded

        attempt = recorded
        if attempt is None:
            prefix = self._leg_prefix(dispute_id, leg)
            attempt_no = len(self.transaction_repository.list_by_reference_prefix(prefix)) + 1
            with self.transaction():
                attempt = self.transaction_repository.create(
                    booking_id=booking.id,
                    user_id=user_id,
                    kind=kind.value,
                    status=TransactionStatus.PENDING.value,
                    amount=amount,
                    currency=booking.currency,
                    external_reference=prefix if attempt_no == 1 else f"{prefix}-{attempt_no}",
                    description=description,
                    metadata_json={"dispute_id": dispute_id},
                )

        try:
            gateway_metadata = send(attempt.external_reference)
        except GatewayException as exc:
            if not exc.retryable:
                with self.transaction():
                    self.transaction_repository.mark_status(
                        attempt, TransactionStatus.FAILED, metadata={"error": exc.message}
                    )
            self.logger.warning(
                "Dispute money leg failed",
                extra={
                    "dispute_id": dispute_id,
                    "leg": leg,
                    "reference": attempt.external_reference,
                    "amount": str(amount),
                    "retryable": exc.retryable,
                    "error": exc.message,
                },
            )
            raise

        with self.transaction():
            swapped = self.transaction_repository.mark_status(
                attempt, TransactionStatus.SUCCESS, metadata=gateway_metadata
            )
            if not swapped and attempt.status != TransactionStatus.SUCCESS.value:
                raise IntegrityViolationException(
                    "Dispute leg was closed by another writer",
                    details={"reference": attempt.external_reference},
                )
        return attempt

    def _allocate(
        self,
        resolution: DisputeResolution,
        booking: Booking,
        escrow: Decimal,
        refund_amount: Optional[Any],
        payout_amount: Optional[Any],
    ) -> _Allocation:
        refund = to_money(refund_amount, "refund_amount") if refund_amount is not None else None
        payout = to_money(payout_amount, "payout_amount") if payout_amount is not None else None
        for name, value in (("refund_amount", refund), ("payout_amount", payout)):
            if value is not None and value < ZERO:
                raise ValidationException(f"{name} cannot be negative")

        gross = booking.gross_amount
        supplied_positive = any(value is not None and value > ZERO for value in (refund, payout))

        if resolution is DisputeResolution.ORGANIZER_FAVOR:
            if refund is not None and refund != gross:
                raise ValidationException(
                    "Organizer-favor resolutions refund the full gross amount",
                    details={"required_refund_amount": str(gross)},
                )
            if payout is not None and payout != ZERO:
                raise ValidationException("Organizer-favor resolutions pay the talent nothing")
            if escrow <= ZERO:
                if supplied_positive:
                    raise InvalidStateException(
                        "No funds were collected for this booking; nothing to refund"
                    )
                return _Allocation(ZERO, ZERO, ZERO)
            refund, payout = gross, ZERO
        elif resolution is DisputeResolution.TALENT_FAVOR:
            if payout is not None and payout != booking.talent_amount:
                raise ValidationException(
                    "Talent-favor resolutions pay the talent's net amount",
                    details={"required_payout_amount": str(booking.talent_amount)},
                )
            if refund is not None and refund != ZERO:
                raise ValidationException("Talent-favor resolutions refund nothing")
            refund, payout = ZERO, booking.talent_amount
        else:
            if refund is None or payout is None:
                raise ValidationException(
                    "Partial resolutions require both refund_amount and payout_amount"
                )
            if refund + payout > gross:
                raise ValidationException(
                    "refund_amount + payout_amount cannot exceed the gross amount",
                    details={
                        "refund_amount": str(refund),
                        "payout_amount": str(payout),
                        "gross_amount": str(gross),
                    },
                )

        if escrow <= ZERO and refund + payout > ZERO:
            raise InvalidStateException(
                "No funds were collected for this booking; nothing to allocate"
            )
        if refund + payout > escrow:
            raise InvalidStateException(
                "Allocation exceeds the funds held in escrow",
                details={"escrow_balance": str(escrow)},
            )
        return _Allocation(refund, payout, escrow - refund - payout)

    @staticmethod
    def _terminal_booking_values(
        resolution: DisputeResolution,
        allocation: _Allocation,
        booking: Booking,
        admin_id: str,
        resolved_at: datetime,
    ) -> Tuple[BookingStatus, Dict[str, Any]]:
        if resolution is DisputeResolution.ORGANIZER_FAVOR:
            return BookingStatus.CANCELLED, {
                "cancelled_at": resolved_at,
                "cancelled_by_id": admin_id,
                "cancellation_reason": "Dispute resolved in the organizer's favor",
                "is_paid_out": False,
            }
        paid_out = allocation.payout_amount > ZERO
        values: Dict[str, Any] = {
            "completed_at": booking.completed_at or resolved_at,
            "is_paid_out": paid_out,
        }
        if paid_out:
            values["paid_out_at"] = resolved_at
        return BookingStatus.COMPLETED, values
