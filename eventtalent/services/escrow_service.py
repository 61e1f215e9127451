# eventtalent/services/escrow_service.py
"""
Escrow & Settlement Service for the EventTalent engine.

Moves a booking from "payment requested" to "funds held" to "funds
released", exactly once, no matter how many gateway signals report success.

The payment reference (Transaction.external_reference) is the idempotency
key. A gateway webhook and a browser redirect may both confirm the same
reference; a compare-and-swap on the transaction status lets exactly one of
them perform PENDING -> SUCCESS while the other observes SUCCESS and returns.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import (
    NOTIFY_PAYMENT_CONFIRMED,
    NOTIFY_PAYOUT_SENT,
    PAYMENT_REFERENCE_PREFIX,
    PAYOUT_REFERENCE_PREFIX,
)
from ..core.enums import (
    BookingStatus,
    PaymentSource,
    TransactionKind,
    TransactionStatus,
    WebhookStatus,
)
from ..core.exceptions import (
    ConflictException,
    DomainException,
    GatewayException,
    IntegrityViolationException,
    InvalidStateException,
    NotFoundException,
    RepositoryException,
    SecurityException,
    ValidationException,
)
from ..core.ulid_helper import generate_ulid
from ..integrations.paystack_client import PaystackClient
from ..models.booking import Booking
from ..models.transaction import Transaction
from ..models.types import now_utc
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.payment import (
    CheckoutSession,
    PaymentConfirmation,
    PaystackWebhookPayload,
    PayoutSweepResult,
    WebhookAck,
)
from .base import BaseService
from .config_service import ConfigService
from .notification_service import NotificationService

CHARGE_SUCCESS_EVENT = "charge.success"
WEBHOOK_SOURCE = "paystack"


class EscrowService(BaseService):
    """Payment collection, idempotent confirmation and payout settlement."""

    def __init__(
        self,
        db: Session,
        paystack: PaystackClient,
        notification_service: NotificationService,
        config_service: Optional[ConfigService] = None,
    ) -> None:
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.transaction_repository = RepositoryFactory.create_transaction_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.webhook_repository = RepositoryFactory.create_webhook_event_repository(db)
        self.dispute_repository = RepositoryFactory.create_dispute_repository(db)
        self.paystack = paystack
        self.notification_service = notification_service
        self.config_service = config_service or ConfigService(db)

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_with_details(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    # Payment collection

    @BaseService.measure_operation("initiate_payment")
    def initiate_payment(self, booking_id: str, actor_id: Optional[str] = None) -> CheckoutSession:
        """
        Open a gateway checkout for an ACCEPTED booking.

        The placeholder payment row created with the booking receives the new
        reference. Later attempts get their own PENDING row so a slow
        confirmation of an earlier checkout is still recognised.

        Raises:
            ValidationException: actor is not the booking's organizer
            InvalidStateException: booking is not ACCEPTED
            GatewayException: checkout could not be opened (nothing written)
        """
        booking = self._get_booking(booking_id)
        if actor_id is not None and booking.organizer_id != actor_id:
            raise ValidationException("You don't have permission to pay for this booking")
        if booking.status != BookingStatus.ACCEPTED.value:
            raise InvalidStateException(
                "Payment can only be initiated for accepted bookings",
                current_state=booking.status,
            )
        organizer = self.user_repository.get_by_id(booking.organizer_id, load_relationships=False)
        if organizer is None:
            raise NotFoundException("Organizer not found", details={"booking_id": booking_id})

        reference = f"{PAYMENT_REFERENCE_PREFIX}-{booking.id}-{generate_ulid()[-12:]}"

        # External call first; nothing is written if the gateway refuses
        handle = self.paystack.initialize_checkout(
            amount=booking.gross_amount,
            currency=booking.currency,
            reference=reference,
            callback_url=settings.payment_callback_url,
            email=organizer.email,
            metadata={"booking_id": booking.id, "organizer_id": booking.organizer_id},
        )

        with self.booking_mutex(booking_id), self.transaction():
            locked = self.booking_repository.get_by_id_for_update(booking_id)
            if locked is None or locked.status != BookingStatus.ACCEPTED.value:
                raise InvalidStateException(
                    "Booking changed while opening checkout",
                    current_state=locked.status if locked else None,
                )
            placeholder = self.transaction_repository.get_payment_placeholder(booking_id)
            if placeholder is not None and placeholder.external_reference is None:
                placeholder.external_reference = reference
                placeholder.description = "Booking payment"
                self.transaction_repository.flush()
            else:
                self.transaction_repository.create(
                    booking_id=booking.id,
                    user_id=booking.organizer_id,
                    kind=TransactionKind.BOOKING_PAYMENT.value,
                    status=TransactionStatus.PENDING.value,
                    amount=booking.gross_amount,
                    currency=booking.currency,
                    external_reference=reference,
                    description="Booking payment (retry)",
                )

        self.logger.info(
            "Checkout initiated",
            extra={
                "booking_id": booking_id,
                "reference": reference,
                "amount": str(booking.gross_amount),
            },
        )
        return CheckoutSession(
            reference=handle.reference,
            authorization_url=handle.authorization_url,
            access_code=handle.access_code,
        )

    @BaseService.measure_operation("confirm_payment")
    def confirm_payment(self, reference: str, source: PaymentSource) -> PaymentConfirmation:
        """
        Confirm a payment reported by the gateway callback or the user redirect.

        Safe to call any number of times from either channel: only the caller
        that wins the PENDING -> SUCCESS swap moves the booking to PAID.

        Raises:
            NotFoundException: unknown reference
            SecurityException: verified amount or currency differs from the booking
            GatewayException: gateway does not report the charge as successful
            ConflictException: booking was already paid through another reference
        """
        source = PaymentSource(source)
        txn = self.transaction_repository.get_by_reference(reference)
        if txn is None:
            raise NotFoundException("Unknown payment reference", details={"reference": reference})
        if txn.kind != TransactionKind.BOOKING_PAYMENT.value:
            raise ValidationException(
                "Reference does not belong to a booking payment",
                details={"reference": reference},
            )
        booking = self._get_booking(txn.booking_id)

        # Idempotent short-circuit
        if txn.status == TransactionStatus.SUCCESS.value:
            prometheus_metrics.record_payment_confirmation(source.value, "duplicate")
            return PaymentConfirmation(transaction=txn, booking=booking, already_processed=True)
        if txn.status == TransactionStatus.FAILED.value:
            raise InvalidStateException(
                "Payment attempt is no longer open",
                current_state=txn.status,
                details={"reference": reference},
            )

        verified = self.paystack.verify_transaction(reference)
        if not verified.succeeded:
            prometheus_metrics.record_payment_confirmation(source.value, "not_successful")
            raise GatewayException(
                f"Gateway reports payment status '{verified.status}'",
                reference=reference,
                amount=txn.amount,
                retryable=False,
                code="PAYMENT_NOT_SUCCESSFUL",
            )
        if (
            verified.amount != booking.gross_amount
            or verified.amount != txn.amount
            or verified.currency.upper() != booking.currency.upper()
        ):
            self.logger.error(
                "Payment verification mismatch",
                extra={
                    "booking_id": booking.id,
                    "reference": reference,
                    "expected_amount": str(booking.gross_amount),
                    "verified_amount": str(verified.amount),
                    "expected_currency": booking.currency,
                    "verified_currency": verified.currency,
                    "source": source.value,
                },
            )
            prometheus_metrics.record_payment_confirmation(source.value, "mismatch")
            raise SecurityException(
                "Verified payment does not match the booking",
                code="PAYMENT_MISMATCH",
                details={"reference": reference},
            )

        already_processed = False
        with self.booking_mutex(booking.id), self.transaction():
            locked = self.transaction_repository.get_by_reference(reference, for_update=True)
            if locked is None:
                raise IntegrityViolationException(
                    "Payment row disappeared during confirmation",
                    details={"reference": reference},
                )
            if locked.status == TransactionStatus.SUCCESS.value:
                already_processed = True
            else:
                other = self.transaction_repository.get_successful(
                    booking.id, TransactionKind.BOOKING_PAYMENT
                )
                if other is not None and other.id != locked.id:
                    self.logger.error(
                        "Booking already paid through another reference",
                        extra={
                            "booking_id": booking.id,
                            "reference": reference,
                            "paid_reference": other.external_reference,
                        },
                    )
                    raise ConflictException(
                        "Booking was already paid through another checkout",
                        code="DUPLICATE_PAYMENT",
                        details={"reference": reference, "booking_id": booking.id},
                    )
                swapped = self.transaction_repository.mark_status(
                    locked,
                    TransactionStatus.SUCCESS,
                    metadata={
                        "source": source.value,
                        "gateway_transaction_id": verified.gateway_transaction_id,
                    },
                )
                if not swapped:
                    already_processed = True
                elif not self.booking_repository.transition_status(
                    booking.id,
                    [BookingStatus.ACCEPTED],
                    BookingStatus.PAID,
                    paid_at=now_utc(),
                ):
                    # Money is held either way; the ledger row must reflect it
                    self.logger.error(
                        "Payment captured for booking outside ACCEPTED; admin follow-up required",
                        extra={
                            "booking_id": booking.id,
                            "reference": reference,
                            "booking_status": self._get_booking(booking.id).status,
                        },
                    )

        booking = self._get_booking(booking.id)
        txn = self.transaction_repository.get_by_reference(reference) or txn
        if already_processed:
            prometheus_metrics.record_payment_confirmation(source.value, "duplicate")
            return PaymentConfirmation(transaction=txn, booking=booking, already_processed=True)

        prometheus_metrics.record_payment_confirmation(source.value, "confirmed")
        self.logger.info(
            "Payment confirmed",
            extra={
                "booking_id": booking.id,
                "reference": reference,
                "amount": str(txn.amount),
                "source": source.value,
            },
        )
        if self.config_service.get_settlement_config().notify_on_payment:
            self.notification_service.notify_many(
                [booking.organizer_id, booking.talent_id],
                NOTIFY_PAYMENT_CONFIRMED,
                {"booking_id": booking.id, "reference": reference, "amount": str(txn.amount)},
            )
        return PaymentConfirmation(transaction=txn, booking=booking, already_processed=False)

    def handle_redirect(self, reference: str) -> PaymentConfirmation:
        return self.confirm_payment(reference, PaymentSource.USER_REDIRECT)

    @BaseService.measure_operation("handle_webhook")
    def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> WebhookAck:
        """
        Gateway callback entry point.

        The signature is checked against the raw body before anything is
        parsed or stored. Every authentic delivery lands in the webhook ledger.
        """
        if not self.paystack.verify_webhook_signature(raw_body, signature):
            self.logger.error("Rejected webhook with invalid signature")
            raise SecurityException("Invalid webhook signature", code="INVALID_SIGNATURE")
        try:
            payload = PaystackWebhookPayload.model_validate_json(raw_body)
        except ValidationError as exc:
            raise ValidationException("Malformed webhook payload") from exc

        started_at = now_utc()
        with self.transaction():
            event = self.webhook_repository.record_received(
                source=WEBHOOK_SOURCE,
                event_type=payload.event,
                payload=payload.model_dump(mode="json"),
                reference=payload.reference,
            )

        if payload.event != CHARGE_SUCCESS_EVENT or not payload.reference:
            with self.transaction():
                self.webhook_repository.mark_outcome(
                    event, WebhookStatus.IGNORED, started_at=started_at
                )
            return WebhookAck(status=WebhookStatus.IGNORED.value, event=payload.event)

        try:
            confirmation = self.confirm_payment(payload.reference, PaymentSource.GATEWAY_CALLBACK)
        except DomainException as exc:
            with self.transaction():
                self.webhook_repository.mark_outcome(
                    event,
                    WebhookStatus.FAILED,
                    error=f"{exc.code}: {exc.message}",
                    started_at=started_at,
                )
            raise

        with self.transaction():
            self.webhook_repository.mark_outcome(
                event,
                WebhookStatus.PROCESSED,
                related_entity_type="booking",
                related_entity_id=confirmation.booking.id,
                started_at=started_at,
            )
        return WebhookAck(status=WebhookStatus.PROCESSED.value, event=payload.event)

    # Settlement

    @BaseService.measure_operation("settle_payout")
    def settle_payout(self, booking_id: str) -> Transaction:
        """
        Release the talent's share of a COMPLETED booking.

        Re-checks ``is_paid_out`` under the booking lock before touching the
        gateway. A PENDING attempt left by a timeout is retried with its own
        reference so the gateway collapses the duplicate.

        Returns:
            The SUCCESS payout transaction

        Raises:
            InvalidStateException: booking is DISPUTED or not COMPLETED
            ValidationException: talent has no payout account, or amount below the floor
            GatewayException: transfer failed (``retryable`` tells the caller what to do)
        """
        booking = self._get_booking(booking_id)
        if booking.status == BookingStatus.DISPUTED.value:
            raise InvalidStateException(
                "Payout is frozen while the booking is disputed", current_state=booking.status
            )
        if booking.status != BookingStatus.COMPLETED.value:
            raise InvalidStateException(
                "Only completed bookings can be paid out", current_state=booking.status
            )
        if booking.is_paid_out:
            return self._existing_payout(booking_id)
        if self.is_settled_by_dispute(booking_id):
            raise InvalidStateException(
                "Escrow was already released by a dispute resolution",
                current_state=booking.status,
                details={"booking_id": booking_id},
            )

        talent = self.user_repository.get_by_id(booking.talent_id, load_relationships=False)
        if talent is None or not talent.payout_account_handle:
            raise ValidationException(
                "Talent has no payout account on file",
                code="PAYOUT_ACCOUNT_MISSING",
                details={"booking_id": booking_id, "talent_id": booking.talent_id},
            )
        config = self.config_service.get_settlement_config()
        if booking.talent_amount < config.min_payout_amount:
            raise ValidationException(
                "Payout amount is below the minimum payout",
                details={
                    "amount": str(booking.talent_amount),
                    "min_payout_amount": str(config.min_payout_amount),
                },
            )

        with self.booking_mutex(booking_id):
            # PHASE 1: reserve the attempt row under the lock
            attempt: Optional[Transaction] = None
            with self.transaction():
                locked = self.booking_repository.get_by_id_for_update(booking_id)
                if locked is None or locked.status != BookingStatus.COMPLETED.value:
                    raise InvalidStateException(
                        "Booking changed before payout",
                        current_state=locked.status if locked else None,
                    )
                if not locked.is_paid_out:
                    existing = self.transaction_repository.get_successful(
                        booking_id, TransactionKind.PAYOUT
                    )
                    if existing is not None:
                        # Transfer succeeded but the flag write was lost
                        self.booking_repository.mark_paid_out(booking_id, now_utc())
                        self.logger.warning(
                            "Repaired is_paid_out from existing payout",
                            extra={"booking_id": booking_id, "transaction_id": existing.id},
                        )
                    else:
                        attempt = self._reserve_payout_attempt(locked)
            if attempt is None:
                return self._existing_payout(booking_id)

            # PHASE 2: gateway calls with no transaction open
            try:
                recipient_id = self.paystack.resolve_recipient(
                    talent.payout_account_handle, name=talent.name, currency=booking.currency
                )
                result = self.paystack.transfer(
                    recipient_id=recipient_id,
                    amount=attempt.amount,
                    reference=attempt.external_reference,
                    currency=attempt.currency,
                    reason=f"Payout for booking {booking_id}",
                )
            except GatewayException as exc:
                if exc.retryable:
                    self.logger.warning(
                        "Payout transfer failed; attempt left pending for retry",
                        extra={
                            "booking_id": booking_id,
                            "reference": attempt.external_reference,
                            "amount": str(attempt.amount),
                            "error": exc.message,
                        },
                    )
                    prometheus_metrics.record_payout("retryable_failure")
                    raise
                with self.transaction():
                    self.transaction_repository.mark_status(
                        attempt, TransactionStatus.FAILED, metadata={"error": exc.message}
                    )
                self.logger.error(
                    "Payout transfer rejected",
                    extra={
                        "booking_id": booking_id,
                        "reference": attempt.external_reference,
                        "error": exc.message,
                    },
                )
                prometheus_metrics.record_payout("failed")
                raise

            # PHASE 3: record the outcome
            with self.transaction():
                swapped = self.transaction_repository.mark_status(
                    attempt,
                    TransactionStatus.SUCCESS,
                    metadata={"transfer_id": result.transfer_id, "recipient_id": recipient_id},
                )
                if not swapped and attempt.status != TransactionStatus.SUCCESS.value:
                    raise IntegrityViolationException(
                        "Payout attempt was closed by another writer",
                        details={"reference": attempt.external_reference},
                    )
                self.booking_repository.mark_paid_out(booking_id, now_utc())

        prometheus_metrics.record_payout("success")
        self.logger.info(
            "Payout settled",
            extra={
                "booking_id": booking_id,
                "reference": attempt.external_reference,
                "amount": str(attempt.amount),
                "transfer_id": result.transfer_id,
            },
        )
        self.notification_service.notify(
            booking.talent_id,
            NOTIFY_PAYOUT_SENT,
            {"booking_id": booking_id, "amount": str(attempt.amount)},
        )
        return attempt

    @BaseService.measure_operation("retry_failed_payouts")
    def retry_failed_payouts(self) -> PayoutSweepResult:
        """Scheduled: settle COMPLETED bookings whose payout has not gone through."""
        candidates = [booking.id for booking in self.booking_repository.list_unsettled_completed()]
        settled = failed = skipped = 0
        for booking_id in candidates:
            try:
                self.settle_payout(booking_id)
                settled += 1
            except (ValidationException, InvalidStateException) as exc:
                skipped += 1
                self.logger.info(
                    "Payout skipped", extra={"booking_id": booking_id, "reason": exc.message}
                )
            except (DomainException, RepositoryException) as exc:
                failed += 1
                self.logger.warning(
                    "Payout retry failed",
                    extra={
                        "booking_id": booking_id,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
        result = PayoutSweepResult(
            examined=len(candidates), settled=settled, failed=failed, skipped=skipped
        )
        self.logger.info("Payout retry sweep finished", extra=result.model_dump())
        return result

    def get_escrow_balance(self, booking_id: str) -> Decimal:
        return self.transaction_repository.escrow_balance(booking_id)

    def is_settled_by_dispute(self, booking_id: str) -> bool:
        """True when a resolved dispute already decided where the escrow went."""
        return any(
            dispute.resolved_at is not None
            for dispute in self.dispute_repository.list_for_booking(booking_id)
        )

    # Helpers

    def _existing_payout(self, booking_id: str) -> Transaction:
        payout = self.transaction_repository.get_successful(booking_id, TransactionKind.PAYOUT)
        if payout is None:
            raise IntegrityViolationException(
                "Booking is marked paid out but has no successful payout",
                details={"booking_id": booking_id},
            )
        return payout

    def _reserve_payout_attempt(self, booking: Booking) -> Transaction:
        pending = self.transaction_repository.list_for_booking(
            booking.id, TransactionKind.PAYOUT, TransactionStatus.PENDING
        )
        if pending:
            return pending[0]
        attempt_no = self.transaction_repository.count_attempts(booking.id, TransactionKind.PAYOUT) + 1
        return self.transaction_repository.create(
            booking_id=booking.id,
            user_id=booking.talent_id,
            kind=TransactionKind.PAYOUT.value,
            status=TransactionStatus.PENDING.value,
            amount=booking.talent_amount,
            currency=booking.currency,
            external_reference=f"{PAYOUT_REFERENCE_PREFIX}-{booking.id}-{attempt_no}",
            description="Talent payout",
        )
