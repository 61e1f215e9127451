from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from eventtalent.core.constants import can_transition
from eventtalent.core.enums import (
    BookingDecision,
    BookingStatus,
    RoleName,
    TransactionKind,
    TransactionStatus,
)
from eventtalent.core.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from eventtalent.integrations import PaystackError
from eventtalent.models.transaction import Transaction
from eventtalent.schemas.booking import BookingOrganizerView, BookingTalentView, EventSpec


def _payments(db, booking_id):
    return (
        db.query(Transaction)
        .filter(
            Transaction.booking_id == booking_id,
            Transaction.kind == TransactionKind.BOOKING_PAYMENT.value,
        )
        .all()
    )


class TestCreateBooking:
    def test_snapshots_fee_split_and_creates_payment_placeholder(self, db, flow, notifier, talent):
        booking = flow.pending("10000.00")

        assert booking.status == BookingStatus.PENDING.value
        assert booking.gross_amount == Decimal("10000.00")
        assert booking.platform_fee_amount == Decimal("1000.00")
        assert booking.talent_amount == Decimal("9000.00")
        assert booking.currency == "KES"
        assert booking.proposed_date == booking.event.starts_at

        payments = _payments(db, booking.id)
        assert len(payments) == 1
        assert payments[0].status == TransactionStatus.PENDING.value
        assert payments[0].amount == Decimal("10000.00")
        assert payments[0].external_reference is None
        assert "booking_requested" in notifier.sent_to(talent.id)

    def test_reuses_existing_event_owned_by_organizer(self, booking_service, flow, organizer, talent):
        first = flow.pending()
        second = booking_service.create_booking(
            organizer.id, talent.id, EventSpec(event_id=first.event_id), Decimal("500.00")
        )

        assert second.event_id == first.event_id

    def test_rejects_event_owned_by_someone_else(self, booking_service, flow, outsider, talent):
        booking = flow.pending()

        with pytest.raises(NotFoundException):
            booking_service.create_booking(
                outsider.id, talent.id, EventSpec(event_id=booking.event_id), Decimal("500.00")
            )

    def test_rejects_unavailable_talent(self, booking_service, availability, flow, organizer, talent):
        availability.unavailable_talent.add(talent.id)

        with pytest.raises(ConflictException) as exc_info:
            booking_service.create_booking(
                organizer.id, talent.id, flow.event_spec(), Decimal("100.00")
            )
        assert exc_info.value.code == "TALENT_UNAVAILABLE"

    def test_rejects_event_in_the_past(self, booking_service, organizer, talent):
        starts_at = datetime.now(timezone.utc) - timedelta(days=1)
        spec = EventSpec(title="Old gig", starts_at=starts_at, ends_at=starts_at + timedelta(hours=2))

        with pytest.raises(ValidationException):
            booking_service.create_booking(organizer.id, talent.id, spec, Decimal("100.00"))

    def test_rejects_new_event_without_times_even_when_unvalidated(
        self, booking_service, organizer, talent
    ):
        # Callers inside the engine can hand over an EventSpec that skipped validation
        spec = EventSpec.model_construct(title="Pop-up", starts_at=None, ends_at=None, event_id=None)

        with pytest.raises(ValidationException):
            booking_service.create_booking(organizer.id, talent.id, spec, Decimal("100.00"))

    def test_rejects_non_positive_amount(self, booking_service, flow, organizer, talent):
        with pytest.raises(ValidationException):
            booking_service.create_booking(organizer.id, talent.id, flow.event_spec(), Decimal("0"))

    def test_rejects_inactive_talent(self, booking_service, flow, make_user, organizer):
        inactive = make_user(RoleName.TALENT, is_active=False)

        with pytest.raises(NotFoundException):
            booking_service.create_booking(
                organizer.id, inactive.id, flow.event_spec(), Decimal("100.00")
            )

    def test_talent_cannot_create_bookings(self, booking_service, flow, talent, make_user):
        other_talent = make_user(RoleName.TALENT)

        with pytest.raises(NotFoundException):
            booking_service.create_booking(
                talent.id, other_talent.id, flow.event_spec(), Decimal("100.00")
            )


class TestRespondAndCancel:
    def test_accept_moves_to_accepted(self, booking_service, flow, talent, organizer, notifier):
        booking = flow.pending()

        accepted = booking_service.respond_to_booking(booking.id, talent.id, BookingDecision.ACCEPTED)

        assert accepted.status == BookingStatus.ACCEPTED.value
        assert accepted.accepted_at is not None
        assert "booking_accepted" in notifier.sent_to(organizer.id)

    def test_decline_voids_the_payment_placeholder(self, db, booking_service, flow, talent):
        booking = flow.pending()

        declined = booking_service.respond_to_booking(booking.id, talent.id, BookingDecision.DECLINED)

        assert declined.status == BookingStatus.DECLINED.value
        assert [p.status for p in _payments(db, booking.id)] == [TransactionStatus.FAILED.value]

    def test_only_the_booked_talent_may_respond(self, booking_service, flow, make_user):
        booking = flow.pending()
        stranger = make_user(RoleName.TALENT)

        with pytest.raises(ValidationException):
            booking_service.respond_to_booking(booking.id, stranger.id, BookingDecision.ACCEPTED)

    def test_cannot_respond_twice(self, booking_service, flow, talent):
        booking = flow.accepted()

        with pytest.raises(InvalidStateException):
            booking_service.respond_to_booking(booking.id, talent.id, BookingDecision.DECLINED)

    def test_cancel_accepted_booking(self, booking_service, flow, organizer, talent, notifier):
        booking = flow.accepted()

        cancelled = booking_service.cancel_booking(booking.id, organizer.id, "  venue closed ")

        assert cancelled.status == BookingStatus.CANCELLED.value
        assert cancelled.cancelled_by_id == organizer.id
        assert cancelled.cancellation_reason == "venue closed"
        assert "booking_cancelled" in notifier.sent_to(talent.id)

    def test_cannot_cancel_paid_booking(self, booking_service, flow, organizer):
        booking = flow.paid()

        with pytest.raises(InvalidStateException):
            booking_service.cancel_booking(booking.id, organizer.id)

    def test_only_organizer_can_cancel(self, booking_service, flow, talent):
        booking = flow.pending()

        with pytest.raises(ValidationException):
            booking_service.cancel_booking(booking.id, talent.id)


class TestCompletion:
    def test_completion_settles_payout(self, booking_service, flow, organizer, talent, notifier):
        booking = flow.paid()

        completed = booking_service.mark_completed(
            booking.id, organizer.id, now=flow.after_event(booking)
        )

        assert completed.status == BookingStatus.COMPLETED.value
        assert completed.completed_at is not None
        assert completed.is_paid_out is True
        assert "payout_sent" in notifier.sent_to(talent.id)

    def test_cannot_complete_before_event_ends(self, booking_service, flow, organizer):
        booking = flow.paid()

        with pytest.raises(InvalidStateException):
            booking_service.mark_completed(booking.id, organizer.id)

    def test_cannot_complete_unpaid_booking(self, booking_service, flow, organizer):
        booking = flow.accepted()

        with pytest.raises(InvalidStateException):
            booking_service.mark_completed(
                booking.id, organizer.id, now=flow.after_event(booking)
            )

    def test_completing_again_is_a_no_op(self, booking_service, flow, organizer, paystack):
        booking = flow.completed()
        transfers_before = len(paystack.transfers)

        again = booking_service.mark_completed(
            booking.id, organizer.id, now=flow.after_event(booking)
        )

        assert again.status == BookingStatus.COMPLETED.value
        assert len(paystack.transfers) == transfers_before

    def test_retryable_payout_failure_queues_a_retry(
        self, booking_service, flow, organizer, paystack, payout_retries
    ):
        booking = flow.paid()
        paystack.transfer_error = PaystackError("bank timeout")

        with pytest.raises(PaystackError):
            booking_service.mark_completed(booking.id, organizer.id, now=flow.after_event(booking))

        assert payout_retries == [booking.id]
        assert booking_service.get_booking(booking.id).status == BookingStatus.COMPLETED.value

    def test_rejected_payout_is_not_queued(self, booking_service, flow, organizer, paystack, payout_retries):
        booking = flow.paid()
        paystack.transfer_error = PaystackError("account closed", retryable=False)

        with pytest.raises(PaystackError):
            booking_service.mark_completed(booking.id, organizer.id, now=flow.after_event(booking))

        assert payout_retries == []

    def test_broken_scheduler_still_surfaces_the_gateway_error(
        self, booking_service, flow, organizer, paystack
    ):
        def broken_scheduler(booking_id):
            raise ConnectionError("broker down")

        booking_service.payout_retry_scheduler = broken_scheduler
        booking = flow.paid()
        paystack.transfer_error = PaystackError("bank timeout")

        with pytest.raises(PaystackError):
            booking_service.mark_completed(booking.id, organizer.id, now=flow.after_event(booking))

    def test_complete_due_bookings_sweep(self, booking_service, flow):
        due = flow.paid()
        not_due = flow.accepted()

        result = booking_service.complete_due_bookings(now=flow.after_event(due))

        assert result.examined == 1
        assert result.completed == 1
        assert result.failed == 0
        assert booking_service.get_booking(due.id).status == BookingStatus.COMPLETED.value
        assert booking_service.get_booking(not_due.id).status == BookingStatus.ACCEPTED.value


class TestViews:
    def test_each_party_gets_its_own_projection(self, booking_service, flow, organizer, talent, outsider):
        booking = flow.pending()

        organizer_view = booking_service.get_booking_for_viewer(booking.id, organizer)
        talent_view = booking_service.get_booking_for_viewer(booking.id, talent)

        assert isinstance(organizer_view, BookingOrganizerView)
        assert organizer_view.gross_amount == Decimal("10000.00")
        assert isinstance(talent_view, BookingTalentView)
        assert talent_view.talent_amount == Decimal("9000.00")
        assert not hasattr(talent_view, "gross_amount")
        with pytest.raises(ForbiddenException):
            booking_service.get_booking_for_viewer(booking.id, outsider)


@pytest.mark.parametrize(
    "current, target, allowed",
    [
        (BookingStatus.PENDING, BookingStatus.ACCEPTED, True),
        (BookingStatus.ACCEPTED, BookingStatus.PAID, True),
        (BookingStatus.PAID, BookingStatus.COMPLETED, True),
        (BookingStatus.COMPLETED, BookingStatus.DISPUTED, True),
        (BookingStatus.DISPUTED, BookingStatus.CANCELLED, True),
        (BookingStatus.PAID, BookingStatus.CANCELLED, False),
        (BookingStatus.DECLINED, BookingStatus.ACCEPTED, False),
        (BookingStatus.CANCELLED, BookingStatus.PENDING, False),
        (BookingStatus.PENDING, BookingStatus.PAID, False),
    ],
)
def test_booking_transition_table(current, target, allowed):
    assert can_transition(current, target) is allowed
