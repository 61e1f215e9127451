"""Two requests racing for the same booking through the Redis mutex."""

from __future__ import annotations

import pytest

from eventtalent.core import booking_lock
from eventtalent.core.config import settings
from eventtalent.core.enums import BookingStatus, PaymentSource, TransactionKind, TransactionStatus
from eventtalent.core.exceptions import ConflictException
from eventtalent.models.transaction import Transaction


def _hold_lock(lock_redis, booking_id: str, token: str = "other-worker") -> str:
    key = booking_lock._lock_key(booking_id)
    lock_redis.values[key] = token
    return key


def _while_waiting(monkeypatch, competing_call):
    """The first poll sleep lets the current holder finish its own request, then frees the key."""
    calls = {"n": 0}

    def _sleep(seconds):
        calls["n"] += 1
        if calls["n"] == 1:
            competing_call()

    monkeypatch.setattr(booking_lock.time, "sleep", _sleep)
    return calls


def test_redirect_waits_for_callback_and_reports_already_processed(
    monkeypatch, lock_redis, db, flow, escrow_service, organizer
):
    booking = flow.accepted()
    session = escrow_service.initiate_payment(booking.id, organizer.id)
    key = _hold_lock(lock_redis, booking.id)
    outcome = {}

    def callback_holder_finishes():
        del lock_redis.values[key]
        outcome["callback"] = escrow_service.confirm_payment(
            session.reference, PaymentSource.GATEWAY_CALLBACK
        )

    waits = _while_waiting(monkeypatch, callback_holder_finishes)

    redirect = escrow_service.confirm_payment(session.reference, PaymentSource.USER_REDIRECT)

    assert waits["n"] >= 1
    assert outcome["callback"].already_processed is False
    assert redirect.already_processed is True
    assert redirect.booking.status == BookingStatus.PAID.value
    payments = (
        db.query(Transaction)
        .filter(
            Transaction.booking_id == booking.id,
            Transaction.kind == TransactionKind.BOOKING_PAYMENT.value,
            Transaction.status == TransactionStatus.SUCCESS.value,
        )
        .all()
    )
    assert len(payments) == 1
    assert lock_redis.values == {}


def test_second_completion_waits_and_returns_the_completed_booking(
    monkeypatch, lock_redis, flow, booking_service, organizer, talent, paystack
):
    booking = flow.paid()
    after_event = flow.after_event(booking)
    key = _hold_lock(lock_redis, booking.id)
    outcome = {}

    def first_completion_finishes():
        del lock_redis.values[key]
        outcome["first"] = booking_service.mark_completed(booking.id, organizer.id, now=after_event)

    _while_waiting(monkeypatch, first_completion_finishes)

    second = booking_service.mark_completed(booking.id, talent.id, now=after_event)

    assert outcome["first"].status == BookingStatus.COMPLETED.value
    assert second.status == BookingStatus.COMPLETED.value
    assert second.is_paid_out is True
    assert len(paystack.transfers) == 1


def test_lock_still_held_after_the_wait_is_a_conflict(
    monkeypatch, lock_redis, flow, escrow_service, organizer
):
    booking = flow.accepted()
    session = escrow_service.initiate_payment(booking.id, organizer.id)
    _hold_lock(lock_redis, booking.id)
    monkeypatch.setattr(settings, "booking_lock_wait_seconds", 0)

    with pytest.raises(ConflictException) as exc_info:
        escrow_service.confirm_payment(session.reference, PaymentSource.GATEWAY_CALLBACK)

    assert exc_info.value.code == "BOOKING_LOCKED"
    assert escrow_service.transaction_repository.get_by_reference(session.reference).status == (
        TransactionStatus.PENDING.value
    )
