from contextlib import contextmanager

from celery.exceptions import Retry
import pytest

from eventtalent.core.enums import BookingStatus
from eventtalent.integrations import PaystackError
from eventtalent.tasks import booking_tasks, review_tasks


@pytest.fixture
def scheduled_retries(monkeypatch):
    scheduled = []
    monkeypatch.setattr(booking_tasks, "schedule_payout_retry", scheduled.append)
    return scheduled


@pytest.fixture(autouse=True)
def wire_tasks(monkeypatch, db, paystack, availability, notifier, scheduled_retries):
    @contextmanager
    def session():
        yield db

    for module in (booking_tasks, review_tasks):
        monkeypatch.setattr(module, "get_db_session", session)
        monkeypatch.setattr(module, "get_notification_client", lambda: notifier)
    monkeypatch.setattr(booking_tasks, "get_paystack_client", lambda: paystack)
    monkeypatch.setattr(booking_tasks, "get_availability_client", lambda: availability)


def _end_event(db, booking):
    from datetime import timedelta

    from eventtalent.models.event import Event
    from eventtalent.models.types import now_utc

    db.query(Event).filter(Event.id == booking.event_id).update(
        {
            "starts_at": now_utc() - timedelta(hours=6),
            "ends_at": now_utc() - timedelta(hours=2),
        }
    )
    db.commit()


def test_complete_due_bookings_task(db, flow, booking_service, paystack):
    booking = flow.paid()
    _end_event(db, booking)

    summary = booking_tasks.complete_due_bookings()

    assert summary["completed"] == 1
    assert "processed_at" in summary
    refreshed = booking_service.get_booking(booking.id)
    assert refreshed.status == BookingStatus.COMPLETED.value
    assert refreshed.is_paid_out is True
    assert len(paystack.transfers) == 1


def test_retry_failed_payouts_task(db, flow, booking_service, paystack):
    booking = flow.paid()
    paystack.transfer_error = PaystackError("timeout")
    with pytest.raises(PaystackError):
        booking_service.mark_completed(booking.id, now=flow.after_event(booking))
    paystack.transfer_error = None

    summary = booking_tasks.retry_failed_payouts()

    assert summary["settled"] == 1
    assert booking_service.get_booking(booking.id).is_paid_out is True


def test_settle_booking_payout_task(flow, booking_service, paystack):
    booking = flow.paid()
    paystack.transfer_error = PaystackError("timeout")
    with pytest.raises(PaystackError):
        booking_service.mark_completed(booking.id, now=flow.after_event(booking))
    paystack.transfer_error = None

    result = booking_tasks.settle_booking_payout(booking.id)

    assert result["booking_id"] == booking.id
    assert result["reference"] == f"ETP-{booking.id}-1"
    assert result["amount"] == "9000.00"


def test_settle_booking_payout_retries_retryable_failures(monkeypatch, flow, booking_service, paystack):
    booking = flow.paid()
    paystack.transfer_error = PaystackError("timeout")
    with pytest.raises(PaystackError):
        booking_service.mark_completed(booking.id, now=flow.after_event(booking))
    retried = []

    def fake_retry(exc=None, **kwargs):
        retried.append(exc)
        return Retry(exc=exc)

    monkeypatch.setattr(booking_tasks.settle_booking_payout, "retry", fake_retry)

    with pytest.raises(Retry):
        booking_tasks.settle_booking_payout(booking.id)
    assert isinstance(retried[0], PaystackError)


def test_settle_booking_payout_fails_fast_on_rejection(flow, booking_service, paystack):
    booking = flow.paid()
    paystack.transfer_error = PaystackError("account closed", retryable=False)

    with pytest.raises(PaystackError):
        booking_service.mark_completed(booking.id, now=flow.after_event(booking))
    with pytest.raises(PaystackError):
        booking_tasks.settle_booking_payout(booking.id)


def test_review_sweep_task(flow, review_service, organizer):
    from eventtalent.core.enums import ReviewerType

    booking = flow.completed()
    review_service.submit_review(booking.id, ReviewerType.ORGANIZER, 5, None, organizer.id)

    summary = review_tasks.sweep_review_grace_period()

    assert summary["examined"] == 0
    assert summary["revealed"] == 0


def test_completion_sweep_queues_payout_retry_on_gateway_timeout(
    db, flow, booking_service, paystack, scheduled_retries
):
    booking = flow.paid()
    _end_event(db, booking)
    paystack.transfer_error = PaystackError("timeout")

    summary = booking_tasks.complete_due_bookings()

    assert summary["completed"] == 0
    assert summary["failed"] == 1
    assert booking_service.get_booking(booking.id).status == BookingStatus.COMPLETED.value
    assert scheduled_retries == [booking.id]


def test_enqueue_sends_settle_task_by_name(monkeypatch):
    from eventtalent.tasks import enqueue

    sent = []
    monkeypatch.setattr(
        enqueue.celery_app, "send_task", lambda name, **options: sent.append((name, options))
    )

    enqueue.schedule_payout_retry("01J0000000000000000000000B")

    assert sent == [
        (
            "eventtalent.tasks.booking_tasks.settle_booking_payout",
            {
                "args": ("01J0000000000000000000000B",),
                "kwargs": {},
                "countdown": enqueue.PAYOUT_RETRY_COUNTDOWN_SECONDS,
            },
        )
    ]
    assert enqueue.SETTLE_BOOKING_PAYOUT_TASK == booking_tasks.settle_booking_payout.name
