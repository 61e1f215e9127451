from datetime import timedelta

import pytest

from eventtalent.core.enums import BookingStatus
from eventtalent.core.exceptions import IntegrityViolationException
from eventtalent.models.types import now_utc
from eventtalent.repositories.factory import RepositoryFactory


def test_transition_status_is_compare_and_swap(db, flow):
    booking = flow.pending()
    repo = RepositoryFactory.create_booking_repository(db)

    first = repo.transition_status(booking.id, [BookingStatus.PENDING], BookingStatus.ACCEPTED)
    second = repo.transition_status(booking.id, [BookingStatus.PENDING], BookingStatus.DECLINED)

    assert first is True
    assert second is False
    assert repo.get_by_id(booking.id).status == BookingStatus.ACCEPTED.value


def test_transition_writes_extra_columns(db, flow):
    booking = flow.pending()
    repo = RepositoryFactory.create_booking_repository(db)
    cancelled_at = now_utc()

    repo.transition_status(
        booking.id,
        [BookingStatus.PENDING],
        BookingStatus.CANCELLED,
        cancelled_at=cancelled_at,
        cancellation_reason="Venue closed",
    )

    refreshed = repo.get_by_id(booking.id)
    assert refreshed.cancellation_reason == "Venue closed"
    assert refreshed.cancelled_at is not None


def test_mark_paid_out_flips_once(db, flow):
    booking = flow.paid()
    repo = RepositoryFactory.create_booking_repository(db)
    repo.transition_status(booking.id, [BookingStatus.PAID], BookingStatus.COMPLETED, completed_at=now_utc())

    assert repo.mark_paid_out(booking.id, now_utc()) is True
    assert repo.mark_paid_out(booking.id, now_utc()) is False


def test_mark_paid_out_requires_completed(db, flow):
    booking = flow.paid()
    repo = RepositoryFactory.create_booking_repository(db)

    assert repo.mark_paid_out(booking.id, now_utc()) is False


def test_due_for_completion_lists_paid_past_events(db, flow):
    booking = flow.paid()
    repo = RepositoryFactory.create_booking_repository(db)

    assert repo.list_due_for_completion(now_utc()) == []
    due = repo.list_due_for_completion(flow.after_event(booking) + timedelta(minutes=1))
    assert [b.id for b in due] == [booking.id]


def test_illegal_transition_is_rejected_before_touching_the_row(db, flow):
    booking = flow.pending()
    repo = RepositoryFactory.create_booking_repository(db)
    repo.transition_status(booking.id, [BookingStatus.PENDING], BookingStatus.CANCELLED)

    with pytest.raises(IntegrityViolationException) as exc_info:
        repo.transition_status(booking.id, [BookingStatus.CANCELLED], BookingStatus.PAID)

    assert exc_info.value.details["from"] == [BookingStatus.CANCELLED.value]
    assert repo.get_by_id(booking.id).status == BookingStatus.CANCELLED.value


def test_one_illegal_source_rejects_the_whole_swap(db, flow):
    booking = flow.accepted()
    repo = RepositoryFactory.create_booking_repository(db)

    with pytest.raises(IntegrityViolationException):
        repo.transition_status(
            booking.id, [BookingStatus.ACCEPTED, BookingStatus.DECLINED], BookingStatus.PAID
        )

    assert repo.get_by_id(booking.id).status == BookingStatus.ACCEPTED.value


def test_disputed_booking_cannot_be_paid(db, flow):
    booking = flow.accepted()
    repo = RepositoryFactory.create_booking_repository(db)
    repo.transition_status(booking.id, [BookingStatus.ACCEPTED], BookingStatus.DISPUTED)

    with pytest.raises(IntegrityViolationException):
        repo.transition_status(booking.id, [BookingStatus.DISPUTED], BookingStatus.PAID)
