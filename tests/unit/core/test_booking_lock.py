from __future__ import annotations

from unittest.mock import MagicMock, patch

from eventtalent.core import booking_lock
from eventtalent.core.config import settings

BOOKING_ID = "01J0000000000000000000000A"


def test_release_only_deletes_our_own_token(lock_redis):
    key = booking_lock._lock_key(BOOKING_ID)
    assert booking_lock.acquire_booking_lock_sync(BOOKING_ID, token="first-holder")

    # first holder's TTL lapsed and a second worker took over
    lock_redis.values[key] = "second-holder"
    booking_lock.release_booking_lock_sync(BOOKING_ID, "first-holder")

    assert lock_redis.values[key] == "second-holder"
    assert lock_redis.evals == [(key, "first-holder")]


def test_context_manager_writes_a_token_and_releases_it(lock_redis):
    key = booking_lock._lock_key(BOOKING_ID)

    with booking_lock.booking_lock_sync(BOOKING_ID) as acquired:
        assert acquired is True
        token = lock_redis.values[key]

    assert key not in lock_redis.values
    assert lock_redis.evals == [(key, token)]


def test_expired_holder_leaving_does_not_free_the_successors_lock(lock_redis):
    key = booking_lock._lock_key(BOOKING_ID)

    with booking_lock.booking_lock_sync(BOOKING_ID):
        lock_redis.values[key] = "successor"

    assert lock_redis.values[key] == "successor"
    assert booking_lock.acquire_booking_lock_sync(BOOKING_ID, token="third") is False


def test_wait_gives_up_after_the_deadline(lock_redis):
    lock_redis.values[booking_lock._lock_key(BOOKING_ID)] = "holder"

    assert booking_lock.wait_for_booking_lock_sync(BOOKING_ID, "waiter", wait_s=0) is False


def test_wait_acquires_once_the_holder_releases(monkeypatch, lock_redis):
    key = booking_lock._lock_key(BOOKING_ID)
    lock_redis.values[key] = "holder"
    sleeps = []

    def _sleep(seconds):
        sleeps.append(seconds)
        lock_redis.values.pop(key, None)

    monkeypatch.setattr(booking_lock.time, "sleep", _sleep)

    assert booking_lock.wait_for_booking_lock_sync(BOOKING_ID, "waiter") is True
    assert lock_redis.values[key] == "waiter"
    assert len(sleeps) == 1


def test_disabled_lock_always_acquires():
    assert booking_lock.acquire_booking_lock_sync(BOOKING_ID, token="anyone") is True


def test_release_uses_the_script_and_never_a_bare_delete(monkeypatch):
    client = MagicMock()
    client.eval.return_value = 1
    monkeypatch.setattr(settings, "booking_lock_enabled", True)

    with patch("eventtalent.core.booking_lock._get_sync_redis", return_value=client):
        booking_lock.release_booking_lock_sync(BOOKING_ID, "holder-token")

    client.eval.assert_called_once_with(
        booking_lock._RELEASE_LUA, 1, booking_lock._lock_key(BOOKING_ID), "holder-token"
    )
    client.delete.assert_not_called()
