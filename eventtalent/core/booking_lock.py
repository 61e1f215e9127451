"""
Per-booking Redis mutex.

Serializes mutations of one booking's financial state across workers. The
lock fails open: when Redis is unreachable the database row lock and the
status compare-and-swap still guarantee correctness, the mutex only cuts
down on contention.

A contended acquire polls until ``booking_lock_wait_seconds`` elapses, so a
second request for the same booking queues behind the first instead of
failing. Each holder writes a random token and releases with a
compare-and-delete, so a holder whose TTL lapsed cannot drop a successor's lock.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Iterator, Optional

from redis import Redis
from redis.exceptions import RedisError

from eventtalent.core.config import settings
from eventtalent.core.ulid_helper import generate_ulid
from eventtalent.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def _lock_key(booking_id: str) -> str:
    return f"eventtalent:lock:booking:{booking_id}:mutex"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except RedisError as exc:
            logger.warning("booking_lock_sync_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


# Delete only while the key still holds our token; a lock that expired and
# was re-acquired by another worker is left alone.
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
  return redis.call('DEL', KEYS[1])
else
  return 0
end
"""


def acquire_booking_lock_sync(
    booking_id: str, ttl_s: Optional[int] = None, token: Optional[str] = None
) -> bool:
    """Single SET NX attempt; ``token`` is stored as the lock value."""
    if not settings.booking_lock_enabled:
        return True
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_booking_lock("acquire", "redis_unavailable")
        logger.warning(
            "booking_lock_sync_redis_unavailable",
            extra={"booking_id": booking_id},
        )
        return True
    ttl = ttl_s or settings.booking_lock_ttl_seconds
    value = token or str(time.time())
    try:
        acquired = bool(client.set(_lock_key(booking_id), value, nx=True, ex=ttl))
    except RedisError as exc:
        prometheus_metrics.record_booking_lock("acquire", "error")
        logger.warning(
            "booking_lock_sync_failed",
            extra={
                "booking_id": booking_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return True
    prometheus_metrics.record_booking_lock("acquire", "success" if acquired else "blocked")
    return acquired


def release_booking_lock_sync(booking_id: str, token: str) -> None:
    if not settings.booking_lock_enabled:
        return
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_booking_lock("release", "redis_unavailable")
        return
    try:
        deleted = client.eval(_RELEASE_LUA, 1, _lock_key(booking_id), token)
    except RedisError as exc:
        prometheus_metrics.record_booking_lock("release", "error")
        logger.warning(
            "booking_lock_sync_release_failed",
            extra={
                "booking_id": booking_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return
    if not deleted:
        logger.warning("booking_lock_sync_lost", extra={"booking_id": booking_id})
    prometheus_metrics.record_booking_lock("release", "success" if deleted else "not_owner")


def wait_for_booking_lock_sync(
    booking_id: str,
    token: str,
    ttl_s: Optional[int] = None,
    wait_s: Optional[float] = None,
) -> bool:
    """Poll until the lock is free or ``wait_s`` elapses."""
    wait = settings.booking_lock_wait_seconds if wait_s is None else wait_s
    deadline = time.monotonic() + wait
    while True:
        if acquire_booking_lock_sync(booking_id, ttl_s=ttl_s, token=token):
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            prometheus_metrics.record_booking_lock("acquire", "timeout")
            return False
        time.sleep(min(settings.booking_lock_poll_seconds, remaining))


@contextmanager
def booking_lock_sync(
    booking_id: str, ttl_s: Optional[int] = None, wait_s: Optional[float] = None
) -> Iterator[bool]:
    """Hold the booking mutex for the duration of the block; yields whether it was acquired."""
    token = generate_ulid()
    acquired = wait_for_booking_lock_sync(booking_id, token, ttl_s=ttl_s, wait_s=wait_s)
    try:
        yield acquired
    finally:
        if acquired:
            release_booking_lock_sync(booking_id, token)
