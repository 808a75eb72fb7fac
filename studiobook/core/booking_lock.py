"""
Critical sections for booking mutations.

Conflict detection plus commit is a check-then-act sequence, so it runs
under a lock keyed by studio id. Payment application and status changes
run under a lock keyed by booking id. Booking edits take both, always
studio first. Redis ``SET NX EX`` backs the locks when REDIS_URL
is configured; otherwise (or while Redis is unreachable) a process-local
keyed lock is used.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import logging
import threading
import time
from typing import Dict, Iterator, Optional
import uuid

from redis import Redis
from redis.exceptions import RedisError

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings
from .exceptions import ServiceException

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()

_LOCAL_LOCKS: Dict[str, threading.RLock] = {}
_LOCAL_LOCKS_GUARD = threading.Lock()

_POLL_INTERVAL_S = 0.05

# Delete only if we still own the key
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


@dataclass
class _HeldLock:
    key: str
    backend: str
    token: str


def _studio_key(studio_id: str) -> str:
    return f"studio:{studio_id}:schedule"


def _booking_key(booking_id: str) -> str:
    return f"booking:{booking_id}:mutex"


def _namespaced_key(key: str) -> str:
    return f"{settings.lock_namespace}:lock:{key}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if not settings.redis_url:
        return None
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


def _local_lock(key: str) -> threading.RLock:
    with _LOCAL_LOCKS_GUARD:
        lock = _LOCAL_LOCKS.get(key)
        if lock is None:
            lock = threading.RLock()
            _LOCAL_LOCKS[key] = lock
        return lock


def _acquire_local(key: str, wait_s: float) -> Optional[_HeldLock]:
    if _local_lock(key).acquire(timeout=wait_s):
        return _HeldLock(key=key, backend="local", token="")
    return None


def acquire_lock(key: str, *, ttl_s: int, wait_s: float) -> Optional[_HeldLock]:
    """Block up to ``wait_s`` seconds for the lock; None when it stays taken."""
    client = _get_sync_redis()
    if client is None:
        held = _acquire_local(key, wait_s)
        prometheus_metrics.record_booking_lock("acquire", "success" if held else "blocked")
        return held

    token = uuid.uuid4().hex
    deadline = time.monotonic() + wait_s
    try:
        while True:
            if client.set(_namespaced_key(key), token, nx=True, ex=ttl_s):
                prometheus_metrics.record_booking_lock("acquire", "success")
                return _HeldLock(key=key, backend="redis", token=token)
            if time.monotonic() >= deadline:
                prometheus_metrics.record_booking_lock("acquire", "blocked")
                return None
            time.sleep(_POLL_INTERVAL_S)
    except RedisError as exc:
        prometheus_metrics.record_booking_lock("acquire", "redis_unavailable")
        logger.warning(
            "booking_lock_redis_failed_using_local",
            extra={"key": key, "error": str(exc), "error_type": type(exc).__name__},
        )
        return _acquire_local(key, max(deadline - time.monotonic(), 0.0))


def release_lock(held: _HeldLock) -> None:
    if held.backend == "local":
        _local_lock(held.key).release()
        prometheus_metrics.record_booking_lock("release", "success")
        return

    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_booking_lock("release", "redis_unavailable")
        return
    try:
        deleted = client.eval(_RELEASE_SCRIPT, 1, _namespaced_key(held.key), held.token)
        prometheus_metrics.record_booking_lock("release", "success" if deleted else "not_found")
    except RedisError as exc:
        # The key expires on its own after the TTL
        prometheus_metrics.record_booking_lock("release", "error")
        logger.warning(
            "booking_lock_sync_release_failed",
            extra={"key": held.key, "error": str(exc), "error_type": type(exc).__name__},
        )


@contextmanager
def hold_lock(
    key: str, *, ttl_s: Optional[int] = None, wait_s: Optional[float] = None
) -> Iterator[None]:
    held = acquire_lock(
        key,
        ttl_s=ttl_s or settings.lock_ttl_seconds,
        wait_s=settings.lock_wait_timeout_seconds if wait_s is None else wait_s,
    )
    if held is None:
        raise ServiceException(
            "Another change to this schedule is in progress, please retry",
            code="LOCK_TIMEOUT",
            details={"lock": key},
        )
    try:
        yield
    finally:
        release_lock(held)


def studio_lock(
    studio_id: str, *, ttl_s: Optional[int] = None, wait_s: Optional[float] = None
):
    """Serialize conflict check and commit for one studio."""
    return hold_lock(_studio_key(studio_id), ttl_s=ttl_s, wait_s=wait_s)


def booking_lock(
    booking_id: str, *, ttl_s: Optional[int] = None, wait_s: Optional[float] = None
):
    """Serialize mutations of one booking."""
    return hold_lock(_booking_key(booking_id), ttl_s=ttl_s, wait_s=wait_s)
