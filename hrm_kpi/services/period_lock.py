"""
services/period_lock.py — Advisory lock per period key

Compute calls for the same week (``week:<key>``) or month (``month:<key>``)
are serialized. Redis holds the lock when reachable so several workers share
it; otherwise a per-key in-process lock serializes calls within this process.
"""

import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional

import redis
import structlog

from hrm_kpi.config import settings
from hrm_kpi.core.exceptions import PeriodBusy
from hrm_kpi.services.cache import get_cache
from hrm_kpi.services.redis_cache import RedisCache

logger = structlog.get_logger(__name__)

LOCK_PREFIX = "hrm:lock:"

_local_locks: Dict[str, threading.Lock] = {}
_local_guard = threading.Lock()


def _local_lock(key: str) -> threading.Lock:
    with _local_guard:
        lock = _local_locks.get(key)
        if lock is None:
            lock = _local_locks[key] = threading.Lock()
        return lock


def week_lock_key(week_key: str) -> str:
    return f"week:{week_key}"


def month_lock_key(month_key: str) -> str:
    return f"month:{month_key}"


class PeriodLockManager:
    """Hands out advisory locks for period keys."""

    def __init__(
        self,
        cache_provider: Callable[[], Optional[RedisCache]] = get_cache,
        timeout_seconds: Optional[float] = None,
        wait_seconds: Optional[float] = None,
    ):
        self._cache_provider = cache_provider
        self.timeout_seconds = timeout_seconds or settings.PERIOD_LOCK_TIMEOUT_SECONDS
        self.wait_seconds = wait_seconds if wait_seconds is not None else settings.PERIOD_LOCK_WAIT_SECONDS

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """
        Hold the lock for key for the duration of the block.

        Raises:
            PeriodBusy: lock not acquired within the wait time
        """
        redis_lock = self._acquire_redis(key)
        if redis_lock is not None:
            try:
                yield
            finally:
                self._release_redis(key, redis_lock)
            return

        local = _local_lock(key)
        if not local.acquire(timeout=self.wait_seconds):
            raise PeriodBusy(key)
        logger.debug("period_lock_acquired", key=key, backend="local")
        try:
            yield
        finally:
            local.release()

    def _acquire_redis(self, key: str):
        cache = self._cache_provider()
        if cache is None:
            return None
        lock = cache.lock(
            f"{LOCK_PREFIX}{key}",
            timeout=self.timeout_seconds,
            blocking_timeout=self.wait_seconds,
        )
        try:
            acquired = lock.acquire()
        except redis.RedisError as e:
            logger.warning("period_lock_redis_unavailable", key=key, error=str(e))
            return None
        if not acquired:
            raise PeriodBusy(key)
        logger.debug("period_lock_acquired", key=key, backend="redis")
        return lock

    def _release_redis(self, key: str, lock) -> None:
        try:
            lock.release()
        except redis.exceptions.LockError as e:
            # Lock expired before release; another holder may have taken it.
            logger.warning("period_lock_expired", key=key, error=str(e))
        except redis.RedisError as e:
            logger.warning("period_lock_release_failed", key=key, error=str(e))
