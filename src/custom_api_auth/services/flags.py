"""TTL flag store used to throttle periodic jobs."""

from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Final

import redis

from custom_api_auth.core.settings import settings

logger = logging.getLogger(__name__)

FLAG_KEY_PREFIX: Final[str] = "custom_api_auth:flag:"


class FlagStore:
    """Boolean flags that expire after a TTL.

    Backed by Redis when a client is available; falls back to an in-process
    cache if Redis is missing or stops answering.
    """

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        self._redis = redis_client

    def _key(self, name: str) -> str:
        return f"{FLAG_KEY_PREFIX}{name}"

    def is_set(self, name: str) -> bool:
        """Return True while the flag is set and not yet expired."""
        key = self._key(name)
        if self._redis is not None:
            try:
                return bool(self._redis.exists(key))
            except redis.RedisError as err:
                logger.warning("Flag store unavailable, using local cache: %s", err)
                self._redis = None
        now = int(time.time())
        with _CACHE_LOCK:
            expiry = _FLAG_CACHE.get(key)
            if expiry is None:
                return False
            if expiry <= now:
                _FLAG_CACHE.pop(key, None)
                return False
            return True

    def set(self, name: str, ttl_seconds: int) -> bool:
        """Set the flag for `ttl_seconds`. Returns False for a non-positive TTL."""
        if ttl_seconds <= 0:
            return False
        key = self._key(name)
        if self._redis is not None:
            try:
                self._redis.set(key, "1", ex=int(ttl_seconds))
                return True
            except redis.RedisError as err:
                logger.warning("Flag store unavailable, using local cache: %s", err)
                self._redis = None
        with _CACHE_LOCK:
            _FLAG_CACHE[key] = int(time.time()) + int(ttl_seconds)
        return True

    def clear(self, name: str) -> None:
        """Remove the flag if present."""
        key = self._key(name)
        if self._redis is not None:
            try:
                self._redis.delete(key)
                return
            except redis.RedisError as err:
                logger.warning("Flag store unavailable, using local cache: %s", err)
                self._redis = None
        with _CACHE_LOCK:
            _FLAG_CACHE.pop(key, None)


_FLAG_CACHE: dict[str, int] = {}
_CACHE_LOCK = Lock()


def reset_local_cache() -> None:
    """Drop every in-process flag."""
    with _CACHE_LOCK:
        _FLAG_CACHE.clear()


def get_flag_store() -> FlagStore:
    """Return a flag store connected to the configured Redis."""
    return FlagStore(redis.from_url(settings.redis_url))
