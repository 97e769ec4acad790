"""Ephemeral key-value store with per-key TTL.

Holds one-time code hashes, attempt counters, resend cooldowns, verification
sessions and token revocation watermarks. Expiry is owned by the store itself,
so no application timer ever has to clean these keys up.

Two backends share the ``CacheStore`` contract:

* ``RedisCacheStore`` for deployments with more than one worker.
* ``MemoryCacheStore`` for tests and single-process development.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from functools import wraps
from typing import Callable, Optional

import redis

from services.errors import InfrastructureError

logger = logging.getLogger(__name__)


class CacheStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    def add(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Set ``key`` only if it is absent. Returns True when the value was stored."""

    @abstractmethod
    def delete(self, *keys: str) -> None:
        ...

    @abstractmethod
    def incr(self, key: str, ttl_seconds: int) -> int:
        """Atomically increment ``key``; the TTL is applied only when the key is created."""

    @abstractmethod
    def ttl(self, key: str) -> Optional[int]:
        """Remaining lifetime in seconds, or None when the key is missing."""

    @abstractmethod
    def ping(self) -> bool:
        ...


class MemoryCacheStore(CacheStore):
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[tuple[str, float]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            self._data.pop(key, None)
            return None
        return entry

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._data[key] = (str(value), self._clock() + ttl_seconds)

    def add(self, key: str, value: str, ttl_seconds: int) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._data[key] = (str(value), self._clock() + ttl_seconds)
            return True

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def incr(self, key: str, ttl_seconds: int) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                self._data[key] = ('1', self._clock() + ttl_seconds)
                return 1
            count = int(entry[0]) + 1
            self._data[key] = (str(count), entry[1])
            return count

    def ttl(self, key: str) -> Optional[int]:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return None
            return max(0, int(entry[1] - self._clock()))

    def ping(self) -> bool:
        return True


def _translate_redis_errors(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except redis.RedisError as e:
            logger.error('Cache store call %s failed: %s', fn.__name__, e)
            raise InfrastructureError() from e

    return wrapper


# INCR and EXPIRE in one round trip; EXPIRE only on the increment that created the key.
_INCR_WITH_EXPIRY = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
  redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return count
"""


class RedisCacheStore(CacheStore):
    def __init__(self, client: redis.Redis):
        self._client = client
        self._incr_script = client.register_script(_INCR_WITH_EXPIRY)

    @classmethod
    def from_url(cls, url: str, socket_timeout: int = 5) -> 'RedisCacheStore':
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    @_translate_redis_errors
    def get(self, key: str) -> Optional[str]:
        return self._client.get(key)

    @_translate_redis_errors
    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._client.set(key, value, ex=ttl_seconds)

    @_translate_redis_errors
    def add(self, key: str, value: str, ttl_seconds: int) -> bool:
        return bool(self._client.set(key, value, ex=ttl_seconds, nx=True))

    @_translate_redis_errors
    def delete(self, *keys: str) -> None:
        if keys:
            self._client.delete(*keys)

    @_translate_redis_errors
    def incr(self, key: str, ttl_seconds: int) -> int:
        return int(self._incr_script(keys=[key], args=[ttl_seconds]))

    @_translate_redis_errors
    def ttl(self, key: str) -> Optional[int]:
        remaining = self._client.ttl(key)
        if remaining is None or remaining < 0:
            return None
        return int(remaining)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False


def build_cache_store(app) -> CacheStore:
    url = (app.config.get('REDIS_URL') or '').strip()
    if url:
        return RedisCacheStore.from_url(url, socket_timeout=app.config.get('REDIS_SOCKET_TIMEOUT', 5))

    if not app.config.get('TESTING'):
        logger.warning('REDIS_URL is not set; using the in-process cache store (single worker only)')
    return MemoryCacheStore()
