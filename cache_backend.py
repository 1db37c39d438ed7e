"""Caching interface with Redis / in-memory swap.

Provides a simple get/set/delete/clear API. When REDIS_URL is configured
and reachable, uses Redis; otherwise falls back to a process-local TTL dict.
Values are stored as JSON.

Usage:
    from cache_backend import init_cache, get_cache
    init_cache(app)          # called once in create_app()
    cache = get_cache()
    cache.set("leaderboard:weekly:1:20", entries, ttl=300)
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Protocol

logger = logging.getLogger(__name__)

# ── Protocol ───────────────────────────────────────────────

class CacheBackend(Protocol):
    def get(self, key: str) -> Any | None: ...
    def set(self, key: str, value: Any, ttl: int = 300) -> None: ...
    def delete(self, key: str) -> None: ...
    def clear(self) -> None: ...
    def cleanup(self) -> int: ...


# ── In-Memory Implementation ──────────────────────────────

class InMemoryCache:
    """Dict with expiry timestamps; evicts the soonest-expiring entry when full."""

    MAX_ENTRIES = 1000

    def __init__(self) -> None:
        self._store: dict[str, tuple[str, float]] = {}  # key -> (json, expires_at)
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            raw, expires_at = entry
            if time.time() > expires_at:
                del self._store[key]
                return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: int = 300) -> None:
        raw = json.dumps(value)
        with self._lock:
            if key not in self._store and len(self._store) >= self.MAX_ENTRIES:
                oldest = min(self._store, key=lambda k: self._store[k][1])
                del self._store[oldest]
            self._store[key] = (raw, time.time() + ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def cleanup(self) -> int:
        """Remove all expired entries. Returns count removed."""
        now = time.time()
        with self._lock:
            expired = [k for k, (_, exp) in self._store.items() if now > exp]
            for k in expired:
                del self._store[k]
            return len(expired)


# ── Redis Implementation ──────────────────────────────────

class RedisCache:
    """Wraps redis.Redis; errors are logged and treated as cache misses."""

    def __init__(self, redis_client, prefix: str = "studytracker:") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def get(self, key: str) -> Any | None:
        try:
            raw = self._redis.get(self._prefix + key)
        except Exception as e:
            logger.warning("Redis GET error (key=%s): %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return None

    def set(self, key: str, value: Any, ttl: int = 300) -> None:
        try:
            self._redis.setex(self._prefix + key, ttl, json.dumps(value))
        except Exception as e:
            logger.warning("Redis SET error (key=%s): %s", key, e)

    def delete(self, key: str) -> None:
        try:
            self._redis.delete(self._prefix + key)
        except Exception as e:
            logger.warning("Redis DELETE error (key=%s): %s", key, e)

    def clear(self) -> None:
        try:
            keys = list(self._redis.scan_iter(match=self._prefix + "*"))
            if keys:
                self._redis.delete(*keys)
        except Exception as e:
            logger.warning("Redis CLEAR error: %s", e)

    def cleanup(self) -> int:
        # Redis expires keys itself
        return 0


# ── Module-level singleton ────────────────────────────────

_cache: CacheBackend | None = None


def init_cache(app) -> None:
    """Initialize the cache backend. Call once from create_app()."""
    global _cache

    redis_url = app.config.get("REDIS_URL", "")
    if redis_url:
        try:
            import redis
            client = redis.Redis.from_url(redis_url)
            client.ping()
            _cache = RedisCache(client)
            app.logger.info("Cache backend: Redis (%s)", redis_url)
            return
        except Exception as e:
            app.logger.warning("Redis connection failed (%s), falling back to in-memory cache.", e)

    _cache = InMemoryCache()
    app.logger.info("Cache backend: in-memory")


def get_cache() -> CacheBackend:
    """Return the active cache backend. Lazily initializes if needed."""
    global _cache
    if _cache is None:
        _cache = InMemoryCache()
    return _cache
