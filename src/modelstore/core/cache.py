"""
Cache backends for the store cache middleware.

Provides a ``CacheBackend`` protocol with in-memory and Redis
implementations.  :class:`~modelstore.store.cache.CachedStore` keeps model
snapshots (JSON strings) and query memos (id lists) in a backend; both are
JSON values, so any backend works unchanged.

Manifesto:
    - **Protocol-based:** CacheBackend defines the contract
    - **Single-process or shared:** InMemoryCache by default, RedisCache
      when several processes should share snapshots
    - **Namespaced clears:** clearing the cache never touches keys the
      store did not write

Architecture:
    ::

        CacheBackend (Protocol)
        ├── InMemoryCache  -- single-process, bounded LRU
        └── RedisCache     -- shared, namespaced by key prefix

        API: get(key) → value | None
             set(key, value, ttl_seconds=None)
             delete(key)
             exists(key) → bool
             clear()

Examples:
    >>> from modelstore.core.cache import InMemoryCache
    >>> cache = InMemoryCache(max_size=1000)
    >>> cache.set("model:Artist:a1", '{"id": "a1"}')
    >>> cache.exists("model:Artist:a1")
    True

Guardrails:
    ❌ DON'T: Store live objects in a backend
    ✅ DO: Store JSON values (strings, lists); rebuild objects on read

Tags:
    cache, caching, redis, in-memory, ttl, modelstore

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import json
import time
from collections import OrderedDict
from typing import Any, Protocol

from modelstore.core.errors import ConfigError


class CacheBackend(Protocol):
    """Protocol for cache backend implementations.

    Keys are strings, values are JSON-serializable.

    Implementations:
        - :class:`InMemoryCache` -- single-process, bounded LRU cache
        - :class:`RedisCache` -- distributed, Redis-backed cache
    """

    def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` if missing or expired."""
        ...

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value; ``ttl_seconds=None`` uses the backend default."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key (no-op if missing)."""
        ...

    def exists(self, key: str) -> bool:
        """Check if a key exists and has not expired."""
        ...

    def clear(self) -> None:
        """Remove every key this backend owns."""
        ...


# ------------------------------------------------------------------ #
# In-Memory Cache
# ------------------------------------------------------------------ #


class InMemoryCache:
    """Bounded in-memory cache with optional TTL.

    Uses LRU eviction when ``max_size`` is reached.  Not thread-safe, like
    the store it serves.

    Example:
        cache = InMemoryCache(max_size=500, default_ttl_seconds=1800)
        cache.set("memo:1f2e", ["a1", "a2"])
        cache.get("memo:1f2e")
    """

    def __init__(
        self,
        *,
        max_size: int = 10_000,
        default_ttl_seconds: int | None = None,
    ):
        self._store: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._max_size = max_size
        self._default_ttl = default_ttl_seconds

    def _expired(self, key: str) -> bool:
        _, expires_at = self._store[key]
        if expires_at is not None and time.time() > expires_at:
            del self._store[key]
            return True
        return False

    def get(self, key: str) -> Any | None:
        """Retrieve a value by key."""
        if key not in self._store or self._expired(key):
            return None
        self._store.move_to_end(key)
        return self._store[key][0]

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value with optional TTL."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = (time.time() + ttl) if ttl else None

        if key not in self._store and len(self._store) >= self._max_size:
            self._store.popitem(last=False)

        self._store[key] = (value, expires_at)
        self._store.move_to_end(key)

    def delete(self, key: str) -> None:
        """Remove a key from the cache."""
        self._store.pop(key, None)

    def exists(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        return key in self._store and not self._expired(key)

    def clear(self) -> None:
        """Remove all keys."""
        self._store.clear()

    def size(self) -> int:
        """Return current number of cached keys."""
        return len(self._store)


# ------------------------------------------------------------------ #
# Redis Cache -- Optional
# ------------------------------------------------------------------ #


class RedisCache:
    """Redis-backed shared cache.

    Requires the ``redis`` package (``pip install modelstore[redis]``).
    Every key is stored under ``prefix`` so :meth:`clear` only removes this
    store's keys instead of flushing the database.

    Example:
        cache = RedisCache("redis://localhost:6379/0", prefix="music:")
        store = CachedStore(sql_store, cache)

    Raises:
        ConfigError: If ``redis`` package is not installed.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        prefix: str = "modelstore:",
        default_ttl_seconds: int | None = None,
        client: Any = None,
    ):
        if client is None:
            try:
                import redis
            except ImportError as exc:
                raise ConfigError(
                    "Redis backend requires 'redis' package. "
                    "Install with: pip install modelstore[redis]"
                ) from exc
            client = redis.from_url(url, decode_responses=False)

        self._client = client
        self._prefix = prefix
        self._default_ttl = default_ttl_seconds

    def _key(self, key: str) -> str:
        return self._prefix + key

    def get(self, key: str) -> Any | None:
        """Retrieve a value by key."""
        raw = self._client.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value with optional TTL."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        serialized = json.dumps(value)

        if ttl:
            self._client.setex(self._key(key), ttl, serialized)
        else:
            self._client.set(self._key(key), serialized)

    def delete(self, key: str) -> None:
        """Remove a key from the cache."""
        self._client.delete(self._key(key))

    def exists(self, key: str) -> bool:
        """Check if key exists."""
        return bool(self._client.exists(self._key(key)))

    def clear(self) -> None:
        """Remove every key under this cache's prefix."""
        keys = list(self._client.scan_iter(match=self._prefix + "*"))
        if keys:
            self._client.delete(*keys)


__all__ = [
    "CacheBackend",
    "InMemoryCache",
    "RedisCache",
]
