"""
Cache middleware: memoized reads and elided no-op writes over any store.

``CachedStore`` wraps a store and keeps two kinds of entries in a
``CacheBackend`` (in-process LRU or Redis):

- snapshots ``model:<type>:<id>``: ``str(model)``, the canonical JSON of a
  model as last read or written
- memos ``memo:<hash>``: the ordered id list a ``list``/``filter`` call
  produced, keyed by ``compute_hash(operation, type, sorted arguments)``

Manifesto:
    Correctness first, hit rate second.  Any write (``set``, ``delete``,
    ``build``) clears the whole cache, because one write can change the
    answer of any memoized filter (a relation row, a cascaded child).  A
    memo is trusted only while every id in it still has a snapshot.

    Snapshots are strings, so a caller mutating a model it got back (or
    passed to ``set``) can never alter what the cache holds; every model
    returned from the cache is rebuilt from its snapshot.

Examples:
    >>> store = CachedStore(SqlStore(SQLiteAdapter()))
    >>> store.set(artist)          # written, snapshot taken
    >>> store.set(artist)          # identical snapshot: nothing written
    >>> store.get(Artist, artist.id)    # served from the snapshot

Tags:
    cache, memoization, invalidation, middleware, modelstore

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from modelstore.core.cache import CacheBackend, InMemoryCache
from modelstore.core.hashing import compute_hash
from modelstore.core.logging import get_logger
from modelstore.model.model import Model
from modelstore.model.range import Range
from modelstore.store.base import Store
from modelstore.store.relations import unique_ids

logger = get_logger(__name__)


def _canonical(value: Any) -> str:
    """Stable text form of a filter value for memo keys."""
    if isinstance(value, Model):
        value = value.pk
    elif isinstance(value, Range):
        value = {"range": [_canonical(value.start), _canonical(value.end)]}
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = [v.pk if isinstance(v, Model) else v for v in value]
        value = sorted(items, key=str) if isinstance(value, (set, frozenset)) else items
    return json.dumps(value, sort_keys=True, default=str)


class CachedStore(Store):
    """Store wrapper memoizing reads and skipping unchanged writes.

    Args:
        store: Wrapped store
        backend: Cache backend (a fresh ``InMemoryCache`` when omitted)
        ttl_seconds: Expiry of every entry (None keeps entries until cleared)
    """

    kind = "cached"

    def __init__(self, store: Store, backend: CacheBackend | None = None, *, ttl_seconds: int | None = None):
        self.store = store
        self.cache = backend if backend is not None else InMemoryCache()
        self.ttl_seconds = ttl_seconds

    # -- Keys and snapshots --------------------------------------------------

    @staticmethod
    def snapshot_key(model_type: type[Model], model_id: Any) -> str:
        return f"model:{model_type.type_name()}:{model_id}"

    @staticmethod
    def memo_key(operation: str, model_type: type[Model], args: Iterable[str]) -> str:
        return "memo:" + compute_hash(operation, model_type.type_name(), *sorted(args))

    def _snapshot(self, model: Model) -> None:
        if model.pk is not None:
            self.cache.set(self.snapshot_key(type(model), model.pk), str(model), ttl_seconds=self.ttl_seconds)

    def _from_snapshot(self, model_type: type[Model], model_id: Any) -> Model | None:
        text = self.cache.get(self.snapshot_key(model_type, model_id))
        return model_type.from_json(text) if text is not None else None

    def _remember(self, key: str, models: list[Model]) -> list[Model]:
        for model in models:
            self._snapshot(model)
        self.cache.set(key, [m.pk for m in models], ttl_seconds=self.ttl_seconds)
        return models

    def _recall(self, model_type: type[Model], key: str) -> list[Model] | None:
        """Models of a memo, or None when the memo is absent or stale."""
        ids = self.cache.get(key)
        if ids is None:
            return None
        models = []
        for model_id in ids:
            model = self._from_snapshot(model_type, model_id)
            if model is None:
                logger.debug("cache_memo_stale", model_type=model_type.type_name(), missing=model_id)
                return None
            models.append(model)
        return models

    # -- Reads ---------------------------------------------------------------

    def exists(self, model_type: type[Model], model_id: Any) -> bool:
        if model_id is not None and self.cache.exists(self.snapshot_key(model_type, model_id)):
            return True
        return self.store.exists(model_type, model_id)

    def get(self, model_type: type[Model], model_id: Any) -> Model | None:
        if model_id is None:
            return None
        model = self._from_snapshot(model_type, model_id)
        if model is not None:
            logger.debug("cache_hit", model_type=model_type.type_name(), model_id=model_id)
            return model
        logger.debug("cache_miss", model_type=model_type.type_name(), model_id=model_id)
        model = self.store.get(model_type, model_id)
        if model is not None:
            self._snapshot(model)
            return self._from_snapshot(model_type, model_id) or model
        return None

    def list(self, model_type: type[Model], ids: Iterable[Any] | None = None) -> list[Model]:
        ids = unique_ids(ids or [])
        key = self.memo_key("list", model_type, (str(i) for i in ids))
        models = self._recall(model_type, key)
        if models is None:
            logger.debug("cache_miss", model_type=model_type.type_name(), operation="list")
            return self._remember(key, self.store.list(model_type, ids))

        logger.debug("cache_hit", model_type=model_type.type_name(), operation="list")
        if ids:
            by_id = {str(m.pk): m for m in models}
            models = [by_id[str(i)] for i in ids if str(i) in by_id]
        return models

    def filter(self, model_type: type[Model], predicates: Mapping[str, Any] | None = None) -> list[Model]:
        if not predicates:
            return self.list(model_type)
        key = self.memo_key("filter", model_type, (f"{k}={_canonical(v)}" for k, v in predicates.items()))
        models = self._recall(model_type, key)
        if models is None:
            logger.debug("cache_miss", model_type=model_type.type_name(), operation="filter")
            return self._remember(key, self.store.filter(model_type, predicates))
        logger.debug("cache_hit", model_type=model_type.type_name(), operation="filter")
        return models

    # -- Writes --------------------------------------------------------------

    def set(self, model: Model) -> Model:
        self.require_key(type(model))
        text = str(model)
        if self.cache.get(self.snapshot_key(type(model), model.pk)) == text:
            logger.debug("cache_write_skipped", model_type=model.type_name(), model_id=model.pk)
            return model
        self.cache.clear()
        result = self.store.set(model)
        self._snapshot(result)
        return result

    def delete(self, model_type: type[Model], model_id: Any) -> bool:
        self.cache.clear()
        return self.store.delete(model_type, model_id)

    def build(self, model_types: Iterable[type[Model]], **options: Any) -> bool:
        self.cache.clear()
        return self.store.build(model_types, **options)

    def flush(self) -> bool:
        return self.store.flush()

    def clear(self) -> None:
        """Drop every snapshot and memo."""
        self.cache.clear()

    # -- Lifecycle -----------------------------------------------------------

    def _info(self) -> dict[str, Any]:
        facts = self.store.info()
        return {**facts, "cache": type(self.cache).__name__}

    def close(self) -> None:
        self.store.close()


__all__ = [
    "CachedStore",
]
