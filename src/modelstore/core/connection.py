"""Store factory -- create a store from a URL string or settings.

This is the **single entry point** for opening a store.  Application code
should call ``create_store()`` rather than wiring adapters, stores and
cache backends by hand.

Supported locations
-------------------
=======================  ==========================================  ============
Scheme                   Example                                     Backend
=======================  ==========================================  ============
``memory``               ``memory`` or ``:memory:`` or ``None``       SQLite RAM
``sqlite``               ``sqlite:///path/to/music.db``               SQLite file
``mysql`` / ``mariadb``  ``mysql://user:pw@host:3306/music``          MySQL
``file``                 ``file:///data/music.json``                  JSON file
``(json path)``          ``./data/music.json``                        JSON file
``scheme+driver``        ``mysql+pymysql://user:pw@host/music``       SQLAlchemy
``(other path)``         ``./data/music.db``                          SQLite file
=======================  ==========================================  ============

Usage
-----
::

    from modelstore.core.connection import create_store

    store = create_store()                          # in-memory SQLite
    store = create_store("sqlite:///music.db")
    store = create_store("music.json")              # file backend
    store = create_store(StoreSettings())           # from MODELSTORE_* env

Tier: Basic (modelstore)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlsplit

from modelstore.core.adapters import DatabaseAdapter, get_adapter
from modelstore.core.cache import CacheBackend, InMemoryCache, RedisCache
from modelstore.core.errors import ConfigError
from modelstore.core.logging import get_logger
from modelstore.core.settings import StoreSettings

logger = get_logger(__name__)


# ── StoreLocation ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StoreLocation:
    """Where a store lives, parsed from a URL or path."""

    backend: str
    """``"sqlite"``, ``"mysql"``, ``"sqlalchemy"`` or ``"file"``."""

    target: str
    """Path, ``:memory:`` or the URL handed to the backend."""

    url: str
    """The original URL or path."""

    options: dict[str, Any] | None = None
    """Connection keywords (MySQL host, port, credentials)."""

    @property
    def persistent(self) -> bool:
        return self.target != ":memory:"

    @property
    def is_file(self) -> bool:
        return self.backend == "file"


# ── URL parsing ──────────────────────────────────────────────────────────


def _mysql_options(url: str) -> dict[str, Any]:
    parts = urlsplit(url)
    return {
        "host": parts.hostname or "localhost",
        "port": parts.port or 3306,
        "database": parts.path.lstrip("/"),
        "username": unquote(parts.username) if parts.username else None,
        "password": unquote(parts.password) if parts.password else None,
    }


def parse_store_url(url: str | None) -> StoreLocation:
    """Parse a store URL or path into a :class:`StoreLocation`."""
    if url is None or url in ("", "memory", ":memory:"):
        return StoreLocation("sqlite", ":memory:", url or "memory")

    if url.startswith("sqlite://"):
        path = url[len("sqlite:///"):] if url.startswith("sqlite:///") else url[len("sqlite://"):]
        if not path or path == ":memory:":
            return StoreLocation("sqlite", ":memory:", url)
        return StoreLocation("sqlite", path, url)

    if url.startswith(("mysql://", "mariadb://")):
        return StoreLocation("mysql", url, url, options=_mysql_options(url))

    if url.startswith("file://"):
        path = url[len("file://"):]
        if not path:
            raise ConfigError(f"File store URL without a path: {url}")
        return StoreLocation("file", path, url)

    scheme, sep, _ = url.partition("://")
    if sep and "+" in scheme:
        return StoreLocation("sqlalchemy", url, url)
    if sep:
        raise ConfigError(f"Unsupported store URL scheme: {scheme}")

    # Bare path: JSON document or SQLite file
    if url.lower().endswith(".json"):
        return StoreLocation("file", url, url)
    return StoreLocation("sqlite", url, url)


# ── Factories ────────────────────────────────────────────────────────────


def create_adapter(location: StoreLocation) -> DatabaseAdapter:
    """Database adapter for a relational location."""
    if location.backend == "sqlite":
        if location.persistent:
            Path(location.target).parent.mkdir(parents=True, exist_ok=True)
        return get_adapter("sqlite", path=location.target)
    if location.backend == "mysql":
        return get_adapter("mysql", **(location.options or {}))
    if location.backend == "sqlalchemy":
        return get_adapter("sqlalchemy", url=location.target)
    raise ConfigError(f"{location.backend} locations have no database adapter")


def create_cache(settings: StoreSettings) -> CacheBackend:
    """Cache backend selected by ``settings.cache_backend``."""
    if settings.cache_backend == "redis":
        return RedisCache(settings.cache_url, default_ttl_seconds=settings.cache_ttl_seconds)
    return InMemoryCache(max_size=settings.cache_max_size, default_ttl_seconds=settings.cache_ttl_seconds)


def create_store(
    source: str | StoreSettings | None = None,
    *,
    cache: bool | None = None,
):
    """Create a store from a URL, a path or :class:`StoreSettings`.

    Parameters
    ----------
    source:
        Store URL or path (see the module table), a settings object, or
        ``None`` for in-memory SQLite.  A URL string uses default settings
        for everything but the location.

    cache:
        Override ``settings.cache_enabled``.  ``None`` follows the settings.

    Returns
    -------
    Store
        ``SqlStore`` or ``FileStore``, wrapped in ``CachedStore`` when the
        cache is enabled.

    Examples
    --------
    ::

        store = create_store("sqlite:///music.db", cache=False)
        store.build([Artist, Album, Track])
    """
    from modelstore.store.cache import CachedStore
    from modelstore.store.file import FileStore
    from modelstore.store.sql import SqlStore

    if isinstance(source, StoreSettings):
        settings = source
    else:
        settings = StoreSettings(url=source or "memory")

    location = parse_store_url(settings.url)
    if location.is_file:
        store = FileStore(location.target, indent=settings.json_indent)
    else:
        store = SqlStore(
            create_adapter(location),
            relation_tables=settings.relation_tables,
            batch=settings.batch_restore,
            rename_policy=settings.rename_policy,
        )

    enabled = settings.cache_enabled if cache is None else cache
    if enabled:
        store = CachedStore(store, create_cache(settings), ttl_seconds=settings.cache_ttl_seconds)

    logger.debug(
        "store_created",
        backend=location.backend,
        persistent=location.persistent,
        cached=enabled,
    )
    return store


__all__ = [
    "StoreLocation",
    "parse_store_url",
    "create_adapter",
    "create_cache",
    "create_store",
]
