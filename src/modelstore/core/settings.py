"""Store settings.

Configuration is explicit, validated and environment-driven.
``StoreSettings`` reads ``MODELSTORE_*`` variables (and a ``.env`` file) so a
deployment can switch from a JSON file to SQLite or MySQL without touching
code.

Examples:
    >>> from modelstore.core.settings import StoreSettings
    >>> settings = StoreSettings(url="sqlite:///data/music.db", cache_enabled=False)
    >>> settings.relation_tables
    True

Environment::

    MODELSTORE_URL=mysql://app:secret@db:3306/music
    MODELSTORE_CACHE_BACKEND=redis
    MODELSTORE_CACHE_URL=redis://cache:6379/2

Tags:
    settings, configuration, pydantic, environment, modelstore
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Settings for building a store with :func:`~modelstore.core.connection.create_store`.

    Fields
    ──────
    url               : Store location (``memory``, ``sqlite:///...``,
                        ``mysql://...``, ``file:///....json``, any SQLAlchemy URL)
    relation_tables   : Store identifiable collections in relation tables
                        (False keeps inline JSON id lists)
    batch_restore     : Hydrate nested references with grouped queries
    rename_policy     : How ``build`` pairs dropped and created columns
    cache_enabled     : Wrap the store in the cache middleware
    cache_backend     : ``memory`` or ``redis``
    json_indent       : Indentation of the file backend's document
    """

    model_config = SettingsConfigDict(
        env_prefix="MODELSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Backend ──────────────────────────────────────────────────
    url: str = Field(default="memory", description="Store location URL or path")
    relation_tables: bool = True
    batch_restore: bool = True
    rename_policy: Literal["explicit", "unambiguous", "greedy"] = "unambiguous"

    # ── Cache ────────────────────────────────────────────────────
    cache_enabled: bool = True
    cache_backend: Literal["memory", "redis"] = "memory"
    cache_url: str = "redis://localhost:6379/0"
    cache_max_size: int = Field(default=10_000, gt=0)
    cache_ttl_seconds: int | None = None

    # ── File backend ─────────────────────────────────────────────
    json_indent: int | None = None


__all__ = [
    "StoreSettings",
]
