"""
Shared pytest fixtures for modelstore tests.

This module provides:
- Store fixtures: in-memory SQLite (relation tables and inline JSON), a
  JSON file store under ``tmp_path``, and every backend in turn
- A query-counting SQLite adapter for the batch-restore bound
- A fresh copy of the sample album

Models live in ``tests/_support/music.py``.

Usage:
    def test_something(sql_store):
        sql_store.set(Artist(first_name="Tom", last_name="Waits"))
"""

from __future__ import annotations

from typing import Any

import pytest

from modelstore.core.adapters import SQLiteAdapter
from modelstore.store import FileStore, SqlStore
from tests._support.music import MUSIC, Album, Person, rain_dogs


# =============================================================================
# Adapters
# =============================================================================


class CountingAdapter(SQLiteAdapter):
    """In-memory SQLite adapter recording every SELECT it runs."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.selects: list[str] = []

    def query(self, sql, params=()):
        if sql.lstrip().upper().startswith("SELECT"):
            self.selects.append(sql)
        return super().query(sql, params)

    def reset(self) -> None:
        self.selects.clear()


@pytest.fixture
def adapter():
    adapter = SQLiteAdapter(":memory:")
    yield adapter
    adapter.disconnect()


@pytest.fixture
def counting_adapter():
    adapter = CountingAdapter(":memory:")
    yield adapter
    adapter.disconnect()


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def sql_store(adapter):
    """Relational store with relation tables, music models built."""
    store = SqlStore(adapter)
    store.build(MUSIC)
    return store


@pytest.fixture
def people_store(sql_store):
    """Relational store with the self-referencing Person model built as well."""
    sql_store.build([Person])
    return sql_store


@pytest.fixture
def inline_store():
    """Relational store keeping collections as inline JSON id lists."""
    store = SqlStore(SQLiteAdapter(":memory:"), relation_tables=False)
    store.build(MUSIC)
    yield store
    store.close()


@pytest.fixture
def file_store(tmp_path):
    store = FileStore(tmp_path / "music.json", indent=2)
    store.build(MUSIC)
    return store


@pytest.fixture(params=["sql", "inline", "file"])
def any_store(request, tmp_path):
    """Each backend in turn, music models built."""
    if request.param == "file":
        store = FileStore(tmp_path / "music.json")
    else:
        store = SqlStore(SQLiteAdapter(":memory:"), relation_tables=request.param == "sql")
    store.build(MUSIC)
    yield store
    store.close()


@pytest.fixture
def album() -> Album:
    return rain_dogs()
