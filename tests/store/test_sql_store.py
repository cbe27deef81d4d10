"""Tests for modelstore.store.sql -- relational behavior beyond the contract."""

import json

import pytest

from modelstore.core.errors import ConstraintViolation
from modelstore.store.sql import SqlStore, StatementCache
from tests._support.music import MUSIC, TOM_WAITS_ID, Album, Artist, Person, Track, rain_dogs


class TestConstraints:
    def test_duplicate_unique_value(self, sql_store):
        sql_store.set(Album(id="al1", title="Rain Dogs"))
        with pytest.raises(ConstraintViolation) as exc:
            sql_store.set(Album(id="al2", title="Rain Dogs"))
        assert exc.value.context.model_id == "al2"

    def test_failed_set_writes_nothing(self, sql_store):
        sql_store.set(Album(id="al1", title="Rain Dogs"))
        with pytest.raises(ConstraintViolation):
            sql_store.set(Album(id="al2", title="Rain Dogs", tracks=[Track(id="t9", title="Cemetery Polka")]))
        assert not sql_store.exists(Track, "t9")
        assert not sql_store.exists(Album, "al2")

    def test_dangling_reference(self, sql_store):
        with pytest.raises(ConstraintViolation):
            sql_store.set(Album(id="al1", title="Rain Dogs", artist="no-such-artist"))

    def test_same_id_is_an_update(self, sql_store):
        sql_store.set(Track(id="t1", title="Singapore"))
        sql_store.set(Track(id="t1", title="Singapore (Live)"))
        assert [t.title for t in sql_store.all(Track)] == ["Singapore (Live)"]


class TestDelete:
    def test_optional_reference_set_null(self, sql_store, album):
        sql_store.set(album)
        assert sql_store.delete(Artist, TOM_WAITS_ID)
        assert sql_store.get(Album, "al1").artist is None

    def test_deleting_a_child_unlinks_it(self, sql_store, album, adapter):
        sql_store.set(album)
        sql_store.delete(Track, "t1")
        assert [t.id for t in sql_store.get(Album, "al1").tracks] == ["t2"]

    def test_deleting_the_parent_drops_links_only(self, sql_store, album, adapter):
        sql_store.set(album)
        assert sql_store.delete(Album, "al1")
        assert adapter.query('SELECT * FROM "album_tracks"') == []
        assert sql_store.exists(Track, "t1") and sql_store.exists(Track, "t2")

    def test_missing(self, sql_store):
        assert sql_store.delete(Album, "nope") is False
        assert sql_store.delete(Album, None) is False


class TestStorageShape:
    def test_rows(self, sql_store, album, adapter):
        sql_store.set(album)
        row = adapter.query_one('SELECT * FROM "album" WHERE id = ?', ("al1",))
        assert row["artist"] == TOM_WAITS_ID
        assert "tracks" not in row
        assert "track_count" not in row
        assert json.loads(row["meta"]) == {"label": "Island", "catalog": ["ILPS 9803"]}

        track = adapter.query_one('SELECT * FROM "track" WHERE id = ?', ("t2",))
        assert track["explicit"] == 1

    def test_inline_collection_column(self, inline_store, album):
        inline_store.set(album)
        row = inline_store.adapter.query_one('SELECT tracks FROM "album" WHERE id = ?', ("al1",))
        assert json.loads(row["tracks"]) == ["t1", "t2"]

    def test_self_reference_cycle_round_trip(self, people_store):
        ann = Person(id="ann", name="Ann")
        ann.friend = Person(id="bob", name="Bob", friend=ann)
        people_store.set(ann)

        rows = people_store.adapter.query('SELECT id, friend FROM "person" ORDER BY id')
        assert rows == [{"id": "ann", "friend": "bob"}, {"id": "bob", "friend": "ann"}]


class TestStatementCache:
    def test_render_once_per_shape(self):
        cache = StatementCache()
        calls = []

        def render():
            calls.append(1)
            return "SELECT 1"

        assert cache.get(("exists", "album"), render) == "SELECT 1"
        cache.get(("exists", "album"), render)
        cache.get(("exists", "track"), render)
        assert len(calls) == 2
        assert len(cache) == 2
        cache.clear()
        assert len(cache) == 0

    def test_repeated_writes_reuse_statements(self, sql_store):
        sql_store.set(rain_dogs())
        size = len(sql_store.statements)
        sql_store.set(rain_dogs())
        sql_store.filter(Track, {"duration": 166})
        sql_store.filter(Track, {"duration": 227})
        sql_store.filter(Track, {"duration": 1})
        assert len(sql_store.statements) == size + 1

    def test_membership_size_is_part_of_the_shape(self, sql_store):
        sql_store.filter(Track, {"id": ["a"]})
        size = len(sql_store.statements)
        sql_store.filter(Track, {"id": ["a", "b"]})
        assert len(sql_store.statements) == size + 1


class TestLifecycle:
    def test_info(self, adapter):
        store = SqlStore(adapter)
        assert store.info("ready") is False
        store.build(MUSIC)
        info = store.info()
        assert info["type"] == "sql"
        assert info["dialect"] == "sqlite"
        assert info["ready"] is True
        assert info["connected"] is True
        assert info["relation_tables"] is True
        assert store.info("nope") is None

    def test_close_disconnects(self, adapter):
        store = SqlStore(adapter)
        store.build(MUSIC)
        store.close()
        assert store.info("connected") is False

    def test_flush_has_nothing_to_do(self, sql_store):
        assert sql_store.flush() is False

    def test_row_at_a_time_restore(self, adapter, album):
        store = SqlStore(adapter, batch=False)
        store.build(MUSIC)
        store.set(album)
        assert [t.id for t in store.get(Album, "al1").tracks] == ["t1", "t2"]
