"""Tests for modelstore.store.relations -- ordered link rows per parent."""

from unittest.mock import MagicMock

import pytest

from modelstore.core.dialect import MySQLDialect
from modelstore.store.codec import RowCodec
from modelstore.store.relations import RelationTableManager, unique_ids
from modelstore.store.restorer import BatchRestorer
from modelstore.store.schema import SchemaBuilder
from tests._support.music import Album, Track


@pytest.fixture
def relations(sql_store, adapter):
    for track_id in ("t1", "t2", "t3", "t4"):
        sql_store.set(Track(id=track_id, title=track_id.upper()))
    sql_store.set(Album(id="al1", title="Rain Dogs"))
    sql_store.set(Album(id="al2", title="Bone Machine"))
    return RelationTableManager(adapter, sql_store.builder)


def _rows(adapter):
    return [
        (r["parent_id"], r["child_id"])
        for r in adapter.query('SELECT parent_id, child_id FROM "album_tracks" ORDER BY rowid')
    ]


def test_unique_ids_keeps_first_occurrence():
    assert unique_ids(["b", "a", "b", None, "c", "a"]) == ["b", "a", "c"]


def test_table_name(relations):
    assert relations.table_name(Album, "tracks") == "album_tracks"


def test_ensure_registers_once(relations):
    first = relations.ensure(Album, Track, "tracks")
    assert relations.ensure(Album, Track, "tracks") is first
    assert relations.tables() == [first]


def test_insert_in_order(relations):
    assert relations.update(Album, "tracks", "al1", ["t2", "t1"]) == 2
    assert relations.stored_ids(Album, "tracks", "al1") == ["t2", "t1"]


def test_unchanged_is_a_no_op(relations, adapter):
    relations.update(Album, "tracks", "al1", ["t1", "t2"])
    before = _rows(adapter)
    assert relations.update(Album, "tracks", "al1", ["t1", "t2"]) == 0
    assert _rows(adapter) == before


def test_append_keeps_existing_rows(relations, adapter):
    relations.update(Album, "tracks", "al1", ["t1", "t2"])
    assert relations.update(Album, "tracks", "al1", ["t1", "t2", "t3"]) == 1
    assert _rows(adapter) == [("al1", "t1"), ("al1", "t2"), ("al1", "t3")]


def test_removal(relations):
    relations.update(Album, "tracks", "al1", ["t1", "t2", "t3"])
    assert relations.update(Album, "tracks", "al1", ["t1", "t3"]) == 1
    assert relations.stored_ids(Album, "tracks", "al1") == ["t1", "t3"]


def test_mixed_removal_and_addition(relations):
    relations.update(Album, "tracks", "al1", ["t1", "t2", "t3"])
    assert relations.update(Album, "tracks", "al1", ["t1", "t3", "t4"]) == 2
    assert relations.stored_ids(Album, "tracks", "al1") == ["t1", "t3", "t4"]


def test_reorder_rewrites(relations):
    relations.update(Album, "tracks", "al1", ["t1", "t2", "t3"])
    assert relations.update(Album, "tracks", "al1", ["t3", "t1"]) == 5
    assert relations.stored_ids(Album, "tracks", "al1") == ["t3", "t1"]


def test_duplicates_stored_once(relations):
    relations.update(Album, "tracks", "al1", ["t1", "t2", "t1"])
    assert relations.stored_ids(Album, "tracks", "al1") == ["t1", "t2"]


def test_clear(relations):
    relations.update(Album, "tracks", "al1", ["t1", "t2"])
    assert relations.update(Album, "tracks", "al1", []) == 2
    assert relations.stored_ids(Album, "tracks", "al1") == []


def test_parents_are_independent(relations):
    relations.update(Album, "tracks", "al1", ["t1", "t2"])
    relations.update(Album, "tracks", "al2", ["t2", "t3"])
    relations.delete(Album, "tracks", "al1")
    assert relations.stored_ids(Album, "tracks", "al1") == []
    assert relations.stored_ids(Album, "tracks", "al2") == ["t2", "t3"]


def _positions(adapter):
    return [
        (r["child_id"], r["position"])
        for r in adapter.query('SELECT child_id, position FROM "album_tracks" ORDER BY rowid')
    ]


def test_positions_follow_collection_order(relations, adapter):
    relations.update(Album, "tracks", "al1", ["t2", "t1"])
    assert _positions(adapter) == [("t2", 0), ("t1", 1)]


def test_append_continues_after_highest_position(relations, adapter):
    relations.update(Album, "tracks", "al1", ["t1", "t2", "t3"])
    relations.update(Album, "tracks", "al1", ["t1", "t3", "t4"])
    assert _positions(adapter) == [("t1", 0), ("t3", 2), ("t4", 3)]


def test_read_order_comes_from_position_not_insertion(relations, sql_store, adapter):
    adapter.executemany(
        'INSERT INTO "album_tracks" (parent_id, child_id, position) VALUES (?, ?, ?)',
        [("al1", "t2", 1), ("al1", "t1", 0)],
    )
    assert relations.stored_ids(Album, "tracks", "al1") == ["t1", "t2"]
    assert [t.id for t in sql_store.get(Album, "al1").tracks] == ["t1", "t2"]


def test_store_set_reconciles_links(sql_store, adapter, album):
    sql_store.set(album)
    album.tracks = [album.tracks[1]]
    sql_store.set(album)
    assert _rows(adapter) == [("al1", "t2")]
    # the unlinked track itself survives
    assert sql_store.exists(Track, "t1")


def test_mysql_reads_order_by_position():
    adapter = MagicMock()
    adapter.dialect = MySQLDialect()
    adapter.query.return_value = []
    RelationTableManager(adapter).stored_ids(Album, "tracks", "al1")
    BatchRestorer(adapter, RowCodec(MagicMock()), SchemaBuilder())._select_related(
        Album, Album.get_property("tracks"), ["al1"]
    )
    stored, joined = (call.args[0] for call in adapter.query.call_args_list)
    assert stored == (
        "SELECT `child_id`, `position` FROM `album_tracks` "
        "WHERE `parent_id` = %s ORDER BY `position`"
    )
    assert joined.endswith("WHERE R.`parent_id` IN (%s) ORDER BY R.`position`")
