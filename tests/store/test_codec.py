"""Tests for modelstore.store.codec -- split rows out, join them back."""

import json

import pytest

from modelstore.store.codec import RowCodec, SplitRow, model_key, to_json
from tests._support.music import TOM_WAITS_ID, Album, Artist, Person, Track, befriend, rain_dogs


class RecordingSource:
    """Row source that records cascaded writes and serves rows from dicts."""

    def __init__(self, rows=None, links=None):
        self.persisted = []
        self.rows = rows or {}
        self.links = links or {}
        self.fetches = []

    def persist(self, model, visited):
        self.persisted.append(model)
        visited.add(model_key(type(model), model.pk))
        return model.pk

    def fetch(self, model_type, ids):
        self.fetches.append((model_type.type_name(), list(ids)))
        table = self.rows.get(model_type.type_name(), {})
        return [table[i] for i in ids if i in table]

    def fetch_matching(self, model_type, key, value):
        return [r for r in self.rows.get(model_type.type_name(), {}).values() if r.get(key) == value]

    def related_ids(self, parent, prop_id, parent_id):
        return self.links.get((parent.type_name(), prop_id, parent_id), [])


class TestSplit:
    def test_row_and_links(self):
        source = RecordingSource()
        split = RowCodec(source).split(rain_dogs())

        assert isinstance(split, SplitRow)
        assert split.row == {
            "id": "al1",
            "title": "Rain Dogs",
            "artist": TOM_WAITS_ID,
            "rating": 4.5,
            "released": "1985-09-30",
            "meta": '{"label":"Island","catalog":["ILPS 9803"]}',
            "extra": '[1,"two"]',
        }
        assert split.links == {"tracks": ["t1", "t2"]}
        assert [m.pk for m in source.persisted] == [TOM_WAITS_ID, "t1", "t2"]

    def test_inline_collection(self):
        split = RowCodec(RecordingSource(), relation_tables=False).split(rain_dogs())
        assert split.row["tracks"] == '["t1","t2"]'
        assert split.links == {}

    def test_computed_and_matched_properties_are_skipped(self):
        split = RowCodec(RecordingSource()).split(Artist(id=TOM_WAITS_ID, last_name="Waits"))
        assert set(split.row) == {"id", "first_name", "last_name"}

    def test_booleans_become_integers(self):
        split = RowCodec(RecordingSource()).split(Track(id="t2", title="Clap Hands", explicit=True))
        assert split.row["explicit"] == 1
        assert split.row["tags"] == "[]"

    def test_unencoded_keeps_json_values(self):
        codec = RowCodec(RecordingSource(), encode=False)
        split = codec.split(rain_dogs())
        assert split.row["meta"] == {"label": "Island", "catalog": ["ILPS 9803"]}
        assert split.row["extra"] == [1, "two"]

    def test_bare_id_reference_is_not_persisted(self):
        source = RecordingSource()
        album = Album(id="al2", title="Swordfishtrombones", artist=TOM_WAITS_ID)
        split = RowCodec(source).split(album)
        assert split.row["artist"] == TOM_WAITS_ID
        assert source.persisted == []

    def test_cycle_written_once(self):
        source = RecordingSource()
        visited = set()
        split = RowCodec(source).split(befriend("ann", "bob"), visited)

        assert split.row["friend"] == "bob"
        # bob's own split is the store's job; the codec hands him over once
        assert [m.pk for m in source.persisted] == ["bob"]
        assert visited == {("Person", "ann"), ("Person", "bob")}

    def test_visited_model_is_not_persisted_again(self):
        source = RecordingSource()
        person = Person(id="ann", contacts=[Person(id="bob"), Person(id="bob")])
        split = RowCodec(source).split(person, {("Person", "bob")})
        assert split.links == {"contacts": ["bob", "bob"]}
        assert source.persisted == []


class TestDecode:
    def test_decode_row(self):
        codec = RowCodec(RecordingSource())
        data = codec.decode(
            Track,
            {"id": "t2", "title": "Clap Hands", "duration": 227, "explicit": 1, "tags": b'["live"]'},
        )
        assert data == {
            "id": "t2",
            "title": "Clap Hands",
            "duration": 227,
            "explicit": True,
            "tags": ["live"],
        }

    def test_relation_column_ignored_with_relation_tables(self):
        data = RowCodec(RecordingSource()).decode(Album, {"id": "al1", "title": "x", "tracks": "[]"})
        assert "tracks" not in data

    def test_nulls_stay_null(self):
        assert RowCodec(RecordingSource()).decode_value(Album.get_property("meta"), None) is None


class TestJoin:
    def _source(self):
        return RecordingSource(
            rows={
                "Album": {"al1": {"id": "al1", "title": "Rain Dogs", "artist": TOM_WAITS_ID}},
                "Artist": {TOM_WAITS_ID: {"id": TOM_WAITS_ID, "first_name": "Tom", "last_name": "Waits"}},
                "Track": {
                    "t1": {"id": "t1", "title": "Singapore", "explicit": 0, "tags": "[]"},
                    "t2": {"id": "t2", "title": "Clap Hands", "explicit": 1, "tags": "[]"},
                },
            },
            links={("Album", "tracks", "al1"): ["t2", "t1", "gone"]},
        )

    def test_join_resolves_references(self):
        source = self._source()
        album = RowCodec(source).join(Album, source.rows["Album"]["al1"])

        assert isinstance(album.artist, Artist)
        assert album.artist.last_name == "Waits"
        assert [t.title for t in album.tracks] == ["Clap Hands", "Singapore"]
        assert album.tracks[0].explicit is True

    def test_match_back_to_ancestor_stays_id(self):
        source = self._source()
        album = RowCodec(source).join(Album, source.rows["Album"]["al1"])
        assert album.artist.albums == ["al1"]

    def test_missing_reference_kept_as_id(self):
        source = self._source()
        row = {"id": "al2", "title": "Bone Machine", "artist": "nobody"}
        assert RowCodec(source).join(Album, row).artist == "nobody"

    def test_cycle_through_self_reference(self):
        source = RecordingSource(
            rows={
                "Person": {
                    "ann": {"id": "ann", "name": "Ann", "friend": "bob"},
                    "bob": {"id": "bob", "name": "Bob", "friend": "ann"},
                }
            }
        )
        ann = RowCodec(source).join(Person, source.rows["Person"]["ann"])
        assert ann.friend.name == "Bob"
        assert ann.friend.friend == "ann"


def test_to_json_is_compact_and_unicode():
    assert to_json({"name": "Björk", "tags": [Track(id="t9", title="Joga")]}) == (
        '{"name":"Björk","tags":[{"id":"t9","title":"Joga","explicit":false,"tags":[]}]}'
    )


def test_model_key_stringifies_ids():
    assert model_key(Track, 7) == model_key(Track, "7") == ("Track", "7")


@pytest.mark.parametrize("store_fixture", ["sql_store", "inline_store"])
def test_round_trip_through_sql(request, store_fixture):
    store = request.getfixturevalue(store_fixture)
    store.set(rain_dogs())
    restored = store.get(Album, "al1")

    assert restored.title == "Rain Dogs"
    assert restored.artist.first_name == "Tom"
    assert [(t.id, t.explicit, t.tags) for t in restored.tracks] == [
        ("t1", False, ["opener"]),
        ("t2", True, []),
    ]
    assert restored.meta == {"label": "Island", "catalog": ["ILPS 9803"]}
    assert restored.extra == [1, "two"]
    assert restored.track_count == 2
    assert json.loads(str(restored))["rating"] == 4.5
