"""The store contract, run against every backend (SQL, inline SQL, JSON file)."""

import pytest

from modelstore.core.errors import QueryError, SchemaError, ValidationError
from modelstore.model import Range
from tests._support.music import TOM_WAITS_ID, Address, Album, Artist, Track, rain_dogs


class TestTomWaits:
    def test_set_filter_delete(self, any_store):
        artist = any_store.set(Artist(first_name="Tom", last_name="Waits"))

        assert any_store.filter(Artist, {"last_name": "Waits"}) == [artist]
        assert any_store.filter(Artist, {"last_name": "Nobody"}) == []

        assert any_store.delete(Artist, artist.id) is True
        assert any_store.exists(Artist, artist.id) is False
        assert any_store.delete(Artist, artist.id) is False


class TestReads:
    @pytest.fixture
    def store(self, any_store):
        any_store.set(rain_dogs())
        return any_store

    def test_get(self, store):
        album = store.get(Album, "al1")
        assert album.title == "Rain Dogs"
        assert album.artist.last_name == "Waits"
        assert [t.title for t in album.tracks] == ["Singapore", "Clap Hands"]

    def test_get_missing(self, store):
        assert store.get(Album, "nope") is None
        assert store.get(Album, None) is None
        assert store.exists(Album, None) is False

    def test_list_in_requested_order(self, store):
        assert [t.id for t in store.list(Track, ["t2", "missing", "t1", "t2"])] == ["t2", "t1"]

    def test_list_everything(self, store):
        assert sorted(t.id for t in store.list(Track)) == ["t1", "t2"]
        assert sorted(t.id for t in store.all(Track)) == ["t1", "t2"]

    def test_nested_values_survive(self, store):
        album = store.get(Album, "al1")
        assert album.meta == {"label": "Island", "catalog": ["ILPS 9803"]}
        assert album.extra == [1, "two"]
        assert album.rating == 4.5
        assert album.released == "1985-09-30"
        assert album.tracks[0].tags == ["opener"]
        assert album.tracks[1].explicit is True

    def test_matched_collection(self, store):
        artist = store.get(Artist, TOM_WAITS_ID)
        assert [a.id for a in artist.albums] == ["al1"]
        # the album's own artist points back at an ancestor
        assert artist.albums[0].artist == TOM_WAITS_ID

    def test_update_overwrites(self, store):
        album = store.get(Album, "al1")
        album.title = "Rain Dogs (Remastered)"
        album.tracks = album.tracks[:1]
        store.set(album)

        again = store.get(Album, "al1")
        assert again.title == "Rain Dogs (Remastered)"
        assert [t.id for t in again.tracks] == ["t1"]


class TestFilter:
    @pytest.fixture
    def store(self, any_store):
        any_store.set(rain_dogs())
        any_store.set(Album(id="al2", title="Bone Machine", tracks=[Track(id="t3", title="Earth Died Screaming", duration=220)]))
        any_store.set(Album(id="al3", title="Mule Variations"))
        return any_store

    def _ids(self, models):
        return sorted(m.id for m in models)

    def test_equality(self, store):
        assert self._ids(store.filter(Album, {"title": "Bone Machine"})) == ["al2"]

    def test_several_keys_all_hold(self, store):
        assert self._ids(store.filter(Track, {"duration": 166, "explicit": False})) == ["t1"]
        assert store.filter(Track, {"duration": 166, "explicit": True}) == []

    def test_membership(self, store):
        assert self._ids(store.filter(Album, {"id": ["al1", "al3", "zzz"]})) == ["al1", "al3"]
        assert store.filter(Album, {"id": []}) == []

    def test_range(self, store):
        assert self._ids(store.filter(Track, {"duration": Range(200, 227)})) == ["t2", "t3"]

    def test_none_matches_missing(self, store):
        assert self._ids(store.filter(Album, {"artist": None})) == ["al2", "al3"]
        assert self._ids(store.filter(Album, {"rating": None})) == ["al2", "al3"]

    def test_model_value_compares_by_id(self, store):
        artist = store.get(Artist, TOM_WAITS_ID)
        assert self._ids(store.filter(Album, {"artist": artist})) == ["al1"]

    def test_reference_by_bare_id(self, store):
        assert self._ids(store.filter(Album, {"artist": TOM_WAITS_ID})) == ["al1"]
        assert store.filter(Album, {"artist": "nobody"}) == []

    def test_reference_membership(self, store):
        assert self._ids(store.filter(Album, {"artist": [TOM_WAITS_ID, "nobody"]})) == ["al1"]
        artist = store.get(Artist, TOM_WAITS_ID)
        assert self._ids(store.filter(Album, {"artist": [artist]})) == ["al1"]

    def test_collection_contains(self, store):
        assert self._ids(store.filter(Album, {"tracks": "t3"})) == ["al2"]
        assert self._ids(store.filter(Album, {"tracks": ["t1", "t3"]})) == ["al1", "al2"]

    def test_empty_collection_matches_none(self, store):
        assert self._ids(store.filter(Album, {"tracks": None})) == ["al3"]

    def test_empty_predicates_list_everything(self, store):
        assert self._ids(store.filter(Album, {})) == ["al1", "al2", "al3"]

    @pytest.mark.parametrize("key", ["nope", "track_count"])
    def test_unfilterable_keys(self, store, key):
        with pytest.raises(QueryError):
            store.filter(Album, {key: 1})

    def test_matched_collection_is_not_filterable(self, store):
        with pytest.raises(QueryError):
            store.filter(Artist, {"albums": "al1"})


class TestWrites:
    def test_invalid_model_rejected(self, any_store):
        with pytest.raises(ValidationError) as exc:
            any_store.set(Artist(first_name="Tom"))
        assert "last_name: required" in exc.value.problems
        assert any_store.all(Artist) == []

    def test_nested_invalid_model_rejected(self, any_store):
        album = rain_dogs()
        album.tracks[0].duration = -1
        with pytest.raises(ValidationError):
            any_store.set(album)
        assert any_store.exists(Album, "al1") is False

    def test_keyless_types_cannot_be_stored_alone(self, any_store):
        with pytest.raises(SchemaError):
            any_store.set(Address(city="Pomona"))
        with pytest.raises(SchemaError):
            any_store.list(Address)

    def test_set_returns_the_model(self, any_store, album):
        assert any_store.set(album) is album

    def test_context_manager(self, any_store):
        with any_store as store:
            store.set(Track(id="t9", title="Jockey Full of Bourbon"))
            assert store.info("type") in ("sql", "file")
