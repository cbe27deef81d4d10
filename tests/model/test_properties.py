"""Tests for modelstore.model.properties -- descriptor variants and classification."""

import uuid
from datetime import date, datetime, time
from decimal import Decimal

import pytest

from modelstore.core.errors import SchemaError
from modelstore.model.properties import (
    ArrayProperty,
    BoolProperty,
    DateProperty,
    DateTimeProperty,
    EmailProperty,
    FloatProperty,
    FunctionProperty,
    IntProperty,
    MixedProperty,
    ObjectProperty,
    PropertyType,
    StringProperty,
    TimeProperty,
    UrlProperty,
    UuidProperty,
    is_column,
    is_match,
    is_reference,
    is_relation,
    needs_foreign_key,
    referenced_model,
    resolve_model,
)
from tests._support.music import Address, Album, Artist, Track, Venue


class TestScalarVariants:
    """prepare() coercion and check() problems per semantic type."""

    def test_bool(self):
        prop = BoolProperty("flag")
        assert prop.prepare("yes") is True
        assert prop.prepare(0) is False
        assert prop.prepare(Decimal(1)) is True
        assert prop.check("maybe") == ["must be a boolean"]

    def test_int(self):
        prop = IntProperty("n", minimum=0, maximum=10)
        assert prop.prepare(" 7 ") == 7
        assert prop.prepare(3.0) == 3
        assert prop.prepare(Decimal("4")) == 4
        assert prop.check(11) == ["must be <= 10"]
        assert prop.check(True) == ["must be an integer"]

    def test_float(self):
        prop = FloatProperty("x", minimum=0)
        assert prop.prepare(Decimal("1.5")) == 1.5
        assert prop.prepare("2.25") == 2.25
        assert prop.check(-1.0) == ["must be >= 0"]
        assert prop.check("a") == ["must be a number"]

    def test_string(self):
        prop = StringProperty("s", max_len=3, pattern=r"[a-z]+")
        assert prop.prepare(b"abc") == "abc"
        assert prop.check("abcd") == ["must be at most 3 characters"]
        assert prop.check("AB") == ["must match [a-z]+"]
        assert prop.check(5) == ["must be a string"]

    def test_url_and_email(self):
        assert UrlProperty("u").check("https://tomwaits.com") == []
        assert UrlProperty("u").check("tomwaits") == ["must be an absolute url"]
        assert EmailProperty("e").check("tom@waits.com") == []
        assert EmailProperty("e").check("tom") == ["must be an email address"]

    def test_uuid(self):
        prop = UuidProperty("id", auto=True)
        generated = prop.get_default()
        assert uuid.UUID(generated)
        assert prop.get_default() != generated
        assert prop.prepare(uuid.UUID(int=1)) == "00000000-0000-0000-0000-000000000001"
        assert prop.check("nope") == ["must be a uuid"]
        assert UuidProperty("id").get_default() is None

    def test_temporal(self):
        assert DateTimeProperty("d").prepare(datetime(2024, 1, 2, 3, 4)) == "2024-01-02T03:04:00"
        assert DateProperty("d").prepare(datetime(2024, 1, 2, 3, 4)) == "2024-01-02"
        assert DateProperty("d").prepare(date(2024, 1, 2)) == "2024-01-02"
        assert TimeProperty("t").prepare(time(9, 30)) == "09:30:00"
        assert DateProperty("d").check("02/01/2024") == ["must be an ISO date"]
        assert TimeProperty("t").check("25:00") == ["must be an ISO time"]

    def test_semantic_types(self):
        assert MixedProperty("m").semantic_type is PropertyType.MIXED
        assert ArrayProperty("a").semantic_type is PropertyType.ARRAY
        assert FunctionProperty("f").semantic_type is PropertyType.FUNCTION

    def test_defaults_are_copied(self):
        prop = ObjectProperty("o", default={"a": []})
        first = prop.get_default()
        first["a"].append(1)
        assert prop.get_default() == {"a": []}

    def test_arrays_default_to_empty_list(self):
        assert ArrayProperty("a").get_default() == []
        assert ArrayProperty("a", default=[1]).get_default() == [1]

    def test_descriptors_are_frozen(self):
        prop = StringProperty("s")
        with pytest.raises(AttributeError):
            prop.max_len = 5


class TestNestedVariants:
    def test_object_prepares_dicts_into_models(self):
        prop = Album.get_property("artist")
        artist = prop.prepare({"id": "a1", "last_name": "Waits"})
        assert isinstance(artist, Artist)
        assert prop.prepare("a1") == "a1"

    def test_object_check(self):
        prop = Album.get_property("artist")
        assert prop.check(Artist(last_name="Waits")) == []
        assert prop.check("a1") == []
        assert prop.check(Track(id="t1", title="x")) == ["must be a Artist"]
        assert ObjectProperty("meta").check([1]) == ["must be an object"]

    def test_array_prepare_and_check(self):
        prop = Album.get_property("tracks")
        items = prop.prepare(({"id": "t1", "title": "Singapore"}, "t2"))
        assert isinstance(items[0], Track)
        assert items[1] == "t2"
        assert prop.check(items) == []
        assert prop.check([{"x": 1}]) == ["0: must be a Track"]
        assert prop.check("t1") == ["must be an array"]

    def test_resolve_model(self):
        assert resolve_model("Album") is Album
        assert resolve_model(Track) is Track
        with pytest.raises(SchemaError):
            resolve_model("Nothing")


class TestClassification:
    """Which properties become columns, relations and foreign keys."""

    def test_reference(self):
        prop = Album.get_property("artist")
        assert is_reference(prop)
        assert needs_foreign_key(prop)
        assert referenced_model(prop) is Artist

    def test_relation(self):
        prop = Album.get_property("tracks")
        assert is_relation(prop)
        assert not is_column(prop)
        assert is_column(prop, relation_tables=False)
        assert not needs_foreign_key(prop)

    def test_match(self):
        prop = Artist.get_property("albums")
        assert is_match(prop)
        assert not is_relation(prop)
        assert not is_column(prop, relation_tables=False)

    def test_embedded_and_plain(self):
        assert not is_reference(Venue.get_property("address"))
        assert is_column(Venue.get_property("address"))
        assert not is_relation(Track.get_property("tags"))
        assert Address.primary is None

    def test_foreign_scalar(self):
        prop = Venue.get_property("owner")
        assert needs_foreign_key(prop)
        assert referenced_model(prop) is Artist

    def test_function_is_never_a_column(self):
        assert not is_column(Album.get_property("track_count"))
