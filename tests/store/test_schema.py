"""Tests for modelstore.store.schema -- table derivation."""

import pytest

from modelstore.core.errors import SchemaError
from modelstore.model import (
    BoolProperty,
    EmailProperty,
    FloatProperty,
    IntProperty,
    MixedProperty,
    Model,
    ObjectProperty,
    StringProperty,
)
from modelstore.store.schema import (
    PRIMARY,
    Column,
    ForeignKey,
    Index,
    IndexKind,
    SchemaBuilder,
    closure,
    relation_properties,
)
from tests._support.music import Address, Album, Artist, Person, Track, Venue


class Catalogue(Model):
    primary = "code"
    properties = (
        IntProperty("code"),
        StringProperty("name", max_len=300),
        StringProperty("slug", max_len=300, unique="slug"),
        StringProperty("region", max_len=8, default="EU", index="place"),
        StringProperty("city", max_len=32, index="place"),
        StringProperty("notes"),
        BoolProperty("active", default=True),
        FloatProperty("price", default=1),
        MixedProperty("blob", default=b"x"),
    )


@pytest.fixture
def builder():
    return SchemaBuilder()


class TestColumnTypes:
    """Column type per property variant."""

    def test_music_tables(self, builder):
        assert builder.table(Track).columns == (
            Column("id", "varchar(36)", required=True),
            Column("title", "varchar(128)", required=True),
            Column("duration", "bigint"),
            Column("explicit", "tinyint(1)", default=0),
            Column("tags", "text"),
        )
        assert [(c.name, c.type) for c in builder.table(Album).columns] == [
            ("id", "varchar(36)"),
            ("title", "varchar(128)"),
            ("artist", "char(36)"),
            ("rating", "decimal(32,10)"),
            ("released", "varchar(10)"),
            ("meta", "text"),
            ("extra", "varbinary(255)"),
        ]

    def test_string_lengths(self, builder):
        columns = {c.name: c for c in builder.table(Catalogue).columns}
        assert columns["name"].type == "text"
        assert columns["slug"].type == "varchar(255)"
        assert columns["region"].type == "varchar(8)"
        assert columns["notes"].type == "text"

    def test_email_is_capped(self, builder):
        class Contact(Model):
            primary = "email"
            properties = (
                EmailProperty("email"),
                EmailProperty("backup", max_len=64),
                EmailProperty("legacy", max_len=1000),
            )

        assert [c.type for c in builder.table(Contact).columns] == [
            "varchar(255)",
            "varchar(64)",
            "varchar(255)",
        ]

    def test_defaults(self, builder):
        columns = {c.name: c for c in builder.table(Catalogue).columns}
        assert columns["code"] == Column("code", "bigint", required=True)
        assert columns["region"].default == "EU"
        assert columns["active"].default == 1
        assert columns["price"].default == 1.0
        assert columns["blob"].default is None

    def test_inline_collections_are_text(self):
        columns = {c.name: c for c in SchemaBuilder(relation_tables=False).table(Album).columns}
        assert columns["tracks"].type == "text"

    def test_match_and_function_are_not_columns(self, builder):
        names = [c.name for c in builder.table(Artist).columns]
        assert names == ["id", "first_name", "last_name"]
        assert "track_count" not in [c.name for c in builder.table(Album).columns]

    def test_embedded_value_is_text(self, builder):
        assert builder.table(Venue).column("address").type == "text"
        assert builder.table(Venue).column("owner").type == "varchar(36)"

    def test_nested_primary_key_rejected(self, builder):
        class Odd(Model):
            primary = "ref"
            properties = (ObjectProperty("ref", model=Artist),)

        class Holder(Model):
            primary = "id"
            properties = (StringProperty("id", max_len=8), ObjectProperty("odd", model=Odd))

        with pytest.raises(SchemaError, match="primary key"):
            builder.table(Holder)


class TestIndexes:
    def test_groups_in_declaration_order(self, builder):
        assert builder.table(Catalogue).indexes == (
            Index(PRIMARY, IndexKind.PRIMARY, ("code",)),
            Index("slug", IndexKind.UNIQUE, ("slug",)),
            Index("place", IndexKind.INDEX, ("region", "city")),
        )

    def test_foreign_key_columns_are_indexed(self, builder):
        assert builder.table(Album).indexes == (
            Index(PRIMARY, IndexKind.PRIMARY, ("id",)),
            Index("album_title", IndexKind.UNIQUE, ("title",)),
            Index("artist", IndexKind.INDEX, ("artist",)),
        )


class TestForeignKeys:
    def test_optional_reference_sets_null(self, builder):
        assert builder.table(Album).foreign_keys == (
            ForeignKey("album_artist", ("artist",), "artist", ("id",), "CASCADE", "SET NULL"),
        )

    def test_scalar_foreign(self, builder):
        (key,) = builder.table(Venue).foreign_keys
        assert key.name == "venue_owner"
        assert key.ref_table == "artist"

    def test_self_reference(self, builder):
        (key,) = builder.table(Person).foreign_keys
        assert (key.ref_table, key.on_delete) == ("person", "SET NULL")


class TestRelationTables:
    def test_schema(self, builder):
        table = builder.relation_table(Album, Track, "tracks")
        assert table.name == "album_tracks"
        assert table.columns == (
            Column("parent_id", "varchar(36)", required=True),
            Column("child_id", "varchar(36)", required=True),
            Column("position", "bigint", required=True, default=0),
        )
        assert [i.name for i in table.indexes] == ["parent_id", "child_id"]
        assert [(k.name, k.ref_table, k.on_delete) for k in table.foreign_keys] == [
            ("album_tracks_parent_id", "album", "CASCADE"),
            ("album_tracks_child_id", "track", "CASCADE"),
        ]
        assert table.primary is None

    def test_needs_keys_on_both_sides(self, builder):
        with pytest.raises(SchemaError):
            builder.relation_table(Venue, Address, "address")

    def test_relation_properties(self):
        assert [p.id for p in relation_properties(Album)] == ["tracks"]
        assert relation_properties(Artist) == []


class TestClosure:
    def test_follows_references(self):
        assert closure([Album]) == [Album, Artist, Track]

    def test_skips_keyless_and_repeats(self):
        assert closure([Venue, Artist]) == [Venue, Artist, Album, Track]
        assert closure([Person]) == [Person]
