"""Tests for modelstore.core.dialect."""

import pytest

from modelstore.core.dialect import Dialect, MySQLDialect, SQLiteDialect, get_dialect, register_dialect


class TestSQLiteDialect:
    """SQLite quoting, placeholders and upserts."""

    def test_quote_escapes(self):
        d = SQLiteDialect()
        assert d.quote("artist") == '"artist"'
        assert d.quote('we"ird') == '"we""ird"'

    def test_placeholders(self):
        assert SQLiteDialect().placeholders(3) == "?, ?, ?"

    def test_upsert(self):
        sql = SQLiteDialect().upsert("artist", ["id", "last_name"], ["id"])
        assert sql == (
            'INSERT INTO "artist" ("id", "last_name") VALUES (?, ?) '
            'ON CONFLICT ("id") DO UPDATE SET "last_name" = excluded."last_name"'
        )

    def test_upsert_key_only(self):
        sql = SQLiteDialect().upsert("tag", ["id"], ["id"])
        assert sql.endswith("DO NOTHING")


class TestMySQLDialect:
    """MySQL quoting, placeholders and upserts."""

    def test_quote(self):
        assert MySQLDialect().quote("album") == "`album`"

    def test_placeholders(self):
        assert MySQLDialect().placeholders(2) == "%s, %s"

    def test_upsert(self):
        sql = MySQLDialect().upsert("artist", ["id", "last_name"], ["id"])
        assert sql.endswith("ON DUPLICATE KEY UPDATE `last_name` = VALUES(`last_name`)")

    def test_json_contains_value_is_json(self):
        assert MySQLDialect().json_contains_value("t1") == '"t1"'


class TestRegistry:
    def test_get_dialect(self):
        assert get_dialect("sqlite").name == "sqlite"
        assert get_dialect("MariaDB").name == "mysql"

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown dialect"):
            get_dialect("oracle")

    def test_register(self):
        register_dialect("testlite", SQLiteDialect())
        assert isinstance(get_dialect("testlite"), Dialect)
