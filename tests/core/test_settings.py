"""Tests for modelstore.core.settings."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from modelstore.core.settings import StoreSettings


class TestStoreSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MODELSTORE_URL", raising=False)
        settings = StoreSettings(_env_file=None)
        assert settings.url == "memory"
        assert settings.relation_tables is True
        assert settings.batch_restore is True
        assert settings.rename_policy == "unambiguous"
        assert settings.cache_backend == "memory"

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("MODELSTORE_URL", "sqlite:///music.db")
        monkeypatch.setenv("MODELSTORE_RELATION_TABLES", "false")
        monkeypatch.setenv("MODELSTORE_CACHE_ENABLED", "0")
        settings = StoreSettings(_env_file=None)
        assert settings.url == "sqlite:///music.db"
        assert settings.relation_tables is False
        assert settings.cache_enabled is False

    def test_invalid_policy(self):
        with pytest.raises(PydanticValidationError):
            StoreSettings(_env_file=None, rename_policy="sometimes")

    def test_cache_size_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            StoreSettings(_env_file=None, cache_max_size=0)
