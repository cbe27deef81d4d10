"""
modelstore - persistence for declarative record models.

Define models once, store them in SQLite, MySQL or a JSON file, and read
them back as fully hydrated object graphs::

    from modelstore import Model, StringProperty, create_store

    class Artist(Model):
        primary = "id"
        properties = (
            StringProperty("id"),
            StringProperty("last_name", index="last_name"),
        )

    store = create_store("sqlite:///music.db")
    store.build([Artist])
    store.set(Artist(id="a1", last_name="Waits"))
"""

__version__ = "0.1.0"

from modelstore.core.connection import StoreLocation, create_store, parse_store_url
from modelstore.core.errors import (
    ConfigError,
    ConstraintViolation,
    QueryError,
    SchemaError,
    StorageError,
    StoreError,
    ValidationError,
)
from modelstore.core.settings import StoreSettings
from modelstore.model import *  # noqa: F403
from modelstore.model import __all__ as _model_all
from modelstore.store import *  # noqa: F403
from modelstore.store import __all__ as _store_all

__all__ = [
    "__version__",
    "create_store",
    "parse_store_url",
    "StoreLocation",
    "StoreSettings",
    "StoreError",
    "ValidationError",
    "SchemaError",
    "ConfigError",
    "StorageError",
    "QueryError",
    "ConstraintViolation",
    *_model_all,
    *_store_all,
]
