"""modelstore.core -- infrastructure shared by every store backend.

Manifesto:
    The store layer should never import a database driver, a cache client
    or a logging backend directly.  ``modelstore.core`` owns those seams so
    backends stay small and testable.

    - **Typed errors:** one ``StoreError`` hierarchy for every failure
    - **Protocol-first:** Connection, Dialect, CacheBackend are protocols
    - **Import-guarded extras:** MySQL and Redis drivers load lazily

Architecture::

    errors.py          Structured error hierarchy (StoreError and subclasses)
    logging.py         structlog configuration and ``get_logger``
    settings.py        StoreSettings (pydantic-settings, MODELSTORE_* env)
    hashing.py         Deterministic hashes for statement and memo keys
    protocols.py       DB-API Connection / Cursor protocols
    dialect.py         SQL dialect abstraction (SQLite, MySQL)
    adapters/          Database adapters (sqlite3, mysql.connector, SQLAlchemy)
    cache.py           CacheBackend with InMemory + Redis
    connection.py      Store factory (create_store)

Tags:
    modelstore, core, infrastructure
"""

from modelstore.core.errors import (
    ConfigError,
    ConstraintViolation,
    DatabaseConnectionError,
    DatabaseError,
    ErrorCategory,
    QueryError,
    SchemaError,
    StorageError,
    StoreError,
    ValidationError,
)
from modelstore.core.logging import configure_logging, get_logger
from modelstore.core.settings import StoreSettings

__all__ = [
    "ErrorCategory",
    "StoreError",
    "ValidationError",
    "SchemaError",
    "ConfigError",
    "StorageError",
    "DatabaseError",
    "DatabaseConnectionError",
    "QueryError",
    "ConstraintViolation",
    "configure_logging",
    "get_logger",
    "StoreSettings",
]
