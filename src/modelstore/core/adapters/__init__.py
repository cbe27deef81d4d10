"""Database adapters -- one interface over SQLite, MySQL and SQLAlchemy engines.

Manifesto:
    The relational store runs identically on SQLite (tests, embedded use)
    and MySQL (production).  Without a common adapter interface the store
    would embed driver-specific connection and transaction handling.

    Optional drivers are **import-guarded**: they are only required at
    ``connect()`` time, not at import time::

        pip install modelstore[mysql]        # mysql-connector-python

Architecture::

    DatabaseAdapter (base.py)        Abstract base: execute/query/transaction
        |-- SQLiteAdapter            stdlib sqlite3 (always available)
        |-- MySQLAdapter             mysql.connector (optional)
        |-- SQLAlchemyAdapter        any SQLAlchemy engine URL (sqlite/mysql)

    AdapterRegistry (registry.py)    Singleton: type name -> adapter class
    DatabaseConfig (types.py)        Connection parameters
    DatabaseType (types.py)          Enum of supported backends

Guardrails:
    ❌ ``adapter.execute("SELECT * FROM t WHERE id=" + user_input)``
    ✅ ``adapter.execute(f"... WHERE id={d.placeholder(0)}", [user_input])``
    ❌ Importing optional drivers at module scope
    ✅ Import-guarded at ``connect()`` time with clear ``ConfigError``

Tags:
    modelstore, database, adapters, multi-backend, import-guarded

Doc-Types:
    package-overview, module-index
"""

from modelstore.core.dialect import Dialect, get_dialect
from modelstore.core.protocols import Connection

from .base import DatabaseAdapter
from .engine import SQLAlchemyAdapter, create_store_engine
from .mysql import MySQLAdapter
from .registry import AdapterRegistry, adapter_registry, get_adapter
from .sqlite import SQLiteAdapter
from .types import DatabaseConfig, DatabaseType

__all__ = [
    # Types
    "DatabaseType",
    "DatabaseConfig",
    # Protocols / Abstractions
    "Connection",
    "Dialect",
    "get_dialect",
    # Base class
    "DatabaseAdapter",
    # Implementations
    "SQLiteAdapter",
    "MySQLAdapter",
    "SQLAlchemyAdapter",
    "create_store_engine",
    # Registry
    "AdapterRegistry",
    "adapter_registry",
    "get_adapter",
]
