"""Stores: the persistence contract and its backends.

Modules
-------
base            Store contract and filter predicates
schema          Table schemas derived from model types
ddl             Live-schema introspection and DDL rendering per dialect
synchronizer    build(): converge live tables onto model types
codec           Split models into rows and join rows back
relations       Relation-table rows for identifiable collections
restorer        Batched hydration of nested references
sql             Relational store (SQLite, MySQL, SQLAlchemy engines)
file            JSON document store
cache           Cache middleware over any store
"""

from .base import Op, Predicate, Store, normalize_predicates
from .cache import CachedStore
from .file import FileStore
from .schema import SchemaBuilder, TableSchema
from .sql import SqlStore
from .synchronizer import RenamePolicy, SchemaSynchronizer

__all__ = [
    "Store",
    "Predicate",
    "Op",
    "normalize_predicates",
    "SqlStore",
    "FileStore",
    "CachedStore",
    "SchemaBuilder",
    "TableSchema",
    "SchemaSynchronizer",
    "RenamePolicy",
]
