"""
File store: every model in one JSON document.

The document maps type name → id → flat model data::

    {
      "Artist": {"a1": {"id": "a1", "first_name": "Tom", "last_name": "Waits"}},
      "Album":  {"al1": {"id": "al1", "artist": "a1", "tracks": ["t1", "t2"]}}
    }

Nested models with a primary key are stored by id (collections as id
lists); nested values without one are embedded.  Writes are buffered:
``set``/``delete`` update memory, ``flush`` merges the buffered changes
into the current file content and replaces the file atomically.

Manifesto:
    ``flush`` re-reads the file before writing, so two processes that
    write disjoint models do not erase each other's work.  The document
    is written to a temporary file in the same directory and moved into
    place with ``os.replace``: a reader sees the old or the new document,
    never half of one.

Examples:
    >>> with FileStore("music.json", indent=2) as store:
    ...     store.set(Artist(first_name="Tom", last_name="Waits"))
    >>> FileStore("music.json").filter(Artist, {"last_name": "Waits"})
    [Artist(id='...')]

Tags:
    store, file, json, atomic-write, modelstore

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from modelstore.core.errors import StorageError
from modelstore.core.logging import get_logger
from modelstore.model.model import Model
from modelstore.model.properties import is_relation
from modelstore.model.range import Range
from modelstore.store.base import Op, Predicate, Store, normalize_predicates
from modelstore.store.codec import RowCodec
from modelstore.store.relations import unique_ids

logger = get_logger(__name__)

Document = dict[str, dict[str, dict[str, Any]]]


class FileStore(Store):
    """Store backed by one JSON file.

    Args:
        path: Location of the JSON document (created on first flush)
        indent: ``json.dump`` indentation; None writes compact JSON
    """

    kind = "file"

    def __init__(self, path: str | os.PathLike[str], *, indent: int | None = None):
        self.path = Path(path)
        self.indent = indent
        self.codec = RowCodec(self, relation_tables=False, encode=False)
        self.data: Document = self._read()
        self.changed: Document = {}
        self.deleted: dict[str, set[str]] = {}
        self._pending: list[tuple[str, str, dict[str, Any]]] | None = None

    # =========================================================================
    # Document I/O
    # =========================================================================

    def _read(self) -> Document:
        if not self.path.exists():
            return {}
        try:
            with self.path.open(encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise StorageError(f"Cannot read {self.path}: {e}", cause=e) from e
        return self._parse(text, source=str(self.path)) if text.strip() else {}

    @staticmethod
    def _parse(text: str, *, source: str) -> Document:
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"{source} is not a JSON document: {e}", cause=e) from e
        if not isinstance(document, dict) or not all(isinstance(v, dict) for v in document.values()):
            raise StorageError(f"{source} must map type names to {{id: model}} objects")
        return document

    def _write(self, document: Document) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                json.dump(document, tmp, ensure_ascii=False, indent=self.indent, default=str)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Cannot write {self.path}: {e}", cause=e) from e

    def _rows(self, model_type: type[Model]) -> dict[str, dict[str, Any]]:
        return self.data.get(model_type.type_name(), {})

    # =========================================================================
    # Reads
    # =========================================================================

    def exists(self, model_type: type[Model], model_id: Any) -> bool:
        self.require_key(model_type)
        return model_id is not None and str(model_id) in self._rows(model_type)

    def list(self, model_type: type[Model], ids: Iterable[Any] | None = None) -> list[Model]:
        self.require_key(model_type)
        ids = unique_ids(ids or [])
        rows = self.fetch(model_type, ids) if ids else copy.deepcopy(list(self._rows(model_type).values()))
        return [self.codec.join(model_type, row) for row in rows]

    def filter(self, model_type: type[Model], predicates: Mapping[str, Any] | None = None) -> list[Model]:
        self.require_key(model_type)
        if not predicates:
            return self.list(model_type)
        normalized = normalize_predicates(model_type, predicates, relation_tables=False)
        rows = [
            copy.deepcopy(row)
            for row in self._rows(model_type).values()
            if all(self._matches(row.get(p.key), p) for p in normalized)
        ]
        return [self.codec.join(model_type, row) for row in rows]

    @staticmethod
    def _equals(stored: Any, value: Any) -> bool:
        if isinstance(stored, list):
            return value in stored or str(value) in (str(s) for s in stored)
        return stored == value

    def _matches(self, stored: Any, predicate: Predicate) -> bool:
        if predicate.op is Op.NULL:
            return stored is None or (is_relation(predicate.prop) and stored == [])
        if predicate.op is Op.IN:
            return any(self._equals(stored, v) for v in predicate.value)
        if predicate.op is Op.BETWEEN:
            return Range(*predicate.value).contains(stored)
        return self._equals(stored, predicate.value)

    # -- Row sources (used by RowCodec.join) -----------------------------------

    def fetch(self, model_type: type[Model], ids: list[Any]) -> list[dict[str, Any]]:
        rows = self._rows(model_type)
        return [copy.deepcopy(rows[str(i)]) for i in ids if str(i) in rows]

    def fetch_matching(self, model_type: type[Model], key: str, value: Any) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(row)
            for row in self._rows(model_type).values()
            if row.get(key) is not None and str(row.get(key)) == str(value)
        ]

    def related_ids(self, parent: type[Model], prop_id: str, parent_id: Any) -> list[Any]:
        # collections are stored inline in the parent's entry
        return []

    # =========================================================================
    # Writes
    # =========================================================================

    def set(self, model: Model) -> Model:
        """Validate ``model`` and buffer it with everything nested in it."""
        self.require_key(type(model))
        model.validate()
        self._pending = []
        try:
            self.persist(model, set())
            for type_name, key, row in self._pending:
                self.data.setdefault(type_name, {})[key] = row
                self.changed.setdefault(type_name, {})[key] = row
                self.deleted.get(type_name, set()).discard(key)
        finally:
            self._pending = None
        return model

    def persist(self, model: Model, visited: set[tuple[str, str]]) -> Any:
        self.require_key(type(model))
        if self._pending is None:
            raise StorageError("persist() is only valid inside set()")
        split = self.codec.split(model, visited)
        self._pending.append((model.type_name(), str(model.pk), split.row))
        return model.pk

    def delete(self, model_type: type[Model], model_id: Any) -> bool:
        self.require_key(model_type)
        type_name, key = model_type.type_name(), str(model_id)
        if model_id is None or key not in self._rows(model_type):
            return False
        del self.data[type_name][key]
        self.changed.get(type_name, {}).pop(key, None)
        self.deleted.setdefault(type_name, set()).add(key)
        return True

    def build(self, model_types: Iterable[type[Model]], **options: Any) -> bool:
        """Register types in the document; True when a new type was added."""
        added = False
        for model_type in model_types:
            self.require_key(model_type)
            if model_type.type_name() not in self.data:
                self.data[model_type.type_name()] = {}
                self.changed.setdefault(model_type.type_name(), {})
                added = True
        return added

    def flush(self) -> bool:
        """Merge buffered changes into the file; False when there was nothing to write."""
        if not self.changed and not any(self.deleted.values()):
            return False
        document = self._read()
        for type_name, rows in self.changed.items():
            document.setdefault(type_name, {}).update(rows)
        for type_name, keys in self.deleted.items():
            for key in keys:
                document.get(type_name, {}).pop(key, None)
        self._write(document)

        saved = sum(len(rows) for rows in self.changed.values())
        removed = sum(len(keys) for keys in self.deleted.values())
        self.data = document
        self.changed = {}
        self.deleted = {}
        logger.info("file_store_saved", path=str(self.path), saved=saved, deleted=removed)
        return True

    # =========================================================================
    # Import / export
    # =========================================================================

    def import_data(self, source: Mapping[str, Any] | FileStore | str | os.PathLike[str]) -> int:
        """Buffer every model of ``source`` (a document, store, path or JSON text).

        Returns the number of models imported.
        """
        if isinstance(source, FileStore):
            document = source.export()
        elif isinstance(source, Mapping):
            document = self._parse(json.dumps(source, default=str), source="import data")
        elif isinstance(source, str) and source.lstrip().startswith("{"):
            document = self._parse(source, source="import data")
        else:
            document = FileStore(source).export()

        count = 0
        for type_name, rows in document.items():
            for key, row in rows.items():
                self.data.setdefault(type_name, {})[str(key)] = row
                self.changed.setdefault(type_name, {})[str(key)] = row
                self.deleted.get(type_name, set()).discard(str(key))
                count += 1
        logger.debug("file_store_imported", path=str(self.path), models=count)
        return count

    def export(self) -> Document:
        """The document as it will be after the next ``flush``."""
        return copy.deepcopy(self.data)

    def _info(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "path": str(self.path),
            "ready": True,
            "connected": True,
            "pending": sum(len(r) for r in self.changed.values())
            + sum(len(k) for k in self.deleted.values()),
        }


__all__ = [
    "FileStore",
]
