"""
Row codec: split a model graph into flat rows, join rows back into models.

``split`` flattens one model into the row of its own table.  Nested models
that have a primary key are written first through the store (a cascading
``set``) and replaced by their id; a collection of such models becomes a
list of ids, handed to the relation-table manager or kept inline as JSON.
Nested values without identity are embedded as JSON.

``join`` is the inverse for a single row and resolves nested references
one row at a time.  It is the reference behavior that the batch restorer
reproduces with a bounded number of queries.

Cycles:
    Writes carry a visited set of ``(type, id)`` for the whole ``set`` call,
    so a model reached twice is written once.  Reads carry the ancestor
    path of each model; a reference back to an ancestor stays an id.

Tags:
    codec, split, join, rows, serialization, modelstore
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol

from modelstore.model.model import Model
from modelstore.model.properties import (
    ArrayProperty,
    BoolProperty,
    FunctionProperty,
    MixedProperty,
    ObjectProperty,
    Property,
    is_column,
    is_match,
    is_reference,
    is_relation,
)

Path = frozenset[tuple[str, str]]


def model_key(model_type: type[Model], model_id: Any) -> tuple[str, str]:
    """Identity of a stored model, independent of the id's Python type."""
    return (model_type.type_name(), str(model_id))


def to_json(value: Any) -> str:
    return json.dumps(_plain(value), ensure_ascii=False, separators=(",", ":"), default=str)


def _plain(value: Any) -> Any:
    if isinstance(value, Model):
        return value.data(compact=True)
    if isinstance(value, list):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value


class RowSource(Protocol):
    """What the codec needs from the store it serves."""

    def persist(self, model: Model, visited: set[tuple[str, str]]) -> Any:
        """Write ``model`` (cascading) and return its id."""
        ...

    def fetch(self, model_type: type[Model], ids: list[Any]) -> list[dict[str, Any]]:
        """Stored rows of ``ids``, in order, missing ids skipped."""
        ...

    def fetch_matching(self, model_type: type[Model], key: str, value: Any) -> list[dict[str, Any]]:
        """Stored rows whose column ``key`` equals ``value``."""
        ...

    def related_ids(self, parent: type[Model], prop_id: str, parent_id: Any) -> list[Any]:
        """Child ids in the relation table of ``parent.prop_id``."""
        ...


@dataclass
class SplitRow:
    """The row of one model plus the id lists bound for relation tables."""

    row: dict[str, Any] = field(default_factory=dict)
    links: dict[str, list[Any]] = field(default_factory=dict)


class RowCodec:
    """Converts between model instances and stored rows.

    Args:
        source: Store providing cascading writes and row fetches
        relation_tables: Collections of identifiable models go to relation
            tables (True) or stay in the row as a JSON id list (False)
        encode: Encode for SQL columns (booleans as 0/1, structures as JSON
            text); False keeps JSON-native values for the file store
    """

    def __init__(self, source: RowSource, *, relation_tables: bool = True, encode: bool = True):
        self.source = source
        self.relation_tables = relation_tables
        self.encode = encode

    # =========================================================================
    # Split
    # =========================================================================

    def split(self, model: Model, visited: set[tuple[str, str]] | None = None) -> SplitRow:
        visited = set() if visited is None else visited
        if model.pk is not None:
            visited.add(model_key(type(model), model.pk))

        result = SplitRow()
        for prop in model.properties:
            if isinstance(prop, FunctionProperty) or is_match(prop):
                continue
            value = model[prop.id]

            if is_relation(prop):
                ids = [self._reference(item, visited) for item in value or []]
                if self.relation_tables:
                    result.links[prop.id] = ids
                else:
                    result.row[prop.id] = self.encode_value(prop, ids) if value is not None else None
            elif is_reference(prop):
                result.row[prop.id] = self._reference(value, visited) if value is not None else None
            else:
                result.row[prop.id] = self.encode_value(prop, value)
        return result

    def _reference(self, value: Any, visited: set[tuple[str, str]]) -> Any:
        if not isinstance(value, Model):
            return value
        if value.pk is not None and model_key(type(value), value.pk) in visited:
            return value.pk
        return self.source.persist(value, visited)

    def encode_value(self, prop: Property, value: Any) -> Any:
        """Column value of a non-reference property."""
        if value is None:
            return None
        if not self.encode:
            return _plain(value)
        if isinstance(prop, BoolProperty) and isinstance(value, bool):
            return int(value)
        if isinstance(prop, (MixedProperty, ObjectProperty, ArrayProperty)):
            return to_json(value)
        return value

    # =========================================================================
    # Decode
    # =========================================================================

    def decode_value(self, prop: Property, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, (bytes, bytearray)):
            value = value.decode("utf-8")
        if not self.encode:
            return value
        if isinstance(prop, (MixedProperty, ArrayProperty)) or (
            isinstance(prop, ObjectProperty) and not is_reference(prop)
        ):
            return json.loads(value) if isinstance(value, str) else value
        if isinstance(prop, BoolProperty):
            return bool(int(value)) if not isinstance(value, bool) else value
        return value

    def decode(self, model_type: type[Model], row: dict[str, Any]) -> dict[str, Any]:
        """Column values of ``row`` as Python values; references stay ids."""
        data = {}
        for prop in model_type.properties:
            if prop.id in row and is_column(prop, relation_tables=self.relation_tables):
                data[prop.id] = self.decode_value(prop, row[prop.id])
        return data

    # =========================================================================
    # Join (row at a time)
    # =========================================================================

    def join(self, model_type: type[Model], row: dict[str, Any], path: Path = frozenset()) -> Model:
        return model_type(self._join_data(model_type, row, path))

    def _join_data(self, model_type: type[Model], row: dict[str, Any], path: Path) -> dict[str, Any]:
        data = self.decode(model_type, row)
        pk = data.get(model_type.primary) if model_type.primary else None
        if pk is not None:
            path = path | {model_key(model_type, pk)}

        for prop in model_type.properties:
            child = prop.nested_model
            if is_reference(prop):
                ref = data.get(prop.id)
                if ref is not None:
                    resolved = self._resolve(child, [ref], path, keep_missing=True)
                    data[prop.id] = resolved[0]
            elif is_relation(prop):
                if self.relation_tables:
                    ids = self.source.related_ids(model_type, prop.id, pk) if pk is not None else []
                else:
                    ids = data.get(prop.id) or []
                data[prop.id] = self._resolve(child, ids, path, keep_missing=False)
            elif is_match(prop):
                rows = self.source.fetch_matching(child, prop.match, pk) if pk is not None else []
                data[prop.id] = [self._join_or_id(child, r, path) for r in rows]
        return data

    def _join_or_id(self, model_type: type[Model], row: dict[str, Any], path: Path) -> Any:
        pk = row.get(model_type.primary)
        if model_key(model_type, pk) in path:
            return pk
        return self._join_data(model_type, row, path)

    def _resolve(self, model_type: type[Model], ids: list[Any], path: Path, *, keep_missing: bool) -> list[Any]:
        wanted = [i for i in ids if model_key(model_type, i) not in path]
        rows = {str(r[model_type.primary]): r for r in self.source.fetch(model_type, wanted)} if wanted else {}

        resolved = []
        for ref in ids:
            row = rows.get(str(ref))
            if model_key(model_type, ref) in path:
                resolved.append(ref)
            elif row is not None:
                resolved.append(self._join_data(model_type, row, path))
            elif keep_missing:
                resolved.append(ref)
        return resolved


__all__ = [
    "RowCodec",
    "RowSource",
    "SplitRow",
    "model_key",
    "to_json",
]
