"""
Store contract.

Every backend (relational, file) and the cache middleware implement the
same eight operations, so application code never depends on where models
live::

    exists(type, id) -> bool
    get(type, id) -> model | None
    list(type, ids) -> [model]         (empty ids = every model)
    filter(type, predicates) -> [model]
    set(model) -> model
    delete(type, id) -> bool
    build(types) -> bool               (True when the schema changed)
    flush() -> bool                    (True when buffered writes were saved)

Manifesto:
    A missing id is an answer, not an error: ``get`` returns ``None`` and
    ``list`` skips it.  Errors are reserved for invalid models
    (``ValidationError``), impossible requests (``SchemaError``,
    ``QueryError``) and backend failures.

Predicates:
    ``filter`` takes ``{property id: value}``; all entries must hold.

    - scalar        equality (``None`` matches missing values)
    - list/tuple    membership; an empty sequence matches nothing
    - ``Range``     inclusive between
    - a model       compared by its id

Tags:
    store, contract, predicates, modelstore

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from modelstore.core.errors import QueryError, SchemaError
from modelstore.model.model import Model
from modelstore.model.properties import (
    FunctionProperty,
    Property,
    is_column,
    is_match,
    is_relation,
)
from modelstore.model.range import Range


class Op(str, Enum):
    EQ = "eq"
    NULL = "null"
    IN = "in"
    BETWEEN = "between"


@dataclass(frozen=True)
class Predicate:
    """One normalized ``filter`` entry."""

    prop: Property
    op: Op
    value: Any = None

    @property
    def key(self) -> str:
        return self.prop.id

    def shape(self) -> tuple[str, str, int]:
        """Statement-shape signature: key, operator and bound-value count."""
        size = len(self.value) if self.op is Op.IN else 0
        return (self.key, self.op.value, size)


def _id_of(value: Any) -> Any:
    return value.pk if isinstance(value, Model) else value


def normalize_predicates(
    model_type: type[Model],
    predicates: Mapping[str, Any],
    *,
    relation_tables: bool = True,
) -> list[Predicate]:
    """Validate ``filter`` keys and classify their values.

    Raises:
        QueryError: A key is not a property of ``model_type`` or is not
            stored (computed properties, collections matched on the child)
    """
    normalized = []
    for key, value in predicates.items():
        if not model_type.has_property(key):
            raise QueryError(f"{model_type.type_name()} has no property {key!r}").with_context(
                model_type=model_type.type_name()
            )
        prop = model_type.get_property(key)
        if isinstance(prop, FunctionProperty) or is_match(prop):
            raise QueryError(f"{model_type.type_name()}.{key} is not stored and cannot be filtered")
        if not is_column(prop, relation_tables=relation_tables) and not is_relation(prop):
            raise QueryError(f"{model_type.type_name()}.{key} cannot be filtered")

        if value is None:
            normalized.append(Predicate(prop, Op.NULL))
        elif isinstance(value, Range):
            if is_relation(prop):
                raise QueryError(f"{model_type.type_name()}.{key}: ranges do not apply to collections")
            normalized.append(Predicate(prop, Op.BETWEEN, (_id_of(value.start), _id_of(value.end))))
        elif isinstance(value, (list, tuple, set, frozenset)):
            normalized.append(Predicate(prop, Op.IN, [_id_of(v) for v in value]))
        else:
            normalized.append(Predicate(prop, Op.EQ, _id_of(value)))
    return normalized


class Store(ABC):
    """Uniform persistence contract over one backend."""

    kind: ClassVar[str] = "store"

    # -- Reads -------------------------------------------------------------

    @abstractmethod
    def exists(self, model_type: type[Model], model_id: Any) -> bool: ...

    def get(self, model_type: type[Model], model_id: Any) -> Model | None:
        """The stored model with id ``model_id``, or None."""
        if model_id is None:
            return None
        found = self.list(model_type, [model_id])
        return found[0] if found else None

    @abstractmethod
    def list(self, model_type: type[Model], ids: Iterable[Any] | None = None) -> list[Model]:
        """Models with ``ids`` in requested order; every model when ``ids`` is empty."""

    @abstractmethod
    def filter(self, model_type: type[Model], predicates: Mapping[str, Any] | None = None) -> list[Model]: ...

    def all(self, model_type: type[Model]) -> list[Model]:
        return self.list(model_type, [])

    # -- Writes ------------------------------------------------------------

    @abstractmethod
    def set(self, model: Model) -> Model: ...

    @abstractmethod
    def delete(self, model_type: type[Model], model_id: Any) -> bool: ...

    @abstractmethod
    def build(self, model_types: Iterable[type[Model]], **options: Any) -> bool: ...

    def flush(self) -> bool:
        return False

    # -- Lifecycle ---------------------------------------------------------

    def info(self, name: str | None = None) -> Any:
        """Store facts (``type``, ``ready``, ``connected``); one fact when ``name`` is given."""
        facts = self._info()
        return facts if name is None else facts.get(name)

    def _info(self) -> dict[str, Any]:
        return {"type": self.kind, "ready": True, "connected": True}

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self) -> Store:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            if exc_type is None:
                self.flush()
        finally:
            self.close()

    @staticmethod
    def require_key(model_type: type[Model]) -> None:
        if not model_type.primary:
            raise SchemaError(
                f"{model_type.type_name()} has no primary key and can only be stored nested"
            ).with_context(model_type=model_type.type_name())


__all__ = [
    "Store",
    "Predicate",
    "Op",
    "normalize_predicates",
]
