"""
Model base class.

A model type declares its shape once, as an ordered tuple of property
descriptors plus the id of its primary-key property.  Instances hold
prepared values, validate themselves recursively, and serialize to a
canonical JSON string (the form the cache middleware snapshots).

Manifesto:
    The stores never look at Python attributes; they only read the
    descriptor tuple, ``primary`` and ``data()``.  Keeping the description
    static and the instance a thin value holder is what lets the same model
    be stored in a JSON file, SQLite or MySQL.

Examples:
    >>> class Artist(Model):
    ...     primary = "id"
    ...     properties = (
    ...         UuidProperty("id", auto=True),
    ...         StringProperty("first_name", max_len=64),
    ...         StringProperty("last_name", max_len=64, required=True),
    ...     )
    >>> artist = Artist(first_name="Tom", last_name="Waits").validate()
    >>> artist.last_name
    'Waits'
    >>> Artist.from_json(str(artist)) == artist
    True

Guardrails:
    ❌ DON'T: Name a property after a Model method (``data``, ``pk``,
       ``validate``); it is then only reachable as ``model["data"]``
    ✅ DO: Keep property ids plain snake_case names

Tags:
    model, record, descriptor, validation, serialization, modelstore

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any, ClassVar

from modelstore.core.errors import SchemaError, ValidationError
from modelstore.model.properties import (
    FunctionProperty,
    Property,
    register_model,
)


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


class Model:
    """Base class for stored record types.

    Subclasses set ``properties`` (ordered descriptors) and ``primary`` (the
    primary-key property id, or ``None`` for value types that are only ever
    embedded).  ``__type_name__`` and ``__table__`` override the registered
    type name and the table name.
    """

    properties: ClassVar[tuple[Property, ...]] = ()
    primary: ClassVar[str | None] = None

    _props: ClassVar[dict[str, Property]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._props = {prop.id: prop for prop in cls.properties}
        if len(cls._props) != len(cls.properties):
            raise SchemaError(f"{cls.__name__} declares duplicate property ids")
        if cls.primary is not None and cls.primary not in cls._props:
            raise SchemaError(f"{cls.__name__}.primary names unknown property {cls.primary!r}")
        register_model(cls.type_name(), cls)

    def __init__(self, data: Mapping[str, Any] | None = None, **kwargs: Any):
        values = {**(data or {}), **kwargs}
        object.__setattr__(self, "_data", {})
        for prop in self.properties:
            if isinstance(prop, FunctionProperty):
                continue
            value = values.get(prop.id)
            if value is None:
                value = prop.get_default()
            self._data[prop.id] = prop.prepare(value) if value is not None else None

    # -- Type metadata -----------------------------------------------------

    @classmethod
    def type_name(cls) -> str:
        """Registered type name (used as the file store's document key)."""
        return cls.__dict__.get("__type_name__") or cls.__name__

    @classmethod
    def table_name(cls) -> str:
        """Table backing this type in relational stores."""
        return cls.__dict__.get("__table__") or _snake(cls.type_name())

    @classmethod
    def primary_key(cls) -> str | None:
        return cls.primary

    @classmethod
    def get_property(cls, prop_id: str) -> Property:
        try:
            return cls._props[prop_id]
        except KeyError:
            raise KeyError(f"{cls.type_name()} has no property {prop_id!r}") from None

    @classmethod
    def has_property(cls, prop_id: str) -> bool:
        return prop_id in cls._props

    # -- Value access ------------------------------------------------------

    @property
    def pk(self) -> Any:
        """Primary-key value (``None`` for keyless types)."""
        return self._data.get(self.primary) if self.primary else None

    def __getattr__(self, name: str) -> Any:
        props = type(self)._props
        if name in props:
            prop = props[name]
            if isinstance(prop, FunctionProperty):
                return prop.compute(self)
            return self._data.get(name)
        raise AttributeError(f"{type(self).__name__} has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        prop = type(self)._props.get(name)
        if prop is None:
            object.__setattr__(self, name, value)
        elif isinstance(prop, FunctionProperty):
            raise AttributeError(f"{name} is computed and cannot be assigned")
        else:
            self._data[name] = prop.prepare(value) if value is not None else None

    def __getitem__(self, name: str) -> Any:
        if name not in type(self)._props:
            raise KeyError(name)
        return self.__getattr__(name)

    def __setitem__(self, name: str, value: Any) -> None:
        if name not in type(self)._props:
            raise KeyError(name)
        self.__setattr__(name, value)

    def get(self, name: str, default: Any = None) -> Any:
        value = self[name] if name in type(self)._props else None
        return default if value is None else value

    # -- Validation --------------------------------------------------------

    def problems(self) -> list[str]:
        """Every validation problem, prefixed with its property path."""
        return self._problems("", set())

    def _problems(self, prefix: str, seen: set[int]) -> list[str]:
        if id(self) in seen:
            return []
        seen.add(id(self))

        problems = []
        for prop in self.properties:
            if isinstance(prop, FunctionProperty):
                continue
            path = f"{prefix}{prop.id}"
            value = self._data.get(prop.id)
            if value is None:
                if prop.required or prop.id == self.primary:
                    problems.append(f"{path}: required")
                continue
            problems.extend(f"{path}: {p}" for p in prop.check(value))
            if isinstance(value, Model):
                problems.extend(value._problems(f"{path}.", seen))
            elif isinstance(value, list):
                for index, item in enumerate(value):
                    if isinstance(item, Model):
                        problems.extend(item._problems(f"{path}.{index}.", seen))
        return problems

    def validate(self, raise_on_error: bool = True) -> Model:
        """Validate recursively; raise :class:`ValidationError` on any problem."""
        problems = self.problems()
        if problems and raise_on_error:
            raise ValidationError(
                f"{self.type_name()} failed validation",
                problems=problems,
            ).with_context(model_type=self.type_name(), model_id=self.pk)
        return self

    def is_valid(self) -> bool:
        return not self.problems()

    # -- Serialization -----------------------------------------------------

    def data(self, compact: bool = False) -> dict[str, Any]:
        """Nested plain-dict form; ``compact`` drops ``None`` values.

        A model met again on its own path is replaced by its id.
        """
        return self._plain(compact, set())

    def _plain(self, compact: bool, path: set[int]) -> dict[str, Any]:
        path = path | {id(self)}
        result = {}
        for prop in self.properties:
            if isinstance(prop, FunctionProperty):
                continue
            value = _to_plain(self._data.get(prop.id), compact, path)
            if compact and value is None:
                continue
            result[prop.id] = value
        return result

    def __str__(self) -> str:
        return json.dumps(self.data(), ensure_ascii=False, separators=(",", ":"), default=str)

    @classmethod
    def from_json(cls, text: str) -> Model:
        return cls(json.loads(text))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Model):
            return NotImplemented
        return type(self) is type(other) and self.data() == other.data()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if self.primary:
            return f"{type(self).__name__}({self.primary}={self.pk!r})"
        return f"{type(self).__name__}({self.data(compact=True)!r})"


def _to_plain(value: Any, compact: bool, path: set[int]) -> Any:
    if isinstance(value, Model):
        if id(value) in path:
            return value.pk
        return value._plain(compact, path)
    if isinstance(value, list):
        return [_to_plain(item, compact, path) for item in value]
    if isinstance(value, dict):
        return {key: _to_plain(item, compact, path) for key, item in value.items()}
    return value


__all__ = [
    "Model",
]
