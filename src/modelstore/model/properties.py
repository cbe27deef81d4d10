"""
Property descriptors.

A model type is described by an ordered tuple of property descriptors.  Each
semantic type is its own frozen dataclass carrying only the fields that mean
something for it (numeric bounds only on numeric variants, ``max_len`` only on
string variants, ``match`` only on arrays), so an invalid combination cannot
be constructed.

Manifesto:
    The storage layer derives columns, indexes, foreign keys and relation
    tables from these descriptors alone.  They must therefore be immutable
    and hashable, and every question the storage layer asks ("is this a
    column?", "does this need a foreign key?") is answered here, once.

Architecture:
    ::

        Property (id, required, default, unique, index, foreign, label)
        ├── BoolProperty
        ├── IntProperty / FloatProperty        (minimum, maximum)
        ├── StringProperty                     (max_len, pattern)
        │   ├── UrlProperty
        │   └── EmailProperty
        ├── UuidProperty                       (auto)
        ├── DateTimeProperty / DateProperty / TimeProperty
        ├── ObjectProperty                     (model)
        ├── ArrayProperty                      (model, match)
        ├── FunctionProperty                   (func, never stored)
        └── MixedProperty

Examples:
    >>> StringProperty("last_name", max_len=64, index="name")
    StringProperty(id='last_name', ...)
    >>> ArrayProperty("tracks", model="Track")
    ArrayProperty(id='tracks', ...)

Tags:
    properties, descriptors, schema, modelstore

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import copy
import re
import uuid
from collections.abc import Callable
from dataclasses import KW_ONLY, dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar
from urllib.parse import urlparse

from modelstore.core.errors import SchemaError

if TYPE_CHECKING:
    from modelstore.model.model import Model

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PropertyType(str, Enum):
    """Semantic property types."""

    BOOL = "bool"
    INTEGER = "int"
    FLOAT = "float"
    STRING = "string"
    UUID = "uuid"
    URL = "url"
    EMAIL = "email"
    DATETIME = "datetime"
    DATE = "date"
    TIME = "time"
    ARRAY = "array"
    OBJECT = "object"
    FUNCTION = "function"
    MIXED = "mixed"


# =============================================================================
# Model registry
# =============================================================================

_MODELS: dict[str, type] = {}


def register_model(name: str, model: type) -> None:
    """Register a model type under its type name."""
    _MODELS[name] = model


def resolve_model(ref: Any) -> type[Model] | None:
    """Resolve a model reference (class or registered type name)."""
    if ref is None or isinstance(ref, type):
        return ref
    try:
        return _MODELS[ref]
    except KeyError:
        raise SchemaError(f"Unknown model type: {ref}") from None


# =============================================================================
# Base descriptor
# =============================================================================


@dataclass(frozen=True)
class Property:
    """Common descriptor fields.

    ``unique`` and ``index`` are group labels: properties sharing a label
    form one composite index.  ``foreign`` marks a scalar column holding the
    id of another model type.
    """

    id: str
    _: KW_ONLY
    required: bool = False
    default: Any = None
    unique: str | None = None
    index: str | None = None
    foreign: Any = None
    label: str | None = None

    semantic_type: ClassVar[PropertyType] = PropertyType.MIXED

    @property
    def foreign_model(self) -> type[Model] | None:
        return resolve_model(self.foreign)

    @property
    def nested_model(self) -> type[Model] | None:
        return None

    def get_default(self) -> Any:
        return copy.deepcopy(self.default)

    def prepare(self, value: Any) -> Any:
        """Coerce a raw or stored value into this property's Python value."""
        return value

    def check(self, value: Any) -> list[str]:
        """Validation problems for a non-null value."""
        return []


# =============================================================================
# Scalar variants
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class MixedProperty(Property):
    semantic_type: ClassVar[PropertyType] = PropertyType.MIXED


@dataclass(frozen=True, kw_only=True)
class BoolProperty(Property):
    semantic_type: ClassVar[PropertyType] = PropertyType.BOOL

    def prepare(self, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("1", "true", "yes", "on"):
                return True
            if lowered in ("0", "false", "no", "off", ""):
                return False
            return value
        if isinstance(value, (int, Decimal)) and not isinstance(value, bool) and value in (0, 1):
            return bool(value)
        return value

    def check(self, value: Any) -> list[str]:
        if not isinstance(value, bool):
            return ["must be a boolean"]
        return []


@dataclass(frozen=True, kw_only=True)
class _NumericProperty(Property):
    minimum: float | None = None
    maximum: float | None = None

    def check(self, value: Any) -> list[str]:
        problems = []
        if self.minimum is not None and value < self.minimum:
            problems.append(f"must be >= {self.minimum}")
        if self.maximum is not None and value > self.maximum:
            problems.append(f"must be <= {self.maximum}")
        return problems


@dataclass(frozen=True, kw_only=True)
class IntProperty(_NumericProperty):
    semantic_type: ClassVar[PropertyType] = PropertyType.INTEGER

    def prepare(self, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and re.fullmatch(r"\s*[-+]?\d+\s*", value):
            return int(value)
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, Decimal) and value.is_finite() and value == value.to_integral_value():
            return int(value)
        return value

    def check(self, value: Any) -> list[str]:
        if isinstance(value, bool) or not isinstance(value, int):
            return ["must be an integer"]
        return super().check(value)


@dataclass(frozen=True, kw_only=True)
class FloatProperty(_NumericProperty):
    semantic_type: ClassVar[PropertyType] = PropertyType.FLOAT

    def prepare(self, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, Decimal)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                return value
        return value

    def check(self, value: Any) -> list[str]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return ["must be a number"]
        return super().check(value)


@dataclass(frozen=True, kw_only=True)
class StringProperty(Property):
    max_len: int | None = None
    pattern: str | None = None

    semantic_type: ClassVar[PropertyType] = PropertyType.STRING

    def prepare(self, value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)):
            return value.decode("utf-8")
        return value

    def check(self, value: Any) -> list[str]:
        if not isinstance(value, str):
            return ["must be a string"]
        problems = []
        if self.max_len is not None and len(value) > self.max_len:
            problems.append(f"must be at most {self.max_len} characters")
        if self.pattern is not None and not re.fullmatch(self.pattern, value):
            problems.append(f"must match {self.pattern}")
        return problems


@dataclass(frozen=True, kw_only=True)
class UrlProperty(StringProperty):
    semantic_type: ClassVar[PropertyType] = PropertyType.URL

    def check(self, value: Any) -> list[str]:
        problems = super().check(value)
        if not problems:
            parsed = urlparse(value)
            if not (parsed.scheme and parsed.netloc):
                problems.append("must be an absolute url")
        return problems


@dataclass(frozen=True, kw_only=True)
class EmailProperty(StringProperty):
    semantic_type: ClassVar[PropertyType] = PropertyType.EMAIL

    def check(self, value: Any) -> list[str]:
        problems = super().check(value)
        if not problems and not _EMAIL.match(value):
            problems.append("must be an email address")
        return problems


@dataclass(frozen=True, kw_only=True)
class UuidProperty(Property):
    """A uuid string; ``auto`` generates a uuid4 when no value is given."""

    auto: bool = False

    semantic_type: ClassVar[PropertyType] = PropertyType.UUID

    def get_default(self) -> Any:
        if self.auto and self.default is None:
            return str(uuid.uuid4())
        return super().get_default()

    def prepare(self, value: Any) -> Any:
        if isinstance(value, uuid.UUID):
            return str(value)
        return value

    def check(self, value: Any) -> list[str]:
        try:
            uuid.UUID(str(value))
        except ValueError:
            return ["must be a uuid"]
        return []


@dataclass(frozen=True, kw_only=True)
class DateTimeProperty(Property):
    semantic_type: ClassVar[PropertyType] = PropertyType.DATETIME

    def prepare(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    def check(self, value: Any) -> list[str]:
        try:
            datetime.fromisoformat(value)
        except (TypeError, ValueError):
            return ["must be an ISO date-time"]
        return []


@dataclass(frozen=True, kw_only=True)
class DateProperty(Property):
    semantic_type: ClassVar[PropertyType] = PropertyType.DATE

    def prepare(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        return value

    def check(self, value: Any) -> list[str]:
        try:
            date.fromisoformat(value)
        except (TypeError, ValueError):
            return ["must be an ISO date"]
        return []


@dataclass(frozen=True, kw_only=True)
class TimeProperty(Property):
    semantic_type: ClassVar[PropertyType] = PropertyType.TIME

    def prepare(self, value: Any) -> Any:
        if isinstance(value, time):
            return value.isoformat(timespec="seconds")
        return value

    def check(self, value: Any) -> list[str]:
        try:
            time.fromisoformat(value)
        except (TypeError, ValueError):
            return ["must be an ISO time"]
        return []


@dataclass(frozen=True, kw_only=True)
class FunctionProperty(Property):
    """Computed on access from the model instance; never stored."""

    func: Callable[[Any], Any] | None = None

    semantic_type: ClassVar[PropertyType] = PropertyType.FUNCTION

    def compute(self, instance: Any) -> Any:
        return self.func(instance) if self.func else None


# =============================================================================
# Structured variants
# =============================================================================


def _prepare_nested(model: type[Model] | None, value: Any) -> Any:
    from modelstore.model.model import Model

    if model is None or isinstance(value, Model):
        return value
    if isinstance(value, dict):
        return model(value)
    # a bare id stays an unresolved reference
    return value


@dataclass(frozen=True, kw_only=True)
class ObjectProperty(Property):
    """A nested model (``model``) or a free-form dict."""

    model: Any = None

    semantic_type: ClassVar[PropertyType] = PropertyType.OBJECT

    @property
    def nested_model(self) -> type[Model] | None:
        return resolve_model(self.model)

    def prepare(self, value: Any) -> Any:
        return _prepare_nested(self.nested_model, value)

    def check(self, value: Any) -> list[str]:
        from modelstore.model.model import Model

        model = self.nested_model
        if model is None:
            return [] if isinstance(value, dict) else ["must be an object"]
        if isinstance(value, model):
            return []
        if isinstance(value, Model):
            return [f"must be a {model.type_name()}"]
        if model.primary and not isinstance(value, (dict, list)):
            return []
        return [f"must be a {model.type_name()}"]


@dataclass(frozen=True, kw_only=True)
class ArrayProperty(Property):
    """A list of nested models (``model``) or of plain values.

    ``match`` names the property on the child model that holds this
    model's id; such a collection lives entirely on the child side.
    """

    model: Any = None
    match: str | None = None

    semantic_type: ClassVar[PropertyType] = PropertyType.ARRAY

    @property
    def nested_model(self) -> type[Model] | None:
        return resolve_model(self.model)

    def get_default(self) -> Any:
        # stores always read collections back as lists
        return [] if self.default is None else super().get_default()

    def prepare(self, value: Any) -> Any:
        if isinstance(value, tuple):
            value = list(value)
        if not isinstance(value, list):
            return value
        model = self.nested_model
        return [_prepare_nested(model, item) for item in value]

    def check(self, value: Any) -> list[str]:
        if not isinstance(value, list):
            return ["must be an array"]
        model = self.nested_model
        if model is None:
            return []
        problems = []
        for index, item in enumerate(value):
            if not isinstance(item, model) and not (model.primary and isinstance(item, (str, int))):
                problems.append(f"{index}: must be a {model.type_name()}")
        return problems


# =============================================================================
# Classification
# =============================================================================


def is_identifiable(model: type[Model] | None) -> bool:
    """Whether instances of ``model`` can be stored by id."""
    return model is not None and model.primary is not None


def is_match(prop: Property) -> bool:
    """A collection stored on the child side, keyed by ``match``."""
    return isinstance(prop, ArrayProperty) and prop.match is not None


def is_relation(prop: Property) -> bool:
    """A collection of identifiable models stored by id (relation table or inline list)."""
    return (
        isinstance(prop, ArrayProperty)
        and prop.match is None
        and is_identifiable(prop.nested_model)
    )


def is_reference(prop: Property) -> bool:
    """A single nested model stored by its id."""
    return isinstance(prop, ObjectProperty) and is_identifiable(prop.nested_model)


def is_column(prop: Property, *, relation_tables: bool = True) -> bool:
    """Whether the property is persisted on its model's own row."""
    if isinstance(prop, FunctionProperty) or is_match(prop):
        return False
    if relation_tables and is_relation(prop):
        return False
    return True


def needs_foreign_key(prop: Property) -> bool:
    """Whether the property's column references another model's table."""
    if isinstance(prop, ArrayProperty) or isinstance(prop, FunctionProperty):
        return False
    return is_identifiable(prop.nested_model) or is_identifiable(prop.foreign_model)


def referenced_model(prop: Property) -> type[Model] | None:
    """The model type a property's column points at, if any."""
    return prop.nested_model or prop.foreign_model


__all__ = [
    "PropertyType",
    "Property",
    "MixedProperty",
    "BoolProperty",
    "IntProperty",
    "FloatProperty",
    "StringProperty",
    "UrlProperty",
    "EmailProperty",
    "UuidProperty",
    "DateTimeProperty",
    "DateProperty",
    "TimeProperty",
    "FunctionProperty",
    "ObjectProperty",
    "ArrayProperty",
    "register_model",
    "resolve_model",
    "is_identifiable",
    "is_match",
    "is_relation",
    "is_reference",
    "is_column",
    "needs_foreign_key",
    "referenced_model",
]
