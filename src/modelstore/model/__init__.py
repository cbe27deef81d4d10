"""Record descriptors: property variants, the Model base class and Range.

Modules
-------
properties      Property descriptor variants and classification helpers
model           Model base class (validation, serialization, registry)
range           Inclusive Range predicate for filters
"""

from .model import Model
from .properties import (
    ArrayProperty,
    BoolProperty,
    DateProperty,
    DateTimeProperty,
    EmailProperty,
    FloatProperty,
    FunctionProperty,
    IntProperty,
    MixedProperty,
    ObjectProperty,
    Property,
    PropertyType,
    StringProperty,
    TimeProperty,
    UrlProperty,
    UuidProperty,
    resolve_model,
)
from .range import Range

__all__ = [
    "Model",
    "Range",
    "PropertyType",
    "Property",
    "ArrayProperty",
    "BoolProperty",
    "DateProperty",
    "DateTimeProperty",
    "EmailProperty",
    "FloatProperty",
    "FunctionProperty",
    "IntProperty",
    "MixedProperty",
    "ObjectProperty",
    "StringProperty",
    "TimeProperty",
    "UrlProperty",
    "UuidProperty",
    "resolve_model",
]
