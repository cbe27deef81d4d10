"""
Structured error types for modelstore.

Every failure raised by the library is a ``StoreError`` subclass carrying a
category, a retryable flag, structured context and the chained driver
exception, so callers can log, route and decide on recovery without parsing
messages.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure domain
    - **No hidden recovery:** The library never retries, backs off, or
      downgrades a failure; ``retryable`` is information for the caller
    - **Rich Context:** Errors carry the model type, id and table involved
    - **Error Chaining:** Driver exceptions are preserved as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                         StoreError                            │
        │        (category, retryable, context, cause)                  │
        ├──────────────────────────────────────────────────────────────┤
        │                                                               │
        │  ValidationError     ConfigError        StorageError          │
        │  (VALIDATION)        (CONFIG)           (STORAGE)             │
        │       │                                                       │
        │  SchemaError                                                  │
        │                                                               │
        │  DatabaseError                    DatabaseConnectionError     │
        │  (DATABASE)                       (DATABASE, retryable)       │
        │       │                                                       │
        │  QueryError   ConstraintViolation                             │
        └──────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Return ``None`` to signal a failed write
    ✅ DO: Raise the matching ``StoreError`` subclass

    ❌ DON'T: Raise for a missing record
    ✅ DO: ``get()`` returns ``None``; absence is not an error

    ❌ DON'T: Lose the driver exception when translating
    ✅ DO: Pass ``cause=`` and ``raise ... from exc``

Tags:
    errors, exceptions, error-hierarchy, modelstore

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Error categories for classification and routing.

    Attributes:
        DATABASE: Driver, connection and query failures
        STORAGE: File-system failures of the file backend
        VALIDATION: Model validation and schema mismatches
        CONFIG: Missing or invalid settings
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    DATABASE = "DATABASE"
    STORAGE = "STORAGE"
    VALIDATION = "VALIDATION"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        model_type: Registered type name of the model involved
        model_id: Primary-key value of the model involved
        table: Table or relation table the statement targeted
        statement: SQL statement that failed (parameters are never stored)
        metadata: Additional key-value pairs
    """

    model_type: str | None = None
    model_id: Any = None
    table: str | None = None
    statement: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["model_type", "model_id", "table", "statement"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class StoreError(Exception):
    """
    Base exception for all modelstore errors.

    Subclasses set ``default_category`` and ``default_retryable``.

    Examples:
        >>> error = StoreError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(model_type="Artist").context.model_type
        'Artist'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> StoreError:
        """
        Add context to this error (fluent API).

        Usage:
            raise QueryError("Bad filter").with_context(model_type="Artist")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS (Never Retryable)
# =============================================================================


class ValidationError(StoreError):
    """
    A model failed validation before any I/O took place.

    ``problems`` lists every individual failure, each prefixed with the
    dotted property path (``album.tracks.0.title: required``).
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(self, message: str, *, problems: list[str] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.problems = list(problems or [])

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.problems:
            result["problems"] = self.problems
        return result


class SchemaError(ValidationError):
    """A model type cannot be mapped onto storage (e.g. no primary key)."""

    pass


# =============================================================================
# CONFIG / STORAGE ERRORS
# =============================================================================


class ConfigError(StoreError):
    """Missing or invalid configuration, or a missing optional driver."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class StorageError(StoreError):
    """The file backend could not read or write its document."""

    default_category = ErrorCategory.STORAGE
    default_retryable = False


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(StoreError):
    """Database operation failed."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class DatabaseConnectionError(DatabaseError):
    """The driver could not establish or keep a connection.

    Marked retryable for the caller's benefit; nothing in this library
    retries it.
    """

    default_retryable = True


class QueryError(DatabaseError):
    """A query could not be built or executed (e.g. an unknown filter key)."""

    pass


class ConstraintViolation(DatabaseError):
    """A unique or foreign-key constraint rejected a write.

    Raised after the surrounding transaction has been rolled back; the
    driver exception is available as ``cause``.
    """

    pass


# =============================================================================
# HELPERS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check whether an error is flagged retryable.

    Non-``StoreError`` exceptions are never considered retryable.
    """
    if isinstance(error, StoreError):
        return error.retryable
    return False


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "StoreError",
    "ValidationError",
    "SchemaError",
    "ConfigError",
    "StorageError",
    "DatabaseError",
    "DatabaseConnectionError",
    "QueryError",
    "ConstraintViolation",
    "is_retryable",
]
