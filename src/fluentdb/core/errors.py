"""
Structured error types for fluentdb.

Every failure that leaves a ``Builder`` or an ``Execution`` is one of the
types below. Configuration misuse (bad arguments, illegal lifecycle calls,
unsupported command kinds) is separated from live database faults so callers
can tell "I called it wrong" from "the database said no" without inspecting
driver-specific exception types.

Manifesto:
    - **One taxonomy, every vendor:** psycopg, oracledb and sqlite3 faults all
      surface as ``DatabaseError`` with the vendor code attached
    - **Local errors are immediate:** argument and state errors are raised
      before any I/O happens
    - **Error chaining:** the driver exception is kept as ``cause`` and
      ``__cause__`` for root cause analysis
    - **Serializable:** ``to_dict()`` renders the error record for logging

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                        FluentDBError                          │
        │        (category, retryable, context, cause)                  │
        ├──────────────────────────────────────────────────────────────┤
        │                                                               │
        │  InvalidArgumentError     InvalidStateError                   │
        │  (ARGUMENT)               (STATE)                             │
        │       │                                                       │
        │  OutOfRangeError          UnsupportedOperationError           │
        │                           (UNSUPPORTED)                       │
        │                                                               │
        │  ConfigError              DatabaseConnectionError             │
        │  (CONFIG)                 (CONNECTION)                        │
        │       │                                                       │
        │  MissingConfigError       PreparationError                    │
        │                           (PREPARATION)                       │
        │                                                               │
        │                           DatabaseError                       │
        │                           (DATABASE, code, vendor)            │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = OutOfRangeError("timeout must be >= 0", argument="timeout")
    >>> error.category
    <ErrorCategory.ARGUMENT: 'ARGUMENT'>
    >>> isinstance(error, InvalidArgumentError)
    True

    >>> error = DatabaseError("Database engine error; code: p23505.", code="23505", vendor="postgresql")
    >>> error.to_dict()["code"]
    '23505'

Guardrails:
    ❌ DON'T: Let a ``psycopg.Error`` escape an ``Execution`` method
    ✅ DO: Translate it through the adapter into ``DatabaseError``

    ❌ DON'T: Swallow the original exception
    ✅ DO: Pass it as ``cause=`` and ``raise ... from exc``

Tags:
    error-handling, exception-hierarchy, error-context, fluentdb,
    database, translation

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
    Standard error categories for classification and routing.

    Categories split into caller misuse (ARGUMENT, STATE, UNSUPPORTED,
    CONFIG) and database-side failures (CONNECTION, PREPARATION, DATABASE).

    Examples:
        >>> ErrorCategory.DATABASE.value
        'DATABASE'
    """

    # Caller misuse, raised before any I/O
    ARGUMENT = "ARGUMENT"
    STATE = "STATE"
    UNSUPPORTED = "UNSUPPORTED"
    CONFIG = "CONFIG"

    # Database side
    CONNECTION = "CONNECTION"
    PREPARATION = "PREPARATION"
    DATABASE = "DATABASE"

    # Internal errors
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        vendor: Adapter name (``postgresql``, ``oracle``, ``sqlite``)
        command: Command text being run when the error happened
        command_kind: ``text`` or ``stored_procedure``
        argument: Name of the offending argument for argument errors
        metadata: Additional key-value pairs

    Examples:
        >>> ctx = ErrorContext(vendor="sqlite", command="SELECT 1")
        >>> ctx.to_dict()
        {'vendor': 'sqlite', 'command': 'SELECT 1'}
    """

    vendor: str | None = None
    command: str | None = None
    command_kind: str | None = None
    argument: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["vendor", "command", "command_kind", "argument"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class FluentDBError(Exception):
    """
    Base exception for all fluentdb errors.

    Every instance carries:
    - **category:** ``ErrorCategory`` for classification
    - **retryable:** whether running the same call again may succeed
    - **context:** ``ErrorContext`` with vendor/command metadata
    - **cause:** the underlying exception, also chained as ``__cause__``

    Subclasses set ``default_category`` and ``default_retryable``.

    Examples:
        >>> try:
        ...     raise OSError("socket closed")
        ... except OSError as e:
        ...     error = FluentDBError("wrapped", cause=e)
        >>> error.cause
        OSError('socket closed')
    """

    # Default category for this error type
    default_category: ErrorCategory = ErrorCategory.INTERNAL

    # Default retryable setting
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    @property
    def kind(self) -> str:
        """Error kind, the class name (``DatabaseError``, ``OutOfRangeError``...)."""
        return self.__class__.__name__

    def with_context(self, **kwargs: Any) -> FluentDBError:
        """
        Add context to this error (fluent API).

        Usage:
            raise InvalidArgumentError("empty").with_context(command="x")
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
            "error_type": self.kind,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }

        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict

        if self.cause is not None:
            result["cause"] = repr(self.cause)

        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CALLER MISUSE
# =============================================================================


class InvalidArgumentError(FluentDBError):
    """Malformed or missing caller input (empty command, absent parameters)."""

    default_category = ErrorCategory.ARGUMENT

    def __init__(self, message: str, *, argument: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.argument = argument
        if argument is not None:
            self.context.argument = argument


class OutOfRangeError(InvalidArgumentError):
    """Numeric configuration outside its allowed bounds (negative timeout)."""

    pass


class InvalidStateError(FluentDBError):
    """Operation requested in an illegal lifecycle state."""

    default_category = ErrorCategory.STATE


class UnsupportedOperationError(FluentDBError):
    """Use of a disallowed feature, such as table-direct commands."""

    default_category = ErrorCategory.UNSUPPORTED


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(FluentDBError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseConnectionError(FluentDBError):
    """A connection could not be established or recovered."""

    default_category = ErrorCategory.CONNECTION


class PreparationError(FluentDBError):
    """A statement that should have been prepared was not."""

    default_category = ErrorCategory.PREPARATION


class DatabaseError(FluentDBError):
    """
    Fault reported by the database driver during command execution.

    ``code`` holds the vendor error code (SQLSTATE for PostgreSQL, the ORA
    number for Oracle, the SQLite error name) when the driver exposes one.
    """

    default_category = ErrorCategory.DATABASE
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        vendor: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.code = code
        self.vendor = vendor
        if vendor is not None:
            self.context.vendor = vendor

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.code is not None:
            result["code"] = self.code
        return result


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, FluentDBError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, FluentDBError):
        return error.category
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.CONNECTION
    if isinstance(error, (ValueError, TypeError)):
        return ErrorCategory.ARGUMENT
    return ErrorCategory.UNKNOWN


__all__ = [
    # Category enum
    "ErrorCategory",
    # Context
    "ErrorContext",
    # Base
    "FluentDBError",
    # Caller misuse
    "InvalidArgumentError",
    "OutOfRangeError",
    "InvalidStateError",
    "UnsupportedOperationError",
    # Config
    "ConfigError",
    "MissingConfigError",
    # Database
    "DatabaseConnectionError",
    "PreparationError",
    "DatabaseError",
    # Utilities
    "is_retryable",
    "categorize_error",
]
