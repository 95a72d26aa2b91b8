"""fluentdb core -- builder, execution, connections and adapters.

Architecture::

    Layer 1 -- Types & Errors
        errors.py          Error taxonomy (FluentDBError, DatabaseError, ...)
        types.py           CommandKind, Parameter, PreparedStatementPolicy
        protocols.py       DB-API cursor/connection protocols, row projections

    Layer 2 -- Connections
        adapters/          One strategy object per vendor (SQLite, PostgreSQL, Oracle)
        connection.py      ManagedConnection + Transaction handles
        pool.py            Lazy pooled connection registry

    Layer 3 -- Commands
        command.py         Native command bound to a cursor
        reader.py          Row + Reader / AsyncReader
        builder.py         Fluent Builder
        execution.py       Execution (execute / read / read_first, sync + async)

    Layer 4 -- Cross-Cutting Concerns
        logging.py         structlog configuration
        settings.py        FluentDBSettings (pydantic-settings)

Tags:
    fluentdb, core, package-overview

Doc-Types:
    package-overview, architecture-map, module-index
"""

from fluentdb.core.errors import (
    ConfigError,
    DatabaseConnectionError,
    DatabaseError,
    ErrorCategory,
    ErrorContext,
    FluentDBError,
    InvalidArgumentError,
    InvalidStateError,
    MissingConfigError,
    OutOfRangeError,
    PreparationError,
    UnsupportedOperationError,
    categorize_error,
    is_retryable,
)
from fluentdb.core.types import (
    CommandKind,
    ConnectionState,
    Parameter,
    ParameterDirection,
    PreparedStatementPolicy,
)
from fluentdb.core.adapters import (
    DatabaseAdapter,
    DatabaseType,
    OracleAdapter,
    PostgreSQLAdapter,
    SQLiteAdapter,
    get_adapter,
)
from fluentdb.core.connection import ManagedConnection, Transaction
from fluentdb.core.pool import ConnectionRegistry, connection_registry
from fluentdb.core.command import Command
from fluentdb.core.reader import AsyncReader, Reader, Row
from fluentdb.core.builder import Builder
from fluentdb.core.execution import Execution
from fluentdb.core.logging import configure_from_settings, configure_logging, get_logger
from fluentdb.core.settings import FluentDBSettings, get_settings

__all__ = [
    # Errors
    "FluentDBError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidArgumentError",
    "OutOfRangeError",
    "InvalidStateError",
    "UnsupportedOperationError",
    "ConfigError",
    "MissingConfigError",
    "DatabaseConnectionError",
    "PreparationError",
    "DatabaseError",
    "is_retryable",
    "categorize_error",
    # Types
    "CommandKind",
    "ConnectionState",
    "Parameter",
    "ParameterDirection",
    "PreparedStatementPolicy",
    # Adapters
    "DatabaseAdapter",
    "DatabaseType",
    "SQLiteAdapter",
    "PostgreSQLAdapter",
    "OracleAdapter",
    "get_adapter",
    # Connections
    "ManagedConnection",
    "Transaction",
    "ConnectionRegistry",
    "connection_registry",
    # Commands
    "Command",
    "Row",
    "Reader",
    "AsyncReader",
    "Builder",
    "Execution",
    # Cross-cutting
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "FluentDBSettings",
    "get_settings",
]
