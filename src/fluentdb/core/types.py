"""Command, parameter and connection-state types shared by the core."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fluentdb.core.errors import InvalidArgumentError, UnsupportedOperationError

#: ``execute`` reports success when at least this many rows were affected.
NON_QUERY_SUCCESS_THRESHOLD = 1


class CommandKind(str, Enum):
    """How the command text is interpreted."""

    TEXT = "text"
    STORED_PROCEDURE = "stored_procedure"
    # Recognized only so it can be rejected
    TABLE_DIRECT = "table_direct"


class ParameterDirection(str, Enum):
    """Direction of a bound parameter."""

    INPUT = "input"
    OUTPUT = "output"
    INPUT_OUTPUT = "input_output"
    RETURN_VALUE = "return_value"


class ConnectionState(str, Enum):
    """Observable state of a ``ManagedConnection``."""

    CLOSED = "closed"
    OPEN = "open"
    BROKEN = "broken"


@dataclass
class Parameter:
    """
    A command parameter.

    ``name`` matches the placeholder in the command text (``%(name)s`` for
    psycopg, ``:name`` for oracledb and sqlite3). ``db_type`` is an optional
    driver type hint, passed through to adapters that use one. ``value`` is
    overwritten with the driver result for output directions.
    """

    name: str | None
    value: Any = None
    db_type: Any = None
    direction: ParameterDirection = ParameterDirection.INPUT

    @property
    def is_output(self) -> bool:
        return self.direction is not ParameterDirection.INPUT


@dataclass(frozen=True)
class PreparedStatementPolicy:
    """Whether commands are prepared before their first execution."""

    enabled: bool = False
    require_parameters: bool = True

    def should_prepare(self, parameter_count: int, kind: CommandKind) -> bool:
        """
        Decide whether a command gets prepared.

        Stored procedures are never prepared. With ``require_parameters`` a
        command without parameters is left unprepared.
        """
        if not self.enabled or kind is not CommandKind.TEXT:
            return False
        return not self.require_parameters or parameter_count > 0


def ensure_supported_kind(kind: CommandKind) -> CommandKind:
    """Reject the table-direct kind; coerce plain strings to ``CommandKind``."""
    try:
        kind = CommandKind(kind)
    except ValueError:
        raise InvalidArgumentError(f"Unknown command kind: {kind!r}", argument="kind") from None
    if kind is CommandKind.TABLE_DIRECT:
        raise UnsupportedOperationError(
            "Only text and stored procedure commands are currently supported."
        )
    return kind


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if the driver returned an awaitable, else pass it through."""
    if inspect.isawaitable(value):
        return await value
    return value


__all__ = [
    "NON_QUERY_SUCCESS_THRESHOLD",
    "CommandKind",
    "ParameterDirection",
    "ConnectionState",
    "Parameter",
    "PreparedStatementPolicy",
    "ensure_supported_kind",
    "maybe_await",
]
