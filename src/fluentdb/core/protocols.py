"""
Structural protocols for the driver boundary.

fluentdb never imports a driver type in its core. Adapters hand the core
objects that *look like* DB-API 2.0 connections and cursors; these protocols
pin down exactly which parts of that shape the core relies on.

Manifesto:
    Protocols define contracts without inheritance:

    - **Decoupling:** core depends on shape, not on psycopg/oracledb/sqlite3
    - **Testability:** any object matching the protocol works, including mocks
    - **Async transparency:** async drivers expose the same method names
      returning awaitables; the core awaits them when needed

Architecture:
    ::

        protocols.py
        ├── DBAPIConnection : cursor/commit/rollback/close
        ├── DBAPICursor     : execute/fetchone/rowcount/description/close
        ├── RowProjection   : (Row) -> T
        └── AsyncRowProjection : (Row) -> Awaitable[T]

Tags:
    protocol, connection, cursor, dbapi, fluentdb, contracts

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, Union, runtime_checkable

if TYPE_CHECKING:
    from fluentdb.core.reader import Row

T = TypeVar("T")


@runtime_checkable
class DBAPICursor(Protocol):
    """
    Cursor shape used by ``Command`` and ``Reader``.

    For async drivers (``psycopg.AsyncCursor``, ``aiosqlite.Cursor``,
    ``oracledb.AsyncCursor``) the methods return awaitables.
    """

    description: Sequence[Sequence[Any]] | None
    rowcount: int

    def execute(self, operation: Any, parameters: Any = ...) -> Any:
        """Execute a statement."""
        ...

    def fetchone(self) -> Any:
        """Fetch the next row or ``None``."""
        ...

    def close(self) -> Any:
        """Release the cursor."""
        ...


@runtime_checkable
class DBAPIConnection(Protocol):
    """Connection shape used by ``ManagedConnection`` and the adapters."""

    def cursor(self) -> Any:
        """Create a cursor."""
        ...

    def commit(self) -> Any:
        """Commit the current transaction."""
        ...

    def rollback(self) -> Any:
        """Roll back the current transaction."""
        ...

    def close(self) -> Any:
        """Close the connection."""
        ...


RowProjection = Callable[["Row"], T]
AsyncRowProjection = Callable[["Row"], Awaitable[T]]
AnyRowProjection = Union[RowProjection[T], AsyncRowProjection[T]]


__all__ = [
    "DBAPICursor",
    "DBAPIConnection",
    "RowProjection",
    "AsyncRowProjection",
    "AnyRowProjection",
]
