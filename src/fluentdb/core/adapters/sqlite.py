"""SQLite database adapter.

Uses the built-in ``sqlite3`` module for synchronous connections and
``aiosqlite`` (which runs ``sqlite3`` on a worker thread) for asynchronous
ones. Connections run with ``isolation_level=None`` so the driver never opens
implicit transactions; ``begin`` issues an explicit ``BEGIN``.

SQLite has no stored procedures; commands of that kind are rejected.
"""

from __future__ import annotations

from types import ModuleType
from typing import TYPE_CHECKING, Any

from fluentdb.core.errors import UnsupportedOperationError
from fluentdb.core.types import maybe_await

from .base import DatabaseAdapter
from .types import DatabaseType

if TYPE_CHECKING:
    from fluentdb.core.command import Command

_URL_PREFIXES = ("sqlite:///", "sqlite://")
_TRANSIENT_MARKERS = ("locked", "busy")


def database_path(connection_string: str) -> str:
    """Database path for a plain path, ``file:`` URI or ``sqlite:///`` URL."""
    for prefix in _URL_PREFIXES:
        if connection_string.startswith(prefix):
            return connection_string[len(prefix):] or ":memory:"
    return connection_string


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite database adapter.

    Suitable for:
    - Development and testing
    - Single-process applications
    """

    name = "sqlite"
    db_type = DatabaseType.SQLITE
    code_prefix = "s"
    install_hint = "pip install aiosqlite"

    def __init__(self, *, timeout: float = 5.0, **options: Any):
        super().__init__(**options)
        self._timeout = timeout

    def load_driver(self) -> ModuleType:
        return self._import_driver("sqlite3")

    def driver_errors(self) -> tuple[type[BaseException], ...]:
        return (self.load_driver().Error,)

    def is_transient(self, exc: BaseException) -> bool:
        sqlite3 = self.load_driver()
        if not isinstance(exc, sqlite3.OperationalError):
            return False
        message = str(exc).lower()
        return any(marker in message for marker in _TRANSIENT_MARKERS)

    def error_code(self, exc: BaseException) -> str | None:
        return getattr(exc, "sqlite_errorname", None)

    # -- connection -----------------------------------------------------------

    def _connect_kwargs(self, path: str) -> dict[str, Any]:
        return {
            "timeout": self._timeout,
            "isolation_level": None,
            "check_same_thread": False,
            "uri": path.startswith("file:"),
            **self.options,
        }

    def connect(self, connection_string: str) -> Any:
        sqlite3 = self.load_driver()
        path = database_path(connection_string)
        return sqlite3.connect(path, **self._connect_kwargs(path))

    async def connect_async(self, connection_string: str) -> Any:
        aiosqlite = self._import_driver("aiosqlite")
        path = database_path(connection_string)
        return await aiosqlite.connect(path, **self._connect_kwargs(path))

    # -- transactions ---------------------------------------------------------

    def begin(self, raw: Any) -> None:
        raw.execute("BEGIN")

    async def begin_async(self, raw: Any) -> None:
        await maybe_await(raw.execute("BEGIN"))

    def commit(self, raw: Any) -> None:
        raw.commit()

    async def commit_async(self, raw: Any) -> None:
        await maybe_await(raw.commit())

    def rollback(self, raw: Any) -> None:
        raw.rollback()

    async def rollback_async(self, raw: Any) -> None:
        await maybe_await(raw.rollback())

    # -- commands -------------------------------------------------------------

    def render_procedure(self, command: Command, *, reader: bool) -> Any:
        raise UnsupportedOperationError(
            "SQLite does not support stored procedures."
        ).with_context(vendor=self.name, command=command.text)

    def prepare(self, command: Command) -> bool:
        # sqlite3 compiles statements on execute and caches them per connection
        text = command.text.strip()
        if not text.endswith(";"):
            text += ";"
        return self.load_driver().complete_statement(text)

    def _busy_timeout(self, command: Command) -> str:
        return f"PRAGMA busy_timeout = {int(command.timeout * 1000)}"

    def apply_timeout(self, command: Command) -> None:
        command.cursor.execute(self._busy_timeout(command))

    async def apply_timeout_async(self, command: Command) -> None:
        await maybe_await(command.cursor.execute(self._busy_timeout(command)))


__all__ = [
    "SQLiteAdapter",
    "database_path",
]
