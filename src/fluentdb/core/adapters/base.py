"""Database adapter base class.

Manifesto:
    The Builder and the Execution never touch a driver. Everything that
    differs between psycopg, oracledb and sqlite3 (how to connect, how to
    start a transaction, how a stored procedure is called, how a statement is
    prepared, what an error code looks like) is a hook on ``DatabaseAdapter``.
    Adding a vendor means writing one adapter, not another Builder.

Features:
    - Import-guarded driver loading with a clear ``ConfigError``
    - Sync and async connect/close/transaction hooks
    - Command hooks: cursor, render, bind, prepare, timeout, execute
    - Error hooks: ``driver_errors``, ``is_transient``, ``error_code``,
      ``translate_error``

Async hooks default to the sync driver calls, awaiting whatever comes back
when it is awaitable. psycopg, oracledb and aiosqlite use the same method
names for their async objects, so most adapters only override the sync side.

Tags:
    fluentdb, database, abstract-base, adapter-pattern, strategy

Doc-Types:
    api-reference
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import ModuleType
from typing import TYPE_CHECKING, Any, ClassVar

from fluentdb.core.errors import (
    ConfigError,
    DatabaseError,
    ErrorContext,
    InvalidArgumentError,
)
from fluentdb.core.types import CommandKind, maybe_await

from .types import DatabaseType

if TYPE_CHECKING:
    from fluentdb.core.command import Command


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    Subclasses set ``name``, ``db_type``, ``code_prefix`` and ``install_hint``
    and implement driver loading, connecting and the error hooks.
    """

    name: ClassVar[str]
    db_type: ClassVar[DatabaseType]
    # Prefix for vendor codes in DatabaseError messages
    code_prefix: ClassVar[str] = ""
    install_hint: ClassVar[str] = ""

    def __init__(self, **options: Any):
        self._options = options

    @property
    def options(self) -> dict[str, Any]:
        """Driver-specific keyword arguments passed to ``connect``."""
        return self._options

    # -- driver ---------------------------------------------------------------

    @abstractmethod
    def load_driver(self) -> ModuleType:
        """Import and return the driver module, raising ``ConfigError`` if missing."""
        ...

    def _import_driver(self, module: str) -> ModuleType:
        import importlib

        try:
            return importlib.import_module(module)
        except ImportError:
            raise ConfigError(
                f"{module} is required for {self.name}. Install with: {self.install_hint}"
            ) from None

    @abstractmethod
    def driver_errors(self) -> tuple[type[BaseException], ...]:
        """Exception types raised by the driver."""
        ...

    def is_driver_error(self, exc: BaseException) -> bool:
        return isinstance(exc, self.driver_errors())

    def is_transient(self, exc: BaseException) -> bool:
        """Whether the driver marks ``exc`` as a recoverable connectivity fault."""
        return False

    def error_code(self, exc: BaseException) -> str | None:
        """Vendor error code carried by ``exc``, if any."""
        return None

    def translate_error(
        self,
        exc: BaseException,
        *,
        command: Command | None = None,
        command_text: str | None = None,
    ) -> DatabaseError:
        """Build the unified ``DatabaseError`` for a driver exception."""
        code = self.error_code(exc)
        if code is not None:
            message = f"Database engine error; code: {self.code_prefix}{code}."
        else:
            message = "Database driver error."

        context = ErrorContext(
            vendor=self.name,
            command=command.text if command is not None else command_text,
            command_kind=command.kind.value if command is not None else None,
        )
        return DatabaseError(
            message,
            code=code,
            vendor=self.name,
            retryable=self.is_transient(exc),
            context=context,
            cause=exc,
        )

    # -- connection -----------------------------------------------------------

    def validate(self, connection_string: str) -> None:
        """Check the connection string without connecting. Raises driver errors."""
        self.load_driver()

    @abstractmethod
    def connect(self, connection_string: str) -> Any:
        """Open a synchronous driver connection in autocommit mode."""
        ...

    @abstractmethod
    async def connect_async(self, connection_string: str) -> Any:
        """Open an asynchronous driver connection in autocommit mode."""
        ...

    def close(self, raw: Any) -> None:
        raw.close()

    async def close_async(self, raw: Any) -> None:
        await maybe_await(raw.close())

    def is_broken(self, raw: Any) -> bool:
        """Whether the driver reports the connection as unusable."""
        return False

    # -- transactions ---------------------------------------------------------

    def begin(self, raw: Any) -> None:
        raw.autocommit = False

    async def begin_async(self, raw: Any) -> None:
        self.begin(raw)

    def commit(self, raw: Any) -> None:
        try:
            raw.commit()
        finally:
            raw.autocommit = True

    async def commit_async(self, raw: Any) -> None:
        try:
            await maybe_await(raw.commit())
        finally:
            raw.autocommit = True

    def rollback(self, raw: Any) -> None:
        try:
            raw.rollback()
        finally:
            raw.autocommit = True

    async def rollback_async(self, raw: Any) -> None:
        try:
            await maybe_await(raw.rollback())
        finally:
            raw.autocommit = True

    # -- commands -------------------------------------------------------------

    def cursor(self, raw: Any) -> Any:
        return raw.cursor()

    async def cursor_async(self, raw: Any) -> Any:
        return await maybe_await(raw.cursor())

    def close_cursor(self, cursor: Any) -> None:
        cursor.close()

    async def close_cursor_async(self, cursor: Any) -> None:
        await maybe_await(cursor.close())

    def render(self, command: Command, *, reader: bool) -> Any:
        """Statement text sent to the driver for ``command``."""
        if command.kind is CommandKind.STORED_PROCEDURE:
            return self.render_procedure(command, reader=reader)
        return command.text

    @abstractmethod
    def render_procedure(self, command: Command, *, reader: bool) -> Any:
        """Statement that invokes the stored procedure named by ``command.text``."""
        ...

    def bind(self, command: Command) -> Any:
        """
        Driver parameters for ``command``.

        Named parameters bind as a dict, unnamed ones as a list in sequence
        order; ``None`` when there are no parameters.
        """
        parameters = command.parameters
        if not parameters:
            return None

        named = [p.name is not None for p in parameters]
        if all(named):
            return {parameter_name(p.name): p.value for p in parameters}
        if not any(named):
            return [p.value for p in parameters]
        raise InvalidArgumentError(
            "Parameters must be either all named or all positional.",
            argument="parameters",
        )

    def collect_outputs(self, command: Command) -> None:
        """Copy output parameter values back onto ``command.parameters``."""
        return None

    async def collect_outputs_async(self, command: Command) -> None:
        self.collect_outputs(command)

    def prepare(self, command: Command) -> bool:
        """Prepare ``command`` on its cursor; return whether it is now prepared."""
        return False

    async def prepare_async(self, command: Command) -> bool:
        return self.prepare(command)

    def apply_timeout(self, command: Command) -> None:
        """Apply ``command.timeout`` (seconds, 0 disables) on the server or driver."""
        return None

    async def apply_timeout_async(self, command: Command) -> None:
        self.apply_timeout(command)

    def execute(self, command: Command, *, reader: bool) -> Any:
        """Run ``command``; return the cursor holding its result set."""
        statement = self.render(command, reader=reader)
        command.bound = self.bind(command)
        if command.bound is None:
            command.cursor.execute(statement)
        else:
            command.cursor.execute(statement, command.bound)
        return command.cursor

    async def execute_async(self, command: Command, *, reader: bool) -> Any:
        statement = self.render(command, reader=reader)
        command.bound = self.bind(command)
        if command.bound is None:
            await maybe_await(command.cursor.execute(statement))
        else:
            await maybe_await(command.cursor.execute(statement, command.bound))
        return command.cursor

    def rowcount(self, command: Command) -> int:
        rowcount = getattr(command.cursor, "rowcount", -1)
        return rowcount if rowcount is not None else -1

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


def parameter_name(name: str) -> str:
    """Strip ``@``/``:`` placeholder prefixes from a parameter name."""
    return name.lstrip("@:")


__all__ = [
    "DatabaseAdapter",
    "parameter_name",
]
