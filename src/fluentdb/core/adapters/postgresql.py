"""PostgreSQL database adapter.

Uses psycopg 3 for both modes (``psycopg.Connection`` and
``psycopg.AsyncConnection``). Connections are opened in autocommit mode; a
transaction switches autocommit off until it completes.

Stored procedures are called with ``CALL name(...)`` for non-queries and
``SELECT * FROM name(...)`` when rows are read, so set-returning functions
work with ``read``. Output parameters of a ``CALL`` are read back from the
row PostgreSQL returns for them.
"""

from __future__ import annotations

from types import ModuleType
from typing import TYPE_CHECKING, Any

from fluentdb.core.types import CommandKind, maybe_await

from .base import DatabaseAdapter, parameter_name
from .types import DatabaseType

if TYPE_CHECKING:
    from fluentdb.core.command import Command


class PostgreSQLAdapter(DatabaseAdapter):
    """
    PostgreSQL database adapter.

    Extra keyword arguments are passed to ``psycopg.connect``.
    Suitable for production deployments.
    """

    name = "postgresql"
    db_type = DatabaseType.POSTGRESQL
    code_prefix = "p"
    install_hint = "pip install fluentdb[postgresql]"

    def load_driver(self) -> ModuleType:
        return self._import_driver("psycopg")

    def driver_errors(self) -> tuple[type[BaseException], ...]:
        return (self.load_driver().Error,)

    def is_transient(self, exc: BaseException) -> bool:
        return isinstance(exc, self.load_driver().OperationalError)

    def error_code(self, exc: BaseException) -> str | None:
        return getattr(exc, "sqlstate", None)

    # -- connection -----------------------------------------------------------

    def validate(self, connection_string: str) -> None:
        """Parse the conninfo string; raises ``psycopg.ProgrammingError`` if malformed."""
        conninfo = self._import_driver("psycopg.conninfo")
        conninfo.conninfo_to_dict(connection_string)

    def connect(self, connection_string: str) -> Any:
        psycopg = self.load_driver()
        return psycopg.connect(connection_string, autocommit=True, **self.options)

    async def connect_async(self, connection_string: str) -> Any:
        psycopg = self.load_driver()
        return await psycopg.AsyncConnection.connect(
            connection_string, autocommit=True, **self.options
        )

    def is_broken(self, raw: Any) -> bool:
        return bool(raw.closed or raw.broken)

    # -- transactions ---------------------------------------------------------

    async def begin_async(self, raw: Any) -> None:
        await raw.set_autocommit(False)

    async def commit_async(self, raw: Any) -> None:
        try:
            await raw.commit()
        finally:
            await raw.set_autocommit(True)

    async def rollback_async(self, raw: Any) -> None:
        try:
            await raw.rollback()
        finally:
            await raw.set_autocommit(True)

    # -- commands -------------------------------------------------------------

    def render_procedure(self, command: Command, *, reader: bool) -> Any:
        from psycopg import sql

        placeholders = [
            sql.Placeholder(parameter_name(p.name)) if p.name is not None else sql.Placeholder()
            for p in command.parameters
        ]
        template = "SELECT * FROM {}({})" if reader else "CALL {}({})"
        return sql.SQL(template).format(
            sql.Identifier(*command.text.split(".")),
            sql.SQL(", ").join(placeholders),
        )

    def _output_parameters(self, command: Command) -> list[Any]:
        if command.kind is not CommandKind.STORED_PROCEDURE or command.returns_rows:
            return []
        return [p for p in command.parameters if p.is_output]

    def _assign_outputs(self, command: Command, row: Any) -> None:
        if row is None:
            return
        for parameter, value in zip(self._output_parameters(command), row):
            parameter.value = value

    def collect_outputs(self, command: Command) -> None:
        if self._output_parameters(command) and command.cursor.description:
            self._assign_outputs(command, command.cursor.fetchone())

    async def collect_outputs_async(self, command: Command) -> None:
        if self._output_parameters(command) and command.cursor.description:
            self._assign_outputs(command, await maybe_await(command.cursor.fetchone()))

    def prepare(self, command: Command) -> bool:
        # Server-side preparation happens on execute(prepare=True)
        return True

    def _timeout_statement(self, command: Command) -> Any:
        from psycopg import sql

        return sql.SQL("SET statement_timeout = {}").format(
            sql.Literal(int(command.timeout * 1000))
        )

    def apply_timeout(self, command: Command) -> None:
        command.cursor.execute(self._timeout_statement(command))

    async def apply_timeout_async(self, command: Command) -> None:
        await command.cursor.execute(self._timeout_statement(command))

    def execute(self, command: Command, *, reader: bool) -> Any:
        statement = self.render(command, reader=reader)
        command.bound = self.bind(command)
        command.cursor.execute(
            statement, command.bound, prepare=True if command.is_prepared else None
        )
        return command.cursor

    async def execute_async(self, command: Command, *, reader: bool) -> Any:
        statement = self.render(command, reader=reader)
        command.bound = self.bind(command)
        await command.cursor.execute(
            statement, command.bound, prepare=True if command.is_prepared else None
        )
        return command.cursor


__all__ = [
    "PostgreSQLAdapter",
]
