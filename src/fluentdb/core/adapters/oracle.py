"""Oracle database adapter.

Uses ``oracledb`` (python-oracledb) in thin mode for both synchronous and
asynchronous connections. Oracle binds by name (``:name``) or position
(``:1``, ``:2``).

Install the driver::

    pip install oracledb
    # or:  pip install fluentdb[oracle]

Stored procedures run through ``cursor.callproc``. A procedure read with
``read`` returns its rows through an implicit result set
(``DBMS_SQL.RETURN_RESULT``). Output parameters are bound as cursor
variables and copied back onto their ``Parameter`` after execution.
"""

from __future__ import annotations

from types import ModuleType
from typing import TYPE_CHECKING, Any

from fluentdb.core.types import CommandKind, maybe_await

from .base import DatabaseAdapter, parameter_name
from .types import DatabaseType

if TYPE_CHECKING:
    from fluentdb.core.command import Command
    from fluentdb.core.types import Parameter


class OracleAdapter(DatabaseAdapter):
    """Oracle database adapter.

    Extra keyword arguments are passed to ``oracledb.connect``.
    Suitable for enterprise and financial industry deployments.
    """

    name = "oracle"
    db_type = DatabaseType.ORACLE
    code_prefix = "o"
    install_hint = "pip install fluentdb[oracle]"

    def load_driver(self) -> ModuleType:
        return self._import_driver("oracledb")

    def driver_errors(self) -> tuple[type[BaseException], ...]:
        return (self.load_driver().Error,)

    @staticmethod
    def _error_object(exc: BaseException) -> Any:
        return exc.args[0] if exc.args else None

    def is_transient(self, exc: BaseException) -> bool:
        return bool(getattr(self._error_object(exc), "isrecoverable", False))

    def error_code(self, exc: BaseException) -> str | None:
        code = getattr(self._error_object(exc), "code", None)
        return str(code) if code else None

    # -- connection -----------------------------------------------------------

    def connect(self, connection_string: str) -> Any:
        oracledb = self.load_driver()
        raw = oracledb.connect(dsn=connection_string, **self.options)
        raw.autocommit = True
        return raw

    async def connect_async(self, connection_string: str) -> Any:
        oracledb = self.load_driver()
        raw = await oracledb.connect_async(dsn=connection_string, **self.options)
        raw.autocommit = True
        return raw

    def is_broken(self, raw: Any) -> bool:
        return not raw.is_healthy()

    # -- binding --------------------------------------------------------------

    def _bind_value(self, cursor: Any, parameter: Parameter) -> Any:
        if not parameter.is_output:
            return parameter.value
        var = cursor.var(parameter.db_type or str)
        if parameter.value is not None:
            var.setvalue(0, parameter.value)
        return var

    def bind(self, command: Command) -> Any:
        bound = super().bind(command)
        if bound is None or not any(p.is_output for p in command.parameters):
            return bound
        if isinstance(bound, dict):
            return {
                parameter_name(p.name): self._bind_value(command.cursor, p)
                for p in command.parameters
            }
        return [self._bind_value(command.cursor, p) for p in command.parameters]

    def collect_outputs(self, command: Command) -> None:
        if command.bound is None:
            return
        for position, parameter in enumerate(command.parameters):
            if not parameter.is_output:
                continue
            if isinstance(command.bound, dict):
                var = command.bound[parameter_name(parameter.name)]
            else:
                var = command.bound[position]
            parameter.value = var.getvalue()

    # -- commands -------------------------------------------------------------

    def render_procedure(self, command: Command, *, reader: bool) -> Any:
        # callproc takes the procedure name
        return command.text

    def prepare(self, command: Command) -> bool:
        command.cursor.prepare(command.text)
        return command.cursor.statement == command.text

    def apply_timeout(self, command: Command) -> None:
        # call_timeout is in milliseconds; 0 disables it
        command.connection.raw_any.call_timeout = int(command.timeout * 1000)

    def _callproc_arguments(self, command: Command) -> dict[str, Any]:
        if isinstance(command.bound, dict):
            return {"keyword_parameters": command.bound}
        return {"parameters": command.bound or []}

    def _reader_cursor(self, command: Command) -> Any:
        results = command.cursor.getimplicitresults()
        return results[0] if results else command.cursor

    def execute(self, command: Command, *, reader: bool) -> Any:
        statement = self.render(command, reader=reader)
        command.bound = self.bind(command)
        cursor = command.cursor

        if command.kind is CommandKind.STORED_PROCEDURE:
            cursor.callproc(statement, **self._callproc_arguments(command))
            return self._reader_cursor(command) if reader else cursor

        # A prepared cursor executes its statement when given None
        cursor.execute(None if command.is_prepared else statement, command.bound)
        return cursor

    async def execute_async(self, command: Command, *, reader: bool) -> Any:
        statement = self.render(command, reader=reader)
        command.bound = self.bind(command)
        cursor = command.cursor

        if command.kind is CommandKind.STORED_PROCEDURE:
            await maybe_await(cursor.callproc(statement, **self._callproc_arguments(command)))
            return self._reader_cursor(command) if reader else cursor

        await maybe_await(
            cursor.execute(None if command.is_prepared else statement, command.bound)
        )
        return cursor


__all__ = [
    "OracleAdapter",
]
