"""Command execution over a built connection.

Manifesto:
    An ``Execution`` is what ``Builder.build()`` hands back: an open
    connection plus the Builder's configuration, ready to run commands.
    Callers see one error type for everything the database does wrong.
    A driver exception never leaves this module untranslated; the
    connection it happened on is closed, and the caller may ``open()``
    again to reconnect.

Architecture:
    ::

        Execution ──create_command──► Command ──adapter hooks──► driver cursor
            │                            │
            │                            └─execute_reader──► Reader ──► Row ──► projection
            └─ commit / rollback ──► Transaction

    State machine::

        Connected ──(command)──► Executing ──ok──► Connected
                                     └──driver fault──► Connected-with-prior-fault
                                                          (connection closed; open() reconnects)
        any ──dispose()──► Disposed

Features:
    - **Sync and async:** every operation has an ``*_async`` twin
    - **Projection-based reads:** ``read``/``read_first`` map each ``Row``
      through a caller function (sync or async for the async variants)
    - **Single error surface:** driver faults become ``DatabaseError``
      carrying vendor, code and the original cause
    - **Deterministic cleanup:** reader and cursor are closed before every
      read returns, on success and on failure

Tags:
    fluentdb, database, execution, commands, transactions, error-translation

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import TYPE_CHECKING, Any, TypeVar

from fluentdb.core.builder import CONNECTION_FAILED_MESSAGE
from fluentdb.core.command import Command
from fluentdb.core.errors import (
    DatabaseConnectionError,
    FluentDBError,
    InvalidArgumentError,
    InvalidStateError,
)
from fluentdb.core.logging import get_logger
from fluentdb.core.protocols import AnyRowProjection, RowProjection
from fluentdb.core.reader import AsyncReader, Reader
from fluentdb.core.types import (
    NON_QUERY_SUCCESS_THRESHOLD,
    CommandKind,
    ConnectionState,
    Parameter,
    maybe_await,
)

if TYPE_CHECKING:
    from fluentdb.core.builder import Builder
    from fluentdb.core.connection import ManagedConnection

logger = get_logger(__name__)

T = TypeVar("T")


class Execution:
    """
    Runs commands on the connection of the ``Builder`` it was built from.

    Created by ``Builder.build()`` / ``Builder.build_async()`` only.
    Disposing the Execution disposes its Builder.
    """

    def __init__(self, builder: Builder) -> None:
        self._builder = builder
        self._disposed = False

    # -- state ----------------------------------------------------------------

    @property
    def builder(self) -> Builder:
        return self._builder

    @property
    def adapter(self):
        return self._builder.adapter

    @property
    def is_connected(self) -> bool:
        connection = self._builder.connection
        return (
            not self._disposed
            and not self._builder.is_disposed
            and connection is not None
            and connection.state is ConnectionState.OPEN
        )

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def _ensure_usable(self) -> None:
        if self._disposed:
            raise InvalidStateError("The execution has been disposed.")
        self._builder._ensure_usable()

    def _connection(self) -> ManagedConnection:
        self._ensure_usable()
        connection = self._builder.connection
        if connection is None:
            raise InvalidStateError("The execution has no connection.")
        return connection

    def _resolve_text(self, command_text: str | None) -> str:
        text = self._builder.command_text if command_text is None else command_text
        if not text:
            raise InvalidArgumentError("A command text is required.", argument="command_text")
        return text

    # -- post-build configuration ---------------------------------------------

    def with_parameters(self, *parameters: Any) -> Execution:
        """Replace the Builder's parameter set."""
        self._ensure_usable()
        self._builder.with_parameters(*parameters)
        return self

    def clear_parameters(self) -> Execution:
        self._ensure_usable()
        self._builder.clear_parameters()
        return self

    def with_command_type(self, kind: CommandKind) -> Execution:
        self._ensure_usable()
        self._builder.with_command_type(kind)
        return self

    # -- driver fault boundary ------------------------------------------------

    def _fault(self, exc: BaseException, text: str | None, command: Command | None):
        logger.warning(
            "driver_fault",
            vendor=self.adapter.name,
            command=text,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        if self._builder.transaction is not None:
            self._builder.transaction.dispose()
        return self.adapter.translate_error(exc, command=command, command_text=text)

    def _log_close_failure(self, event: str, exc: BaseException) -> None:
        logger.warning(event, vendor=self.adapter.name, error=str(exc))

    def _close_after_fault(self) -> None:
        connection = self._builder.connection
        if connection is None:
            return
        if connection.is_async:
            connection.abandon()
            return
        try:
            connection.close()
        except Exception as exc:
            if not self.adapter.is_driver_error(exc):
                raise
            self._log_close_failure("fault_close_failed", exc)

    async def _close_after_fault_async(self) -> None:
        connection = self._builder.connection
        if connection is None:
            return
        try:
            await connection.close_async()
        except Exception as exc:
            if not self.adapter.is_driver_error(exc):
                raise
            self._log_close_failure("fault_close_failed", exc)

    @contextmanager
    def _driver_faults(self, text: str | None, command: Command | None = None) -> Iterator[None]:
        try:
            yield
        except FluentDBError:
            raise
        except Exception as exc:
            if not self.adapter.is_driver_error(exc):
                raise
            error = self._fault(exc, text, command)
            self._close_after_fault()
            raise error from exc

    @asynccontextmanager
    async def _driver_faults_async(
        self, text: str | None, command: Command | None = None
    ) -> AsyncIterator[None]:
        try:
            yield
        except FluentDBError:
            raise
        except Exception as exc:
            if not self.adapter.is_driver_error(exc):
                raise
            error = self._fault(exc, text, command)
            await self._close_after_fault_async()
            raise error from exc

    # -- connection control ---------------------------------------------------

    def open(self) -> None:
        """Reconnect if the connection is closed or broken; no-op when open."""
        connection = self._connection()
        if connection.state is ConnectionState.OPEN:
            return
        try:
            connection.open()
            if self._builder._needs_transaction:
                self._builder.transaction = connection.begin_transaction()
        except Exception as exc:
            if not self.adapter.is_driver_error(exc):
                raise
            raise DatabaseConnectionError(
                CONNECTION_FAILED_MESSAGE, cause=exc
            ).with_context(vendor=self.adapter.name) from exc

    async def open_async(self) -> None:
        connection = self._connection()
        if connection.state is ConnectionState.OPEN:
            return
        try:
            await connection.open_async()
            if self._builder._needs_transaction:
                self._builder.transaction = await connection.begin_transaction_async()
        except Exception as exc:
            if not self.adapter.is_driver_error(exc):
                raise
            raise DatabaseConnectionError(
                CONNECTION_FAILED_MESSAGE, cause=exc
            ).with_context(vendor=self.adapter.name) from exc

    def close(self) -> None:
        """Close the connection; no-op when already closed."""
        connection = self._connection()
        with self._driver_faults(None):
            connection.close()

    async def close_async(self) -> None:
        connection = self._connection()
        async with self._driver_faults_async(None):
            await connection.close_async()

    # -- transactions ---------------------------------------------------------

    def _active_transaction(self):
        self._ensure_usable()
        transaction = self._builder.transaction
        connection = self._builder.connection
        if transaction is None or not transaction.is_active:
            return None
        if connection is None or connection.state is not ConnectionState.OPEN:
            return None
        return transaction

    def commit(self) -> None:
        """Commit the Builder's transaction; no-op without an active one."""
        transaction = self._active_transaction()
        if transaction is None:
            return
        with self._driver_faults(None):
            transaction.commit()

    def rollback(self) -> None:
        transaction = self._active_transaction()
        if transaction is None:
            return
        with self._driver_faults(None):
            transaction.rollback()

    async def commit_async(self) -> None:
        transaction = self._active_transaction()
        if transaction is None:
            return
        async with self._driver_faults_async(None):
            await transaction.commit_async()

    async def rollback_async(self) -> None:
        transaction = self._active_transaction()
        if transaction is None:
            return
        async with self._driver_faults_async(None):
            await transaction.rollback_async()

    # -- commands -------------------------------------------------------------

    def _new_command(
        self, command_text: str | None, parameters: Iterable[Parameter] | None
    ) -> Command:
        connection = self._connection()
        builder = self._builder
        command = Command(
            connection,
            self._resolve_text(command_text),
            builder.command_kind,
            timeout=builder.timeout,
        )
        command.add_parameters(builder.parameters if parameters is None else parameters)
        return command

    def _should_prepare(self, command: Command) -> bool:
        return self._builder.prepared_policy.should_prepare(len(command.parameters), command.kind)

    def create_command(
        self,
        command_text: str | None = None,
        parameters: Iterable[Parameter] | None = None,
    ) -> Command:
        """
        Native command for ``command_text`` (default: the Builder's command).

        ``parameters`` replaces the Builder's parameter set for this command.
        Text commands are prepared when the prepared-statement policy says so.
        """
        command = self._new_command(command_text, parameters)
        try:
            with self._driver_faults(command.text, command):
                command.open_cursor()
                if self._should_prepare(command):
                    command.prepare()
        except BaseException:
            self._close_command(command)
            raise
        return command

    async def create_command_async(
        self,
        command_text: str | None = None,
        parameters: Iterable[Parameter] | None = None,
    ) -> Command:
        command = self._new_command(command_text, parameters)
        try:
            async with self._driver_faults_async(command.text, command):
                await command.open_cursor_async()
                if self._should_prepare(command):
                    await command.prepare_async()
        except BaseException:
            await self._close_command_async(command)
            raise
        return command

    def _close_command(self, command: Command, reader: Reader | None = None) -> None:
        try:
            if reader is not None:
                reader.close()
            command.close()
        except Exception as exc:
            if not self.adapter.is_driver_error(exc):
                raise
            self._log_close_failure("command_close_failed", exc)

    async def _close_command_async(
        self, command: Command, reader: AsyncReader | None = None
    ) -> None:
        try:
            if reader is not None:
                await reader.close()
            await command.close_async()
        except Exception as exc:
            if not self.adapter.is_driver_error(exc):
                raise
            self._log_close_failure("command_close_failed", exc)

    # -- execute --------------------------------------------------------------

    def execute(
        self,
        command_text: str | None = None,
        *,
        parameters: Iterable[Parameter] | None = None,
    ) -> bool:
        """Run a non-query; True when at least one row was affected."""
        command = self.create_command(command_text, parameters)
        try:
            with self._driver_faults(command.text, command):
                affected = command.execute_non_query()
        finally:
            self._close_command(command)
        return affected >= NON_QUERY_SUCCESS_THRESHOLD

    async def execute_async(
        self,
        command_text: str | None = None,
        *,
        parameters: Iterable[Parameter] | None = None,
    ) -> bool:
        command = await self.create_command_async(command_text, parameters)
        try:
            async with self._driver_faults_async(command.text, command):
                affected = await command.execute_non_query_async()
        finally:
            await self._close_command_async(command)
        return affected >= NON_QUERY_SUCCESS_THRESHOLD

    # -- read -----------------------------------------------------------------

    @staticmethod
    def _check_projection(function: Any) -> None:
        if function is None or not callable(function):
            raise InvalidArgumentError("A row projection is required.", argument="function")

    def read(
        self,
        command_text: str | None,
        function: RowProjection[T],
        *,
        parameters: Iterable[Parameter] | None = None,
    ) -> list[T] | None:
        """
        Run a query and project every row through ``function``.

        Returns:
            The projected rows in cursor order, or ``None`` when the query
            returned no rows.
        """
        self._check_projection(function)
        command = self.create_command(command_text, parameters)
        reader: Reader | None = None
        try:
            with self._driver_faults(command.text, command):
                reader = command.execute_reader()
                has_rows = reader.has_rows
            if not has_rows:
                return None

            results: list[T] = []
            while True:
                with self._driver_faults(command.text, command):
                    row = reader.fetch()
                if row is None:
                    break
                results.append(function(row))
            return results
        finally:
            self._close_command(command, reader)

    async def read_async(
        self,
        command_text: str | None,
        function: AnyRowProjection[T],
        *,
        parameters: Iterable[Parameter] | None = None,
    ) -> list[T] | None:
        """Async ``read``; ``function`` may be a plain or a coroutine function."""
        self._check_projection(function)
        command = await self.create_command_async(command_text, parameters)
        reader: AsyncReader | None = None
        try:
            async with self._driver_faults_async(command.text, command):
                reader = await command.execute_reader_async()
                has_rows = await reader.has_rows()
            if not has_rows:
                return None

            results: list[T] = []
            while True:
                async with self._driver_faults_async(command.text, command):
                    row = await reader.fetch()
                if row is None:
                    break
                results.append(await maybe_await(function(row)))
            return results
        finally:
            await self._close_command_async(command, reader)

    def read_first(
        self,
        command_text: str | None,
        function: RowProjection[T],
        *,
        parameters: Iterable[Parameter] | None = None,
        default: T | None = None,
    ) -> T | None:
        """First projected row, or ``default`` when the query returned no rows."""
        rows = self.read(command_text, function, parameters=parameters)
        return rows[0] if rows else default

    async def read_first_async(
        self,
        command_text: str | None,
        function: AnyRowProjection[T],
        *,
        parameters: Iterable[Parameter] | None = None,
        default: T | None = None,
    ) -> T | None:
        rows = await self.read_async(command_text, function, parameters=parameters)
        return rows[0] if rows else default

    # -- disposal -------------------------------------------------------------

    def dispose(self) -> None:
        """Dispose the Builder (and its connection). Idempotent."""
        if self._disposed:
            return
        self._disposed = True
        self._builder.dispose()

    async def dispose_async(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        await self._builder.dispose_async()

    def __enter__(self) -> Execution:
        return self

    def __exit__(self, *args) -> None:
        self.dispose()

    async def __aenter__(self) -> Execution:
        return self

    async def __aexit__(self, *args) -> None:
        await self.dispose_async()

    def __repr__(self) -> str:
        return f"Execution(builder={self._builder!r}, connected={self.is_connected})"


__all__ = [
    "Execution",
]
