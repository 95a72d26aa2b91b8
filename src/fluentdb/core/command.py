"""Native command wrapper.

A ``Command`` is one statement bound to one cursor of a ``ManagedConnection``:
text, kind, parameters in sequence order and the per-command timeout. The
vendor-specific parts (rendering a stored-procedure call, binding,
preparing, applying the timeout) are delegated to the connection's adapter.

Commands are created by ``Execution.create_command`` and closed by the
Execution once the statement ran and its rows were fetched.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from fluentdb.core.connection import ManagedConnection
from fluentdb.core.errors import InvalidArgumentError, InvalidStateError, PreparationError
from fluentdb.core.logging import get_logger
from fluentdb.core.reader import AsyncReader, Reader
from fluentdb.core.types import CommandKind, Parameter

logger = get_logger(__name__)


class Command:
    """One statement ready to run on a cursor."""

    def __init__(
        self,
        connection: ManagedConnection,
        text: str,
        kind: CommandKind,
        *,
        timeout: int,
    ) -> None:
        self.connection = connection
        self.adapter = connection.adapter
        self.text = text
        self.kind = kind
        self.timeout = timeout
        self.parameters: list[Parameter] = []
        self.is_prepared = False
        self.cursor: Any = None
        # Driver connection the cursor was opened on
        self._cursor_owner: Any = None
        # Driver parameters produced by adapter.bind() at execution time
        self.bound: Any = None
        # True once the command was executed for its result set
        self.returns_rows = False
        self._closed = False

    # -- setup ----------------------------------------------------------------

    def add_parameters(self, parameters: Iterable[Parameter] | None) -> None:
        """Attach parameters in sequence order."""
        if parameters is None:
            return
        for parameter in parameters:
            if not isinstance(parameter, Parameter):
                raise InvalidArgumentError(
                    f"Expected a Parameter, got {type(parameter).__name__}.",
                    argument="parameters",
                )
            self.parameters.append(parameter)

    def open_cursor(self) -> None:
        self._cursor_owner = self.connection.raw
        self.cursor = self.adapter.cursor(self._cursor_owner)

    async def open_cursor_async(self) -> None:
        self._cursor_owner = self.connection.raw_any
        self.cursor = await self.adapter.cursor_async(self._cursor_owner)

    def prepare(self) -> None:
        """Prepare the statement; ``PreparationError`` if the driver did not."""
        self.is_prepared = bool(self.adapter.prepare(self))
        self._check_prepared()

    async def prepare_async(self) -> None:
        self.is_prepared = bool(await self.adapter.prepare_async(self))
        self._check_prepared()

    def _check_prepared(self) -> None:
        if not self.is_prepared:
            raise PreparationError(
                "Prepared statement exception.",
                cause=InvalidStateError("Could not prepare the statement"),
            ).with_context(vendor=self.adapter.name, command=self.text)
        logger.debug("command_prepared", vendor=self.adapter.name, command=self.text)

    # -- timeout --------------------------------------------------------------

    def _apply_timeout(self) -> None:
        if self.connection.applied_timeout == self.timeout:
            return
        self.adapter.apply_timeout(self)
        self.connection.applied_timeout = self.timeout

    async def _apply_timeout_async(self) -> None:
        if self.connection.applied_timeout == self.timeout:
            return
        await self.adapter.apply_timeout_async(self)
        self.connection.applied_timeout = self.timeout

    # -- execution ------------------------------------------------------------

    def execute_non_query(self) -> int:
        """Run the statement; return the affected-row count (-1 when unknown)."""
        self._apply_timeout()
        self.adapter.execute(self, reader=False)
        self.adapter.collect_outputs(self)
        return self.adapter.rowcount(self)

    async def execute_non_query_async(self) -> int:
        await self._apply_timeout_async()
        await self.adapter.execute_async(self, reader=False)
        await self.adapter.collect_outputs_async(self)
        return self.adapter.rowcount(self)

    def execute_reader(self) -> Reader:
        self.returns_rows = True
        self._apply_timeout()
        result = self.adapter.execute(self, reader=True)
        self.adapter.collect_outputs(self)
        return Reader(result, on_close=self.close if result is self.cursor else None)

    async def execute_reader_async(self) -> AsyncReader:
        self.returns_rows = True
        await self._apply_timeout_async()
        result = await self.adapter.execute_async(self, reader=True)
        await self.adapter.collect_outputs_async(self)
        return AsyncReader(result, on_close=self.close_async if result is self.cursor else None)

    # -- cleanup --------------------------------------------------------------

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _cursor_is_live(self) -> bool:
        # A cursor dies with its connection
        return self.cursor is not None and self.connection.holds(self._cursor_owner)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._cursor_is_live():
            self.adapter.close_cursor(self.cursor)

    async def close_async(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._cursor_is_live():
            await self.adapter.close_cursor_async(self.cursor)

    def __repr__(self) -> str:
        return (
            f"Command(text={self.text!r}, kind={self.kind.value!r}, "
            f"parameters={len(self.parameters)}, prepared={self.is_prepared})"
        )


__all__ = [
    "Command",
]
