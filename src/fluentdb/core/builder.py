"""Fluent command builder.

Manifesto:
    A Builder collects everything needed to run commands against one
    database (which connection, which command, which parameters, how long
    to wait, whether to prepare, whether to run inside a transaction) and
    turns it into an ``Execution`` with ``build()``. Nothing touches the
    network until ``build()``; every configuration mistake surfaces
    immediately as a typed error.

Architecture:
    ::

        Builder("sqlite", "app.db")          # exclusive connection
          .with_command("get_all_users")     # stored procedure by default
          .with_parameters(Parameter("id", 1))
          .with_timeout(10)
          .with_transaction()
          .build()                           # -> Execution (connection open)

        Builder("postgresql", pooling=True)  # shared connection from the registry

Features:
    - **Vendor-agnostic:** all vendor behaviour lives in the adapter
    - **Two connection modes:** exclusive (owned) or pooled (leased)
    - **One recovery attempt:** a transient fault while constructing the
      connection retries once with a fresh exclusive connection
    - **Idempotent disposal:** ``dispose()`` never raises

Tags:
    fluentdb, database, builder, fluent-interface, connection, transaction

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from fluentdb.core.adapters.base import DatabaseAdapter
from fluentdb.core.adapters.registry import get_adapter
from fluentdb.core.connection import ManagedConnection, Transaction
from fluentdb.core.errors import (
    DatabaseConnectionError,
    InvalidArgumentError,
    InvalidStateError,
    MissingConfigError,
    OutOfRangeError,
)
from fluentdb.core.logging import get_logger
from fluentdb.core.pool import ConnectionRegistry, connection_registry
from fluentdb.core.settings import FluentDBSettings, get_settings
from fluentdb.core.types import (
    CommandKind,
    ConnectionState,
    Parameter,
    PreparedStatementPolicy,
    ensure_supported_kind,
)

if TYPE_CHECKING:
    from fluentdb.core.execution import Execution

logger = get_logger(__name__)

CONNECTION_FAILED_MESSAGE = "Error establishing a connection with the database provider."


def _collect_parameters(parameters: tuple[Any, ...]) -> list[Parameter]:
    """Normalize ``with_parameters`` arguments: one iterable or varargs."""
    if len(parameters) == 1 and not isinstance(parameters[0], Parameter):
        (parameters,) = parameters
        if parameters is None:
            raise InvalidArgumentError("A parameter set is required.", argument="parameters")
        if not isinstance(parameters, Iterable) or isinstance(parameters, (str, bytes)):
            raise InvalidArgumentError(
                f"Expected Parameter objects, got {type(parameters).__name__}.",
                argument="parameters",
            )

    collected = list(parameters)
    for parameter in collected:
        if not isinstance(parameter, Parameter):
            raise InvalidArgumentError(
                f"Expected a Parameter, got {type(parameter).__name__}.",
                argument="parameters",
            )
    return collected


class Builder:
    """
    Configures one database session and builds its ``Execution``.

    Args:
        adapter: A ``DatabaseAdapter`` or a registered adapter name
            (``"postgresql"``, ``"oracle"``, ``"sqlite"``).
        connection_string: Driver connection string. When omitted it is read
            from the environment (vendor key, then ``DB_CONNECTION``).
        pooling: Borrow the process-wide shared connection for this driver
            kind instead of opening an exclusive one. Pooled connections
            always use the environment's connection string.
        registry: Registry to borrow pooled connections from.
        settings: Settings to read defaults from; re-read from the
            environment when omitted.

    Raises:
        InvalidArgumentError: ``connection_string`` is an empty string.
        MissingConfigError: no connection string is given or configured.
        DatabaseConnectionError: the connection could not be constructed.
    """

    def __init__(
        self,
        adapter: DatabaseAdapter | str,
        connection_string: str | None = None,
        *,
        pooling: bool = False,
        registry: ConnectionRegistry | None = None,
        settings: FluentDBSettings | None = None,
    ) -> None:
        if not isinstance(adapter, DatabaseAdapter):
            adapter = get_adapter(adapter)
        if connection_string is not None and not connection_string:
            raise InvalidArgumentError(
                "A connection string is required.", argument="connection_string"
            )

        settings = settings or get_settings()
        self.adapter = adapter
        self.pooling = pooling
        self.command_text: str | None = None
        self.command_kind = CommandKind.TEXT
        self.parameters: list[Parameter] = []
        self.prepared_policy = PreparedStatementPolicy()
        self.timeout: int = settings.command_timeout
        self.use_transaction = False
        self.transaction: Transaction | None = None
        self._registry = registry or connection_registry
        self._disposed = False

        if not pooling and connection_string is None:
            connection_string = settings.connection_string_for(adapter.name)
            if not connection_string:
                raise MissingConfigError(settings.connection_key_for(adapter.name))
        self.connection_string = connection_string

        self.connection: ManagedConnection | None = self._construct_connection()
        logger.debug("builder_created", vendor=adapter.name, pooled=self.is_pooled)

    # -- construction ---------------------------------------------------------

    def _construct_connection(self) -> ManagedConnection:
        try:
            if self.pooling:
                connection = self._registry.get_or_create(self.adapter)
                connection.acquire()
                return connection
            return ManagedConnection(self.adapter, self.connection_string)
        except Exception as exc:
            if not self.adapter.is_driver_error(exc):
                raise
            if not self.adapter.is_transient(exc):
                raise DatabaseConnectionError(
                    CONNECTION_FAILED_MESSAGE, cause=exc
                ).with_context(vendor=self.adapter.name) from exc
            logger.warning(
                "connection_construction_retry", vendor=self.adapter.name, error=str(exc)
            )
            return self._construct_exclusive_retry(exc)

    def _construct_exclusive_retry(self, first: BaseException) -> ManagedConnection:
        connection_string = self.connection_string
        if connection_string is None:
            connection_string = get_settings().connection_string_for(self.adapter.name)
        try:
            connection = ManagedConnection(self.adapter, connection_string or "")
        except Exception as exc:
            if not self.adapter.is_driver_error(exc) and not isinstance(exc, InvalidArgumentError):
                raise
            raise DatabaseConnectionError(
                CONNECTION_FAILED_MESSAGE, cause=exc
            ).with_context(vendor=self.adapter.name) from exc
        # The retry hands out an exclusive connection even in pooled mode
        self.pooling = False
        self.connection_string = connection_string
        logger.info("connection_construction_recovered", vendor=self.adapter.name, first_error=str(first))
        return connection

    @classmethod
    def postgresql(cls, connection_string: str | None = None, **kwargs: Any) -> Builder:
        """Builder over the psycopg 3 adapter."""
        return cls("postgresql", connection_string, **kwargs)

    @classmethod
    def oracle(cls, connection_string: str | None = None, **kwargs: Any) -> Builder:
        """Builder over the oracledb adapter."""
        return cls("oracle", connection_string, **kwargs)

    @classmethod
    def sqlite(cls, connection_string: str | None = None, **kwargs: Any) -> Builder:
        """Builder over the sqlite3 / aiosqlite adapter."""
        return cls("sqlite", connection_string, **kwargs)

    # -- properties -----------------------------------------------------------

    @property
    def is_pooled(self) -> bool:
        return self.connection is not None and self.connection.pooled

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def _ensure_usable(self) -> None:
        if self._disposed:
            raise InvalidStateError("The builder has been disposed.")

    # -- fluent configuration -------------------------------------------------

    def with_command(self, text: str, kind: CommandKind = CommandKind.STORED_PROCEDURE) -> Builder:
        """Set the command text and kind (stored procedure unless given)."""
        self._ensure_usable()
        if not text or not isinstance(text, str):
            raise InvalidArgumentError("A command text is required.", argument="text")
        self.command_kind = ensure_supported_kind(kind)
        self.command_text = text
        return self

    def with_command_type(self, kind: CommandKind) -> Builder:
        self._ensure_usable()
        self.command_kind = ensure_supported_kind(kind)
        return self

    def with_parameters(self, *parameters: Any) -> Builder:
        """Replace the parameter set. Accepts one iterable or several ``Parameter``s."""
        self._ensure_usable()
        self.parameters = _collect_parameters(parameters)
        return self

    def clear_parameters(self) -> Builder:
        self._ensure_usable()
        self.parameters = []
        return self

    def with_prepared_statement(self, require_parameters: bool = True) -> Builder:
        """Prepare text commands before executing them."""
        self._ensure_usable()
        self.prepared_policy = PreparedStatementPolicy(
            enabled=True, require_parameters=require_parameters
        )
        return self

    def with_timeout(self, seconds: int) -> Builder:
        """Per-command timeout in seconds; 0 disables it."""
        self._ensure_usable()
        if isinstance(seconds, bool) or not isinstance(seconds, int):
            raise InvalidArgumentError(
                f"Timeout must be an integer number of seconds, got {seconds!r}.",
                argument="seconds",
            )
        if seconds < 0:
            raise OutOfRangeError(
                f"Timeout must not be negative, got {seconds}.", argument="seconds"
            )
        self.timeout = seconds
        return self

    def with_transaction(self) -> Builder:
        """Run the built Execution inside a transaction."""
        self._ensure_usable()
        if self.connection is None:
            raise InvalidStateError("A transaction requires a connection.")
        self.use_transaction = True
        return self

    # -- build ----------------------------------------------------------------

    @property
    def _needs_transaction(self) -> bool:
        return self.use_transaction and (self.transaction is None or not self.transaction.is_active)

    def build(self) -> Execution:
        """Open the connection (and transaction) and return the Execution."""
        from fluentdb.core.execution import Execution

        connection = self._require_connection()
        try:
            connection.open()
            if self._needs_transaction:
                self.transaction = connection.begin_transaction()
        except Exception as exc:
            if not self.adapter.is_driver_error(exc):
                raise
            self.dispose()
            raise DatabaseConnectionError(
                CONNECTION_FAILED_MESSAGE, cause=exc
            ).with_context(vendor=self.adapter.name) from exc
        return Execution(self)

    async def build_async(self) -> Execution:
        from fluentdb.core.execution import Execution

        connection = self._require_connection()
        try:
            await connection.open_async()
            if self._needs_transaction:
                self.transaction = await connection.begin_transaction_async()
        except Exception as exc:
            if not self.adapter.is_driver_error(exc):
                raise
            await self.dispose_async()
            raise DatabaseConnectionError(
                CONNECTION_FAILED_MESSAGE, cause=exc
            ).with_context(vendor=self.adapter.name) from exc
        return Execution(self)

    def _require_connection(self) -> ManagedConnection:
        self._ensure_usable()
        if self.connection is None:
            raise InvalidStateError("The builder has no connection.")
        return self.connection

    # -- disposal -------------------------------------------------------------

    def _release(self) -> tuple[ManagedConnection | None, Transaction | None]:
        """Mark disposed and hand back the connection and transaction to settle."""
        self._disposed = True
        self.parameters = []
        transaction, self.transaction = self.transaction, None

        connection = self.connection
        if connection is not None and not connection.pooled:
            self.connection = None
        return connection, transaction

    def _shares_transaction(
        self, connection: ManagedConnection | None, transaction: Transaction | None
    ) -> bool:
        # A transaction never outlives its Builder on a shared connection
        return (
            connection is not None
            and connection.pooled
            and transaction is not None
            and transaction.is_active
            and connection.state is ConnectionState.OPEN
        )

    def _log_close_failure(self, exc: BaseException) -> None:
        logger.warning("dispose_close_failed", vendor=self.adapter.name, error=str(exc))

    def _log_rollback_failure(self, exc: BaseException) -> None:
        logger.warning("dispose_rollback_failed", vendor=self.adapter.name, error=str(exc))

    def _detach(self, connection: ManagedConnection) -> tuple[Any, bool] | None:
        if connection.pooled:
            return connection.release_and_detach()
        return connection.detach()

    def _is_broken(self, connection: ManagedConnection, raw: Any) -> bool:
        try:
            return connection.adapter.is_broken(raw)
        except Exception:
            return True

    def _settle(self, connection: ManagedConnection) -> tuple[Any, bool] | None:
        """Detach the driver connection; return it unless it is broken or still shared."""
        detached = self._detach(connection)
        if detached is None:
            return None
        raw, _ = detached
        if self._is_broken(connection, raw):
            logger.debug("connection_abandoned", vendor=self.adapter.name, pooled=connection.pooled)
            return None
        return detached

    def dispose(self) -> None:
        """Release the connection. Idempotent; never raises."""
        if self._disposed:
            return
        connection, transaction = self._release()
        if self._shares_transaction(connection, transaction):
            if connection.is_async:
                logger.warning("dispose_async_transaction_sync", vendor=self.adapter.name)
            else:
                try:
                    transaction.rollback()
                except Exception as exc:
                    self._log_rollback_failure(exc)
        if transaction is not None:
            transaction.dispose()
        if connection is None:
            return

        detached = self._settle(connection)
        if detached is None:
            return
        raw, is_async = detached
        if is_async:
            logger.warning("dispose_async_connection_sync", vendor=self.adapter.name)
            return
        try:
            connection.adapter.close(raw)
        except Exception as exc:
            self._log_close_failure(exc)
            return
        logger.debug("connection_closed", vendor=self.adapter.name, pooled=connection.pooled)

    async def dispose_async(self) -> None:
        if self._disposed:
            return
        connection, transaction = self._release()
        if self._shares_transaction(connection, transaction):
            try:
                await transaction.rollback_async()
            except Exception as exc:
                self._log_rollback_failure(exc)
        if transaction is not None:
            transaction.dispose()
        if connection is None:
            return

        detached = self._settle(connection)
        if detached is None:
            return
        raw, is_async = detached
        try:
            if is_async:
                await connection.adapter.close_async(raw)
            else:
                connection.adapter.close(raw)
        except Exception as exc:
            self._log_close_failure(exc)
            return
        logger.debug("connection_closed", vendor=self.adapter.name, pooled=connection.pooled)

    def __repr__(self) -> str:
        return (
            f"Builder(vendor={self.adapter.name!r}, command={self.command_text!r}, "
            f"kind={self.command_kind.value!r}, pooled={self.is_pooled})"
        )


__all__ = [
    "Builder",
    "CONNECTION_FAILED_MESSAGE",
]
