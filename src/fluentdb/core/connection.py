"""Connection and transaction handles.

``ManagedConnection`` is the handle a ``Builder`` owns (exclusive mode) or
borrows from the pooled registry (pooled mode). It knows its connection
string and adapter but only holds a live driver connection between
``open()``/``open_async()`` and ``close()``/``close_async()``, so an
Execution can reconnect after a driver fault closed it.

Design
------
- ``state`` is ``CLOSED`` while no driver connection is held, ``BROKEN`` when
  the adapter reports the held connection as unusable, ``OPEN`` otherwise.
- A connection opened with ``open_async()`` holds an async driver connection;
  synchronous access to it raises ``InvalidStateError``.
- Pooled handles count leases. The registry hands the same handle to every
  pooled Builder; each Builder acquires one lease and releases it on
  disposal. Releasing the last lease detaches the driver connection under
  the lease lock, so a Builder acquiring afterwards opens a fresh one.
"""

from __future__ import annotations

import threading
from typing import Any

from fluentdb.core.adapters.base import DatabaseAdapter
from fluentdb.core.errors import InvalidArgumentError, InvalidStateError
from fluentdb.core.logging import get_logger
from fluentdb.core.types import ConnectionState

logger = get_logger(__name__)


class ManagedConnection:
    """A possibly-open driver connection bound to one connection string."""

    def __init__(
        self,
        adapter: DatabaseAdapter,
        connection_string: str,
        *,
        pooled: bool = False,
    ) -> None:
        if not connection_string:
            raise InvalidArgumentError(
                "A connection string is required.", argument="connection_string"
            )

        adapter.validate(connection_string)

        self.adapter = adapter
        self.connection_string = connection_string
        self.pooled = pooled
        # Timeout last applied on the live connection; None forces re-apply
        self.applied_timeout: int | None = None

        self._raw: Any = None
        self._is_async = False
        self._leases = 0
        self._lease_lock = threading.Lock()

    # -- state ----------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        if self._raw is None:
            return ConnectionState.CLOSED
        if self.adapter.is_broken(self._raw):
            return ConnectionState.BROKEN
        return ConnectionState.OPEN

    @property
    def is_async(self) -> bool:
        """Whether the held driver connection was opened with ``open_async()``."""
        return self._raw is not None and self._is_async

    @property
    def raw(self) -> Any:
        """The synchronous driver connection."""
        if self._raw is None:
            raise InvalidStateError("The connection is not open.")
        if self._is_async:
            raise InvalidStateError(
                "The connection was opened asynchronously; use the *_async operations."
            )
        return self._raw

    @property
    def raw_any(self) -> Any:
        """The driver connection, sync or async."""
        if self._raw is None:
            raise InvalidStateError("The connection is not open.")
        return self._raw

    # -- lifecycle ------------------------------------------------------------

    def open(self) -> None:
        """Open the driver connection unless it is already open."""
        state = self.state
        if state is ConnectionState.OPEN:
            return
        if state is ConnectionState.BROKEN:
            self.abandon()

        self._raw = self.adapter.connect(self.connection_string)
        self._is_async = False
        self.applied_timeout = None
        logger.debug("connection_opened", vendor=self.adapter.name, pooled=self.pooled)

    async def open_async(self) -> None:
        """Open an async driver connection unless a connection is already open."""
        state = self.state
        if state is ConnectionState.OPEN:
            return
        if state is ConnectionState.BROKEN:
            self.abandon()

        self._raw = await self.adapter.connect_async(self.connection_string)
        self._is_async = True
        self.applied_timeout = None
        logger.debug(
            "connection_opened", vendor=self.adapter.name, pooled=self.pooled, mode="async"
        )

    def close(self) -> None:
        """Close the driver connection. No-op when already closed."""
        if self._raw is None:
            return
        if self._is_async:
            raise InvalidStateError(
                "The connection was opened asynchronously; use close_async()."
            )

        raw, self._raw = self._raw, None
        self.adapter.close(raw)
        logger.debug("connection_closed", vendor=self.adapter.name, pooled=self.pooled)

    async def close_async(self) -> None:
        """Close the driver connection, sync or async. No-op when already closed."""
        if self._raw is None:
            return

        raw, self._raw = self._raw, None
        if self._is_async:
            await self.adapter.close_async(raw)
        else:
            self.adapter.close(raw)
        logger.debug("connection_closed", vendor=self.adapter.name, pooled=self.pooled)

    def holds(self, raw: Any) -> bool:
        """Whether ``raw`` is the driver connection currently held."""
        return raw is not None and raw is self._raw

    def abandon(self) -> None:
        """Forget the driver connection without closing it."""
        if self._raw is not None:
            logger.debug("connection_abandoned", vendor=self.adapter.name)
        self._raw = None

    # -- transactions ---------------------------------------------------------

    def begin_transaction(self) -> Transaction:
        self.adapter.begin(self.raw)
        logger.debug("transaction_started", vendor=self.adapter.name)
        return Transaction(self)

    async def begin_transaction_async(self) -> Transaction:
        if self.is_async:
            await self.adapter.begin_async(self.raw_any)
        else:
            self.adapter.begin(self.raw)
        logger.debug("transaction_started", vendor=self.adapter.name, mode="async")
        return Transaction(self)

    # -- pooled leases --------------------------------------------------------

    @property
    def leases(self) -> int:
        return self._leases

    def acquire(self) -> int:
        """Register one more borrower; returns the lease count."""
        with self._lease_lock:
            self._leases += 1
            return self._leases

    def release(self) -> int:
        """Drop one borrower; returns the remaining lease count."""
        with self._lease_lock:
            return self._release_lease()

    def _release_lease(self) -> int:
        if self._leases > 0:
            self._leases -= 1
        return self._leases

    def _detach(self) -> tuple[Any, bool] | None:
        if self._raw is None:
            return None
        raw, self._raw = self._raw, None
        return raw, self._is_async

    def detach(self) -> tuple[Any, bool] | None:
        """
        Take the driver connection out of the handle without closing it.

        Returns ``(raw, is_async)``, or ``None`` when nothing is held. The
        caller owns the detached connection and must close it.
        """
        with self._lease_lock:
            return self._detach()

    def release_and_detach(self) -> tuple[Any, bool] | None:
        """
        Drop one borrower and, if it was the last, detach the driver connection.

        Both happen under the lease lock: a borrower acquiring afterwards
        finds the handle closed and opens its own driver connection, which
        the releasing Builder never touches.
        """
        with self._lease_lock:
            if self._release_lease():
                return None
            return self._detach()

    def __repr__(self) -> str:
        return (
            f"ManagedConnection(vendor={self.adapter.name!r}, "
            f"state={self.state.value!r}, pooled={self.pooled})"
        )


class Transaction:
    """
    A transaction started on a ``ManagedConnection``.

    Completes at most once. ``connection`` is ``None`` once the transaction
    was committed, rolled back or disposed.
    """

    def __init__(self, connection: ManagedConnection) -> None:
        self._connection = connection
        self._completed = False
        self._disposed = False

    @property
    def connection(self) -> ManagedConnection | None:
        if self._completed or self._disposed:
            return None
        return self._connection

    @property
    def is_active(self) -> bool:
        return self.connection is not None

    def _active_connection(self) -> ManagedConnection:
        if not self.is_active:
            raise InvalidStateError("The transaction has already completed.")
        return self._connection

    def _complete(self, outcome: str) -> None:
        self._completed = True
        logger.debug(
            "transaction_completed", vendor=self._connection.adapter.name, outcome=outcome
        )

    def commit(self) -> None:
        connection = self._active_connection()
        raw = connection.raw
        self._complete("committed")
        connection.adapter.commit(raw)

    def rollback(self) -> None:
        connection = self._active_connection()
        raw = connection.raw
        self._complete("rolled_back")
        try:
            connection.adapter.rollback(raw)
        finally:
            connection.applied_timeout = None

    async def commit_async(self) -> None:
        connection = self._active_connection()
        raw = connection.raw_any
        self._complete("committed")
        if connection.is_async:
            await connection.adapter.commit_async(raw)
        else:
            connection.adapter.commit(raw)

    async def rollback_async(self) -> None:
        connection = self._active_connection()
        raw = connection.raw_any
        self._complete("rolled_back")
        try:
            if connection.is_async:
                await connection.adapter.rollback_async(raw)
            else:
                connection.adapter.rollback(raw)
        finally:
            connection.applied_timeout = None

    def dispose(self) -> None:
        """Discard the transaction without committing or rolling back."""
        self._disposed = True


__all__ = [
    "ManagedConnection",
    "Transaction",
]
