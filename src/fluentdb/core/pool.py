"""Lazy pooled connection registry.

Manifesto:
    Builders created with ``pooling=True`` share one connection per driver
    kind instead of opening a fresh one each time. The shared connection is
    created on first use, from the connection string found in the
    environment at that moment, and then reused for the life of the process
    (or until ``reset()``).

Features:
    - **Single initialization:** concurrent first access constructs exactly
      one connection per driver kind (double-checked locking)
    - **Lock-free reads:** once created, lookups take no lock
    - **Lazy failure:** a missing connection string raises
      ``MissingConfigError`` on first use, not at import
    - **Explicit teardown:** ``reset()`` / ``reset_async()`` close and forget
      every shared connection (tests, process shutdown)

The registry does not arbitrate command execution: Builders sharing a
connection must not run commands on it concurrently.

Tags:
    fluentdb, database, pooling, registry, singleton, lazy-initialization

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from fluentdb.core.adapters.base import DatabaseAdapter
from fluentdb.core.connection import ManagedConnection
from fluentdb.core.errors import MissingConfigError
from fluentdb.core.logging import get_logger
from fluentdb.core.settings import FluentDBSettings, get_settings

logger = get_logger(__name__)


class ConnectionRegistry:
    """Process-wide map of driver kind -> shared ``ManagedConnection``."""

    def __init__(self, settings_factory: Callable[[], FluentDBSettings] = get_settings):
        self._settings_factory = settings_factory
        self._connections: dict[str, ManagedConnection] = {}
        self._lock = threading.Lock()

    def get_or_create(self, adapter: DatabaseAdapter) -> ManagedConnection:
        """Shared connection for ``adapter``'s driver kind, created on first call."""
        connection = self._connections.get(adapter.name)
        if connection is not None:
            return connection

        with self._lock:
            connection = self._connections.get(adapter.name)
            if connection is None:
                connection = self._create(adapter)
                self._connections[adapter.name] = connection
        return connection

    def _create(self, adapter: DatabaseAdapter) -> ManagedConnection:
        settings = self._settings_factory()
        connection_string = settings.connection_string_for(adapter.name)
        if not connection_string:
            raise MissingConfigError(
                settings.connection_key_for(adapter.name),
                f"No connection string for pooled {adapter.name} connections; "
                f"set {settings.connection_key_for(adapter.name)}.",
            )

        connection = ManagedConnection(adapter, connection_string, pooled=True)
        logger.info("pooled_connection_created", vendor=adapter.name)
        return connection

    def get(self, name: str) -> ManagedConnection | None:
        return self._connections.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def _take_all(self) -> list[ManagedConnection]:
        with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        return connections

    def reset(self) -> None:
        """Close and forget every shared connection."""
        for connection in self._take_all():
            if connection.is_async:
                # Cannot await here; the driver connection is left to its finalizer
                connection.abandon()
                continue
            try:
                connection.close()
            except Exception as exc:
                if not connection.adapter.is_driver_error(exc):
                    raise
                logger.warning("pooled_connection_close_failed", vendor=connection.adapter.name, error=str(exc))

    async def reset_async(self) -> None:
        """Close and forget every shared connection, awaiting async ones."""
        for connection in self._take_all():
            try:
                await connection.close_async()
            except Exception as exc:
                if not connection.adapter.is_driver_error(exc):
                    raise
                logger.warning("pooled_connection_close_failed", vendor=connection.adapter.name, error=str(exc))


# Global registry
connection_registry = ConnectionRegistry()


__all__ = [
    "ConnectionRegistry",
    "connection_registry",
]
