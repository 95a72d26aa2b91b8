"""Database adapters -- one strategy object per database vendor.

Manifesto:
    The Builder and the Execution are written once. Everything a vendor does
    differently (connecting, transactions, calling stored procedures,
    preparing statements, applying timeouts, reporting error codes) lives in
    an adapter.

    Each adapter is **import-guarded**: the database driver is only required
    when a connection is constructed, not at import time. Install the
    corresponding extra::

        pip install fluentdb[postgresql]   # psycopg 3
        pip install fluentdb[oracle]       # oracledb

Architecture::

    DatabaseAdapter (base.py)        Abstract base: driver, connection,
        |                            transaction and command hooks
        |-- SQLiteAdapter            sqlite3 / aiosqlite
        |-- PostgreSQLAdapter        psycopg 3 (optional)
        |-- OracleAdapter            oracledb (optional)

    AdapterRegistry (registry.py)    Singleton: name -> adapter class
    DatabaseType (types.py)          Enum of supported backends

Guardrails:
    ❌ ``execution.execute("DELETE FROM t WHERE id=" + user_input)``
    ✅ ``execution.execute("DELETE FROM t WHERE id=:id", parameters=[Parameter("id", user_input)])``
    ❌ Importing optional drivers at module scope
    ✅ Import-guarded at connection time with clear ``ConfigError``

Tags:
    fluentdb, database, adapters, multi-backend, import-guarded,
    registry-pattern, postgresql, sqlite, oracle

Doc-Types:
    package-overview, architecture-map, module-index
"""

from .base import DatabaseAdapter, parameter_name
from .oracle import OracleAdapter
from .postgresql import PostgreSQLAdapter
from .registry import AdapterRegistry, adapter_registry, get_adapter, list_adapters, register
from .sqlite import SQLiteAdapter
from .types import DatabaseType

__all__ = [
    # Types
    "DatabaseType",
    # Base class
    "DatabaseAdapter",
    "parameter_name",
    # Implementations
    "SQLiteAdapter",
    "PostgreSQLAdapter",
    "OracleAdapter",
    # Registry
    "AdapterRegistry",
    "adapter_registry",
    "get_adapter",
    "list_adapters",
    "register",
]
