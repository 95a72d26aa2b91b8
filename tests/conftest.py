"""
Shared pytest fixtures and configuration for fluentdb tests.

This module provides:
- Environment isolation (connection-string and FLUENTDB_* variables)
- Pooled connection registry cleanup for test isolation
- A seeded SQLite database file
- SQLite adapter doubles for stored procedures and fault injection

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments
    (pytest injects them automatically).
"""

import sqlite3
import sys
from pathlib import Path
from typing import Any

import pytest

# Ensure fluentdb package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fluentdb.core.adapters.sqlite import SQLiteAdapter
from fluentdb.core.pool import connection_registry
from fluentdb.core.settings import GENERIC_CONNECTION_KEY, VENDOR_CONNECTION_KEYS


ENV_KEYS = [
    GENERIC_CONNECTION_KEY,
    *VENDOR_CONNECTION_KEYS.values(),
    "FLUENTDB_COMMAND_TIMEOUT",
    "FLUENTDB_LOG_LEVEL",
    "FLUENTDB_LOG_JSON",
]

USERS = [
    (1, "ada", 1),
    (2, "grace", 1),
    (3, "linus", 0),
]


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Remove fluentdb variables and step away from any local .env file."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield


@pytest.fixture(autouse=True)
def reset_connection_registry():
    """Forget pooled connections between tests."""
    yield
    connection_registry.reset()


# =============================================================================
# Database Fixtures
# =============================================================================


def create_users_database(path: Path) -> Path:
    conn = sqlite3.connect(path)
    try:
        conn.executescript(
            """
            CREATE TABLE users (
                id       INTEGER PRIMARY KEY,
                name     TEXT NOT NULL,
                active   INTEGER NOT NULL,
                nickname TEXT
            );
            """
        )
        conn.executemany(
            "INSERT INTO users (id, name, active) VALUES (?, ?, ?)", USERS
        )
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """SQLite database file with a seeded ``users`` table."""
    return create_users_database(tmp_path / "app.db")


@pytest.fixture
def db_url(db_path: Path) -> str:
    return str(db_path)


def count_rows(path: Path, where: str = "1 = 1") -> int:
    conn = sqlite3.connect(path)
    try:
        return conn.execute(f"SELECT COUNT(*) FROM users WHERE {where}").fetchone()[0]
    finally:
        conn.close()


# =============================================================================
# Adapter Doubles
# =============================================================================


class ProcedureSQLiteAdapter(SQLiteAdapter):
    """SQLite adapter that runs named 'stored procedures' from a lookup table."""

    procedures = {
        "get_all_users": (
            "SELECT id, name FROM users WHERE active = :active AND id >= :min_id ORDER BY id"
        ),
        "save_user_nickname": "UPDATE users SET nickname = 'nick_' || name WHERE id = :id",
        "delete_all_other_users": "DELETE FROM users WHERE nickname IS NULL",
        "fail_user_purge": "DELETE FROM missing_table",
    }

    def render_procedure(self, command, *, reader):
        return self.procedures[command.text]


class FaultInjectingAdapter(SQLiteAdapter):
    """SQLite adapter whose connection-string validation fails on demand."""

    def __init__(self, failures: list[BaseException] | None = None, **options: Any):
        super().__init__(**options)
        self.failures = list(failures or [])
        self.validations = 0

    def validate(self, connection_string: str) -> None:
        self.validations += 1
        if self.failures:
            raise self.failures.pop(0)


@pytest.fixture
def procedure_adapter() -> ProcedureSQLiteAdapter:
    return ProcedureSQLiteAdapter()


@pytest.fixture
def fault_adapter():
    """Factory for adapters whose first validations raise the given faults."""
    return FaultInjectingAdapter


@pytest.fixture
def transient_fault() -> sqlite3.OperationalError:
    return sqlite3.OperationalError("database is locked")


@pytest.fixture
def permanent_fault() -> sqlite3.DatabaseError:
    return sqlite3.DatabaseError("file is not a database")


@pytest.fixture
def row_count(db_path: Path):
    """Count ``users`` rows through an independent connection."""

    def _count(where: str = "1 = 1") -> int:
        return count_rows(db_path, where)

    return _count
