"""Database types."""

from __future__ import annotations

from enum import Enum


class DatabaseType(str, Enum):
    """Supported database types."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    ORACLE = "oracle"


__all__ = [
    "DatabaseType",
]
