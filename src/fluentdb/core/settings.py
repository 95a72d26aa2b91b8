"""Environment-driven settings for fluentdb.

Connection strings and command defaults come from the environment (or a
``.env`` file) rather than from code, so the same application can point at a
local SQLite file in development and at PostgreSQL or Oracle in production.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** a negative ``FLUENTDB_COMMAND_TIMEOUT`` fails at load
    - **Vendor keys first:** each adapter has its own connection-string key,
      ``DB_CONNECTION`` is the generic fallback
    - **Read on demand:** ``get_settings()`` re-reads the environment; the
      pooled connection registry captures its value once at first use

Environment:
    =================================  =====================================
    Variable                           Field
    =================================  =====================================
    ``DB_CONNECTION``                  ``db_connection`` (generic fallback)
    ``CORE__POSTGRE_CONNECTION_STRING`` ``postgresql_connection``
    ``CORE__ORACLE_CONNECTION_STRING``  ``oracle_connection``
    ``CORE__SQLITE_CONNECTION_STRING``  ``sqlite_connection``
    ``FLUENTDB_COMMAND_TIMEOUT``       ``command_timeout`` (seconds)
    ``FLUENTDB_LOG_LEVEL``             ``log_level``
    ``FLUENTDB_LOG_JSON``              ``log_json``
    =================================  =====================================

Examples:
    >>> from fluentdb.core.settings import get_settings
    >>> get_settings().connection_string_for("sqlite")  # doctest: +SKIP
    'app.db'

Tags:
    settings, configuration, pydantic, environment, fluentdb

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

#: Seconds a command may run before the driver cancels it.
DEFAULT_COMMAND_TIMEOUT = 30

GENERIC_CONNECTION_KEY = "DB_CONNECTION"

VENDOR_CONNECTION_KEYS: dict[str, str] = {
    "postgresql": "CORE__POSTGRE_CONNECTION_STRING",
    "oracle": "CORE__ORACLE_CONNECTION_STRING",
    "sqlite": "CORE__SQLITE_CONNECTION_STRING",
}


class FluentDBSettings(BaseSettings):
    """Settings read from the process environment and ``.env``.

    Fields
    ──────
    db_connection          : Generic connection string fallback
    postgresql_connection  : PostgreSQL connection string
    oracle_connection      : Oracle connection string
    sqlite_connection      : SQLite database path or URI
    command_timeout        : Default per-command timeout in seconds
    log_level              : Structlog log level
    log_json               : Force JSON (True) or console (False) rendering
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Connection strings ───────────────────────────────────────
    db_connection: str | None = Field(
        default=None,
        validation_alias=AliasChoices(GENERIC_CONNECTION_KEY, "db_connection"),
    )
    postgresql_connection: str | None = Field(
        default=None,
        validation_alias=AliasChoices(VENDOR_CONNECTION_KEYS["postgresql"], "postgresql_connection"),
    )
    oracle_connection: str | None = Field(
        default=None,
        validation_alias=AliasChoices(VENDOR_CONNECTION_KEYS["oracle"], "oracle_connection"),
    )
    sqlite_connection: str | None = Field(
        default=None,
        validation_alias=AliasChoices(VENDOR_CONNECTION_KEYS["sqlite"], "sqlite_connection"),
    )

    # ── Commands ─────────────────────────────────────────────────
    command_timeout: int = Field(
        default=DEFAULT_COMMAND_TIMEOUT,
        ge=0,
        validation_alias=AliasChoices("FLUENTDB_COMMAND_TIMEOUT", "command_timeout"),
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("FLUENTDB_LOG_LEVEL", "log_level"),
    )
    log_json: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("FLUENTDB_LOG_JSON", "log_json"),
    )

    def connection_string_for(self, vendor: str) -> str | None:
        """Connection string for ``vendor``: its own key first, then the generic one."""
        return getattr(self, f"{vendor}_connection", None) or self.db_connection

    @staticmethod
    def connection_key_for(vendor: str) -> str:
        """Name of the environment variable consulted first for ``vendor``."""
        return VENDOR_CONNECTION_KEYS.get(vendor, GENERIC_CONNECTION_KEY)


def get_settings() -> FluentDBSettings:
    """Load settings from the current environment."""
    return FluentDBSettings()


__all__ = [
    "DEFAULT_COMMAND_TIMEOUT",
    "GENERIC_CONNECTION_KEY",
    "VENDOR_CONNECTION_KEYS",
    "FluentDBSettings",
    "get_settings",
]
