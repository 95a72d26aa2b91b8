"""Tests for ``fluentdb.core.adapters.registry``."""

from __future__ import annotations

import pytest

from fluentdb.core.adapters import (
    AdapterRegistry,
    DatabaseType,
    OracleAdapter,
    PostgreSQLAdapter,
    SQLiteAdapter,
    get_adapter,
    list_adapters,
)
from fluentdb.core.errors import ConfigError


class CustomAdapter(SQLiteAdapter):
    name = "custom"


class TestAdapterRegistry:
    def test_defaults(self):
        assert list_adapters() == ["oracle", "postgres", "postgresql", "sqlite"]

    @pytest.mark.parametrize(
        "name, adapter_cls",
        [
            ("sqlite", SQLiteAdapter),
            ("postgresql", PostgreSQLAdapter),
            ("postgres", PostgreSQLAdapter),
            ("ORACLE", OracleAdapter),
            (DatabaseType.ORACLE, OracleAdapter),
        ],
    )
    def test_get_adapter(self, name, adapter_cls):
        assert isinstance(get_adapter(name), adapter_cls)

    def test_options_are_passed(self):
        adapter = get_adapter("sqlite", timeout=1.5)
        assert adapter._timeout == 1.5

    def test_unknown_adapter(self):
        with pytest.raises(ConfigError):
            get_adapter("informix")

    def test_register_custom_adapter(self):
        registry = AdapterRegistry()
        registry.register("Custom", CustomAdapter)
        assert "custom" in registry.list_adapters()
        assert isinstance(registry.create("custom"), CustomAdapter)
