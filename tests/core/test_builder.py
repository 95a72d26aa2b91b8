"""Tests for ``fluentdb.core.builder`` -- configuration, construction and disposal."""

from __future__ import annotations

import pytest

from fluentdb.core.adapters.sqlite import SQLiteAdapter
from fluentdb.core.builder import Builder
from fluentdb.core.errors import (
    ConfigError,
    DatabaseConnectionError,
    InvalidArgumentError,
    InvalidStateError,
    MissingConfigError,
    OutOfRangeError,
    UnsupportedOperationError,
)
from fluentdb.core.execution import Execution
from fluentdb.core.settings import FluentDBSettings
from fluentdb.core.types import CommandKind, ConnectionState, Parameter


class TestBuilderConstruction:
    def test_defaults(self, db_url):
        builder = Builder(SQLiteAdapter(), db_url)
        assert builder.command_kind is CommandKind.TEXT
        assert builder.command_text is None
        assert builder.timeout == 30
        assert builder.parameters == []
        assert builder.is_pooled is False
        assert builder.connection.state is ConnectionState.CLOSED

    def test_adapter_by_name(self, db_url):
        builder = Builder("sqlite", db_url)
        assert isinstance(builder.adapter, SQLiteAdapter)

    def test_vendor_classmethod(self, db_url):
        assert isinstance(Builder.sqlite(db_url).adapter, SQLiteAdapter)

    def test_unknown_adapter(self, db_url):
        with pytest.raises(ConfigError, match="Unknown database adapter"):
            Builder("informix", db_url)

    def test_empty_connection_string(self):
        with pytest.raises(InvalidArgumentError):
            Builder(SQLiteAdapter(), "")

    def test_missing_environment_connection_string(self):
        with pytest.raises(MissingConfigError) as exc_info:
            Builder(SQLiteAdapter())
        assert exc_info.value.key == "CORE__SQLITE_CONNECTION_STRING"

    def test_vendor_environment_key(self, monkeypatch, db_url):
        monkeypatch.setenv("CORE__SQLITE_CONNECTION_STRING", db_url)
        monkeypatch.setenv("DB_CONNECTION", "/nonexistent/other.db")
        assert Builder(SQLiteAdapter()).connection_string == db_url

    def test_generic_environment_key(self, monkeypatch, db_url):
        monkeypatch.setenv("DB_CONNECTION", db_url)
        assert Builder(SQLiteAdapter()).connection_string == db_url

    def test_timeout_from_environment(self, monkeypatch, db_url):
        monkeypatch.setenv("FLUENTDB_COMMAND_TIMEOUT", "12")
        assert Builder(SQLiteAdapter(), db_url).timeout == 12

    def test_explicit_settings(self, db_url):
        settings = FluentDBSettings(sqlite_connection=db_url, command_timeout=7)
        builder = Builder(SQLiteAdapter(), settings=settings)
        assert builder.connection_string == db_url
        assert builder.timeout == 7


class TestConstructionRecovery:
    def test_transient_fault_retries_once(self, db_url, fault_adapter, transient_fault):
        adapter = fault_adapter([transient_fault])
        builder = Builder(adapter, db_url)
        assert adapter.validations == 2
        assert builder.connection is not None
        assert builder.is_pooled is False

    def test_second_transient_fault_fails(self, db_url, fault_adapter, transient_fault):
        adapter = fault_adapter([transient_fault, transient_fault])
        with pytest.raises(DatabaseConnectionError) as exc_info:
            Builder(adapter, db_url)
        assert adapter.validations == 2
        assert exc_info.value.cause is not None

    def test_permanent_fault_is_not_retried(self, db_url, fault_adapter, permanent_fault):
        adapter = fault_adapter([permanent_fault])
        with pytest.raises(DatabaseConnectionError, match="Error establishing a connection") as exc_info:
            Builder(adapter, db_url)
        assert adapter.validations == 1
        assert exc_info.value.cause is permanent_fault
        assert exc_info.value.__cause__ is permanent_fault

    def test_pooled_transient_fault_falls_back_to_exclusive(
        self, monkeypatch, db_url, fault_adapter, transient_fault
    ):
        monkeypatch.setenv("CORE__SQLITE_CONNECTION_STRING", db_url)
        adapter = fault_adapter([transient_fault])
        builder = Builder(adapter, pooling=True)
        assert builder.is_pooled is False
        assert builder.connection_string == db_url


class TestFluentConfiguration:
    @pytest.fixture
    def builder(self, db_url):
        builder = Builder(SQLiteAdapter(), db_url)
        yield builder
        builder.dispose()

    def test_methods_chain(self, builder):
        result = (
            builder.with_command("SELECT 1", CommandKind.TEXT)
            .with_parameters(Parameter("a", 1))
            .with_timeout(5)
            .with_prepared_statement()
            .with_transaction()
        )
        assert result is builder

    def test_with_command_defaults_to_stored_procedure(self, builder):
        builder.with_command("get_all_users")
        assert builder.command_text == "get_all_users"
        assert builder.command_kind is CommandKind.STORED_PROCEDURE

    def test_later_configuration_overwrites(self, builder):
        builder.with_command("get_all_users").with_command("SELECT 1", CommandKind.TEXT)
        assert builder.command_text == "SELECT 1"
        assert builder.command_kind is CommandKind.TEXT

    def test_with_command_rejects_empty_text(self, builder):
        with pytest.raises(InvalidArgumentError):
            builder.with_command("")

    def test_table_direct_is_unsupported(self, builder):
        with pytest.raises(UnsupportedOperationError):
            builder.with_command("users", CommandKind.TABLE_DIRECT)
        with pytest.raises(UnsupportedOperationError):
            builder.with_command_type(CommandKind.TABLE_DIRECT)

    def test_with_parameters_varargs_and_iterable(self, builder):
        a, b = Parameter("a", 1), Parameter("b", 2)
        assert builder.with_parameters(a, b).parameters == [a, b]
        assert builder.with_parameters([b, a]).parameters == [b, a]

    def test_with_parameters_keeps_duplicates(self, builder):
        a = Parameter("a", 1)
        assert builder.with_parameters(a, a).parameters == [a, a]

    def test_with_parameters_replaces(self, builder):
        builder.with_parameters(Parameter("a", 1))
        builder.with_parameters(Parameter("b", 2))
        assert [p.name for p in builder.parameters] == ["b"]

    def test_empty_parameter_set_is_valid(self, builder):
        assert builder.with_parameters([]).parameters == []
        assert builder.with_parameters().parameters == []

    def test_absent_parameter_set(self, builder):
        with pytest.raises(InvalidArgumentError):
            builder.with_parameters(None)

    def test_non_parameter_items(self, builder):
        with pytest.raises(InvalidArgumentError):
            builder.with_parameters(["a", 1])

    def test_with_prepared_statement(self, builder):
        builder.with_prepared_statement(require_parameters=False)
        assert builder.prepared_policy.enabled is True
        assert builder.prepared_policy.require_parameters is False

    def test_with_timeout(self, builder):
        assert builder.with_timeout(0).timeout == 0

    def test_negative_timeout(self, builder):
        with pytest.raises(OutOfRangeError):
            builder.with_timeout(-1)

    @pytest.mark.parametrize("value", ["10", 1.5, True, None])
    def test_non_integer_timeout(self, builder, value):
        with pytest.raises(InvalidArgumentError):
            builder.with_timeout(value)

    def test_with_transaction_requires_connection(self, builder):
        builder.connection = None
        with pytest.raises(InvalidStateError):
            builder.with_transaction()

    def test_configuration_after_dispose(self, builder):
        builder.dispose()
        with pytest.raises(InvalidStateError):
            builder.with_command("get_all_users")

    @pytest.mark.parametrize(
        "configure",
        [
            lambda b: b.with_command_type(CommandKind.TEXT),
            lambda b: b.with_parameters(Parameter("id", 1)),
            lambda b: b.clear_parameters(),
            lambda b: b.with_prepared_statement(),
            lambda b: b.with_timeout(5),
            lambda b: b.with_transaction(),
        ],
    )
    def test_every_mutator_rejects_disposed_builder(self, builder, configure):
        builder.dispose()
        with pytest.raises(InvalidStateError):
            configure(builder)


class TestBuild:
    def test_build_opens_connection(self, db_url):
        builder = Builder(SQLiteAdapter(), db_url)
        execution = builder.build()
        try:
            assert isinstance(execution, Execution)
            assert execution.builder is builder
            assert builder.connection.state is ConnectionState.OPEN
        finally:
            execution.dispose()

    def test_build_twice_keeps_connection(self, db_url):
        builder = Builder(SQLiteAdapter(), db_url)
        first = builder.build()
        raw = builder.connection.raw
        builder.build()
        assert builder.connection.raw is raw
        first.dispose()

    def test_build_starts_requested_transaction(self, db_url):
        builder = Builder(SQLiteAdapter(), db_url).with_transaction()
        execution = builder.build()
        try:
            assert builder.transaction is not None
            assert builder.transaction.is_active
            assert builder.connection.raw.in_transaction
        finally:
            execution.dispose()

    def test_open_failure_disposes_builder(self, tmp_path):
        builder = Builder(SQLiteAdapter(), str(tmp_path / "missing" / "app.db"))
        with pytest.raises(DatabaseConnectionError) as exc_info:
            builder.build()
        assert builder.is_disposed is True
        assert builder.connection is None
        assert exc_info.value.context.vendor == "sqlite"


class TestDispose:
    def test_dispose_closes_exclusive_connection(self, db_url):
        builder = Builder(SQLiteAdapter(), db_url).with_parameters(Parameter("a", 1))
        builder.build()
        connection = builder.connection
        builder.dispose()
        assert builder.connection is None
        assert builder.parameters == []
        assert connection.state is ConnectionState.CLOSED

    def test_dispose_is_idempotent(self, db_url):
        builder = Builder(SQLiteAdapter(), db_url)
        builder.build()
        builder.dispose()
        builder.dispose()
        assert builder.is_disposed is True

    def test_dispose_discards_transaction_without_commit(self, db_url, row_count):
        builder = Builder(SQLiteAdapter(), db_url).with_transaction()
        execution = builder.build()
        execution.execute("DELETE FROM users")
        transaction = builder.transaction
        builder.dispose()
        assert builder.transaction is None
        assert transaction.is_active is False
        assert row_count() == 3

    def test_dispose_swallows_close_failures(self, db_url, monkeypatch):
        adapter = SQLiteAdapter()
        builder = Builder(adapter, db_url)
        builder.build()

        def failing_close(raw):
            raise RuntimeError("close failed")

        monkeypatch.setattr(adapter, "close", failing_close)
        builder.dispose()
        assert builder.is_disposed is True
