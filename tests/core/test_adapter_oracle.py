"""Tests for ``fluentdb.core.adapters.oracle`` -- Oracle adapter (mocked driver)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

oracledb = pytest.importorskip("oracledb")

from fluentdb.core.adapters.oracle import OracleAdapter  # noqa: E402
from fluentdb.core.command import Command  # noqa: E402
from fluentdb.core.errors import ConfigError  # noqa: E402
from fluentdb.core.types import CommandKind, Parameter, ParameterDirection  # noqa: E402

DSN = "app/secret@db.example.com:1521/FREEPDB1"


def make_command(adapter, text, kind=CommandKind.TEXT, parameters=(), timeout=30):
    connection = MagicMock()
    connection.adapter = adapter
    command = Command(connection, text, kind, timeout=timeout)
    command.add_parameters(parameters)
    command.cursor = MagicMock()
    return command


def oracle_error(code: int, *, recoverable: bool = False) -> Exception:
    error_object = MagicMock(code=code, isrecoverable=recoverable)
    return oracledb.DatabaseError(error_object)


class TestOracleAdapterDriver:
    def test_identity(self):
        adapter = OracleAdapter()
        assert adapter.name == "oracle"
        assert adapter.code_prefix == "o"

    def test_missing_driver(self):
        with patch("importlib.import_module", side_effect=ImportError("no oracledb")):
            with pytest.raises(ConfigError, match=r"fluentdb\[oracle\]"):
                OracleAdapter().load_driver()


class TestOracleAdapterConnect:
    @patch("oracledb.connect")
    def test_connect_enables_autocommit(self, mock_connect):
        raw = OracleAdapter(config_dir="/etc/oracle").connect(DSN)
        mock_connect.assert_called_once_with(dsn=DSN, config_dir="/etc/oracle")
        assert raw.autocommit is True

    @pytest.mark.asyncio
    async def test_connect_async(self):
        with patch("oracledb.connect_async", new_callable=AsyncMock) as mock_connect:
            raw = await OracleAdapter().connect_async(DSN)
        mock_connect.assert_awaited_once_with(dsn=DSN)
        assert raw.autocommit is True

    def test_is_broken(self):
        raw = MagicMock()
        raw.is_healthy.return_value = False
        assert OracleAdapter().is_broken(raw) is True


class TestOracleAdapterCommands:
    def test_stored_procedure_uses_callproc(self):
        adapter = OracleAdapter()
        command = make_command(
            adapter, "app.save_user", CommandKind.STORED_PROCEDURE, [Parameter(":id", 3)]
        )
        result = adapter.execute(command, reader=False)
        command.cursor.callproc.assert_called_once_with(
            "app.save_user", keyword_parameters={"id": 3}
        )
        assert result is command.cursor

    def test_stored_procedure_positional(self):
        adapter = OracleAdapter()
        command = make_command(
            adapter, "purge", CommandKind.STORED_PROCEDURE, [Parameter(None, 1), Parameter(None, 2)]
        )
        adapter.execute(command, reader=False)
        command.cursor.callproc.assert_called_once_with("purge", parameters=[1, 2])

    def test_stored_procedure_reads_implicit_results(self):
        adapter = OracleAdapter()
        command = make_command(adapter, "get_users", CommandKind.STORED_PROCEDURE)
        implicit = MagicMock()
        command.cursor.getimplicitresults.return_value = [implicit]
        assert adapter.execute(command, reader=True) is implicit

    def test_output_parameters_round_trip(self):
        adapter = OracleAdapter()
        total = Parameter("total", db_type=int, direction=ParameterDirection.OUTPUT)
        command = make_command(
            adapter, "count_users", CommandKind.STORED_PROCEDURE, [Parameter("active", 1), total]
        )
        var = MagicMock()
        var.getvalue.return_value = 12
        command.cursor.var.return_value = var

        adapter.execute(command, reader=False)
        adapter.collect_outputs(command)

        command.cursor.var.assert_called_once_with(int)
        command.cursor.callproc.assert_called_once_with(
            "count_users", keyword_parameters={"active": 1, "total": var}
        )
        assert total.value == 12

    def test_input_output_parameter_seeds_value(self):
        adapter = OracleAdapter()
        counter = Parameter(None, 5, direction=ParameterDirection.INPUT_OUTPUT)
        command = make_command(adapter, "bump", CommandKind.STORED_PROCEDURE, [counter])
        var = MagicMock()
        command.cursor.var.return_value = var

        adapter.bind(command)

        command.cursor.var.assert_called_once_with(str)
        var.setvalue.assert_called_once_with(0, 5)

    def test_prepare_checks_statement(self):
        adapter = OracleAdapter()
        command = make_command(adapter, "SELECT * FROM users WHERE id = :id")
        command.cursor.statement = command.text
        assert adapter.prepare(command) is True
        command.cursor.prepare.assert_called_once_with(command.text)

        command.cursor.statement = None
        assert adapter.prepare(command) is False

    def test_prepared_text_executes_prepared_statement(self):
        adapter = OracleAdapter()
        command = make_command(
            adapter, "DELETE FROM users WHERE id = :id", parameters=[Parameter("id", 1)]
        )
        command.is_prepared = True
        adapter.execute(command, reader=False)
        command.cursor.execute.assert_called_once_with(None, {"id": 1})

    def test_apply_timeout_sets_call_timeout(self):
        adapter = OracleAdapter()
        command = make_command(adapter, "SELECT 1 FROM dual", timeout=10)
        adapter.apply_timeout(command)
        assert command.connection.raw_any.call_timeout == 10000

    @pytest.mark.asyncio
    async def test_async_callproc(self):
        adapter = OracleAdapter()
        command = make_command(adapter, "save_user", CommandKind.STORED_PROCEDURE)
        command.cursor.callproc = AsyncMock()
        await adapter.execute_async(command, reader=False)
        command.cursor.callproc.assert_awaited_once_with("save_user", parameters=[])


class TestOracleAdapterErrors:
    def test_engine_error_code(self):
        error = OracleAdapter().translate_error(oracle_error(942))
        assert error.code == "942"
        assert error.message == "Database engine error; code: o942."

    def test_recoverable_errors_are_transient(self):
        adapter = OracleAdapter()
        assert adapter.is_transient(oracle_error(3113, recoverable=True)) is True
        assert adapter.is_transient(oracle_error(942)) is False

    def test_driver_error_without_code(self):
        error = OracleAdapter().translate_error(oracledb.InterfaceError("not connected"))
        assert error.code is None
        assert error.message == "Database driver error."
