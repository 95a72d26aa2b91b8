"""Tests for ``fluentdb.core.errors`` -- the error taxonomy."""

from __future__ import annotations

import pytest

from fluentdb.core.errors import (
    ConfigError,
    DatabaseConnectionError,
    DatabaseError,
    ErrorCategory,
    ErrorContext,
    FluentDBError,
    InvalidArgumentError,
    InvalidStateError,
    MissingConfigError,
    OutOfRangeError,
    PreparationError,
    UnsupportedOperationError,
    categorize_error,
    is_retryable,
)


class TestErrorCategories:
    @pytest.mark.parametrize(
        "error_cls, category",
        [
            (InvalidArgumentError, ErrorCategory.ARGUMENT),
            (OutOfRangeError, ErrorCategory.ARGUMENT),
            (InvalidStateError, ErrorCategory.STATE),
            (UnsupportedOperationError, ErrorCategory.UNSUPPORTED),
            (ConfigError, ErrorCategory.CONFIG),
            (DatabaseConnectionError, ErrorCategory.CONNECTION),
            (PreparationError, ErrorCategory.PREPARATION),
            (DatabaseError, ErrorCategory.DATABASE),
        ],
    )
    def test_default_category(self, error_cls, category):
        assert error_cls("boom").category == category

    def test_out_of_range_is_invalid_argument(self):
        assert issubclass(OutOfRangeError, InvalidArgumentError)

    def test_missing_config_is_config_error(self):
        error = MissingConfigError("DB_CONNECTION")
        assert isinstance(error, ConfigError)
        assert error.key == "DB_CONNECTION"
        assert "DB_CONNECTION" in str(error)


class TestFluentDBError:
    def test_kind_is_class_name(self):
        assert OutOfRangeError("negative").kind == "OutOfRangeError"

    def test_cause_is_chained(self):
        cause = RuntimeError("driver")
        error = DatabaseError("Database driver error.", cause=cause)
        assert error.cause is cause
        assert error.__cause__ is cause

    def test_with_context_sets_known_fields_and_metadata(self):
        error = InvalidStateError("closed").with_context(vendor="sqlite", attempt=2)
        assert error.context.vendor == "sqlite"
        assert error.context.metadata == {"attempt": 2}

    def test_argument_is_recorded(self):
        error = InvalidArgumentError("empty", argument="text")
        assert error.argument == "text"
        assert error.context.argument == "text"

    def test_to_dict(self):
        error = DatabaseError(
            "Database engine error; code: p23505.",
            code="23505",
            vendor="postgresql",
            context=ErrorContext(command="save_user"),
            cause=ValueError("dup"),
        )
        data = error.to_dict()
        assert data["error_type"] == "DatabaseError"
        assert data["category"] == "DATABASE"
        assert data["code"] == "23505"
        assert data["context"]["vendor"] == "postgresql"
        assert data["context"]["command"] == "save_user"
        assert "dup" in data["cause"]

    def test_repr(self):
        assert repr(ConfigError("bad")) == "ConfigError('bad', category=CONFIG)"


class TestHelpers:
    def test_is_retryable_uses_flag(self):
        assert is_retryable(DatabaseError("x", retryable=True)) is True
        assert is_retryable(DatabaseError("x")) is False

    def test_is_retryable_for_builtin_connection_errors(self):
        assert is_retryable(ConnectionError()) is True
        assert is_retryable(ValueError()) is False

    def test_categorize_error(self):
        assert categorize_error(PreparationError("x")) == ErrorCategory.PREPARATION
        assert categorize_error(OSError()) == ErrorCategory.CONNECTION
        assert categorize_error(TypeError()) == ErrorCategory.ARGUMENT
        assert categorize_error(KeyError()) == ErrorCategory.UNKNOWN
