"""
Tests for logging_manager module.

Tests the MarginaliaLogger file output, the safe_logger function and the
NullLogger class that provide null-safe logging throughout the codebase.
"""
from unittest.mock import MagicMock

import click
import pytest

from marginalia.core.logging_manager import (
    MarginaliaLogger,
    NullLogger,
    handle_cli_error,
    safe_logger,
)


class TestMarginaliaLogger:
    """Tests for the rotating file logger."""

    def test_creates_component_and_error_logs(self, tmp_path):
        """Operations go to <component>.log, errors to errors.log."""
        logger = MarginaliaLogger(tmp_path / "logs", component_name="purge")
        logger.log_operation("purge_sweep_completed", {"sources": 2})
        logger.log_error(ValueError("boom"), {"operation": "purge_sources"})
        logger.close()

        component_log = (tmp_path / "logs" / "purge.log").read_text()
        error_log = (tmp_path / "logs" / "errors.log").read_text()
        assert "purge_sweep_completed" in component_log
        assert '"sources": 2' in component_log
        assert "ValueError: boom" in error_log
        assert "operation=purge_sources" in error_log

    def test_debug_messages_are_written(self, tmp_path):
        logger = MarginaliaLogger(tmp_path, component_name="database")
        logger.log_debug("session_start", {"session_id": "s1"})
        logger.close()
        assert "session_start" in (tmp_path / "database.log").read_text()

    def test_close_detaches_handlers(self, tmp_path):
        logger = MarginaliaLogger(tmp_path, component_name="closing")
        logger.close()
        assert logger.main_logger.handlers == []
        assert logger.error_logger.handlers == []


class TestNullLogger:
    """Tests for NullLogger class."""

    def test_null_logger_log_operation_no_op(self):
        """NullLogger.log_operation should do nothing."""
        logger = NullLogger()
        logger.log_operation("test_op", {"key": "value"})

    def test_null_logger_log_error_no_op(self):
        """NullLogger.log_error should do nothing."""
        logger = NullLogger()
        logger.log_error(ValueError("test error"), {"context": "test"})

    def test_null_logger_log_cli_error_returns_formatted(self):
        """NullLogger.log_cli_error should return formatted error string."""
        logger = NullLogger()
        result = logger.log_cli_error(ValueError("test error"), {"context": "test"})
        assert "ValueError" in result
        assert "test error" in result


class TestSafeLogger:
    """Tests for safe_logger function."""

    def test_safe_logger_returns_logger_when_provided(self):
        """safe_logger should return the same logger when not None."""
        mock_logger = MagicMock(spec=MarginaliaLogger)
        assert safe_logger(mock_logger) is mock_logger

    def test_safe_logger_returns_null_logger_when_none(self):
        """safe_logger should return NullLogger when logger is None."""
        assert isinstance(safe_logger(None), NullLogger)

    def test_safe_logger_null_logger_is_singleton(self):
        """safe_logger should return the same NullLogger instance."""
        assert safe_logger(None) is safe_logger(None)

    def test_works_with_log_details(self):
        """safe_logger should forward log calls with details dict."""
        mock_logger = MagicMock(spec=MarginaliaLogger)
        details = {"source_id": "abc-1"}

        safe_logger(mock_logger).log_operation("delete_source", details)
        mock_logger.log_operation.assert_called_once_with("delete_source", details)

        safe_logger(None).log_operation("delete_source", details)


class TestHandleCliError:
    """Tests for the CLI error helper."""

    def test_prints_and_exits(self, capsys):
        ctx = click.Context(click.Command("purge"), obj={"verbose": False})
        with pytest.raises(SystemExit) as excinfo:
            handle_cli_error(ctx, RuntimeError("store offline"), "purge")
        assert excinfo.value.code == 1
        assert "RuntimeError: store offline" in capsys.readouterr().err

    def test_logs_through_context_logger(self):
        mock_logger = MagicMock(spec=MarginaliaLogger)
        mock_logger.log_cli_error.return_value = "❌ boom"
        ctx = click.Context(click.Command("stats"), obj={"logger": mock_logger})
        with pytest.raises(SystemExit):
            handle_cli_error(ctx, ValueError("boom"), "stats", exit_code=2)
        mock_logger.log_cli_error.assert_called_once()
        assert mock_logger.log_cli_error.call_args[0][1] == {"operation": "stats"}
