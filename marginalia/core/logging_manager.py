#!/usr/bin/env python3
"""
logging_manager.py
--------------------
Centralized logging for Marginalia data-layer operations.

One MarginaliaLogger per component (``database``, ``purge``, ...) writes:
    - ``<component>.log``: every operation, debug and info record
    - ``errors.log``: errors with their context and traceback, shared by
      all components
    - stderr: warnings and errors

Components that accept a logger treat ``None`` as "do not log" through
:func:`safe_logger`.

Usage:
    logger = MarginaliaLogger(config.log_dir, component_name="purge")
    logger.log_operation("purge_sweep_completed", {"sources": 3})

    log = safe_logger(maybe_logger)
    log.log_debug("session_start", {"session_id": sid})
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import json
import logging
import sys
import traceback
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

# --- Third party imports ---
import click

FILE_FORMAT = logging.Formatter(
    "%(asctime)s | %(name)s | %(levelname)-7s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
CONSOLE_FORMAT = logging.Formatter("[%(levelname)s] %(name)s: %(message)s")


def _render(message: str, details: Optional[Dict[str, Any]]) -> str:
    """Append details as compact JSON to a message."""
    if not details:
        return message
    return f"{message} {json.dumps(details, default=str, sort_keys=True)}"


def cli_message(error: Exception) -> str:
    """One-line rendering of an error for terminal output."""
    return f"❌ {type(error).__name__}: {error}"


class MarginaliaLogger:
    """
    Rotating file logger for one component.

    Attributes:
        log_dir: Directory for log files
        component_name: Name of the component using this logger
        main_logger: Operations logger (``marginalia.<component>``)
        error_logger: Errors logger (``marginalia.<component>.errors``)
    """

    def __init__(
        self,
        log_dir: Path,
        component_name: str = "marginalia",
        max_bytes: int = 5 * 1024 * 1024,
        backup_count: int = 3,
    ) -> None:
        """
        Args:
            log_dir: Directory for log files (created if missing)
            component_name: Component name, also the log file stem
            max_bytes: Size at which a log file rotates
            backup_count: Rotated files kept per log
        """
        self.log_dir = Path(log_dir)
        self.component_name = component_name
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.main_logger = self._logger(f"marginalia.{component_name}", logging.DEBUG)
        self.main_logger.addHandler(
            self._file_handler(f"{component_name}.log", logging.DEBUG, max_bytes, backup_count)
        )
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.WARNING)
        console.setFormatter(CONSOLE_FORMAT)
        self.main_logger.addHandler(console)

        self.error_logger = self._logger(f"marginalia.{component_name}.errors", logging.ERROR)
        self.error_logger.addHandler(
            self._file_handler("errors.log", logging.ERROR, max_bytes, backup_count)
        )

    @staticmethod
    def _logger(name: str, level: int) -> logging.Logger:
        """Named logger with its own handlers only (not propagated to root)."""
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.propagate = False
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        return logger

    def _file_handler(
        self, filename: str, level: int, max_bytes: int, backup_count: int
    ) -> RotatingFileHandler:
        handler = RotatingFileHandler(
            self.log_dir / filename,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(FILE_FORMAT)
        return handler

    def close(self) -> None:
        """Close and detach every handler owned by this logger."""
        for logger in (self.main_logger, self.error_logger):
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

    # --- Records ---

    def log_operation(self, operation: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Record a completed operation with its details."""
        self.main_logger.info(_render(f"op={operation}", details))

    def log_debug(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.main_logger.debug(_render(message, details))

    def log_info(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.main_logger.info(_render(message, details))

    def log_warning(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.main_logger.warning(_render(message, details))

    def log_error(self, error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Record an error in errors.log.

        The record holds the error, its context as ``key=value`` pairs and
        the traceback of the exception being handled, if any.
        """
        lines = [f"{type(error).__name__}: {error}"]
        if context:
            lines.append("context: " + ", ".join(f"{k}={v}" for k, v in context.items()))
        if sys.exc_info()[0] is not None:
            lines.append(traceback.format_exc().rstrip())
        self.error_logger.error("\n".join(lines))

    def log_cli_error(
        self,
        error: Exception,
        context: Optional[Dict[str, Any]] = None,
        show_traceback: bool = False,
    ) -> str:
        """
        Log an error raised under a CLI command and format it for display.

        Args:
            error: Exception to report
            context: Where the error happened (defaults to ``source=cli``)
            show_traceback: Append the traceback to the returned message

        Returns:
            Message for the terminal
        """
        self.log_error(error, context or {"source": "cli"})
        message = cli_message(error)
        if show_traceback:
            return f"{message}\n\n{traceback.format_exc()}"
        return message


class NullLogger:
    """
    Null Object logger implementing the MarginaliaLogger interface.

    Lets code call logger methods unconditionally.
    """

    def log_operation(self, operation: str, details: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_error(self, error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_debug(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_info(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_warning(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_cli_error(
        self,
        error: Exception,
        context: Optional[Dict[str, Any]] = None,
        show_traceback: bool = False,
    ) -> str:
        return cli_message(error)


_null_logger = NullLogger()


def safe_logger(logger: Optional[MarginaliaLogger]) -> MarginaliaLogger:
    """Return the given logger, or the shared NullLogger when it is None."""
    return logger if logger is not None else _null_logger  # type: ignore[return-value]


def handle_cli_error(
    ctx: click.Context,
    error: Exception,
    operation: str,
    additional_context: Optional[Dict[str, Any]] = None,
    exit_code: int = 1,
) -> None:
    """
    Report a failed CLI command and exit.

    Logs through the logger stored in ``ctx.obj`` (if any), prints the
    message to stderr, with a traceback when ``--verbose`` was given.

    Args:
        ctx: Click context (``obj`` holds ``logger`` and ``verbose``)
        error: Exception that occurred
        operation: Name of the failed command, e.g. ``purge``
        additional_context: Extra context for the log record
        exit_code: Process exit code

    Raises:
        SystemExit: Always
    """
    obj = ctx.obj or {}
    context = {"operation": operation, **(additional_context or {})}
    message = safe_logger(obj.get("logger")).log_cli_error(
        error, context, show_traceback=obj.get("verbose", False)
    )
    click.echo(message, err=True)
    sys.exit(exit_code)
