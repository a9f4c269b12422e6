#!/usr/bin/env python3
"""
decorators.py
--------------------
Shared decorators and context managers for database operations.

- log_database_operation: start/completion/failure logging with timing
- handle_db_errors: wrap stray SQLAlchemy errors in DatabaseError
- DatabaseOperation: context-manager form of both

Domain errors (NotFoundError, ConflictError, ValidationError, ...) are not
SQLAlchemy errors and always propagate unchanged.
"""
from __future__ import annotations

from datetime import datetime
from functools import wraps
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from marginalia.core.exceptions import DatabaseError
from marginalia.core.logging_manager import MarginaliaLogger, safe_logger


def log_database_operation(operation_name: str):
    """
    Decorator to log manager operations with timing and context.

    The decorated method's instance must expose a ``logger`` attribute
    (None is allowed).

    Args:
        operation_name: Name of the operation being logged

    Returns:
        Decorator function
    """

    def decorator(function: Callable) -> Callable:
        @wraps(function)
        def wrapper(self, *args, **kwargs):
            start_time = datetime.now()
            operation_id = f"{operation_name}_{start_time.strftime('%Y%m%d_%H%M%S_%f')}"
            logger = safe_logger(getattr(self, "logger", None))

            logger.log_debug(
                f"Starting {operation_name}",
                {
                    "operation_id": operation_id,
                    "args_count": len(args),
                    "kwargs_keys": list(kwargs.keys()),
                },
            )

            try:
                result = function(self, *args, **kwargs)
            except Exception as e:
                logger.log_error(
                    e,
                    {
                        "operation": operation_name,
                        "operation_id": operation_id,
                        "duration_seconds": (datetime.now() - start_time).total_seconds(),
                    },
                )
                raise

            logger.log_operation(
                f"{operation_name}_completed",
                {
                    "operation_id": operation_id,
                    "duration_seconds": (datetime.now() - start_time).total_seconds(),
                    "success": True,
                },
            )
            return result

        return wrapper

    return decorator


def handle_db_errors(function: Callable) -> Callable:
    """
    Decorator converting SQLAlchemy errors into DatabaseError.

    Args:
        function: Function to wrap

    Returns:
        Wrapped function with error handling
    """

    @wraps(function)
    def wrapper(*args, **kwargs):
        try:
            return function(*args, **kwargs)
        except IntegrityError as e:
            raise DatabaseError(f"Data integrity violation: {e}") from e
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database operation failed: {e}") from e

    return wrapper


class DatabaseOperation:
    """
    Context manager logging a block of database work.

    Logs completion with duration on success. On failure, logs the error
    and converts SQLAlchemy errors to DatabaseError; any other exception
    propagates unchanged.

    Usage:
        with DatabaseOperation(logger, "purge_reader", {"reader_id": rid}):
            ...
    """

    def __init__(
        self,
        logger: Optional[MarginaliaLogger],
        operation_name: str,
        details: Optional[Dict[str, Any]] = None,
        log_start: bool = False,
    ) -> None:
        self.logger = safe_logger(logger)
        self.operation_name = operation_name
        self.details = details or {}
        self.log_start = log_start
        self.start_time: Optional[datetime] = None

    def __enter__(self) -> "DatabaseOperation":
        self.start_time = datetime.now()
        if self.log_start:
            self.logger.log_debug(f"Starting {self.operation_name}", self.details)
        return self

    def _duration(self) -> float:
        return float((datetime.now() - self.start_time).total_seconds())

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_val is None:
            self.logger.log_operation(
                f"{self.operation_name}_completed",
                {**self.details, "duration_seconds": self._duration(), "success": True},
            )
            return False

        self.logger.log_error(
            exc_val,
            {
                **self.details,
                "operation": self.operation_name,
                "duration_seconds": self._duration(),
            },
        )
        if isinstance(exc_val, IntegrityError):
            raise DatabaseError(f"Data integrity violation: {exc_val}") from exc_val
        if isinstance(exc_val, SQLAlchemyError):
            raise DatabaseError(f"Database operation failed: {exc_val}") from exc_val
        return False
