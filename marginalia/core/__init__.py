"""
Core utilities shared across Marginalia: configuration, exceptions,
identifier codec, logging and value normalization.
"""
from .config import MarginaliaConfig
from .exceptions import (
    ConfigError,
    ConflictError,
    DatabaseError,
    NotFoundError,
    PurgeError,
    RelationNotFoundError,
    ValidationError,
)
from .identifiers import IdentifierCodec
from .logging_manager import MarginaliaLogger, NullLogger, safe_logger

__all__ = [
    "MarginaliaConfig",
    "ConfigError",
    "ConflictError",
    "DatabaseError",
    "NotFoundError",
    "PurgeError",
    "RelationNotFoundError",
    "ValidationError",
    "IdentifierCodec",
    "MarginaliaLogger",
    "NullLogger",
    "safe_logger",
]
