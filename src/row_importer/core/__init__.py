"""Pipeline building blocks shared by sources, transformers and importers.

- Field schema and row validation
- Exception hierarchy
- Import log model and storage
"""

from .exceptions import (
    ConfigurationError,
    ImporterError,
    PersistenceError,
    RequiredFieldMissing,
    SourceDecodeError,
    ValidationError,
    WrongFieldType,
)
from .fields import FieldDefinition, FieldSchema, FieldType, Row, is_valid_value, validate_row
from .logs import LogEntry, LogLevel, LogSink, MemoryLogSink, log_from_exception

__all__ = [
    "ConfigurationError",
    "FieldDefinition",
    "FieldSchema",
    "FieldType",
    "ImporterError",
    "LogEntry",
    "LogLevel",
    "LogSink",
    "MemoryLogSink",
    "PersistenceError",
    "RequiredFieldMissing",
    "Row",
    "SourceDecodeError",
    "ValidationError",
    "WrongFieldType",
    "is_valid_value",
    "log_from_exception",
    "validate_row",
]
