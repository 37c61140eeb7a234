"""Importer exceptions.

All failures raised inside the pipeline derive from ImporterError so the
processor can turn them into import log entries. Row-scoped errors are caught
and logged per row; ConfigurationError is a programmer defect and propagates.
"""

from __future__ import annotations

from typing import Any

from .logs import LogLevel


class ImporterError(Exception):
    """Base class for pipeline failures.

    Attributes:
        message_code: Stable code looked up in the message catalog
        row_index: 0-based row index the failure belongs to (None when unknown)
        field_name: Field concerned by the failure ("" when not field related)
        level: Severity recorded in the import log
        additional_info: Free-form payload stored alongside the log entry
        module: Module that raised the error (None lets the processor decide)
    """

    default_level = LogLevel.ERROR

    def __init__(
        self,
        message_code: str,
        row_index: int | None = None,
        field_name: str = "",
        *,
        level: LogLevel | None = None,
        additional_info: Any = None,
        module: str | None = None,
    ) -> None:
        self.message_code = message_code
        self.row_index = row_index
        self.field_name = field_name
        self.level = LogLevel(level) if level is not None else self.default_level
        self.additional_info = additional_info
        self.module = module

        message = message_code
        if field_name:
            message += f" (field={field_name})"
        if row_index is not None:
            message += f" at row {row_index}"
        if additional_info not in (None, ""):
            message += f": {additional_info}"
        super().__init__(message)


class ConfigurationError(ImporterError):
    """Schema or profile defect (field without type, unknown callback...).

    Raised eagerly and never recovered per row.
    """


class ValidationError(ImporterError):
    """A row violated the field schema of the current stage."""


class RequiredFieldMissing(ValidationError):
    def __init__(self, field_name: str, row_index: int | None = None, **kwargs: Any) -> None:
        super().__init__("required", row_index, field_name, **kwargs)


class WrongFieldType(ValidationError):
    def __init__(self, field_name: str, row_index: int | None = None, **kwargs: Any) -> None:
        super().__init__("wrongtype", row_index, field_name, **kwargs)


class SourceDecodeError(ImporterError):
    """The source could not decode a record, or could not be opened at all.

    Raised from init_and_check() it aborts the run; raised from current() or
    advance() it only concerns one row.
    """


class PersistenceError(ImporterError):
    """The backend refused to store a row."""
