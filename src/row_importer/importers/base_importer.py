"""Row importer (base class).

The importer validates rows against the field schemas and stores them. It
runs in one of two modes, switched only between runs:

- import mode: the processor calls import_row() for every valid row
- validation mode: rows are checked only, import_row() is never called
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from loguru import logger

from row_importer.core.exceptions import ImporterError, PersistenceError
from row_importer.core.fields import FieldSchema, Row, validate_row
from row_importer.core.logs import LogLevel
from row_importer.sources.base_source import RowSource

if TYPE_CHECKING:
    from row_importer.processor import Processor


class RowImporter(ABC):
    """Base class of every importer.

    Args:
        source: Source the rows come from (its schema is the pre-transform schema)
        import_id: Import session identifier
        module: Module name recorded in log entries
        defaults: Values applied to missing fields before storing a row
    """

    def __init__(
        self,
        source: RowSource,
        *,
        import_id: int = 0,
        module: str = "row_importer",
        defaults: dict[str, Any] | None = None,
    ) -> None:
        self.source = source
        self.import_id = import_id
        self.module = module
        self.default_values: dict[str, Any] = dict(defaults or {})
        self.processor: Processor | None = None
        self._import_mode = True
        self._mode_locked = False

    # -- schemas ---------------------------------------------------------

    def fields_definition(self) -> FieldSchema:
        """Schema checked before transform (raw source fields)."""
        return self.source.fields_definition()

    def destination_fields(self) -> FieldSchema:
        """Schema checked after transform. Empty by default (no check)."""
        return FieldSchema()

    # -- lifecycle -------------------------------------------------------

    def init(self, options: dict[str, Any] | None = None) -> None:
        """Prepare the backend before the first row. Failures abort the run."""

    def finish(self) -> None:
        """Release backend resources once the run is over."""

    def fix_before_transform(self, row: Row, row_index: int, options: dict[str, Any] | None = None) -> None:
        """Clean the raw row in place before it is validated."""

    def validate_before_transform(self, row: Row, row_index: int, options: dict[str, Any] | None = None) -> None:
        validate_row(row, self.fields_definition(), row_index, module=self.module)

    def validate_after_transform(self, row: Row, row_index: int, options: dict[str, Any] | None = None) -> None:
        validate_row(row, self.destination_fields(), row_index, module=self.module)

    def import_row(self, row: Row, row_index: int, options: dict[str, Any] | None = None) -> Any:
        """Store a transformed row.

        Raises:
            PersistenceError: The backend failed (other importer errors pass through)
        """
        record = self.apply_defaults(row)
        try:
            data = self.raw_import(record, row_index, options)
        except ImporterError:
            raise
        except Exception as e:
            raise PersistenceError(
                "persistenceerror",
                row_index,
                module=self.module,
                additional_info=f"{type(e).__name__}: {e}",
            ) from e
        self.after_row_imported(record, data, row_index)
        return data

    @abstractmethod
    def raw_import(self, row: Row, row_index: int, options: dict[str, Any] | None = None) -> Any:
        """Write the row to the backend and return what was stored."""
        ...

    def after_row_imported(self, row: Row, data: Any, row_index: int) -> None:
        """Hook called after each stored row."""

    # -- defaults --------------------------------------------------------

    def set_default_value(self, key: str, value: Any) -> None:
        self.default_values[key] = value

    def apply_defaults(self, row: Row) -> Row:
        """Copy of the row with defaults filled in for missing (None) fields."""
        record = dict(row)
        for key, value in self.default_values.items():
            if record.get(key) is None:
                record[key] = value
        return record

    # -- mode ------------------------------------------------------------

    def set_import_mode(self) -> None:
        self._set_mode(True)

    def set_validation_mode(self) -> None:
        self._set_mode(False)

    def is_import_mode(self) -> bool:
        return self._import_mode

    def _set_mode(self, import_mode: bool) -> None:
        if self._mode_locked and import_mode != self._import_mode:
            raise RuntimeError("Importer mode cannot change while a run is in progress")
        self._import_mode = import_mode

    def lock_mode(self, locked: bool) -> None:
        self._mode_locked = locked

    # -- diagnostics -----------------------------------------------------

    def report(
        self,
        message_code: str,
        row_index: int,
        field_name: str = "",
        level: LogLevel = LogLevel.INFO,
        additional_info: Any = None,
    ) -> None:
        """Record a non-fatal diagnostic for a row without aborting it."""
        if self.processor is None:
            logger.warning(f"{message_code} at row {row_index} ({field_name}): no processor attached")
            return
        self.processor.record(
            message_code,
            row_index,
            field_name=field_name,
            level=level,
            additional_info=additional_info,
            module=self.module,
        )
