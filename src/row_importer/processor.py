"""Import processor.

Drives one source through a transformer into an importer, one row at a time:

    fix_before_transform -> validate_before_transform -> transform
        -> validate_after_transform -> import_row (import mode only)

Every failure of a row becomes one LogEntry in the log sink and the loop moves
on to the next row. Only failures while opening the source or the importer
abort the run; they are logged at line 0.

A run succeeds when it produced no ERROR entry. Rows whose pipeline raised
(whatever the level) are never imported nor counted; diagnostics recorded
through RowImporter.report() do not stop the row.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from loguru import logger

from row_importer.core.exceptions import ConfigurationError, ImporterError
from row_importer.core.logs import LogEntry, LogLevel, LogSink, MemoryLogSink, log_from_exception
from row_importer.importers.base_importer import RowImporter
from row_importer.progress import ProgressReporter
from row_importer.sources.base_source import RowSource
from row_importer.transformers.base_transformer import RowTransformer


class Processor:
    """Run imports and validations.

    Args:
        source: Row source
        transformer: Row transformer
        importer: Row importer (receives a reference to this processor)
        log_sink: Where log entries go (in-memory sink by default)
        progress: Reporter(s) updated after each imported row
        import_id: Import session identifier stamped on every log entry
        module: Module name stamped on log entries (default: the importer's)

    Raises:
        ConfigurationError: A field of the importer schemas has no type
    """

    def __init__(
        self,
        source: RowSource,
        transformer: RowTransformer,
        importer: RowImporter,
        *,
        log_sink: LogSink | None = None,
        progress: ProgressReporter | list[ProgressReporter] | None = None,
        import_id: int = 0,
        module: str | None = None,
    ) -> None:
        importer.fields_definition().check_types()
        importer.destination_fields().check_types()

        self.source = source
        self.transformer = transformer
        self.importer = importer
        self.log_sink = log_sink if log_sink is not None else MemoryLogSink()
        if progress is None:
            self.progress: list[ProgressReporter] = []
        elif isinstance(progress, ProgressReporter):
            self.progress = [progress]
        else:
            self.progress = list(progress)
        self.module = module or importer.module
        importer.module = self.module

        importer.processor = self
        self._import_id = 0
        self.import_id = import_id

        self.row_imported_count = 0
        self.rows_processed = 0
        self.rows_accepted = 0
        self.error_count = 0
        self.warning_count = 0
        self._running = False

    @property
    def import_id(self) -> int:
        return self._import_id

    @import_id.setter
    def import_id(self, value: int) -> None:
        self._import_id = value
        self.transformer.import_id = value
        self.importer.import_id = value

    # -- entry points ----------------------------------------------------

    def import_(self, options: dict[str, Any] | None = None) -> bool:
        """Import every row of the source.

        Returns:
            True when no ERROR entry was logged
        """
        self.importer.set_import_mode()
        return self._run(options)

    run_import = import_

    def validate(self, options: dict[str, Any] | None = None) -> bool:
        """Check every row without importing anything.

        Validation entries from a previous validation of the same import id
        are purged first. The source is rewound afterwards so an import can
        follow.

        Returns:
            True when no ERROR entry was logged
        """
        purged = self.purge_validation_logs()
        if purged:
            logger.debug(f"[Validate] Purged {purged} previous validation entries")
        self.importer.set_validation_mode()
        try:
            return self._run(options)
        finally:
            self._rewind_quietly()

    def purge_validation_logs(self) -> int:
        return self.log_sink.purge_validation_logs(self.import_id)

    def _rewind_quietly(self) -> None:
        try:
            self.source.rewind()
        except ImporterError as e:
            logger.debug(f"Source rewind after validation failed: {e}")

    # -- run -------------------------------------------------------------

    def _reset_counters(self) -> None:
        self.row_imported_count = 0
        self.rows_processed = 0
        self.rows_accepted = 0
        self.error_count = 0
        self.warning_count = 0

    def _phase(self) -> str:
        return "Import" if self.importer.is_import_mode() else "Validate"

    def _run(self, options: dict[str, Any] | None) -> bool:
        if self._running:
            raise RuntimeError("Processor is already running")
        self._running = True
        self._reset_counters()
        phase = self._phase()
        logger.info(f"[{phase}] Start {self.source.origin()} (import_id={self.import_id})")

        self.importer.lock_mode(True)
        try:
            if self._init(options):
                self._loop(options)
        finally:
            self.importer.lock_mode(False)
            self.importer.finish()
            self._close_progress()
            self._running = False

        success = self.error_count == 0
        logger.info(
            f"[{phase}] Done: processed={self.rows_processed} imported={self.row_imported_count} "
            f"errors={self.error_count} warnings={self.warning_count} success={success}"
        )
        return success

    def _init(self, options: dict[str, Any] | None) -> bool:
        steps = [
            ("sourceiniterror", lambda: self.source.init_and_check(options)),
            ("sourceiniterror", self.source.rewind),
            ("importeriniterror", lambda: self.importer.init(options)),
        ]
        for default_code, step in steps:
            try:
                step()
            except ConfigurationError:
                raise
            except Exception as e:
                entry = self._entry_from_exception(e, line_number=0)
                if not isinstance(e, ImporterError):
                    entry = replace(entry, message_code=default_code)
                entry = replace(entry, level=LogLevel.ERROR)
                self._add_entry(entry)
                logger.error(f"[{self._phase()}] Initialisation failed: {entry.full_message()}")
                return False
        return True

    def _loop(self, options: dict[str, Any] | None) -> None:
        row_index = 0
        # Error raised by advance(), logged when the loop reaches that record
        pending: Exception | None = None

        while self.source.is_valid():
            self.rows_processed += 1
            try:
                if pending is not None:
                    error, pending = pending, None
                    raise error
                row = self.source.current()
                if row is not None:
                    self._process_row(row, row_index, options)
            except ConfigurationError:
                raise
            except Exception as e:
                self._log_row_error(e, row_index)
            finally:
                row_index += 1
                try:
                    self.source.advance()
                except ConfigurationError:
                    raise
                except Exception as e:
                    if self.source.is_valid():
                        pending = e
                    else:
                        self._log_row_error(e, row_index)

    def _process_row(self, row: dict[str, Any], row_index: int, options: dict[str, Any] | None) -> None:
        self.importer.fix_before_transform(row, row_index, options)
        self.importer.validate_before_transform(row, row_index, options)
        transformed = self.transformer.transform(row, options)
        self.importer.validate_after_transform(transformed, row_index, options)
        self.rows_accepted += 1

        if not self.importer.is_import_mode():
            return
        self.importer.import_row(transformed, row_index, options)
        self.row_imported_count += 1
        self._report_progress()

    # -- logging ---------------------------------------------------------

    def line_number(self, row_index: int) -> int:
        return row_index + self.source.line_offset

    def _entry_from_exception(self, exc: BaseException, line_number: int) -> LogEntry:
        return log_from_exception(
            exc,
            line_number=line_number,
            module=self.module,
            origin=self.source.origin(),
            import_id=self.import_id,
            validation_step=not self.importer.is_import_mode(),
        )

    def _log_row_error(self, exc: Exception, row_index: int) -> None:
        entry = self._entry_from_exception(exc, self.line_number(row_index))
        if not isinstance(exc, ImporterError):
            logger.opt(exception=exc).debug(f"Unexpected error at row {row_index}")
        self._add_entry(entry)
        logger.warning(f"[{self._phase()}] {entry.full_message()}")

    def record(
        self,
        message_code: str,
        row_index: int,
        *,
        field_name: str = "",
        level: LogLevel = LogLevel.INFO,
        additional_info: Any = None,
        module: str | None = None,
    ) -> LogEntry:
        """Log a diagnostic for a row without interrupting it."""
        entry = LogEntry(
            line_number=self.line_number(row_index),
            message_code=message_code,
            field_name=field_name,
            module=module or self.module,
            additional_info=additional_info,
            level=LogLevel(level),
            origin=self.source.origin(),
            import_id=self.import_id,
            validation_step=not self.importer.is_import_mode(),
        )
        logger.debug(f"[{self._phase()}] {entry.full_message()}")
        return self._add_entry(entry)

    def _add_entry(self, entry: LogEntry) -> LogEntry:
        if entry.level == LogLevel.ERROR:
            self.error_count += 1
        elif entry.level == LogLevel.WARNING:
            self.warning_count += 1
        return self.log_sink.add(entry)

    # -- progress --------------------------------------------------------

    def _report_progress(self) -> None:
        total = self.total_row_count()
        for reporter in self.progress:
            try:
                reporter.update(self.row_imported_count, total)
            except Exception as e:
                logger.debug(f"Progress reporter {type(reporter).__name__} failed: {e}")

    def _close_progress(self) -> None:
        for reporter in self.progress:
            try:
                reporter.close()
            except Exception as e:
                logger.debug(f"Progress reporter {type(reporter).__name__} failed to close: {e}")

    # -- accessors -------------------------------------------------------

    def total_row_count(self) -> int:
        return self.source.total_row_count()

    def get_logs(self) -> list[LogEntry]:
        """Every entry of this import id (import and validation)."""
        return self.log_sink.get_logs(import_id=self.import_id)

    def get_validation_log(self) -> list[LogEntry]:
        return self.log_sink.get_logs(import_id=self.import_id, validation_step=True)

    def displayable_stats(self) -> str:
        lines = [
            f"Source: {self.source.origin()}",
            f"Rows in source: {self.total_row_count()}",
            f"Rows processed: {self.rows_processed}",
            f"Rows accepted: {self.rows_accepted}",
            f"Rows imported: {self.row_imported_count}",
            f"Errors: {self.error_count}",
            f"Warnings: {self.warning_count}",
        ]
        return "\n".join(lines)
