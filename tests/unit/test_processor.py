"""Unit tests for Processor with in-memory collaborators."""

from __future__ import annotations

from typing import Any

import pytest

from row_importer.core.exceptions import ConfigurationError, SourceDecodeError
from row_importer.core.fields import FieldDefinition, FieldSchema, FieldType, Row
from row_importer.core.logs import LogEntry, LogLevel, MemoryLogSink
from row_importer.importers.memory_importer import MemoryImporter
from row_importer.processor import Processor
from row_importer.progress import ProgressReporter
from row_importer.sources.memory_source import MemoryRowSource
from row_importer.transformers.base_transformer import IdentityTransformer, TransformRule
from row_importer.transformers.standard import StandardTransformer


def _schema() -> FieldSchema:
    return FieldSchema(
        [
            FieldDefinition("code", FieldType.TEXT, required=True),
            FieldDefinition("label", FieldType.TEXT),
        ]
    )


def _destination() -> FieldSchema:
    return FieldSchema(
        [
            FieldDefinition("idnumber", FieldType.TEXT, required=True),
            FieldDefinition("label", FieldType.TEXT),
        ]
    )


def _processor(records: list[list[Any]], **kwargs: Any) -> tuple[Processor, MemoryImporter]:
    source = kwargs.pop("source", None) or MemoryRowSource(records, _schema())
    importer = kwargs.pop("importer", None) or MemoryImporter(source, _destination())
    transformer = StandardTransformer({"code": [TransformRule(to="idnumber")]})
    return Processor(source, transformer, importer, **kwargs), importer


class _FlakySource(MemoryRowSource):
    """Fails to read the records whose index is in ``broken``."""

    def __init__(self, records: list[list[Any]], schema: FieldSchema, broken: set[int]) -> None:
        super().__init__(records, schema)
        self.broken = broken

    def advance(self) -> None:
        super().advance()
        if self._position in self.broken:
            raise SourceDecodeError("sourcereaderror", self._position)

    def current(self) -> Row | None:
        if self._position in self.broken:
            raise SourceDecodeError("sourcereaderror", self._position)
        return super().current()


class _FailingInitSource(MemoryRowSource):
    def init_and_check(self, options: dict[str, Any] | None = None) -> None:
        raise SourceDecodeError("wrongencoding", additional_info="expected utf-8")


class _FailingInitImporter(MemoryImporter):
    def init(self, options: dict[str, Any] | None = None) -> None:
        raise OSError("database is locked")


class _WarningImporter(MemoryImporter):
    def after_row_imported(self, row: Row, data: Any, row_index: int) -> None:
        if row["label"] == "old":
            self.report("templatenotfound", row_index, "label", level=LogLevel.WARNING)


class _Recorder(ProgressReporter):
    def __init__(self) -> None:
        self.updates: list[tuple[int, int]] = []

    def update(self, processed: int, total: int) -> None:
        self.updates.append((processed, total))


class _BrokenReporter(ProgressReporter):
    def update(self, processed: int, total: int) -> None:
        raise RuntimeError("terminal gone")


class TestProcessorImport:
    def test_all_rows_valid(self) -> None:
        processor, importer = _processor([["C1", "A"], ["C2", "B"], ["C3", "C"]])
        assert processor.import_() is True
        assert processor.row_imported_count == 3
        assert processor.get_logs() == []
        assert importer.imported_rows == [
            {"idnumber": "C1", "label": "A"},
            {"idnumber": "C2", "label": "B"},
            {"idnumber": "C3", "label": "C"},
        ]

    def test_missing_required_field(self) -> None:
        processor, importer = _processor([["C1", "A"], [None, "B"], ["C3", "C"]])
        assert processor.import_() is False

        [entry] = processor.get_logs()
        assert entry.message_code == "required"
        assert entry.field_name == "code"
        assert entry.line_number == 2
        assert entry.level == LogLevel.ERROR
        assert entry.origin == "memory:memory"
        assert entry.validation_step is False
        assert processor.row_imported_count == 2
        assert [r["idnumber"] for r in importer.imported_rows] == ["C1", "C3"]

    def test_wrong_column_number_is_row_scoped(self) -> None:
        processor, _ = _processor([["C1", "A"], ["C2"], ["C3", "C"]])
        assert processor.import_() is False
        [entry] = processor.get_logs()
        assert entry.message_code == "wrongcolumnnumber"
        assert entry.line_number == 2
        assert processor.row_imported_count == 2
        assert processor.rows_processed == 3

    def test_post_transform_validation(self) -> None:
        schema = FieldSchema([FieldDefinition("code", FieldType.TEXT), FieldDefinition("label", FieldType.INTEGER)])
        source = MemoryRowSource([["C1", 12]], schema)
        processor, _ = _processor([], source=source)
        assert processor.import_() is False
        [entry] = processor.get_logs()
        assert entry.message_code == "wrongtype"
        assert entry.field_name == "label"

    def test_advance_error_logged_once(self) -> None:
        source = _FlakySource([["C1", "A"], ["C2", "B"], ["C3", "C"]], _schema(), broken={1})
        processor, importer = _processor([], source=source)
        assert processor.import_() is False
        entries = processor.get_logs()
        assert [(e.message_code, e.line_number) for e in entries] == [("sourcereaderror", 2)]
        assert [r["idnumber"] for r in importer.imported_rows] == ["C1", "C3"]

    def test_advance_error_past_last_record(self) -> None:
        source = _FlakySource([["C1", "A"], ["C2", "B"]], _schema(), broken={2})
        processor, _ = _processor([], source=source)
        assert processor.import_() is False
        assert [(e.message_code, e.line_number) for e in processor.get_logs()] == [("sourcereaderror", 3)]
        assert processor.row_imported_count == 2

    def test_unexpected_exception_is_logged(self) -> None:
        def explode(value: Any, *args: Any) -> Any:
            raise ZeroDivisionError("division by zero")

        source = MemoryRowSource([["C1", "A"], ["C2", "B"]], _schema())
        importer = MemoryImporter(source)
        transformer = StandardTransformer({"label": [TransformRule(callback=explode)]})
        processor = Processor(source, transformer, importer)
        assert processor.import_() is False
        entries = processor.get_logs()
        assert [e.message_code for e in entries] == ["unexpectederror", "unexpectederror"]
        assert entries[0].additional_info.startswith("ZeroDivisionError")
        assert importer.imported_rows == []

    def test_warning_report_keeps_row(self) -> None:
        source = MemoryRowSource([["C1", "old"], ["C2", "new"]], _schema())
        importer = _WarningImporter(source, _destination())
        processor, _ = _processor([], source=source, importer=importer)

        assert processor.import_() is True
        assert processor.row_imported_count == 2
        assert processor.warning_count == 1
        [entry] = processor.get_logs()
        assert entry.level == LogLevel.WARNING
        assert entry.line_number == 1

    def test_source_init_failure(self) -> None:
        source = _FailingInitSource([["C1", "A"]], _schema())
        processor, importer = _processor([], source=source)
        assert processor.import_() is False
        [entry] = processor.get_logs()
        assert entry.message_code == "wrongencoding"
        assert entry.line_number == 0
        assert entry.level == LogLevel.ERROR
        assert processor.rows_processed == 0
        assert importer.imported_rows == []

    def test_importer_init_failure(self) -> None:
        source = MemoryRowSource([["C1", "A"]], _schema())
        processor, _ = _processor([], source=source, importer=_FailingInitImporter(source))
        assert processor.import_() is False
        [entry] = processor.get_logs()
        assert entry.message_code == "importeriniterror"
        assert "database is locked" in entry.additional_info

    def test_schema_without_type_fails_at_construction(self) -> None:
        source = MemoryRowSource([], _schema())
        destination = FieldSchema([FieldDefinition("idnumber", None)])
        with pytest.raises(ConfigurationError):
            Processor(source, IdentityTransformer(), MemoryImporter(source, destination))

    def test_counters_reset_between_runs(self) -> None:
        processor, _ = _processor([["C1", "A"], [None, "B"]])
        processor.import_()
        processor.import_()
        assert processor.row_imported_count == 1
        assert processor.error_count == 1
        assert len(processor.get_logs()) == 2

    def test_import_id_propagates(self) -> None:
        processor, importer = _processor([[None, "A"]], import_id=7, module="courses")
        assert importer.import_id == 7
        assert processor.transformer.import_id == 7
        assert importer.processor is processor
        processor.import_()
        [entry] = processor.log_sink.get_logs(import_id=7)
        assert entry.module == "courses"

    def test_run_import_alias(self) -> None:
        processor, _ = _processor([["C1", "A"]])
        assert processor.run_import() is True

    def test_displayable_stats(self) -> None:
        processor, _ = _processor([["C1", "A"], [None, "B"]])
        processor.import_()
        stats = processor.displayable_stats()
        assert "Rows imported: 1" in stats
        assert "Errors: 1" in stats


class TestProcessorProgress:
    def test_updates_after_each_imported_row(self) -> None:
        recorder = _Recorder()
        processor, _ = _processor([["C1", "A"], [None, "B"], ["C3", "C"]], progress=recorder)
        processor.import_()
        assert recorder.updates == [(1, 3), (2, 3)]

    def test_no_updates_in_validation(self) -> None:
        recorder = _Recorder()
        processor, _ = _processor([["C1", "A"]], progress=[recorder])
        processor.validate()
        assert recorder.updates == []

    def test_reporter_failure_is_ignored(self) -> None:
        processor, importer = _processor([["C1", "A"], ["C2", "B"]], progress=_BrokenReporter())
        assert processor.import_() is True
        assert len(importer.imported_rows) == 2


class TestProcessorValidation:
    def test_validation_never_imports(self) -> None:
        processor, importer = _processor([["C1", "A"], [None, "B"]])
        assert processor.validate() is False
        assert importer.imported_rows == []
        assert processor.rows_accepted == 1
        [entry] = processor.get_validation_log()
        assert entry.validation_step is True

    def test_validation_purges_only_its_own_entries(self) -> None:
        sink = MemoryLogSink()
        sink.add(LogEntry(line_number=1, message_code="required", import_id=2, validation_step=True))
        processor, _ = _processor([["C1", "A"], [None, "B"]], log_sink=sink, import_id=1)

        processor.validate()
        processor.import_()
        processor.validate()

        assert len(processor.get_validation_log()) == 1
        assert len(sink.get_logs(import_id=1, validation_step=False)) == 1
        assert len(sink.get_logs(import_id=2)) == 1

    def test_import_after_validation(self) -> None:
        processor, importer = _processor([["C1", "A"], ["C2", "B"]])
        assert processor.validate() is True
        assert importer.is_import_mode() is False
        assert processor.import_() is True
        assert importer.is_import_mode() is True
        assert len(importer.imported_rows) == 2

    def test_validation_init_failure(self) -> None:
        source = _FailingInitSource([["C1", "A"]], _schema())
        processor, _ = _processor([], source=source)
        assert processor.validate() is False
        [entry] = processor.get_validation_log()
        assert entry.line_number == 0
