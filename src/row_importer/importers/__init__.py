"""Importers (row sinks)."""

from .base_importer import RowImporter
from .memory_importer import MemoryImporter
from .sqlite_importer import SQLiteRecordImporter, copy_template, create_record_tables

__all__ = [
    "MemoryImporter",
    "RowImporter",
    "SQLiteRecordImporter",
    "copy_template",
    "create_record_tables",
]
