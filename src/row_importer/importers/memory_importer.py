"""Importer keeping rows in memory."""

from __future__ import annotations

from typing import Any

from row_importer.core.fields import FieldSchema, Row
from row_importer.sources.base_source import RowSource

from .base_importer import RowImporter


class MemoryImporter(RowImporter):
    """Collects imported rows in ``imported_rows``.

    Args:
        source: Source the rows come from
        destination: Optional post-transform schema
    """

    def __init__(self, source: RowSource, destination: FieldSchema | None = None, **kwargs: Any) -> None:
        super().__init__(source, **kwargs)
        self.destination = destination or FieldSchema()
        self.imported_rows: list[Row] = []

    def destination_fields(self) -> FieldSchema:
        return self.destination

    def raw_import(self, row: Row, row_index: int, options: dict[str, Any] | None = None) -> Row:
        self.imported_rows.append(row)
        return row
