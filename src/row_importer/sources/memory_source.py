"""In-memory source over lists of values."""

from __future__ import annotations

from typing import Any

from row_importer.core.exceptions import SourceDecodeError
from row_importer.core.fields import FieldSchema, Row

from .base_source import RowSource


class MemoryRowSource(RowSource):
    """Rows given as value lists, matched positionally to the schema fields.

    Args:
        records: One list of values per row
        schema: Field schema (its declaration order gives the column order)
        identifier: Name reported in the origin ("memory:<identifier>")
    """

    def __init__(self, records: list[list[Any]], schema: FieldSchema, identifier: str = "memory") -> None:
        super().__init__(schema)
        self.records = records
        self.identifier = identifier

    def rewind(self) -> None:
        self._position = 0

    def current(self) -> Row | None:
        if not self.is_valid():
            return None
        values = self.records[self._position]
        keys = self._schema.names()
        if len(values) != len(keys):
            raise SourceDecodeError(
                "wrongcolumnnumber",
                self._position,
                additional_info=f"expected {len(keys)} values, got {len(values)}",
            )
        return dict(zip(keys, values, strict=True))

    def advance(self) -> None:
        if self._position < len(self.records):
            self._position += 1

    def is_valid(self) -> bool:
        return self._position < len(self.records)

    def total_row_count(self) -> int:
        return len(self.records)

    def source_type(self) -> str:
        return "memory"

    def source_identifier(self) -> str:
        return self.identifier
