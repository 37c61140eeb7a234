"""Row source (base class).

A source is a restartable cursor over rows. The processor drives it with
rewind() / is_valid() / current() / advance(); plain ``for row in source``
iteration is available for scripts and tests.

Record-level decode failures are row-scoped:
    - current() raises SourceDecodeError for a record it cannot decode
    - advance() raises SourceDecodeError when the next record cannot be read;
      the cursor then sits on that broken record and is still valid
Only init_and_check() failures abort a whole run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import Any

from row_importer.core.fields import FieldSchema, Row


class RowSource(ABC):
    """Base class of every row source.

    Args:
        schema: Fields this source must deliver (raw columns, before transform)
    """

    # Added to a 0-based row index to get the line number shown to users.
    line_offset = 1

    def __init__(self, schema: FieldSchema) -> None:
        self._schema = schema
        self._position = 0

    def fields_definition(self) -> FieldSchema:
        return self._schema

    def init_and_check(self, options: dict[str, Any] | None = None) -> None:
        """Open the underlying data and check it against the schema.

        Raises:
            SourceDecodeError: The source cannot be used at all
        """

    @abstractmethod
    def rewind(self) -> None:
        """Position the cursor on the first row (or mark the source empty)."""
        ...

    @abstractmethod
    def current(self) -> Row | None:
        """Row at the cursor, None when the source is exhausted."""
        ...

    @abstractmethod
    def advance(self) -> None:
        """Move the cursor to the next row (or mark the source exhausted)."""
        ...

    @abstractmethod
    def is_valid(self) -> bool: ...

    @abstractmethod
    def total_row_count(self) -> int: ...

    @abstractmethod
    def source_type(self) -> str: ...

    @abstractmethod
    def source_identifier(self) -> str: ...

    def key(self) -> int:
        """0-based index of the row at the cursor."""
        return self._position

    def origin(self) -> str:
        return f"{self.source_type()}:{self.source_identifier()}"

    def __iter__(self) -> Iterator[Row | None]:
        self.rewind()
        while self.is_valid():
            yield self.current()
            self.advance()
