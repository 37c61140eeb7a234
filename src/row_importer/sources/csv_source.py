"""Delimited-file source.

Header columns are matched to the schema fields ignoring case, accents and
whitespace unless ``exact_column_names`` is set. Columns that are not part of
the schema are dropped from every row.
"""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Any

from loguru import logger

from row_importer.core.exceptions import SourceDecodeError
from row_importer.core.fields import FieldSchema, Row
from row_importer.core.normalize import compare_ws_accents

from .base_source import RowSource

DELIMITERS = {
    "comma": ",",
    "semicolon": ";",
    "tab": "\t",
    "colon": ":",
    "cfg": "#",
}


def resolve_delimiter(delimiter: str) -> str:
    """Map a delimiter name ("semicolon", "tab"...) to its character."""
    if delimiter in DELIMITERS:
        return DELIMITERS[delimiter]
    if len(delimiter) != 1:
        raise ValueError(f"Unknown delimiter: {delimiter!r}")
    return delimiter


def _next_record(reader: Any) -> list[str] | None:
    """Next non-blank record of a csv reader, None at end of file.

    Raises:
        csv.Error: The record is malformed (the reader can still be used)
    """
    for record in reader:
        if record and any(cell.strip() for cell in record):
            return record
    return None


class CsvRowSource(RowSource):
    """CSV file source.

    Args:
        file_path: CSV file path
        schema: Fields to extract
        delimiter: Delimiter character or name (see DELIMITERS)
        encoding: Expected file encoding
        exact_column_names: Match header names exactly instead of loosely

    Raises:
        FileNotFoundError: The CSV file does not exist
    """

    # Header line + 1-based numbering
    line_offset = 2

    def __init__(
        self,
        file_path: Path | str,
        schema: FieldSchema,
        delimiter: str = "semicolon",
        encoding: str = "utf-8",
        exact_column_names: bool = False,
    ) -> None:
        super().__init__(schema)
        self.file_path = Path(file_path)
        if not self.file_path.is_file():
            raise FileNotFoundError(f"CSV file not found: {self.file_path}")

        self.delimiter = resolve_delimiter(delimiter)
        self.encoding = encoding
        self.exact_column_names = exact_column_names

        self._content: str | None = None
        self._header: list[str] = []
        self._column_index: dict[str, int] = {}
        self._row_count = 0
        self._reader: Any = None
        self._record: list[str] | None = None
        self._record_error: SourceDecodeError | None = None
        self._exhausted = True

    def init_and_check(self, options: dict[str, Any] | None = None) -> None:
        """Decode the file, read its header and match it against the schema.

        Raises:
            SourceDecodeError: wrong encoding, no header, or a required column is missing
        """
        try:
            raw = self.file_path.read_bytes()
        except OSError as e:
            raise SourceDecodeError("cannotopenfile", additional_info=str(self.file_path)) from e

        try:
            content = raw.decode(self.encoding)
        except (UnicodeDecodeError, LookupError) as e:
            raise SourceDecodeError(
                "wrongencoding",
                additional_info={"file": str(self.file_path), "expected": self.encoding},
            ) from e
        # BOM written by spreadsheet exports
        self._content = content.removeprefix("\ufeff")

        reader = self._new_reader()
        try:
            header = _next_record(reader)
        except csv.Error as e:
            raise SourceDecodeError("nocolumnsdefined", additional_info=f"{self.file_path}: {e}") from e
        if not header:
            raise SourceDecodeError("nocolumnsdefined", additional_info=str(self.file_path))
        self._row_count = self._count_records(reader)

        self._header = [h.strip() for h in header]
        self._column_index = self._match_columns(self._header)
        logger.debug(f"{self.file_path}: {self._row_count} rows, columns matched {self._column_index}")

    def _count_records(self, reader: Any) -> int:
        # Broken records count as rows: they are reported one by one while reading.
        count = 0
        broken = 0
        while True:
            try:
                record = _next_record(reader)
            except csv.Error:
                broken += 1
                continue
            if record is None:
                break
            count += 1
        if broken:
            logger.warning(f"{self.file_path}: {broken} malformed record(s)")
        return count + broken

    def _match_columns(self, header: list[str]) -> dict[str, int]:
        column_index: dict[str, int] = {}
        for field in self._schema:
            for index, column in enumerate(header):
                if self.exact_column_names:
                    found = field.name == column
                else:
                    found = compare_ws_accents(field.name.strip(), column)
                if found:
                    column_index[field.name] = index
                    break
            else:
                if field.required:
                    raise SourceDecodeError(
                        "columnmissing",
                        field_name=field.name,
                        additional_info=str(self.file_path),
                    )
                logger.debug(f"{self.file_path}: optional column '{field.name}' not found")
        return column_index

    def _new_reader(self) -> Any:
        if self._content is None:
            self.init_and_check()
        assert self._content is not None
        return csv.reader(io.StringIO(self._content, newline=""), delimiter=self.delimiter)

    def _read_next(self) -> None:
        self._record_error = None
        try:
            self._record = _next_record(self._reader)
        except csv.Error as e:
            self._record = None
            self._record_error = SourceDecodeError("sourcereaderror", self._position, additional_info=str(e))
            return
        if self._record is None:
            self._exhausted = True

    def rewind(self) -> None:
        self._reader = self._new_reader()
        self._position = 0
        self._exhausted = False
        try:
            _next_record(self._reader)  # header
        except csv.Error:
            self._exhausted = True
            return
        self._read_next()

    def current(self) -> Row | None:
        if self._record_error is not None:
            raise self._record_error
        if self._record is None:
            return None

        if len(self._record) != len(self._header):
            raise SourceDecodeError(
                "wrongcolumnnumber",
                self._position,
                additional_info=f"expected {len(self._header)} values, got {len(self._record)}",
            )
        return {name: self._record[index].strip() for name, index in self._column_index.items()}

    def advance(self) -> None:
        """Read the next record.

        Raises:
            SourceDecodeError: The next record is malformed (the cursor stays on it)
        """
        if self._exhausted:
            return
        self._position += 1
        self._read_next()
        if self._record_error is not None:
            raise self._record_error

    def is_valid(self) -> bool:
        return not self._exhausted

    def total_row_count(self) -> int:
        return self._row_count

    def source_type(self) -> str:
        return "file"

    def source_identifier(self) -> str:
        return str(self.file_path)
