"""Polars DataFrame source.

Wraps an already loaded DataFrame (or a Parquet file) so that tabular data
coming from polars can go through the same pipeline as CSV files.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import polars as pl

from row_importer.core.exceptions import SourceDecodeError
from row_importer.core.fields import FieldSchema, Row
from row_importer.core.normalize import compare_ws_accents

from .base_source import RowSource


class DataFrameRowSource(RowSource):
    """Rows of a Polars DataFrame restricted to the schema columns.

    Args:
        df: Input DataFrame
        schema: Fields to extract
        identifier: Name reported in the origin ("dataframe:<identifier>")
        exact_column_names: Match column names exactly instead of loosely
    """

    def __init__(
        self,
        df: pl.DataFrame,
        schema: FieldSchema,
        identifier: str = "dataframe",
        exact_column_names: bool = False,
    ) -> None:
        super().__init__(schema)
        self.df = df
        self.identifier = identifier
        self.exact_column_names = exact_column_names
        self._column_map: dict[str, str] = {}
        self._checked = False

    @classmethod
    def from_parquet(
        cls, file_path: Path | str, schema: FieldSchema, exact_column_names: bool = False
    ) -> DataFrameRowSource:
        """Load a Parquet file into a source.

        Raises:
            FileNotFoundError: The Parquet file does not exist
            SourceDecodeError: The file cannot be read
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Parquet file not found: {file_path}")
        try:
            df = pl.read_parquet(file_path)
        except Exception as e:
            raise SourceDecodeError("sourceiniterror", additional_info=str(file_path)) from e
        return cls(df, schema, identifier=str(file_path), exact_column_names=exact_column_names)

    def init_and_check(self, options: dict[str, Any] | None = None) -> None:
        """Map schema fields onto DataFrame columns.

        Raises:
            SourceDecodeError: A required column is missing
        """
        column_map: dict[str, str] = {}
        for field in self._schema:
            match = next((c for c in self.df.columns if self._matches(field.name, c)), None)
            if match is None:
                if field.required:
                    raise SourceDecodeError("columnmissing", field_name=field.name, additional_info=self.identifier)
                continue
            column_map[field.name] = match
        self._column_map = column_map
        self._checked = True

    def _matches(self, name: str, column: str) -> bool:
        if self.exact_column_names:
            return name == column
        return compare_ws_accents(name, column)

    def rewind(self) -> None:
        if not self._checked:
            self.init_and_check()
        self._position = 0

    def current(self) -> Row | None:
        if not self.is_valid():
            return None
        values = self.df.row(self._position, named=True)
        return {name: values[column] for name, column in self._column_map.items()}

    def advance(self) -> None:
        if self._position < self.df.height:
            self._position += 1

    def is_valid(self) -> bool:
        return self._position < self.df.height

    def total_row_count(self) -> int:
        return self.df.height

    def source_type(self) -> str:
        return "dataframe"

    def source_identifier(self) -> str:
        return self.identifier
