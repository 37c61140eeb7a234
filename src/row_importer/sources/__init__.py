"""Row sources (CSV files, in-memory lists, Polars DataFrames)."""

from .base_source import RowSource
from .csv_source import DELIMITERS, CsvRowSource
from .dataframe_source import DataFrameRowSource
from .memory_source import MemoryRowSource

__all__ = [
    "CsvRowSource",
    "DataFrameRowSource",
    "DELIMITERS",
    "MemoryRowSource",
    "RowSource",
]
