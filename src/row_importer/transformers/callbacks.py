"""Ready-made transform callbacks.

Referenced from import profiles as ``"row_importer.transformers.callbacks:<name>"``.
Each one is called as ``callback(value, source_field, rule, transformer)``.
"""

from __future__ import annotations

from typing import Any

from row_importer.core.normalize import derive_short_name


def strip(value: Any, *args: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def upper(value: Any, *args: Any) -> Any:
    return value.upper() if isinstance(value, str) else value


def lower(value: Any, *args: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


def short_name(value: Any, *args: Any) -> Any:
    """"Arthro Chir." -> "ARTHROCHIR"."""
    if value is None:
        return None
    return derive_short_name(str(value))


def split_words(value: Any, *args: Any) -> list[str]:
    """Split on whitespace, for rules dealing one word to each destination."""
    if value is None:
        return []
    return str(value).split()
