"""Row transformer (base class) and transform rule definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from row_importer.core.fields import Row

# callback(value, source_field, rule, transformer) -> value (or list of values)
TransformCallback = Callable[..., Any]


@dataclass(frozen=True)
class ConcatenateOptions:
    """Where a value goes when several rules feed the same destination field."""

    order: int = 0
    separator: str | None = None


@dataclass(frozen=True)
class TransformRule:
    """One mapping from a source field.

    Attributes:
        to: Destination field, or several destinations (None keeps the source name)
        callback: Optional value transform applied before concatenation
        concatenate: Ordering/separator when the destination is fed several times
    """

    to: str | list[str] | tuple[str, ...] | None = None
    callback: TransformCallback | None = None
    concatenate: ConcatenateOptions | None = None

    def targets(self, source_field: str) -> list[str]:
        if not self.to:
            return [source_field]
        if isinstance(self.to, str):
            return [self.to]
        return list(self.to)


TransformRules = Mapping[str, list[TransformRule]]


class RowTransformer(ABC):
    """Maps one row to another. Implementations must not mutate their input."""

    def __init__(self, rules: TransformRules | None = None) -> None:
        self._rules: dict[str, list[TransformRule]] = {k: list(v) for k, v in (rules or {}).items()}
        self.import_id = 0

    def fields_transformers(self) -> dict[str, list[TransformRule]]:
        return self._rules

    @abstractmethod
    def transform(self, row: Row, options: dict[str, Any] | None = None) -> Row:
        """Return the transformed row."""
        ...


class IdentityTransformer(RowTransformer):
    """Pass-through transformer for pipelines without mapping rules."""

    def transform(self, row: Row, options: dict[str, Any] | None = None) -> Row:
        return dict(row)
