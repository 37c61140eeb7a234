"""Rule based transformer.

For every field of the incoming row:

- without rule, the value is kept under the same name (order 0)
- with rules, each rule stages ``callback(value)`` (or the raw value) under
  each of its destination fields at its concatenation order; when a rule has
  several destinations and its callback returns as many values, they are
  dealt out in order

A destination fed once gets the staged value unchanged. A destination fed
several times gets the values sorted by order (stable, so ties keep the row's
field order), blank values dropped, joined with the separator registered for
the joined entry's order.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from row_importer.core.fields import Row

from .base_transformer import RowTransformer, TransformRules


class StandardTransformer(RowTransformer):
    """Transformer driven by a ``{source_field: [TransformRule, ...]}`` mapping.

    Args:
        rules: Transform rules keyed by source field
        separator: Default concatenation separator
    """

    def __init__(self, rules: TransformRules | None = None, separator: str = " ") -> None:
        super().__init__(rules)
        self.separator = separator

    def transform(self, row: Row, options: dict[str, Any] | None = None) -> Row:
        # destination -> [(order, value)] in staging order
        staged: dict[str, list[tuple[int, Any]]] = {}
        separators: dict[tuple[str, int], str] = {}

        for field_name, field_value in row.items():
            rules = self._rules.get(field_name)
            if not rules:
                staged.setdefault(field_name, []).append((0, field_value))
                continue

            for rule in rules:
                order = 0
                if rule.concatenate is not None:
                    order = rule.concatenate.order or 0
                separator = self.separator
                if rule.concatenate is not None and rule.concatenate.separator is not None:
                    separator = rule.concatenate.separator

                value = field_value
                if rule.callback is not None:
                    value = rule.callback(field_value, field_name, rule, self)

                targets = rule.targets(field_name)
                # a fan-out callback may return one value per destination
                if isinstance(value, (list, tuple)) and len(targets) > 1 and len(value) == len(targets):
                    values = list(value)
                else:
                    values = [value] * len(targets)

                for target, target_value in zip(targets, values, strict=True):
                    staged.setdefault(target, []).append((order, target_value))
                    separators[(target, order)] = separator

        result: Row = {}
        for target, values in staged.items():
            if len(values) == 1:
                result[target] = values[0][1]
                continue
            result[target] = self._join(target, values, separators)
        logger.trace(f"Transformed {list(row)} -> {list(result)}")
        return result

    def _join(
        self,
        target: str,
        values: list[tuple[int, Any]],
        separators: dict[tuple[str, int], str],
    ) -> str:
        joined = ""
        for order, value in sorted(values, key=lambda item: item[0]):
            text = "" if value is None else str(value)
            if not text.strip():
                continue
            if joined:
                joined += separators.get((target, order), self.separator)
            joined += text
        return joined
