"""Field schema and row validation.

A FieldSchema lists the fields expected at one stage of the pipeline, in
declaration order. Validation walks that order and stops at the first
violation, so the order decides which error gets reported for a row.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from .exceptions import ConfigurationError, RequiredFieldMissing, WrongFieldType

Row = dict[str, Any]


class FieldType(IntEnum):
    INTEGER = 1
    TEXT = 3

    @classmethod
    def parse(cls, value: str | int | FieldType) -> FieldType:
        """Accept "text"/"integer"/"int" or the numeric codes."""
        if isinstance(value, FieldType):
            return value
        if isinstance(value, int):
            return cls(value)
        clean = str(value).strip().lower()
        aliases = {"text": cls.TEXT, "str": cls.TEXT, "integer": cls.INTEGER, "int": cls.INTEGER}
        if clean in aliases:
            return aliases[clean]
        raise ValueError(f"Unknown field type: {value!r}")


@dataclass(frozen=True)
class FieldDefinition:
    name: str
    type: FieldType | None
    required: bool = False


def is_valid_value(value: Any, field_type: FieldType | None) -> bool:
    """Check a raw value against a field type.

    INTEGER accepts any numeric value or numeric-parseable string, TEXT any
    string. An unknown type never matches.
    """
    if field_type == FieldType.TEXT:
        return isinstance(value, str)
    if field_type == FieldType.INTEGER:
        if isinstance(value, bool):
            return False
        if isinstance(value, (int, float)):
            return True
        if isinstance(value, str):
            try:
                float(value.strip())
            except ValueError:
                return False
            return value.strip().lower() not in {"nan", "inf", "-inf", "+inf", "infinity"}
        return False
    return False


class FieldSchema:
    """Ordered set of field definitions.

    Args:
        fields: Field definitions in declaration order
    """

    def __init__(self, fields: list[FieldDefinition] | None = None) -> None:
        self._fields: dict[str, FieldDefinition] = {}
        for field in fields or []:
            if field.name in self._fields:
                raise ConfigurationError("duplicatefield", field_name=field.name)
            self._fields[field.name] = field

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Mapping[str, Any] | str | int | None]) -> FieldSchema:
        """Build a schema from ``{"name": {"type": "text", "required": True}}``.

        A bare type (``{"name": "text"}``) is accepted as shorthand for an
        optional field.
        """
        fields: list[FieldDefinition] = []
        for name, definition in mapping.items():
            if isinstance(definition, Mapping):
                raw_type = definition.get("type")
                required = bool(definition.get("required", False))
            else:
                raw_type = definition
                required = False
            try:
                field_type = FieldType.parse(raw_type) if raw_type is not None else None
            except ValueError as e:
                raise ConfigurationError(
                    "importercolumndef", field_name=name, additional_info=str(e)
                ) from e
            fields.append(FieldDefinition(name=name, type=field_type, required=required))
        return cls(fields)

    def check_types(self) -> None:
        """Raise ConfigurationError when a field has no type."""
        for field in self:
            if field.type is None:
                raise ConfigurationError("importercolumndef", field_name=field.name)

    def names(self) -> list[str]:
        return list(self._fields)

    def get(self, name: str) -> FieldDefinition | None:
        return self._fields.get(name)

    def required_names(self) -> list[str]:
        return [f.name for f in self if f.required]

    def __iter__(self) -> Iterator[FieldDefinition]:
        return iter(self._fields.values())

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"FieldSchema({list(self._fields.values())!r})"


def validate_row(
    row: Mapping[str, Any],
    schema: FieldSchema,
    row_index: int,
    *,
    module: str | None = None,
) -> None:
    """Validate a row against a schema, failing on the first violation.

    Raises:
        ConfigurationError: A field of the schema has no type
        RequiredFieldMissing: A required field is absent (or None)
        WrongFieldType: A present value does not match its field type
    """
    for field in schema:
        if field.type is None:
            raise ConfigurationError("importercolumndef", row_index, field.name, module=module)
        value = row.get(field.name)
        if value is None:
            if field.required:
                raise RequiredFieldMissing(field.name, row_index, module=module)
            continue
        if not is_valid_value(value, field.type):
            raise WrongFieldType(
                field.name,
                row_index,
                module=module,
                additional_info=f"{field.name}: {value!r}",
            )
