"""Unit tests for field schemas and row validation."""

from __future__ import annotations

import pytest

from row_importer.core.exceptions import ConfigurationError, RequiredFieldMissing, WrongFieldType
from row_importer.core.fields import FieldDefinition, FieldSchema, FieldType, is_valid_value, validate_row


def _schema() -> FieldSchema:
    return FieldSchema(
        [
            FieldDefinition("code", FieldType.TEXT, required=True),
            FieldDefinition("seats", FieldType.INTEGER),
            FieldDefinition("label", FieldType.TEXT, required=True),
        ]
    )


class TestIsValidValue:
    @pytest.mark.parametrize("value", [12, 1.5, "12", " 1.5 ", "-3e2"])
    def test_integer_accepts_numbers(self, value: object) -> None:
        assert is_valid_value(value, FieldType.INTEGER) is True

    @pytest.mark.parametrize("value", ["abc", "", True, None, "nan", [1]])
    def test_integer_rejects_non_numbers(self, value: object) -> None:
        assert is_valid_value(value, FieldType.INTEGER) is False

    def test_text_accepts_only_strings(self) -> None:
        assert is_valid_value("abc", FieldType.TEXT) is True
        assert is_valid_value("", FieldType.TEXT) is True
        assert is_valid_value(12, FieldType.TEXT) is False

    def test_unknown_type_never_matches(self) -> None:
        assert is_valid_value("abc", None) is False


class TestFieldSchema:
    def test_keeps_declaration_order(self) -> None:
        assert _schema().names() == ["code", "seats", "label"]
        assert _schema().required_names() == ["code", "label"]

    def test_duplicate_field_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="duplicatefield"):
            FieldSchema([FieldDefinition("a", FieldType.TEXT), FieldDefinition("a", FieldType.INTEGER)])

    def test_from_mapping(self) -> None:
        schema = FieldSchema.from_mapping(
            {"code": {"type": "text", "required": True}, "seats": "int", "note": {"type": None}}
        )
        assert schema.get("code") == FieldDefinition("code", FieldType.TEXT, True)
        assert schema.get("seats") == FieldDefinition("seats", FieldType.INTEGER, False)
        assert schema.get("note") == FieldDefinition("note", None, False)
        assert "seats" in schema
        assert len(schema) == 3

    def test_from_mapping_unknown_type(self) -> None:
        with pytest.raises(ConfigurationError, match="importercolumndef"):
            FieldSchema.from_mapping({"code": "date"})

    def test_check_types(self) -> None:
        FieldSchema([FieldDefinition("a", FieldType.TEXT)]).check_types()
        with pytest.raises(ConfigurationError):
            FieldSchema([FieldDefinition("a", None)]).check_types()

    def test_field_type_parse(self) -> None:
        assert FieldType.parse("Text") == FieldType.TEXT
        assert FieldType.parse(1) == FieldType.INTEGER
        assert FieldType.TEXT.value == 3


class TestValidateRow:
    def test_valid_row(self) -> None:
        validate_row({"code": "C1", "seats": "10", "label": "Intro"}, _schema(), 0)

    def test_optional_field_may_be_absent(self) -> None:
        validate_row({"code": "C1", "label": "Intro"}, _schema(), 0)

    def test_required_missing(self) -> None:
        with pytest.raises(RequiredFieldMissing) as exc_info:
            validate_row({"code": "C1", "seats": "10"}, _schema(), 4)
        assert exc_info.value.field_name == "label"
        assert exc_info.value.row_index == 4
        assert exc_info.value.message_code == "required"

    def test_required_none_counts_as_missing(self) -> None:
        with pytest.raises(RequiredFieldMissing):
            validate_row({"code": None, "label": "Intro"}, _schema(), 0)

    def test_wrong_type(self) -> None:
        with pytest.raises(WrongFieldType) as exc_info:
            validate_row({"code": "C1", "seats": "many", "label": "Intro"}, _schema(), 0)
        assert exc_info.value.field_name == "seats"

    def test_fails_on_first_violation_in_declaration_order(self) -> None:
        # seats (wrong type) is declared before label (missing)
        with pytest.raises(WrongFieldType):
            validate_row({"code": "C1", "seats": "many"}, _schema(), 0)

    def test_field_without_type(self) -> None:
        schema = FieldSchema([FieldDefinition("a", None)])
        with pytest.raises(ConfigurationError, match="importercolumndef"):
            validate_row({"a": "x"}, schema, 0)

    def test_empty_schema_accepts_anything(self) -> None:
        validate_row({"anything": object()}, FieldSchema(), 0)
