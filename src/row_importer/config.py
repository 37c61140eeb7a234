"""Import profiles (YAML).

A profile describes one import: the CSV layout, the field schemas before and
after transform, the transform rules and the SQLite destination.

Example:
    module: courses
    import_id: 12
    source:
      path: courses.csv
      delimiter: semicolon
      encoding: utf-8
    fields:
      code: {type: text, required: true}
      label: text
    destination_fields:
      idnumber: {type: text, required: true}
      fullname: text
      category: text
    transform:
      separator: " "
      rules:
        code:
          - to: idnumber
        label:
          - to: fullname
            callback: row_importer.transformers.callbacks:strip
    importer:
      table: courses
      key_field: idnumber
      defaults: {category: misc}
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from row_importer.core.exceptions import ConfigurationError
from row_importer.core.fields import FieldSchema
from row_importer.sources.csv_source import CsvRowSource, resolve_delimiter
from row_importer.transformers.base_transformer import ConcatenateOptions, TransformCallback, TransformRule
from row_importer.transformers.standard import StandardTransformer

_RULE_KEYS = {"to", "callback", "concatenate"}


def resolve_callback(reference: str) -> TransformCallback:
    """Import a callback given as ``"package.module:function"``.

    Raises:
        ConfigurationError: The module or the attribute does not exist, or is not callable
    """
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError("unknowncallback", additional_info=f"expected 'module:function', got {reference!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError("unknowncallback", additional_info=reference) from e
    callback = getattr(module, attr, None)
    if not callable(callback):
        raise ConfigurationError("unknowncallback", additional_info=reference)
    return callback


@dataclass
class SourceOptions:
    path: Path | None = None
    delimiter: str = "semicolon"
    encoding: str = "utf-8"
    exact_column_names: bool = False


@dataclass
class ImporterOptions:
    table: str = "records"
    key_field: str = "idnumber"
    defaults: dict[str, Any] = field(default_factory=dict)
    custom_field_prefix: str = "cf_"
    template_field: str | None = None


@dataclass
class ImportProfile:
    """Everything needed to build a CSV -> SQLite import."""

    fields: FieldSchema
    destination_fields: FieldSchema
    module: str = "row_importer"
    import_id: int = 0
    source: SourceOptions = field(default_factory=SourceOptions)
    separator: str = " "
    rules: dict[str, list[TransformRule]] = field(default_factory=dict)
    importer: ImporterOptions = field(default_factory=ImporterOptions)

    def build_source(self, csv_path: Path | str | None = None) -> CsvRowSource:
        """CSV source of the profile (``csv_path`` overrides ``source.path``)."""
        path = Path(csv_path) if csv_path is not None else self.source.path
        if path is None:
            raise ValueError("No CSV file given (profile source.path or --csv)")
        return CsvRowSource(
            path,
            self.fields,
            delimiter=self.source.delimiter,
            encoding=self.source.encoding,
            exact_column_names=self.source.exact_column_names,
        )

    def build_transformer(self) -> StandardTransformer:
        return StandardTransformer(self.rules, separator=self.separator)


def _as_mapping(value: Any, where: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"Invalid profile: '{where}' must be a mapping, got {type(value).__name__}")
    return value


def _parse_rule(source_field: str, raw: Any) -> TransformRule:
    if isinstance(raw, str):
        return TransformRule(to=raw)
    raw = _as_mapping(raw, f"transform.rules.{source_field}")
    unknown = set(raw) - _RULE_KEYS
    if unknown:
        raise ValueError(f"Invalid rule for '{source_field}': unknown keys {sorted(unknown)}")

    callback = resolve_callback(raw["callback"]) if raw.get("callback") else None
    concatenate = None
    if raw.get("concatenate") is not None:
        concat = _as_mapping(raw["concatenate"], f"transform.rules.{source_field}.concatenate")
        concatenate = ConcatenateOptions(
            order=int(concat.get("order", 0)),
            separator=concat.get("separator"),
        )
    to = raw.get("to")
    if isinstance(to, list):
        to = tuple(str(t) for t in to)
    return TransformRule(to=to, callback=callback, concatenate=concatenate)


def _parse_rules(raw_rules: dict[str, Any]) -> dict[str, list[TransformRule]]:
    rules: dict[str, list[TransformRule]] = {}
    for source_field, raw in raw_rules.items():
        items = raw if isinstance(raw, list) else [raw]
        rules[source_field] = [_parse_rule(source_field, item) for item in items]
    return rules


def _check_rules(
    rules: dict[str, list[TransformRule]],
    fields: FieldSchema,
    destination: FieldSchema,
) -> None:
    for source_field, field_rules in rules.items():
        if source_field not in fields:
            raise ConfigurationError(
                "importercolumndef", field_name=source_field, additional_info="transform rule on an undeclared field"
            )
        if len(destination) == 0:
            continue
        for rule in field_rules:
            for target in rule.targets(source_field):
                if target not in destination:
                    raise ConfigurationError(
                        "importercolumndef", field_name=target, additional_info="transform target not declared"
                    )


def parse_import_profile(config: Any, base_dir: Path | None = None) -> ImportProfile:
    """Build an ImportProfile from an already loaded YAML document.

    Raises:
        ValueError: The document does not have the expected shape
        ConfigurationError: Bad field type or unknown callback
    """
    if not isinstance(config, dict):
        raise ValueError("Invalid profile: root must be a mapping")

    fields = FieldSchema.from_mapping(_as_mapping(config.get("fields"), "fields"))
    if len(fields) == 0:
        raise ValueError("Invalid profile: 'fields' must declare at least one field")
    destination = FieldSchema.from_mapping(_as_mapping(config.get("destination_fields"), "destination_fields"))

    raw_source = _as_mapping(config.get("source"), "source")
    path = raw_source.get("path")
    if path is not None:
        path = Path(path)
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
    delimiter = str(raw_source.get("delimiter", "semicolon"))
    resolve_delimiter(delimiter)
    source = SourceOptions(
        path=path,
        delimiter=delimiter,
        encoding=str(raw_source.get("encoding", "utf-8")),
        exact_column_names=bool(raw_source.get("exact_column_names", False)),
    )

    raw_transform = _as_mapping(config.get("transform"), "transform")
    rules = _parse_rules(_as_mapping(raw_transform.get("rules"), "transform.rules"))
    _check_rules(rules, fields, destination)

    raw_importer = _as_mapping(config.get("importer"), "importer")
    importer = ImporterOptions(
        table=str(raw_importer.get("table", "records")),
        key_field=str(raw_importer.get("key_field", "idnumber")),
        defaults=_as_mapping(raw_importer.get("defaults"), "importer.defaults"),
        custom_field_prefix=str(raw_importer.get("custom_field_prefix", "cf_")),
        template_field=raw_importer.get("template_field"),
    )

    return ImportProfile(
        fields=fields,
        destination_fields=destination,
        module=str(config.get("module", "row_importer")),
        import_id=int(config.get("import_id", 0)),
        source=source,
        separator=str(raw_transform.get("separator", " ")),
        rules=rules,
        importer=importer,
    )


def load_import_profile(profile_path: Path | str) -> ImportProfile:
    """Load an import profile from a YAML file.

    Relative ``source.path`` values are resolved against the profile's directory.

    Raises:
        FileNotFoundError: The profile file does not exist
        ValueError: Invalid YAML or unexpected document shape
        ConfigurationError: Bad field type or unknown callback
    """
    profile_path = Path(profile_path)
    if not profile_path.is_file():
        raise FileNotFoundError(f"Import profile not found: {profile_path}")

    with open(profile_path, encoding="utf-8") as f:
        try:
            config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {profile_path}: {e}") from e

    profile = parse_import_profile(config, base_dir=profile_path.parent)
    logger.info(
        f"Loaded import profile {profile_path} "
        f"({len(profile.fields)} fields, {sum(len(r) for r in profile.rules.values())} rules)"
    )
    return profile
