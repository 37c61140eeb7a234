"""Create-or-update importer backed by a SQLite table.

Rows are matched on ``key_field``: a known key updates the stored record,
anything else inserts a new one. Fields starting with ``custom_field_prefix``
are not table columns; they land in ``<table>_custom_fields``.

Note:
    When ``template_field`` names an existing record, copying that template
    onto the new record runs as a deferred task. The run does not wait for
    it and its failure does not change the run outcome.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any

from loguru import logger

from row_importer.core.exceptions import ConfigurationError
from row_importer.core.fields import FieldSchema, FieldType, Row
from row_importer.core.logs import LogLevel
from row_importer.core.normalize import derive_short_name
from row_importer.sources.base_source import RowSource
from row_importer.tasks import DeferredTaskQueue

from .base_importer import RowImporter

_SQL_TYPES = {
    FieldType.INTEGER: "INTEGER",
    FieldType.TEXT: "TEXT",
}


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def create_record_tables(conn: sqlite3.Connection, table: str, schema: FieldSchema) -> None:
    """Create the record table and its custom field table (idempotent)."""
    columns = ["id INTEGER NOT NULL PRIMARY KEY"]
    for field in schema:
        if field.type is None:
            raise ConfigurationError("importercolumndef", field_name=field.name)
        columns.append(f"{_quote(field.name)} {_SQL_TYPES[field.type]}")
    custom_table = f"{table}_custom_fields"
    conn.executescript(
        f"""
        CREATE TABLE IF NOT EXISTS {_quote(table)} (
            {", ".join(columns)}
        );
        CREATE TABLE IF NOT EXISTS {_quote(custom_table)} (
            record_key INTEGER NOT NULL,
            name TEXT NOT NULL,
            value TEXT,
            PRIMARY KEY (record_key, name)
        );
        """
    )


def copy_template(db_path: Path | str, table: str, template_id: int, record_id: int) -> int:
    """Fill the record's empty columns and custom fields from a template record.

    Returns:
        Number of custom fields copied
    """
    custom_table = f"{table}_custom_fields"
    conn = sqlite3.connect(db_path, timeout=30)
    try:
        columns = [
            r[1] for r in conn.execute(f"PRAGMA table_info({_quote(table)});").fetchall() if r[1] != "id"
        ]
        if columns:
            assignments = ", ".join(
                f"{_quote(c)} = COALESCE({_quote(c)}, (SELECT {_quote(c)} FROM {_quote(table)} WHERE id = :tpl))"
                for c in columns
            )
            conn.execute(
                f"UPDATE {_quote(table)} SET {assignments} WHERE id = :rec",
                {"tpl": template_id, "rec": record_id},
            )
        cursor = conn.execute(
            f"""
            INSERT OR IGNORE INTO {_quote(custom_table)} (record_key, name, value)
            SELECT ?, name, value FROM {_quote(custom_table)} WHERE record_key = ?
            """,
            (record_id, template_id),
        )
        conn.commit()
        copied = cursor.rowcount
    finally:
        conn.close()
    logger.debug(f"Template {template_id} copied onto record {record_id} ({copied} custom fields)")
    return copied


class SQLiteRecordImporter(RowImporter):
    """Importer writing rows into a SQLite table.

    Args:
        source: Source the rows come from
        db_path: SQLite database file (created if missing)
        table: Record table name
        key_field: Field identifying a record (dedup key)
        destination: Post-transform schema, also the table columns
        custom_field_prefix: Prefix of fields stored in the custom field table
        template_field: Field naming the key of a template record
        task_queue: Queue running template copies (template rows are only
            reported when no queue is given)
    """

    def __init__(
        self,
        source: RowSource,
        db_path: Path | str,
        table: str,
        key_field: str,
        destination: FieldSchema,
        *,
        custom_field_prefix: str = "cf_",
        template_field: str | None = None,
        task_queue: DeferredTaskQueue | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(source, **kwargs)
        if key_field not in destination:
            raise ConfigurationError("importercolumndef", field_name=key_field, additional_info="key field")
        self.db_path = Path(db_path)
        self.table = table
        self.key_field = key_field
        self.destination = destination
        self.custom_field_prefix = custom_field_prefix
        self.template_field = template_field
        self.task_queue = task_queue
        self.created_count = 0
        self.updated_count = 0
        self._conn: sqlite3.Connection | None = None

    def destination_fields(self) -> FieldSchema:
        return self.destination

    def init(self, options: dict[str, Any] | None = None) -> None:
        self.created_count = 0
        self.updated_count = 0
        if not self.is_import_mode():
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.db_path, timeout=30)
        create_record_tables(self._conn, self.table, self.destination)
        self._conn.commit()
        logger.debug(f"SQLite importer ready: {self.db_path}:{self.table}")

    def finish(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("SQLiteRecordImporter.init() must run before import_row()")
        return self._conn

    def fix_before_transform(self, row: Row, row_index: int, options: dict[str, Any] | None = None) -> None:
        # Cells left blank in a spreadsheet count as missing values.
        for name, value in row.items():
            if isinstance(value, str) and not value.strip():
                row[name] = None

    def _split(self, row: Row) -> tuple[Row, Row]:
        columns: Row = {}
        custom: Row = {}
        for name, value in row.items():
            if name.startswith(self.custom_field_prefix):
                custom[name[len(self.custom_field_prefix) :]] = value
            elif name in self.destination:
                columns[name] = value
            elif name != self.template_field:
                logger.debug(f"Field '{name}' is not a column of {self.table}, dropped")
        if "shortname" in self.destination and "fullname" in columns and not columns.get("shortname"):
            if columns["fullname"]:
                columns["shortname"] = derive_short_name(str(columns["fullname"]))
        return columns, custom

    def _find(self, conn: sqlite3.Connection, key: Any) -> int | None:
        row = conn.execute(
            f"SELECT id FROM {_quote(self.table)} WHERE {_quote(self.key_field)} = ? ORDER BY id LIMIT 1",
            (key,),
        ).fetchone()
        return row[0] if row else None

    def raw_import(self, row: Row, row_index: int, options: dict[str, Any] | None = None) -> int:
        conn = self._connection()
        columns, custom = self._split(row)
        key = columns.get(self.key_field)

        try:
            record_id = self._find(conn, key) if key not in (None, "") else None
            if record_id is None:
                names = list(columns)
                cursor = conn.execute(
                    f"INSERT INTO {_quote(self.table)} ({', '.join(_quote(n) for n in names)}) "
                    f"VALUES ({', '.join('?' for _ in names)})",
                    [columns[n] for n in names],
                )
                record_id = int(cursor.lastrowid)
                created = True
            else:
                if columns:
                    conn.execute(
                        f"UPDATE {_quote(self.table)} SET {', '.join(f'{_quote(n)} = ?' for n in columns)} "
                        "WHERE id = ?",
                        [*columns.values(), record_id],
                    )
                created = False

            if custom:
                conn.executemany(
                    f"""
                    INSERT INTO {_quote(self.table + '_custom_fields')} (record_key, name, value)
                    VALUES (?, ?, ?)
                    ON CONFLICT(record_key, name) DO UPDATE SET value = excluded.value
                    """,
                    [(record_id, name, None if value is None else str(value)) for name, value in custom.items()],
                )
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise

        if created:
            self.created_count += 1
            self._schedule_template(row, record_id, row_index)
        else:
            self.updated_count += 1
        logger.debug(f"Row {row_index}: {'created' if created else 'updated'} record {record_id}")
        return record_id

    def _schedule_template(self, row: Row, record_id: int, row_index: int) -> None:
        if not self.template_field:
            return
        template_key = row.get(self.template_field)
        if template_key in (None, ""):
            return

        template_id = self._find(self._connection(), template_key)
        if template_id is None:
            self.report(
                "templatenotfound",
                row_index,
                field_name=self.template_field,
                level=LogLevel.WARNING,
                additional_info=str(template_key),
            )
            return
        if self.task_queue is None:
            logger.warning(f"Row {row_index}: template {template_key} found but no task queue configured")
            return
        self.task_queue.submit(
            f"copy template {template_key} -> {record_id}",
            copy_template,
            self.db_path,
            self.table,
            template_id,
            record_id,
        )
