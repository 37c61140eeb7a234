"""SQLite storage for import log entries.

The log table mirrors the LogEntry fields. ``additionalinfo`` is stored as
JSON text; values written by older versions as plain text are read back as is.

Note:
    Databases created before ``validationstep`` existed are migrated in place
    the first time a SQLiteLogSink opens them.
"""

from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path
from typing import Any

from loguru import logger

from .logs import LogEntry, LogLevel, LogSink

LOG_TABLE = "importer_logs"

SCHEMA_SQL = [
    f"""
    CREATE TABLE IF NOT EXISTS {LOG_TABLE} (
        id INTEGER NOT NULL PRIMARY KEY,
        linenumber INTEGER NOT NULL,
        messagecode TEXT NOT NULL,
        module TEXT,
        additionalinfo TEXT,
        fieldname TEXT,
        level INTEGER NOT NULL DEFAULT 1,
        origin TEXT,
        importid INTEGER NOT NULL DEFAULT 0,
        validationstep INTEGER NOT NULL DEFAULT 0,
        timecreated INTEGER NOT NULL DEFAULT 0
    );
    """,
]

REQUIRED_INDEXES = [
    f"CREATE INDEX IF NOT EXISTS idx_{LOG_TABLE}_importid ON {LOG_TABLE}(importid, validationstep);",
]

# Columns added after the first schema version: (column, DDL)
MIGRATIONS = [
    (
        "validationstep",
        f"ALTER TABLE {LOG_TABLE} ADD COLUMN validationstep INTEGER NOT NULL DEFAULT 0;",
    ),
]


def _get_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    return {r[1] for r in rows}


def migrate_log_table(conn: sqlite3.Connection) -> int:
    """Add the columns missing from an older log table.

    Returns:
        Number of applied migrations
    """
    changed = 0
    cols = _get_columns(conn, LOG_TABLE)
    for column, ddl in MIGRATIONS:
        if column in cols:
            continue
        logger.info(f"Apply: {ddl}")
        conn.execute(ddl)
        changed += 1
    return changed


def create_log_database(db_path: Path | str) -> None:
    """Create the log table and its indexes (idempotent).

    Args:
        db_path: SQLite database file path
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        for stmt in SCHEMA_SQL:
            conn.executescript(stmt)
        migrate_log_table(conn)
        for index_sql in REQUIRED_INDEXES:
            conn.execute(index_sql)
        conn.commit()
    except Exception as e:
        logger.error(f"Failed to create log database: {e}")
        raise
    finally:
        conn.close()


def _encode_info(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, default=str)


def _decode_info(value: str | None) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return value


class SQLiteLogSink(LogSink):
    """LogSink persisted in a SQLite database file.

    Args:
        db_path: Database file (created if missing)
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        create_log_database(self.db_path)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def add(self, entry: LogEntry) -> LogEntry:
        conn = self._connect()
        try:
            cursor = conn.execute(
                f"""
                INSERT INTO {LOG_TABLE} (
                    linenumber, messagecode, module, additionalinfo, fieldname,
                    level, origin, importid, validationstep, timecreated
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.line_number,
                    entry.message_code,
                    entry.module,
                    _encode_info(entry.additional_info),
                    entry.field_name,
                    int(entry.level),
                    entry.origin,
                    entry.import_id,
                    int(entry.validation_step),
                    int(time.time()),
                ),
            )
            conn.commit()
            entry_id = cursor.lastrowid
        finally:
            conn.close()

        return LogEntry(
            line_number=entry.line_number,
            message_code=entry.message_code,
            field_name=entry.field_name,
            module=entry.module,
            additional_info=entry.additional_info,
            level=entry.level,
            origin=entry.origin,
            import_id=entry.import_id,
            validation_step=entry.validation_step,
            id=entry_id,
        )

    def get_logs(
        self,
        import_id: int | None = None,
        validation_step: bool | None = None,
    ) -> list[LogEntry]:
        clauses: list[str] = []
        params: list[object] = []
        if import_id is not None:
            clauses.append("importid = ?")
            params.append(import_id)
        if validation_step is not None:
            clauses.append("validationstep = ?")
            params.append(int(validation_step))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        conn = self._connect()
        try:
            rows = conn.execute(
                f"""
                SELECT id, linenumber, messagecode, module, additionalinfo, fieldname,
                       level, origin, importid, validationstep
                FROM {LOG_TABLE} {where}
                ORDER BY id
                """,
                params,
            ).fetchall()
        finally:
            conn.close()

        return [
            LogEntry(
                id=row[0],
                line_number=row[1],
                message_code=row[2],
                module=row[3],
                additional_info=_decode_info(row[4]),
                field_name=row[5] or "",
                level=LogLevel(row[6]),
                origin=row[7],
                import_id=row[8],
                validation_step=bool(row[9]),
            )
            for row in rows
        ]

    def delete(self, entry: LogEntry) -> None:
        if entry.id is None:
            return
        conn = self._connect()
        try:
            conn.execute(f"DELETE FROM {LOG_TABLE} WHERE id = ?", (entry.id,))
            conn.commit()
        finally:
            conn.close()

    def purge_validation_logs(self, import_id: int) -> int:
        conn = self._connect()
        try:
            cursor = conn.execute(
                f"DELETE FROM {LOG_TABLE} WHERE importid = ? AND validationstep = 1",
                (import_id,),
            )
            conn.commit()
            deleted = cursor.rowcount
        finally:
            conn.close()
        logger.debug(f"Purged {deleted} validation log entries (importid={import_id})")
        return deleted
