"""Unit tests for the SQLite log sink."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from row_importer.core.database import LOG_TABLE, SQLiteLogSink, create_log_database, migrate_log_table
from row_importer.core.logs import LogEntry, LogLevel


def _columns(db_path: Path) -> set[str]:
    conn = sqlite3.connect(db_path)
    try:
        return {r[1] for r in conn.execute(f"PRAGMA table_info({LOG_TABLE});").fetchall()}
    finally:
        conn.close()


class TestCreateLogDatabase:
    def test_create_new_database(self, tmp_path: Path) -> None:
        db_path = tmp_path / "sub" / "logs.sqlite"
        create_log_database(db_path)
        assert db_path.exists()
        assert {"linenumber", "messagecode", "validationstep", "importid"} <= _columns(db_path)

    def test_idempotent(self, tmp_path: Path) -> None:
        db_path = tmp_path / "logs.sqlite"
        create_log_database(db_path)
        create_log_database(db_path)
        assert "validationstep" in _columns(db_path)

    def test_migrates_table_without_validationstep(self, tmp_path: Path) -> None:
        db_path = tmp_path / "old.sqlite"
        conn = sqlite3.connect(db_path)
        conn.execute(
            f"""
            CREATE TABLE {LOG_TABLE} (
                id INTEGER NOT NULL PRIMARY KEY,
                linenumber INTEGER NOT NULL,
                messagecode TEXT NOT NULL,
                module TEXT,
                additionalinfo TEXT,
                fieldname TEXT,
                level INTEGER NOT NULL DEFAULT 1,
                origin TEXT,
                importid INTEGER NOT NULL DEFAULT 0,
                timecreated INTEGER NOT NULL DEFAULT 0
            )
            """
        )
        conn.execute(f"INSERT INTO {LOG_TABLE} (linenumber, messagecode) VALUES (2, 'required')")
        conn.commit()
        conn.close()

        sink = SQLiteLogSink(db_path)
        assert "validationstep" in _columns(db_path)
        entries = sink.get_logs()
        assert len(entries) == 1
        assert entries[0].validation_step is False

        conn = sqlite3.connect(db_path)
        try:
            assert migrate_log_table(conn) == 0
        finally:
            conn.close()


class TestSQLiteLogSink:
    def test_add_and_read_back(self, tmp_path: Path) -> None:
        sink = SQLiteLogSink(tmp_path / "logs.sqlite")
        stored = sink.add(
            LogEntry(
                line_number=3,
                message_code="wrongtype",
                field_name="seats",
                module="courses",
                additional_info={"value": "many"},
                level=LogLevel.ERROR,
                origin="file:courses.csv",
                import_id=4,
                validation_step=True,
            )
        )
        assert stored.id is not None

        [entry] = sink.get_logs(import_id=4)
        assert entry == stored
        assert entry.additional_info == {"value": "many"}
        assert entry.level == LogLevel.ERROR

    def test_string_info_kept_as_is(self, tmp_path: Path) -> None:
        sink = SQLiteLogSink(tmp_path / "logs.sqlite")
        sink.add(LogEntry(line_number=1, message_code="x", additional_info="plain text"))
        assert sink.get_logs()[0].additional_info == "plain text"

    def test_purge_validation_logs(self, tmp_path: Path) -> None:
        sink = SQLiteLogSink(tmp_path / "logs.sqlite")
        sink.add(LogEntry(line_number=1, message_code="a", import_id=1, validation_step=True))
        sink.add(LogEntry(line_number=2, message_code="b", import_id=1, validation_step=False))
        sink.add(LogEntry(line_number=3, message_code="c", import_id=2, validation_step=True))

        assert sink.purge_validation_logs(1) == 1
        assert [e.message_code for e in sink.get_logs()] == ["b", "c"]

    def test_delete(self, tmp_path: Path) -> None:
        sink = SQLiteLogSink(tmp_path / "logs.sqlite")
        entry = sink.add(LogEntry(line_number=1, message_code="a"))
        sink.delete(entry)
        assert sink.get_logs() == []
