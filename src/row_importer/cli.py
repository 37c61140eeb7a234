"""Command line entry point.

    row-importer validate --config profile.yml --csv data.csv --log-db logs.sqlite
    row-importer import   --config profile.yml --db records.sqlite --progress bar
    row-importer logs     --log-db logs.sqlite --import-id 12 --validation
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger
from rich.console import Console
from rich.table import Table

from row_importer.config import load_import_profile
from row_importer.core.database import SQLiteLogSink
from row_importer.core.exceptions import ConfigurationError
from row_importer.core.logs import LogEntry, LogLevel, LogSink, MemoryLogSink
from row_importer.importers.sqlite_importer import SQLiteRecordImporter
from row_importer.processor import Processor
from row_importer.progress import BarProgress, ProgressReporter, TextProgressTrace
from row_importer.tasks import DeferredTaskQueue


def configure_logging(verbose: int = 0, quiet: bool = False) -> None:
    level = "WARNING" if quiet else ("DEBUG" if verbose else "INFO")
    logger.remove()
    logger.add(sys.stderr, level=level)


def _build_progress(kind: str) -> ProgressReporter | None:
    if kind == "bar":
        return BarProgress()
    if kind == "text":
        return TextProgressTrace(every=100)
    return None


def _print_logs(entries: list[LogEntry], console: Console) -> None:
    if not entries:
        console.print("No log entries.")
        return
    for entry in entries:
        console.print(entry.full_message(), markup=False, highlight=False, soft_wrap=True)

    table = Table(title="Log summary")
    table.add_column("Level")
    table.add_column("Import", justify="right")
    table.add_column("Validation", justify="right")
    for level in reversed(LogLevel):
        matching = [e for e in entries if e.level == level]
        if not matching:
            continue
        validation = sum(1 for e in matching if e.validation_step)
        table.add_row(level.name, str(len(matching) - validation), str(validation))
    console.print(table)


def run_profile(args: argparse.Namespace, console: Console) -> int:
    profile = load_import_profile(args.config)
    import_id = args.import_id if args.import_id is not None else profile.import_id

    source = profile.build_source(args.csv)
    log_sink: LogSink = SQLiteLogSink(args.log_db) if args.log_db else MemoryLogSink()
    db_path = args.db or Path(f"{profile.importer.table}.sqlite")

    task_queue = DeferredTaskQueue() if profile.importer.template_field else None
    importer = SQLiteRecordImporter(
        source,
        db_path,
        profile.importer.table,
        profile.importer.key_field,
        profile.destination_fields,
        custom_field_prefix=profile.importer.custom_field_prefix,
        template_field=profile.importer.template_field,
        task_queue=task_queue,
        defaults=profile.importer.defaults,
        module=profile.module,
    )
    processor = Processor(
        source,
        profile.build_transformer(),
        importer,
        log_sink=log_sink,
        progress=_build_progress(args.progress),
        import_id=import_id,
        module=profile.module,
    )

    try:
        if args.command == "validate":
            success = processor.validate()
            entries = processor.get_validation_log()
        else:
            success = processor.import_()
            entries = [e for e in processor.get_logs() if not e.validation_step]
    finally:
        if task_queue is not None:
            task_queue.wait()
            task_queue.shutdown()

    _print_logs(entries, console)
    console.print(processor.displayable_stats())
    return 0 if success else 1


def show_logs(args: argparse.Namespace, console: Console) -> int:
    if not Path(args.log_db).is_file():
        raise FileNotFoundError(f"Log database not found: {args.log_db}")
    sink = SQLiteLogSink(args.log_db)
    validation_step = True if args.validation else None
    entries = sink.get_logs(import_id=args.import_id, validation_step=validation_step)
    _print_logs(entries, console)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="row-importer", description="Validate and import CSV rows into SQLite")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("validate", "Check every row without writing records"),
        ("import", "Import every valid row"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--config", type=Path, required=True, help="Import profile (YAML)")
        p.add_argument("--csv", type=Path, default=None, help="CSV file (overrides source.path)")
        p.add_argument("--db", type=Path, default=None, help="Record database (default: <table>.sqlite)")
        p.add_argument("--log-db", type=Path, default=None, help="SQLite file keeping the import log")
        p.add_argument("--import-id", type=int, default=None, help="Import session id (overrides import_id)")
        p.add_argument(
            "--progress",
            choices=["none", "bar", "text"],
            default="none",
            help="Progress output during import",
        )

    p = sub.add_parser("logs", help="Print stored log entries")
    p.add_argument("--log-db", type=Path, required=True, help="SQLite file keeping the import log")
    p.add_argument("--import-id", type=int, default=None, help="Only entries of this import session")
    p.add_argument("--validation", action="store_true", help="Only validation entries")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)
    console = Console()

    try:
        if args.command == "logs":
            return show_logs(args, console)
        return run_profile(args, console)
    except (FileNotFoundError, ValueError, ConfigurationError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
