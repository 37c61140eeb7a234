"""Import log model.

One LogEntry is created per failure (or diagnostic) event and stored
append-only in a LogSink. Entries written while the processor runs in
validation mode carry ``validation_step=True``; this flag is the only thing
purge_validation_logs() looks at.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Any

from .messages import get_message


class LogLevel(IntEnum):
    INFO = 0
    WARNING = 1
    ERROR = 2

    @property
    def short_name(self) -> str:
        return _LEVEL_TO_SN[self]

    @classmethod
    def from_name(cls, name: str) -> LogLevel | None:
        """Convert a level short name ("warning", "Error "...) to a LogLevel."""
        clean = name.strip().lower()
        for level, short_name in _LEVEL_TO_SN.items():
            if short_name == clean:
                return level
        return None


_LEVEL_TO_SN = {
    LogLevel.INFO: "none",
    LogLevel.WARNING: "warning",
    LogLevel.ERROR: "error",
}


@dataclass(frozen=True)
class LogEntry:
    line_number: int
    message_code: str
    field_name: str = ""
    module: str = "row_importer"
    additional_info: Any = None
    level: LogLevel = LogLevel.WARNING
    origin: str = "unknown"
    import_id: int = 0
    validation_step: bool = False
    id: int | None = None

    def is_error(self) -> bool:
        return self.level == LogLevel.ERROR

    def full_message(self) -> str:
        """Render the entry like "ERROR (Line 3, Field:name): Required field is missing."."""
        message = get_message(self.message_code)
        if isinstance(self.additional_info, str) and self.additional_info:
            message = f"{message} ({self.additional_info})"
        level_name = LogLevel(self.level).name
        return f"{level_name} (Line {self.line_number}, Field:{self.field_name}): {message}"


def log_from_exception(
    exc: BaseException,
    *,
    line_number: int,
    module: str,
    origin: str,
    import_id: int,
    validation_step: bool,
) -> LogEntry:
    """Build a LogEntry from an exception raised inside the pipeline.

    Importer exceptions provide message_code, field_name, level and
    additional_info; anything else is recorded as an ERROR with the exception
    text as additional info.
    """
    message_code = getattr(exc, "message_code", None) or "unexpectederror"
    level = getattr(exc, "level", None)
    additional_info = getattr(exc, "additional_info", None)
    if message_code == "unexpectederror" and additional_info is None:
        additional_info = f"{type(exc).__name__}: {exc}"

    return LogEntry(
        line_number=line_number,
        message_code=message_code,
        field_name=getattr(exc, "field_name", "") or "",
        module=getattr(exc, "module", None) or module,
        additional_info=additional_info,
        level=LogLevel(level) if level is not None else LogLevel.ERROR,
        origin=origin,
        import_id=import_id,
        validation_step=validation_step,
    )


class LogSink(ABC):
    """Append-only store of import log entries."""

    @abstractmethod
    def add(self, entry: LogEntry) -> LogEntry:
        """Store an entry and return it with its id set."""
        ...

    @abstractmethod
    def get_logs(
        self,
        import_id: int | None = None,
        validation_step: bool | None = None,
    ) -> list[LogEntry]:
        """Entries matching the filters, in insertion order."""
        ...

    @abstractmethod
    def delete(self, entry: LogEntry) -> None: ...

    def purge_validation_logs(self, import_id: int) -> int:
        """Delete the validation-step entries of one import session.

        Returns:
            Number of deleted entries
        """
        entries = self.get_logs(import_id=import_id, validation_step=True)
        for entry in entries:
            self.delete(entry)
        return len(entries)


class MemoryLogSink(LogSink):
    def __init__(self) -> None:
        self._entries: list[LogEntry] = []
        self._next_id = 1

    def add(self, entry: LogEntry) -> LogEntry:
        stored = replace(entry, id=self._next_id)
        self._next_id += 1
        self._entries.append(stored)
        return stored

    def get_logs(
        self,
        import_id: int | None = None,
        validation_step: bool | None = None,
    ) -> list[LogEntry]:
        return [
            e
            for e in self._entries
            if (import_id is None or e.import_id == import_id)
            and (validation_step is None or e.validation_step == validation_step)
        ]

    def delete(self, entry: LogEntry) -> None:
        self._entries = [e for e in self._entries if e.id != entry.id]

    def __len__(self) -> int:
        return len(self._entries)
