"""Progress reporters.

The processor calls ``update(processed, total)`` after every imported row and
``close()`` at the end of the run. A reporter that raises is logged and
ignored; progress output never changes the outcome of a run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable

from loguru import logger
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn


class ProgressReporter(ABC):
    @abstractmethod
    def update(self, processed: int, total: int) -> None: ...

    def close(self) -> None:
        """Release the output (end of run)."""


class BarProgress(ProgressReporter):
    """Progress bar drawn with rich. The bar starts on the first update.

    Args:
        description: Text shown on the left of the bar
        transient: Remove the bar once the run is over
    """

    def __init__(self, description: str = "Importing", transient: bool = False) -> None:
        self.description = description
        self.transient = transient
        self._progress: Progress | None = None
        self._task_id: int | None = None

    def update(self, processed: int, total: int) -> None:
        if self._progress is None:
            self._progress = Progress(
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                transient=self.transient,
            )
            self._progress.start()
            self._task_id = self._progress.add_task(self.description, total=total or None)
        assert self._task_id is not None
        self._progress.update(self._task_id, completed=processed, total=total or None)

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
            self._task_id = None


class TextProgressTrace(ProgressReporter):
    """One "processed/total" line per update.

    Args:
        writer: Line sink (default: loguru at INFO)
        every: Only write every n-th row (the last row is always written)
    """

    def __init__(self, writer: Callable[[str], None] | None = None, every: int = 1) -> None:
        if every < 1:
            raise ValueError("every must be >= 1")
        self.writer = writer or logger.info
        self.every = every

    def update(self, processed: int, total: int) -> None:
        if processed % self.every == 0 or processed == total:
            self.writer(f"{processed}/{total}")


class CompositeProgress(ProgressReporter):
    """Forward updates to several reporters."""

    def __init__(self, reporters: Iterable[ProgressReporter]) -> None:
        self.reporters = list(reporters)

    def update(self, processed: int, total: int) -> None:
        for reporter in self.reporters:
            reporter.update(processed, total)

    def close(self) -> None:
        for reporter in self.reporters:
            reporter.close()
