"""Deferred (fire-and-forget) tasks scheduled by importers.

The processor never waits for these tasks and their outcome does not change
the result of an import run. Failures are only reported through the logger
and the ``failed`` counter.
"""

from __future__ import annotations

import concurrent.futures
import threading
from collections.abc import Callable
from typing import Any

from loguru import logger


class DeferredTaskQueue:
    """Background queue backed by a thread pool.

    Only pending tasks are kept; finished ones are reduced to the
    ``completed`` and ``failed`` counters.

    Args:
        max_workers: Worker threads (1 keeps tasks in submission order)
    """

    def __init__(self, max_workers: int = 1) -> None:
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="row-importer-task"
        )
        self._pending: set[concurrent.futures.Future] = set()
        self._lock = threading.Lock()
        self.completed = 0
        self.failed = 0

    def submit(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> concurrent.futures.Future:
        """Queue ``fn(*args, **kwargs)`` and return immediately."""
        logger.debug(f"Queue deferred task: {name}")
        future = self._executor.submit(self._run, name, fn, args, kwargs)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _run(self, name: str, fn: Callable[..., Any], args: tuple, kwargs: dict[str, Any]) -> Any:
        # Counters are updated before the future resolves so wait() sees them
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            with self._lock:
                self.failed += 1
            logger.error(f"Deferred task failed: {name}: {e}")
            raise
        with self._lock:
            self.completed += 1
        logger.debug(f"Deferred task done: {name}")
        return result

    def _forget(self, future: concurrent.futures.Future) -> None:
        with self._lock:
            self._pending.discard(future)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def wait(self, timeout: float | None = None) -> None:
        """Block until every queued task finished."""
        with self._lock:
            pending = list(self._pending)
        concurrent.futures.wait(pending, timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
