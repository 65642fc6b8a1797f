import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from typing import Any, Callable, Generic, Optional, TypeVar

from .config import MAX_WORKERS

LOG = logging.getLogger("termdeck.tasks")

T = TypeVar("T")


class BackgroundTask(Generic[T]):
    """
    Handle on work running in the pool. The UI loop only ever asks ``done()``;
    ``cancel()`` sets the flag the work function checks between stages and
    marks the handle so its result is never used.
    """

    def __init__(self, future: "Future[T]", cancelled: threading.Event, label: str = ""):
        self._future = future
        self._cancelled = cancelled
        self.label = label

    def cancel(self) -> None:
        self._cancelled.set()
        self._future.cancel()  # only stops it if it has not started yet

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def done(self) -> bool:
        return self._future.done()

    def result(self) -> Optional[T]:
        """
        Result of a finished task. None when cancelled; exceptions raised by
        the work function propagate.
        """
        if self._cancelled.is_set():
            return None
        try:
            return self._future.result(timeout=0)
        except CancelledError:
            return None

    def __repr__(self) -> str:
        status = "cancelled" if self.cancelled else ("done" if self.done() else "running")
        return f"<BackgroundTask {self.label or '?'} {status}>"


class TaskPool:
    """Thread pool for network, disk and codec work."""

    def __init__(self, max_workers: int = MAX_WORKERS):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="termdeck")

    def spawn(self, fn: Callable[..., T], *args: Any, label: str = "") -> BackgroundTask[T]:
        """Run ``fn(cancelled_event, *args)`` in the pool."""
        cancelled = threading.Event()
        future = self._executor.submit(fn, cancelled, *args)
        LOG.debug("Spawned %s", label or getattr(fn, "__name__", fn))
        return BackgroundTask(future, cancelled, label)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
