"""Fixed-delay scheduler running each periodic task on its own pool worker."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

THREAD_NAME_PREFIX = "remote-config-scan"


@dataclass(frozen=True)
class PeriodicTask:
    """A task body run every ``delay`` seconds after ``initial_delay``."""

    name: str
    func: Callable[[], object]
    initial_delay: float
    delay: float


class Scheduler:
    """Run periodic tasks on a pool with one worker per task.

    Ticks of the same task never overlap: the next delay starts only after
    the previous tick returns. Any exception raised by a tick is logged and
    the schedule continues. ``shutdown`` stops scheduling new ticks and waits
    for in-flight ticks to finish instead of interrupting them.
    """

    def __init__(self, tasks: list[PeriodicTask]) -> None:
        if not tasks:
            raise ValueError("Scheduler needs at least one task")
        self._tasks = list(tasks)
        self._stop = threading.Event()
        self._executor: ThreadPoolExecutor | None = None
        self._futures: list[Future[None]] = []
        self._on_shutdown: list[Callable[[], object]] = []
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._executor is not None and not self._stop.is_set()

    def on_shutdown(self, callback: Callable[[], object]) -> None:
        """Register a callback run once after all workers have stopped."""
        self._on_shutdown.append(callback)

    def _run_tick(self, task: PeriodicTask) -> None:
        try:
            task.func()
        except BaseException:
            logger.exception("scan %s failed", task.name)

    def _loop(self, task: PeriodicTask) -> None:
        if self._stop.wait(task.initial_delay):
            return
        while not self._stop.is_set():
            self._run_tick(task)
            if self._stop.wait(task.delay):
                return

    def start(self) -> None:
        """Start every task. Raises RuntimeError if already started."""
        with self._lock:
            if self._executor is not None:
                raise RuntimeError("Scheduler already started")
            self._executor = ThreadPoolExecutor(
                max_workers=len(self._tasks),
                thread_name_prefix=THREAD_NAME_PREFIX,
            )
            self._futures = [self._executor.submit(self._loop, task) for task in self._tasks]
        logger.info(
            "Started %d periodic tasks: %s",
            len(self._tasks),
            ", ".join(task.name for task in self._tasks),
        )

    def shutdown(self, wait: bool = True) -> None:
        """Stop scheduling ticks and run shutdown callbacks. Safe to call repeatedly."""
        with self._lock:
            if self._stop.is_set():
                return
            self._stop.set()
            executor = self._executor
        if executor is not None:
            executor.shutdown(wait=wait)
        for callback in self._on_shutdown:
            try:
                callback()
            except Exception:
                logger.exception("Shutdown callback failed")
        logger.info("Scheduler stopped")
