"""
Display-context task queue.

Everything that touches display state (the current DetectionSet, the
overlay, the viewport) runs on one thread. Other threads hand work to it by
posting callables here; the display loop drains the queue.
"""

from __future__ import annotations

import logging
import queue
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Task = Callable[[], None]


class DisplayQueue:
    """
    Unbounded FIFO of callables executed by whoever calls drain().

    Only detection completions are posted here, and the admission gate
    keeps at most one of those outstanding, so the queue stays short.
    """

    def __init__(self):
        self._queue: "queue.Queue[Task]" = queue.Queue()

    def post(self, task: Task) -> None:
        """Schedule ``task`` on the display context. Safe from any thread."""
        self._queue.put(task)

    def __call__(self, task: Task) -> None:
        self.post(task)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self, timeout: Optional[float] = None) -> int:
        """
        Run all queued tasks on the calling thread.

        Args:
            timeout: Seconds to wait for the first task when the queue is
                empty. None or 0 returns immediately.

        Returns:
            Number of tasks executed.
        """
        executed = 0
        block = bool(timeout)
        while True:
            try:
                task = self._queue.get(block=block, timeout=timeout if block else None)
            except queue.Empty:
                return executed
            block = False
            try:
                task()
            except Exception:
                logger.exception("Display task failed")
            executed += 1


def run_inline(task: Task) -> None:
    """Dispatcher that runs tasks immediately on the posting thread."""
    task()
