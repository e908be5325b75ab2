"""
Asynchronous wrapper around a synchronous Detector.

Detection runs on a single worker thread so the frame-producing context is
never blocked. The completion callback is invoked on the worker thread with
either the detector's return value or the exception it raised; callers are
responsible for marshaling it onto their own context.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from coin_counter.models.frame import FrameData
from .backend import DetectionError, Detector

logger = logging.getLogger(__name__)

# Receives the DetectionSet (or whatever the detector returned) or an exception.
CompletionCallback = Callable[[Any], None]


class AsyncDetector:
    """
    Runs ``detector.detect`` on one worker thread.

    With a single worker at most one ``detect`` call executes at a time. If a
    call is submitted while an earlier one has not started yet (possible only
    after the caller gave up on a hung request), the earlier one is cancelled
    so the backlog never exceeds one call.
    """

    def __init__(self, detector: Detector, name: str = "detector"):
        self._detector = detector
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._pending: Optional[Future] = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def detector(self) -> Detector:
        return self._detector

    def submit(self, frame: FrameData, callback: CompletionCallback) -> Future:
        """
        Start detection for one frame.

        Args:
            frame: Frame to analyze; only referenced until detect() returns.
            callback: Called exactly once with the result or the exception.

        Raises:
            DetectionError: If the detector has been shut down.
        """
        with self._lock:
            if self._closed:
                raise DetectionError("Detector has been shut down")
            if self._pending is not None and self._pending.cancel():
                logger.debug("Cancelled queued detection that never started")
            future = self._executor.submit(self._detector.detect, frame)
            self._pending = future

        future.add_done_callback(lambda f: callback(_outcome(f)))
        return future

    def shutdown(self, wait: bool = False) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=True)


def _outcome(future: Future) -> Any:
    try:
        return future.result()
    except CancelledError:
        return DetectionError("Detection cancelled before it started")
    except Exception as e:
        return e
