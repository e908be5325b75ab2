"""
Single-slot admission control for the detector.
"""

from __future__ import annotations

import threading
import time
from typing import Optional


class AdmissionGate:
    """
    A lock-guarded flag allowing at most one request in flight.

    ``try_acquire`` is called from the frame-producing context and never
    blocks; a caller that loses simply drops its work. There is no queue.
    Request ids increase monotonically so that a late release for an
    abandoned request can be recognised and ignored.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._next_id = 0
        self._in_flight: Optional[int] = None
        self._started_at: Optional[float] = None

    @property
    def in_flight(self) -> Optional[int]:
        with self._lock:
            return self._in_flight

    @property
    def is_busy(self) -> bool:
        return self.in_flight is not None

    def try_acquire(self, now: Optional[float] = None) -> Optional[int]:
        """Take the slot. Returns the new request id, or None if busy."""
        with self._lock:
            if self._in_flight is not None:
                return None
            self._next_id += 1
            self._in_flight = self._next_id
            self._started_at = time.monotonic() if now is None else now
            return self._in_flight

    def release(self, request_id: int) -> bool:
        """Free the slot if ``request_id`` holds it. Returns False for stale ids."""
        with self._lock:
            if self._in_flight != request_id:
                return False
            self._in_flight = None
            self._started_at = None
            return True

    def expire(self, timeout: float, now: Optional[float] = None) -> Optional[int]:
        """
        Free the slot if the in-flight request is older than ``timeout`` seconds.

        Returns:
            The id of the expired request, or None.
        """
        with self._lock:
            if self._in_flight is None or self._started_at is None:
                return None
            now = time.monotonic() if now is None else now
            if now - self._started_at < timeout:
                return None
            expired = self._in_flight
            self._in_flight = None
            self._started_at = None
            return expired
