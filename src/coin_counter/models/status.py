"""
Runtime statistics for the detection pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class PipelineState(str, Enum):
    """Admission state of the detection pipeline."""
    IDLE = "idle"
    BUSY = "busy"


@dataclass
class PipelineStats:
    """
    Counters maintained by the detection pipeline.

    Attributes:
        frames_received: Frames offered via submit().
        accepted: Frames handed to the detector.
        dropped: Frames discarded because a request was in flight.
        completed: Successful detection results applied.
        failed: Detector errors (including timeouts).
        malformed: Results of the wrong type.
        timed_out: Requests abandoned after the deadline.
        stale: Late results for requests no longer in flight.
        viewport_changes: Display size changes applied.
        last_count: Count of the most recently applied DetectionSet.
    """
    frames_received: int = 0
    accepted: int = 0
    dropped: int = 0
    completed: int = 0
    failed: int = 0
    malformed: int = 0
    timed_out: int = 0
    stale: int = 0
    viewport_changes: int = 0
    last_count: int = 0

    @property
    def drop_ratio(self) -> float:
        if self.frames_received == 0:
            return 0.0
        return self.dropped / self.frames_received

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frames_received": self.frames_received,
            "accepted": self.accepted,
            "dropped": self.dropped,
            "completed": self.completed,
            "failed": self.failed,
            "malformed": self.malformed,
            "timed_out": self.timed_out,
            "stale": self.stale,
            "viewport_changes": self.viewport_changes,
            "last_count": self.last_count,
            "drop_ratio": round(self.drop_ratio, 4),
        }
