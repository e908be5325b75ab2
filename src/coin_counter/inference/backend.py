"""
Detector interface.

A detector maps one frame to a DetectionSet whose boxes are normalized to
that frame. The contract is a single synchronous call; asynchrony is added
by AsyncDetector. Any implementation honouring it can be swapped in.
"""

from __future__ import annotations

from typing import Protocol

from coin_counter.models.detection import DetectionSet
from coin_counter.models.frame import FrameData


class DetectorUnavailableError(RuntimeError):
    """The detector or its model could not be created. Fatal at startup."""


class DetectionError(RuntimeError):
    """A single detection call failed. The pipeline logs it and moves on."""


class DetectionTimeout(DetectionError):
    """A detection call did not finish before its deadline."""


class Detector(Protocol):
    def detect(self, frame: FrameData) -> DetectionSet:
        ...
