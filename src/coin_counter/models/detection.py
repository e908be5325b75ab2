"""
Detection models for object detection results.

Boxes produced by detectors are normalized to the frame they came from:
(x, y) is the top-left corner and every component lies in [0, 1].
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional, Tuple

from .geometry import Rect

# Detectors that round to pixel boundaries can overshoot [0, 1] slightly.
_EPSILON = 1e-6


@dataclass(frozen=True)
class NormalizedBox:
    """
    A bounding box relative to the frame dimensions.

    Attributes:
        x: Left edge as a fraction of frame width.
        y: Top edge as a fraction of frame height.
        width: Box width as a fraction of frame width.
        height: Box height as a fraction of frame height.
    """
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if not (-_EPSILON <= value <= 1.0 + _EPSILON):
                raise ValueError(f"{name}={value} outside [0, 1]")
        if self.x + self.width > 1.0 + _EPSILON:
            raise ValueError(f"x + width = {self.x + self.width} exceeds 1")
        if self.y + self.height > 1.0 + _EPSILON:
            raise ValueError(f"y + height = {self.y + self.height} exceeds 1")

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    def to_pixels(self, frame_width: int, frame_height: int) -> Rect:
        """Map into pixel coordinates of a frame of the given size."""
        return Rect(
            x=self.x * frame_width,
            y=self.y * frame_height,
            width=self.width * frame_width,
            height=self.height * frame_height,
        )

    @classmethod
    def from_xyxy_pixels(
        cls,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        frame_width: int,
        frame_height: int,
    ) -> "NormalizedBox":
        """
        Adapter: build from pixel corners, clamping to the frame.

        Args:
            x1, y1, x2, y2: Corner coordinates in pixels.
            frame_width: Width of the frame the corners refer to.
            frame_height: Height of the frame the corners refer to.
        """
        if frame_width <= 0 or frame_height <= 0:
            raise ValueError(f"Invalid frame size {frame_width}x{frame_height}")
        left = min(max(min(x1, x2), 0.0), float(frame_width))
        right = min(max(max(x1, x2), 0.0), float(frame_width))
        top = min(max(min(y1, y2), 0.0), float(frame_height))
        bottom = min(max(max(y1, y2), 0.0), float(frame_height))
        return cls(
            x=left / frame_width,
            y=top / frame_height,
            width=(right - left) / frame_width,
            height=(bottom - top) / frame_height,
        )


@dataclass(frozen=True)
class Detection:
    """
    A single detected object.

    Attributes:
        box: Normalized bounding box.
        confidence: Detection confidence score (0-1).
        label: Human-readable class label.
        class_id: Optional class ID from the detector.
    """
    box: NormalizedBox
    confidence: float = 1.0
    label: str = "coin"
    class_id: Optional[int] = None


@dataclass(frozen=True)
class DetectionSet:
    """
    The complete result of one detector call.

    A DetectionSet replaces its predecessor wholesale; there is no merging
    and no identity carried between frames.

    Attributes:
        detections: Detections found in the frame.
        frame_size: (width, height) of the frame the boxes are relative to.
        frame_index: Index of the source frame.
        timestamp: Time the result was produced.
    """
    detections: Tuple[Detection, ...] = ()
    frame_size: Tuple[int, int] = (0, 0)
    frame_index: int = 0
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        # Accept any iterable but store an immutable tuple.
        if not isinstance(self.detections, tuple):
            object.__setattr__(self, "detections", tuple(self.detections))
        for det in self.detections:
            if not isinstance(det, Detection):
                raise TypeError(f"DetectionSet items must be Detection, got {type(det).__name__}")

    @property
    def count(self) -> int:
        return len(self.detections)

    def __len__(self) -> int:
        return len(self.detections)

    def __iter__(self) -> Iterator[Detection]:
        return iter(self.detections)

    @classmethod
    def empty(cls, frame_size: Tuple[int, int] = (0, 0), frame_index: int = 0) -> "DetectionSet":
        return cls(detections=(), frame_size=frame_size, frame_index=frame_index)

    @classmethod
    def from_detections(
        cls,
        detections: Iterable[Detection],
        frame_size: Tuple[int, int],
        frame_index: int = 0,
    ) -> "DetectionSet":
        return cls(detections=tuple(detections), frame_size=frame_size, frame_index=frame_index)
