"""
Overlay models: display-space geometry derived from a DetectionSet.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

from .geometry import Rect


@dataclass(frozen=True)
class OverlayRect:
    """
    One box to draw on the display surface.

    Attributes:
        rect: Rectangle in display pixel coordinates.
        label: Class label of the detection.
        confidence: Detection confidence score (0-1).
    """
    rect: Rect
    label: str = "coin"
    confidence: float = 1.0


@dataclass(frozen=True)
class OverlayGeometry:
    """
    Everything the renderer needs for one redraw.

    Never persisted; recomputed whenever the detections or the viewport
    change.
    """
    rects: Tuple[OverlayRect, ...] = ()
    count: int = 0

    def __iter__(self) -> Iterator[OverlayRect]:
        return iter(self.rects)

    def __len__(self) -> int:
        return len(self.rects)

    @property
    def is_empty(self) -> bool:
        return not self.rects

    @classmethod
    def empty(cls) -> "OverlayGeometry":
        return cls()
