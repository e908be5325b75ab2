"""
Screen geometry: rectangles and the frame-to-display viewport transform.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

VALID_ROTATIONS = (0, 90, 180, 270)

# Row-major 2x3 affine matrix: ((a, b, tx), (c, d, ty)).
Matrix = Tuple[Tuple[float, float, float], Tuple[float, float, float]]

_IDENTITY: Matrix = ((1.0, 0.0, 0.0), (0.0, 1.0, 0.0))

# Clockwise rotation in y-down screen coordinates.
_ROTATIONS = {
    0: ((1.0, 0.0), (0.0, 1.0)),
    90: ((0.0, -1.0), (1.0, 0.0)),
    180: ((-1.0, 0.0), (0.0, -1.0)),
    270: ((0.0, 1.0), (-1.0, 0.0)),
}


@dataclass(frozen=True)
class Rect:
    """
    An axis-aligned rectangle in pixel coordinates.

    Attributes:
        x: Left edge.
        y: Top edge.
        width: Width in pixels.
        height: Height in pixels.
    """
    x: float
    y: float
    width: float
    height: float

    @property
    def x2(self) -> float:
        return self.x + self.width

    @property
    def y2(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (x, y, width, height) tuple."""
        return (self.x, self.y, self.width, self.height)

    def as_int_tuple(self) -> Tuple[int, int, int, int]:
        """Return as rounded integer (x1, y1, x2, y2) tuple for drawing."""
        return (round(self.x), round(self.y), round(self.x2), round(self.y2))

    @classmethod
    def from_corners(cls, x1: float, y1: float, x2: float, y2: float) -> "Rect":
        left, right = min(x1, x2), max(x1, x2)
        top, bottom = min(y1, y2), max(y1, y2)
        return cls(x=left, y=top, width=right - left, height=bottom - top)


@dataclass(frozen=True)
class ViewportTransform:
    """
    Mapping from frame pixel space to display pixel space.

    The content is centred on the display and scaled uniformly by the larger
    of the two axis ratios, so the frame fills the display (aspect fill) with
    its aspect ratio preserved. Rotation is clockwise in multiples of 90
    degrees; ``mirror`` flips the frame vertically before rotating, for
    detectors that report boxes with a bottom-left origin.

    Use :meth:`fit` to build one and :meth:`identity` for the fallback.

    Attributes:
        frame_size: (width, height) of the frame.
        display_size: (width, height) of the display surface.
        rotation: Clockwise rotation in degrees.
        mirror: Whether the frame is flipped vertically.
        scale: Uniform scale factor.
        matrix: The resulting 2x3 affine matrix.
    """
    frame_size: Tuple[int, int]
    display_size: Tuple[int, int]
    rotation: int = 0
    mirror: bool = False
    scale: float = 1.0
    matrix: Matrix = _IDENTITY

    @classmethod
    def identity(
        cls,
        frame_size: Tuple[int, int] = (0, 0),
        display_size: Tuple[int, int] = (0, 0),
    ) -> "ViewportTransform":
        return cls(frame_size=tuple(frame_size), display_size=tuple(display_size))

    @classmethod
    def fit(
        cls,
        frame_size: Tuple[int, int],
        display_size: Tuple[int, int],
        rotation: int = 0,
        mirror: bool = False,
    ) -> "ViewportTransform":
        """
        Build the aspect-fill transform for a frame shown on a display.

        Args:
            frame_size: (width, height) of the frame in pixels.
            display_size: (width, height) of the display in pixels.
            rotation: Clockwise rotation in degrees (0, 90, 180, 270).
            mirror: Flip the frame vertically before rotating.

        Returns:
            The transform, or the identity transform when the scale factor
            would be zero, negative or non-finite.
        """
        rotation = int(rotation) % 360
        if rotation not in VALID_ROTATIONS:
            raise ValueError(f"rotation must be one of {VALID_ROTATIONS}, got {rotation}")

        frame_w, frame_h = (float(v) for v in frame_size)
        display_w, display_h = (float(v) for v in display_size)
        if rotation in (90, 270):
            rotated_w, rotated_h = frame_h, frame_w
        else:
            rotated_w, rotated_h = frame_w, frame_h

        scale = max(_ratio(display_w, rotated_w), _ratio(display_h, rotated_h))
        if not math.isfinite(scale) or scale <= 0.0:
            return cls.identity(frame_size, display_size)

        (r00, r01), (r10, r11) = _ROTATIONS[rotation]
        flip = -1.0 if mirror else 1.0
        # A = scale * R * diag(1, flip)
        a, b = scale * r00, scale * r01 * flip
        c, d = scale * r10, scale * r11 * flip
        fcx, fcy = frame_w / 2.0, frame_h / 2.0
        tx = display_w / 2.0 - (a * fcx + b * fcy)
        ty = display_h / 2.0 - (c * fcx + d * fcy)

        return cls(
            frame_size=tuple(frame_size),
            display_size=tuple(display_size),
            rotation=rotation,
            mirror=mirror,
            scale=scale,
            matrix=((a, b, tx), (c, d, ty)),
        )

    @property
    def is_identity(self) -> bool:
        return self.matrix == _IDENTITY

    def apply_point(self, x: float, y: float) -> Tuple[float, float]:
        (a, b, tx), (c, d, ty) = self.matrix
        return (a * x + b * y + tx, c * x + d * y + ty)

    def apply_rect(self, rect: Rect) -> Rect:
        """Map a frame-space rectangle to display space."""
        x1, y1 = self.apply_point(rect.x, rect.y)
        x2, y2 = self.apply_point(rect.x2, rect.y2)
        return Rect.from_corners(x1, y1, x2, y2)

    def affine_matrix(self) -> np.ndarray:
        """Return the transform as a 2x3 float32 array for cv2.warpAffine."""
        return np.array(self.matrix, dtype=np.float32)


def _ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0.0:
        return math.inf
    return numerator / denominator
