"""
FrameData model for captured video frames.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

DEFAULT_PIXEL_FORMAT = "bgr24"


@dataclass(frozen=True)
class FrameData:
    """
    Metadata and payload for a captured video frame.

    A FrameData is only borrowed by the pipeline for the duration of one
    detection submission; nothing keeps a reference to it afterwards.

    Attributes:
        frame: The raw frame data as a numpy array.
        width: Frame width in pixels.
        height: Frame height in pixels.
        timestamp: Unix timestamp when frame was captured.
        frame_index: Monotonically increasing frame number since start.
        source: Identifier for the camera/video source.
        pixel_format: Pixel layout of ``frame`` (e.g. "bgr24", "gray8").
    """
    frame: np.ndarray
    width: int
    height: int
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None
    pixel_format: str = DEFAULT_PIXEL_FORMAT

    @classmethod
    def from_numpy(
        cls,
        frame: np.ndarray,
        timestamp: float,
        frame_index: int = 0,
        source: Optional[str] = None,
        pixel_format: str = DEFAULT_PIXEL_FORMAT,
    ) -> "FrameData":
        """Create FrameData from a numpy array."""
        h, w = frame.shape[:2]
        return cls(
            frame=frame,
            width=w,
            height=h,
            timestamp=timestamp,
            frame_index=frame_index,
            source=source,
            pixel_format=pixel_format,
        )

    @property
    def shape(self) -> Tuple[int, ...]:
        """Return the array shape, e.g. (height, width, channels)."""
        return self.frame.shape

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    def as_bgr(self) -> np.ndarray:
        """Return the pixels as a 3-channel BGR array."""
        if self.pixel_format == "bgr24":
            return self.frame
        if self.pixel_format == "rgb24":
            return cv2.cvtColor(self.frame, cv2.COLOR_RGB2BGR)
        if self.pixel_format == "gray8":
            return cv2.cvtColor(self.frame, cv2.COLOR_GRAY2BGR)
        raise ValueError(f"Unsupported pixel format: {self.pixel_format}")

    def as_gray(self) -> np.ndarray:
        """Return the pixels as a single-channel array."""
        if self.pixel_format == "gray8":
            return self.frame
        if self.pixel_format == "rgb24":
            return cv2.cvtColor(self.frame, cv2.COLOR_RGB2GRAY)
        if self.pixel_format == "bgr24":
            return cv2.cvtColor(self.frame, cv2.COLOR_BGR2GRAY)
        raise ValueError(f"Unsupported pixel format: {self.pixel_format}")
