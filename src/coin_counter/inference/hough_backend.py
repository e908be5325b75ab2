"""
Classical coin detector using the Hough circle transform.

Needs no model file, so it works on any machine with OpenCV. Coins are
round, which makes circle detection a reasonable stand-in for the trained
model during development.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

import cv2
import numpy as np

from coin_counter.models.detection import Detection, DetectionSet, NormalizedBox
from coin_counter.models.frame import FrameData
from .backend import DetectionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HoughDetectorConfig:
    min_radius: int = 10
    max_radius: int = 80
    min_dist: float = 20.0
    param1: float = 100.0
    param2: float = 40.0
    dp: float = 1.2
    blur_ksize: int = 9
    label: str = "coin"


class HoughCoinDetector:
    """Detect circular objects and report them as coins."""

    def __init__(self, cfg: HoughDetectorConfig):
        if cfg.blur_ksize < 1 or cfg.blur_ksize % 2 == 0:
            raise ValueError("blur_ksize must be a positive odd integer")
        if cfg.max_radius and cfg.max_radius < cfg.min_radius:
            raise ValueError("max_radius must be >= min_radius")
        self.cfg = cfg
        logger.info(
            f"Hough coin detector initialized: radius=[{cfg.min_radius}, {cfg.max_radius}]"
        )

    def detect(self, frame: FrameData) -> DetectionSet:
        try:
            gray = frame.as_gray()
        except ValueError as e:
            raise DetectionError(str(e)) from e

        blurred = cv2.medianBlur(gray, self.cfg.blur_ksize)
        try:
            circles = cv2.HoughCircles(
                blurred,
                cv2.HOUGH_GRADIENT,
                dp=self.cfg.dp,
                minDist=self.cfg.min_dist,
                param1=self.cfg.param1,
                param2=self.cfg.param2,
                minRadius=self.cfg.min_radius,
                maxRadius=self.cfg.max_radius,
            )
        except cv2.error as e:
            raise DetectionError(f"HoughCircles failed: {e}") from e

        detections = self._to_detections(circles, frame.width, frame.height)
        return DetectionSet.from_detections(detections, frame.size, frame.frame_index)

    def _to_detections(self, circles, width: int, height: int) -> List[Detection]:
        if circles is None or len(circles) == 0:
            return []

        out: List[Detection] = []
        for cx, cy, r in np.asarray(circles).reshape(-1, 3):
            box = NormalizedBox.from_xyxy_pixels(
                float(cx - r), float(cy - r), float(cx + r), float(cy + r), width, height
            )
            if box.width <= 0 or box.height <= 0:
                continue
            out.append(Detection(box=box, confidence=1.0, label=self.cfg.label))
        return out
