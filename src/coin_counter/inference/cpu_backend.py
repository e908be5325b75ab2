"""
YOLO coin detector on CPU.

Uses Ultralytics, which is an optional dependency: without it (or without
the model weights) the detector cannot be created, which is a setup-time
error.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from coin_counter.models.detection import Detection, DetectionSet, NormalizedBox
from coin_counter.models.frame import FrameData
from .backend import DetectionError, DetectorUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CpuYoloConfig:
    model: str
    conf_threshold: float = 0.25
    iou_threshold: float = 0.45
    imgsz: Optional[int] = None
    classes: Optional[Sequence[int]] = None
    label: Optional[str] = None


class UltralyticsCoinDetector:
    def __init__(self, cfg: CpuYoloConfig):
        self.cfg = cfg
        if not cfg.model:
            raise DetectorUnavailableError("detection.yolo.model is not set")
        if not os.path.exists(cfg.model):
            raise DetectorUnavailableError(f"Model weights not found: {cfg.model}")
        try:
            from ultralytics import YOLO  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise DetectorUnavailableError(
                "Ultralytics is not installed. Install with `pip install ultralytics` "
                "or switch detection.backend to 'hough'."
            ) from e

        try:
            self._model = YOLO(cfg.model)
        except Exception as e:
            raise DetectorUnavailableError(f"Failed to load model {cfg.model}: {e}") from e
        logger.info(f"YOLO coin detector loaded: model={cfg.model}")

    def detect(self, frame: FrameData) -> DetectionSet:
        try:
            image = frame.as_bgr()
        except ValueError as e:
            raise DetectionError(str(e)) from e

        kwargs = dict(
            source=image,
            conf=self.cfg.conf_threshold,
            iou=self.cfg.iou_threshold,
            classes=list(self.cfg.classes) if self.cfg.classes is not None else None,
            verbose=False,
        )
        if self.cfg.imgsz:
            kwargs["imgsz"] = self.cfg.imgsz

        try:
            results = self._model.predict(**kwargs)
        except Exception as e:
            raise DetectionError(f"YOLO inference failed: {e}") from e

        detections = self._parse(results, frame.width, frame.height)
        return DetectionSet.from_detections(detections, frame.size, frame.frame_index)

    def _parse(self, results, width: int, height: int) -> List[Detection]:
        if not results:
            return []

        r0 = results[0]
        names = getattr(r0, "names", None) or {}
        boxes = getattr(r0, "boxes", None)
        if boxes is None:
            return []

        xyxy = _as_numpy(boxes.xyxy)
        conf = _as_numpy(boxes.conf)
        cls = _as_numpy(boxes.cls)

        out: List[Detection] = []
        for (x1, y1, x2, y2), c, k in zip(xyxy, conf, cls):
            class_id = int(k)
            label = self.cfg.label or names.get(class_id) or str(class_id)
            out.append(
                Detection(
                    box=NormalizedBox.from_xyxy_pixels(
                        float(x1), float(y1), float(x2), float(y2), width, height
                    ),
                    confidence=float(c),
                    label=label,
                    class_id=class_id,
                )
            )
        return out


def _as_numpy(value) -> np.ndarray:
    return value.cpu().numpy() if hasattr(value, "cpu") else np.asarray(value)
