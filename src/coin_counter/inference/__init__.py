"""
Inference layer: the coin detector contract and its implementations.

Backends:
- yolo: trained model via Ultralytics (deployment)
- hough: classical circle detection via OpenCV (no model needed)
"""

from __future__ import annotations

from typing import Any, Dict

from .backend import Detector, DetectionError, DetectionTimeout, DetectorUnavailableError
from .cpu_backend import CpuYoloConfig, UltralyticsCoinDetector
from .dispatch import AsyncDetector
from .hough_backend import HoughCoinDetector, HoughDetectorConfig

DETECTOR_BACKENDS = ("yolo", "hough")


def create_detector_from_config(detection_cfg: Dict[str, Any]) -> Detector:
    """
    Factory: build the detector selected by ``detection.backend``.

    Raises:
        DetectorUnavailableError: If the backend is unknown or cannot be created.
    """
    backend = detection_cfg.get("backend", "yolo")
    label = detection_cfg.get("label", "coin")

    if backend == "yolo":
        ycfg = detection_cfg.get("yolo", {}) or {}
        return UltralyticsCoinDetector(
            CpuYoloConfig(
                model=ycfg.get("model", ""),
                conf_threshold=float(ycfg.get("conf_threshold", 0.25)),
                iou_threshold=float(ycfg.get("iou_threshold", 0.45)),
                imgsz=ycfg.get("imgsz"),
                classes=ycfg.get("classes"),
                label=label,
            )
        )

    if backend == "hough":
        hcfg = detection_cfg.get("hough", {}) or {}
        try:
            return HoughCoinDetector(
                HoughDetectorConfig(
                    min_radius=int(hcfg.get("min_radius", 10)),
                    max_radius=int(hcfg.get("max_radius", 80)),
                    min_dist=float(hcfg.get("min_dist", 20.0)),
                    param1=float(hcfg.get("param1", 100.0)),
                    param2=float(hcfg.get("param2", 40.0)),
                    dp=float(hcfg.get("dp", 1.2)),
                    blur_ksize=int(hcfg.get("blur_ksize", 9)),
                    label=label,
                )
            )
        except ValueError as e:
            raise DetectorUnavailableError(f"Invalid hough detector settings: {e}") from e

    raise DetectorUnavailableError(
        f"Unknown detection backend {backend!r}; expected one of {DETECTOR_BACKENDS}"
    )


__all__ = [
    "AsyncDetector",
    "CpuYoloConfig",
    "DETECTOR_BACKENDS",
    "DetectionError",
    "DetectionTimeout",
    "Detector",
    "DetectorUnavailableError",
    "HoughCoinDetector",
    "HoughDetectorConfig",
    "UltralyticsCoinDetector",
    "create_detector_from_config",
]
