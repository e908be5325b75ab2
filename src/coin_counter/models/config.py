"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    device_id: Union[int, str] = 0
    secrets_file: Optional[str] = None
    resolution: List[int] = field(default_factory=lambda: [640, 480])
    fps: int = 30
    pixel_format: str = "bgr24"
    buffer_size: int = 1
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            device_id=d.get("device_id", 0),
            secrets_file=d.get("secrets_file"),
            resolution=d.get("resolution", [640, 480]),
            fps=d.get("fps", 30),
            pixel_format=d.get("pixel_format", "bgr24"),
            buffer_size=d.get("buffer_size", 1),
            swap_rb=d.get("swap_rb", False),
            rotate=d.get("rotate", 0),
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "device_id": self.device_id,
            "secrets_file": self.secrets_file,
            "resolution": self.resolution,
            "fps": self.fps,
            "pixel_format": self.pixel_format,
            "buffer_size": self.buffer_size,
            "swap_rb": self.swap_rb,
            "rotate": self.rotate,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
        }


@dataclass
class YoloConfig:
    """YOLO coin detector configuration."""
    model: str = ""
    conf_threshold: float = 0.25
    iou_threshold: float = 0.45
    imgsz: Optional[int] = None
    classes: Optional[List[int]] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "YoloConfig":
        return cls(
            model=d.get("model", ""),
            conf_threshold=d.get("conf_threshold", 0.25),
            iou_threshold=d.get("iou_threshold", 0.45),
            imgsz=d.get("imgsz"),
            classes=d.get("classes"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "model": self.model,
            "conf_threshold": self.conf_threshold,
            "iou_threshold": self.iou_threshold,
        }
        if self.imgsz is not None:
            d["imgsz"] = self.imgsz
        if self.classes is not None:
            d["classes"] = self.classes
        return d


@dataclass
class HoughConfig:
    """Hough circle detector configuration (pixel units at frame resolution)."""
    min_radius: int = 10
    max_radius: int = 80
    min_dist: float = 20.0
    param1: float = 100.0
    param2: float = 40.0
    dp: float = 1.2
    blur_ksize: int = 9

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "HoughConfig":
        return cls(
            min_radius=d.get("min_radius", 10),
            max_radius=d.get("max_radius", 80),
            min_dist=d.get("min_dist", 20.0),
            param1=d.get("param1", 100.0),
            param2=d.get("param2", 40.0),
            dp=d.get("dp", 1.2),
            blur_ksize=d.get("blur_ksize", 9),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_radius": self.min_radius,
            "max_radius": self.max_radius,
            "min_dist": self.min_dist,
            "param1": self.param1,
            "param2": self.param2,
            "dp": self.dp,
            "blur_ksize": self.blur_ksize,
        }


@dataclass
class DetectionConfig:
    """Detection configuration."""
    backend: str = "yolo"
    timeout_seconds: float = 2.0
    label: str = "coin"
    yolo: Optional[YoloConfig] = None
    hough: Optional[HoughConfig] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        yolo_dict = d.get("yolo")
        hough_dict = d.get("hough")
        return cls(
            backend=d.get("backend", "yolo"),
            timeout_seconds=d.get("timeout_seconds", 2.0),
            label=d.get("label", "coin"),
            yolo=YoloConfig.from_dict(yolo_dict) if yolo_dict else None,
            hough=HoughConfig.from_dict(hough_dict) if hough_dict else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "backend": self.backend,
            "timeout_seconds": self.timeout_seconds,
            "label": self.label,
        }
        if self.yolo:
            d["yolo"] = self.yolo.to_dict()
        if self.hough:
            d["hough"] = self.hough.to_dict()
        return d


@dataclass
class DisplayConfig:
    """Display surface configuration."""
    window_name: str = "Coin Counter"
    size: List[int] = field(default_factory=lambda: [480, 640])
    rotation: int = 0
    mirror: bool = False
    label_noun: str = "Coins"
    headless: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DisplayConfig":
        return cls(
            window_name=d.get("window_name", "Coin Counter"),
            size=d.get("size", [480, 640]),
            rotation=d.get("rotation", 0),
            mirror=d.get("mirror", False),
            label_noun=d.get("label_noun", "Coins"),
            headless=d.get("headless", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window_name": self.window_name,
            "size": self.size,
            "rotation": self.rotation,
            "mirror": self.mirror,
            "label_noun": self.label_noun,
            "headless": self.headless,
        }


@dataclass
class PipelineSettings:
    """Engine loop settings."""
    max_consecutive_failures: int = 10
    stats_log_interval: float = 60.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineSettings":
        return cls(
            max_consecutive_failures=d.get("max_consecutive_failures", 10),
            stats_log_interval=d.get("stats_log_interval", 60.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_consecutive_failures": self.max_consecutive_failures,
            "stats_log_interval": self.stats_log_interval,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    log_path: str = "logs/coin_counter.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            detection=DetectionConfig.from_dict(d.get("detection", {}) or {}),
            display=DisplayConfig.from_dict(d.get("display", {}) or {}),
            pipeline=PipelineSettings.from_dict(d.get("pipeline", {}) or {}),
            log_path=d.get("log_path", "logs/coin_counter.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary."""
        return {
            "camera": self.camera.to_dict(),
            "detection": self.detection.to_dict(),
            "display": self.display.to_dict(),
            "pipeline": self.pipeline.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
