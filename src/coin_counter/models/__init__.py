"""
Typed models for the coin counter.
"""

from .frame import FrameData
from .geometry import Rect, ViewportTransform
from .detection import Detection, DetectionSet, NormalizedBox
from .overlay import OverlayGeometry, OverlayRect
from .status import PipelineState, PipelineStats
from .config import (
    Config,
    CameraConfig,
    DetectionConfig,
    DisplayConfig,
    HoughConfig,
    PipelineSettings,
    YoloConfig,
)

__all__ = [
    # Frame
    "FrameData",
    # Geometry
    "Rect",
    "ViewportTransform",
    # Detection
    "Detection",
    "DetectionSet",
    "NormalizedBox",
    # Overlay
    "OverlayGeometry",
    "OverlayRect",
    # Status
    "PipelineState",
    "PipelineStats",
    # Config
    "Config",
    "CameraConfig",
    "DetectionConfig",
    "DisplayConfig",
    "HoughConfig",
    "PipelineSettings",
    "YoloConfig",
]
