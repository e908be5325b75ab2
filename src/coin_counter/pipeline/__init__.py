"""
Pipeline module for the coin counter.

The pipeline orchestrates the full processing flow:
- Frame acquisition from observation sources
- Admission control and asynchronous detection
- Overlay geometry and count
- Rendering to the display surface
"""

from .admission import AdmissionGate
from .dispatch import DisplayQueue, run_inline
from .detection import DetectionPipeline
from .engine import EngineConfig, PipelineEngine, create_engine_from_config
from .stages import OverlayRenderer, compute_overlay, format_count_label

__all__ = [
    "AdmissionGate",
    "DisplayQueue",
    "run_inline",
    "DetectionPipeline",
    "EngineConfig",
    "PipelineEngine",
    "create_engine_from_config",
    "OverlayRenderer",
    "compute_overlay",
    "format_count_label",
]
