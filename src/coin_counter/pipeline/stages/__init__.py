"""
Pipeline stages for the coin counter.

Each stage handles a specific part of the processing pipeline:
- overlay: detections to display geometry and count label
- annotate: drawing the preview, boxes and label
"""

from .overlay import compute_overlay, format_count_label
from .annotate import OverlayRenderer

__all__ = ["compute_overlay", "format_count_label", "OverlayRenderer"]
