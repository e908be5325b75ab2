"""
Overlay stage: turn a DetectionSet into display-space geometry.
"""

from __future__ import annotations

from coin_counter.models.detection import DetectionSet
from coin_counter.models.geometry import ViewportTransform
from coin_counter.models.overlay import OverlayGeometry, OverlayRect


def compute_overlay(detection_set: DetectionSet, transform: ViewportTransform) -> OverlayGeometry:
    """
    Map every detection to a display rectangle.

    Each normalized box is scaled by the frame size the detections refer to,
    then passed through the viewport transform. Pure: the same inputs always
    give the same geometry.

    Args:
        detection_set: Result of one detector call.
        transform: Current frame-to-display transform.

    Returns:
        OverlayGeometry with one rect per detection; empty for an empty set.
    """
    frame_w, frame_h = detection_set.frame_size
    rects = tuple(
        OverlayRect(
            rect=transform.apply_rect(det.box.to_pixels(frame_w, frame_h)),
            label=det.label,
            confidence=det.confidence,
        )
        for det in detection_set
    )
    return OverlayGeometry(rects=rects, count=len(rects))


def format_count_label(count: int, noun: str = "Coins") -> str:
    """Text shown next to the boxes, e.g. "3 Coins"."""
    return f"{count} {noun}"
