"""
Annotate stage: draw the preview and overlay onto a display canvas.
"""

from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np

from coin_counter.models.frame import FrameData
from coin_counter.models.geometry import ViewportTransform
from coin_counter.models.overlay import OverlayGeometry
from .overlay import format_count_label

# Colors (BGR)
COLOR_BOX = (0, 255, 255)  # Yellow
COLOR_TEXT = (255, 255, 255)
COLOR_TEXT_OUTLINE = (0, 0, 0)


class OverlayRenderer:
    """
    Renders one display canvas per call.

    Every call starts from a fresh canvas (the warped preview frame, or
    black), so boxes from an earlier DetectionSet can never be shown next to
    the current ones. There is no animation between states.

    Example:
        renderer = OverlayRenderer(label_noun="Coins")
        canvas = renderer.render(frame_data, overlay, transform, (480, 640))
        cv2.imshow("Coin Counter", canvas)
    """

    def __init__(
        self,
        label_noun: str = "Coins",
        color: Tuple[int, int, int] = COLOR_BOX,
        fill_alpha: float = 0.15,
        border_thickness: int = 2,
        corner_radius: int = 8,
    ):
        if not 0.0 <= fill_alpha <= 1.0:
            raise ValueError("fill_alpha must be between 0 and 1")
        self.label_noun = label_noun
        self.color = color
        self.fill_alpha = fill_alpha
        self.border_thickness = border_thickness
        self.corner_radius = corner_radius

    def render(
        self,
        frame: Optional[FrameData],
        overlay: OverlayGeometry,
        transform: ViewportTransform,
        display_size: Tuple[int, int],
    ) -> np.ndarray:
        """
        Build the display image.

        Args:
            frame: Latest preview frame, or None before the first frame.
            overlay: Geometry to draw, already in display coordinates.
            transform: Frame-to-display transform used for the preview.
            display_size: (width, height) of the canvas.

        Returns:
            BGR canvas of shape (height, width, 3).
        """
        width, height = max(int(display_size[0]), 1), max(int(display_size[1]), 1)
        canvas = self._preview(frame, transform, width, height)

        if not overlay.is_empty:
            self._draw_boxes(canvas, overlay)

        self._draw_label(canvas, format_count_label(overlay.count, self.label_noun))
        return canvas

    def _preview(
        self,
        frame: Optional[FrameData],
        transform: ViewportTransform,
        width: int,
        height: int,
    ) -> np.ndarray:
        if frame is None:
            return np.zeros((height, width, 3), dtype=np.uint8)
        return cv2.warpAffine(
            frame.as_bgr(),
            transform.affine_matrix(),
            (width, height),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=(0, 0, 0),
        )

    def _draw_boxes(self, canvas: np.ndarray, overlay: OverlayGeometry) -> None:
        if self.fill_alpha > 0:
            filled = canvas.copy()
            for item in overlay:
                _rounded_rect(filled, item.rect.as_int_tuple(), self.color, -1, self.corner_radius)
            canvas[:] = cv2.addWeighted(filled, self.fill_alpha, canvas, 1.0 - self.fill_alpha, 0)

        for item in overlay:
            _rounded_rect(
                canvas, item.rect.as_int_tuple(), self.color, self.border_thickness, self.corner_radius
            )

    def _draw_label(self, canvas: np.ndarray, text: str) -> None:
        """Outlined text so it reads on any background."""
        origin = (10, 30)
        font = cv2.FONT_HERSHEY_SIMPLEX
        cv2.putText(canvas, text, origin, font, 0.8, COLOR_TEXT_OUTLINE, 3, cv2.LINE_AA)
        cv2.putText(canvas, text, origin, font, 0.8, COLOR_TEXT, 1, cv2.LINE_AA)


def _rounded_rect(
    canvas: np.ndarray,
    corners: Tuple[int, int, int, int],
    color: Tuple[int, int, int],
    thickness: int,
    radius: int,
) -> None:
    """Draw a rectangle with rounded corners; negative thickness fills it."""
    x1, y1, x2, y2 = corners
    r = max(0, min(int(radius), (x2 - x1) // 2, (y2 - y1) // 2))
    if r == 0:
        cv2.rectangle(canvas, (x1, y1), (x2, y2), color, thickness, cv2.LINE_AA)
        return

    # (center, rotation) of each corner arc, clockwise from top-left
    arcs = (
        ((x1 + r, y1 + r), 180),
        ((x2 - r, y1 + r), 270),
        ((x2 - r, y2 - r), 0),
        ((x1 + r, y2 - r), 90),
    )
    if thickness < 0:
        cv2.rectangle(canvas, (x1 + r, y1), (x2 - r, y2), color, -1)
        cv2.rectangle(canvas, (x1, y1 + r), (x2, y2 - r), color, -1)
        for center, _ in arcs:
            cv2.circle(canvas, center, r, color, -1, cv2.LINE_AA)
        return

    cv2.line(canvas, (x1 + r, y1), (x2 - r, y1), color, thickness, cv2.LINE_AA)
    cv2.line(canvas, (x1 + r, y2), (x2 - r, y2), color, thickness, cv2.LINE_AA)
    cv2.line(canvas, (x1, y1 + r), (x1, y2 - r), color, thickness, cv2.LINE_AA)
    cv2.line(canvas, (x2, y1 + r), (x2, y2 - r), color, thickness, cv2.LINE_AA)
    for center, angle in arcs:
        cv2.ellipse(canvas, center, (r, r), angle, 0, 90, color, thickness, cv2.LINE_AA)
