"""
Detection pipeline: bridges a fast frame stream to a slow detector.

Two execution contexts meet here:

- the frame-producing context calls ``submit()`` for every frame;
- the display context owns all display state and runs every other method.

Detector completions arrive on the detector's worker thread and are posted
to the display context through the ``dispatch`` callable before anything
is mutated.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from functools import partial
from typing import Any, Callable, List, Optional, Tuple

from coin_counter.inference.backend import DetectionError, DetectionTimeout
from coin_counter.models.detection import DetectionSet
from coin_counter.models.frame import FrameData
from coin_counter.models.geometry import ViewportTransform
from coin_counter.models.overlay import OverlayGeometry
from coin_counter.models.status import PipelineState, PipelineStats
from .admission import AdmissionGate
from .dispatch import Task, run_inline
from .stages.overlay import compute_overlay

logger = logging.getLogger(__name__)

OverlayListener = Callable[[OverlayGeometry], None]


class DetectionPipeline:
    """
    Admission control plus result handling for one detector.

    States are Idle and Busy. ``submit`` moves Idle -> Busy and hands the
    frame to the detector; frames arriving while Busy are dropped, never
    queued. The detector result (success or failure) moves Busy -> Idle. A
    request that exceeds ``timeout_seconds`` is treated as a failed
    detection and any late result for it is discarded.

    Example:
        queue = DisplayQueue()
        pipeline = DetectionPipeline(AsyncDetector(detector), (480, 640), dispatch=queue.post)
        pipeline.add_listener(on_overlay)

        # capture thread
        pipeline.submit(frame_data)

        # display thread
        queue.drain()
        pipeline.check_timeout()
    """

    def __init__(
        self,
        detector: Any,
        display_size: Tuple[int, int],
        frame_size: Optional[Tuple[int, int]] = None,
        rotation: int = 0,
        mirror: bool = False,
        timeout_seconds: float = 2.0,
        dispatch: Callable[[Task], None] = run_inline,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            detector: Object with ``submit(frame, callback)``, e.g. AsyncDetector.
            display_size: Initial (width, height) of the display surface.
            frame_size: (width, height) of incoming frames, if known up front.
            rotation: Clockwise rotation of the frame on the display.
            mirror: Flip the frame vertically before rotating.
            timeout_seconds: Deadline per detection; 0 disables it.
            dispatch: Marshals a callable onto the display context.
            clock: Monotonic time source.
        """
        self._detector = detector
        self._dispatch = dispatch
        self._clock = clock
        self._timeout = float(timeout_seconds)
        self._rotation = rotation
        self._mirror = mirror
        self._gate = AdmissionGate()
        self._listeners: List[OverlayListener] = []
        self.stats = PipelineStats()

        # Display-context state
        self._display_size: Tuple[int, int] = tuple(display_size)
        self._frame_size: Tuple[int, int] = tuple(frame_size) if frame_size else (0, 0)
        self._transform = self._fit()
        self._detection_set: Optional[DetectionSet] = None
        self._overlay = OverlayGeometry.empty()

    # -- read-only views ---------------------------------------------------

    @property
    def state(self) -> PipelineState:
        return PipelineState.BUSY if self._gate.is_busy else PipelineState.IDLE

    @property
    def is_busy(self) -> bool:
        return self._gate.is_busy

    @property
    def detection_set(self) -> Optional[DetectionSet]:
        return self._detection_set

    @property
    def overlay(self) -> OverlayGeometry:
        return self._overlay

    @property
    def count(self) -> int:
        return self._overlay.count

    @property
    def transform(self) -> ViewportTransform:
        return self._transform

    @property
    def display_size(self) -> Tuple[int, int]:
        return self._display_size

    def add_listener(self, listener: OverlayListener) -> None:
        """
        Register a callback run on the display context whenever the overlay changes.

        Args:
            listener: Function taking the new OverlayGeometry.
        """
        self._listeners.append(listener)

    # -- frame-producing context -------------------------------------------

    def submit(self, frame: FrameData) -> bool:
        """
        Offer a frame for detection.

        Returns:
            True if the frame was handed to the detector, False if dropped.
        """
        self.stats.frames_received += 1
        request_id = self._gate.try_acquire(self._clock())
        if request_id is None:
            self.stats.dropped += 1
            logger.debug(f"Frame {frame.frame_index} dropped: detection in flight")
            return False

        self.stats.accepted += 1
        try:
            self._detector.submit(frame, partial(self._on_detector_done, request_id, frame.size))
        except Exception as e:
            self._on_detector_done(request_id, frame.size, DetectionError(f"Submit failed: {e}"))
        return True

    def _on_detector_done(self, request_id: int, frame_size: Tuple[int, int], outcome: Any) -> None:
        # Runs on the detector's thread: hand off, touch nothing.
        self._dispatch(partial(self.on_detection_result, request_id, outcome, frame_size))

    # -- display context ---------------------------------------------------

    def on_detection_result(
        self,
        request_id: int,
        outcome: Any,
        frame_size: Optional[Tuple[int, int]] = None,
    ) -> None:
        """
        Apply one detector outcome.

        Args:
            request_id: Id assigned when the frame was accepted.
            outcome: A DetectionSet on success, an exception on failure.
                Anything else, or a DetectionSet whose contents cannot be
                mapped to the display, is a malformed result.
            frame_size: (width, height) of the submitted frame. Takes
                precedence over the size reported in the DetectionSet.
        """
        if not self._gate.release(request_id):
            self.stats.stale += 1
            logger.debug(f"Discarding result of abandoned request {request_id}")
            return

        if isinstance(outcome, BaseException):
            self.stats.failed += 1
            logger.warning(f"Detection error (request {request_id}): {outcome}")
            return

        if not isinstance(outcome, DetectionSet):
            self.stats.malformed += 1
            logger.warning(
                f"Detector produced the wrong result type: {type(outcome).__name__}"
            )
            return

        try:
            if frame_size is not None and tuple(frame_size) != outcome.frame_size:
                # Boxes are relative to the frame that was submitted
                outcome = replace(outcome, frame_size=tuple(frame_size))
            transform = self._transform
            if outcome.frame_size != self._frame_size:
                transform = self._fit(outcome.frame_size)
            overlay = compute_overlay(outcome, transform)
        except Exception as e:
            self.stats.malformed += 1
            logger.warning(f"Detector produced a malformed DetectionSet: {e}")
            return

        self.stats.completed += 1
        self._detection_set = outcome
        self._frame_size = outcome.frame_size
        self._transform = transform
        self._apply_overlay(overlay)

    def check_timeout(self, now: Optional[float] = None) -> bool:
        """
        Abandon the in-flight request if it has exceeded the deadline.

        Returns:
            True if a request timed out.
        """
        if self._timeout <= 0:
            return False
        expired = self._gate.expire(self._timeout, self._clock() if now is None else now)
        if expired is None:
            return False
        self.stats.timed_out += 1
        self.stats.failed += 1
        error = DetectionTimeout(f"request {expired} exceeded {self._timeout:.2f}s")
        logger.warning(f"Detection error: {error}")
        return True

    def on_viewport_change(self, display_size: Tuple[int, int]) -> None:
        """Recompute the transform and re-derive the overlay without a new detection."""
        display_size = tuple(display_size)
        if display_size == self._display_size:
            return
        self._display_size = display_size
        self._transform = self._fit()
        self.stats.viewport_changes += 1
        logger.debug(f"Viewport changed to {display_size[0]}x{display_size[1]}")
        if self._detection_set is not None:
            self._refresh_overlay()

    def on_frame_size(self, frame_size: Tuple[int, int]) -> None:
        """Adopt the source resolution before the first detection arrives."""
        frame_size = tuple(frame_size)
        if frame_size == self._frame_size or self._detection_set is not None:
            return
        self._frame_size = frame_size
        self._transform = self._fit()

    def _fit(self, frame_size: Optional[Tuple[int, int]] = None) -> ViewportTransform:
        return ViewportTransform.fit(
            self._frame_size if frame_size is None else frame_size,
            self._display_size,
            rotation=self._rotation,
            mirror=self._mirror,
        )

    def _refresh_overlay(self) -> None:
        self._apply_overlay(compute_overlay(self._detection_set, self._transform))

    def _apply_overlay(self, overlay: OverlayGeometry) -> None:
        self.stats.last_count = overlay.count
        if overlay == self._overlay:
            return
        self._overlay = overlay
        for listener in self._listeners:
            try:
                listener(overlay)
            except Exception as e:
                logger.warning(f"Overlay listener error: {e}")
