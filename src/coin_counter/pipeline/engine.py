"""
Pipeline engine for the coin counter.

Wires the observation source, detection pipeline and renderer together and
runs the two execution contexts:

- a capture thread that reads frames and submits them to the pipeline;
- the display loop on the calling thread, which applies detector results,
  enforces the detection deadline, tracks the window size and redraws.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import cv2
import numpy as np

from coin_counter.inference import AsyncDetector, create_detector_from_config
from coin_counter.models.frame import FrameData
from coin_counter.models.overlay import OverlayGeometry
from coin_counter.observation import ObservationSource, create_source_from_config
from .detection import DetectionPipeline
from .dispatch import DisplayQueue
from .stages.annotate import OverlayRenderer

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        display_size: Initial (width, height) of the display surface.
        window_name: Title of the cv2 window.
        headless: Render without opening a window.
        max_consecutive_failures: Max frame read failures before stopping.
        retry_delay: Seconds to wait after a failed frame read.
        stats_log_interval: Seconds between status log messages.
        poll_interval: Max seconds the display loop waits for work.
    """
    display_size: Tuple[int, int] = (480, 640)
    window_name: str = "Coin Counter"
    headless: bool = False
    max_consecutive_failures: int = 10
    retry_delay: float = 0.5
    stats_log_interval: float = 60.0
    poll_interval: float = 0.01


@dataclass
class EngineStats:
    """Runtime statistics for the engine loop."""
    frames_read: int = 0
    frames_rendered: int = 0
    consecutive_failures: int = 0
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)


class LatestFrame:
    """Single-slot mailbox: a newer frame replaces an unread older one."""

    def __init__(self):
        self._lock = threading.Lock()
        self._frame: Optional[FrameData] = None

    def put(self, frame: FrameData) -> None:
        with self._lock:
            self._frame = frame

    def take(self) -> Optional[FrameData]:
        with self._lock:
            frame, self._frame = self._frame, None
            return frame


class PipelineEngine:
    """
    Main processing engine.

    Example:
        source = OpenCVSource(OpenCVSourceConfig(device_id=0))
        queue = DisplayQueue()
        pipeline = DetectionPipeline(AsyncDetector(detector), (480, 640), dispatch=queue.post)
        engine = PipelineEngine(source, pipeline, OverlayRenderer(), queue, EngineConfig())
        engine.run()
    """

    def __init__(
        self,
        source: ObservationSource,
        pipeline: DetectionPipeline,
        renderer: OverlayRenderer,
        display_queue: DisplayQueue,
        config: EngineConfig,
        detector: Optional[AsyncDetector] = None,
    ):
        self.source = source
        self.pipeline = pipeline
        self.renderer = renderer
        self.display_queue = display_queue
        self.config = config
        self.stats = EngineStats()
        self.last_canvas: Optional[np.ndarray] = None
        self._detector = detector
        self._latest = LatestFrame()
        self._preview: Optional[FrameData] = None
        self._running = False
        self._capture_done = threading.Event()
        self._capture_thread: Optional[threading.Thread] = None
        self._window_open = False
        self._callbacks: List[Callable[[np.ndarray, OverlayGeometry], None]] = []

    def add_callback(self, callback: Callable[[np.ndarray, OverlayGeometry], None]) -> None:
        """
        Add a callback to be called after each redraw.

        Args:
            callback: Function taking (canvas, overlay) as arguments.
        """
        self._callbacks.append(callback)

    def run(self) -> None:
        """
        Run until stopped, the user presses 'q', or the source is exhausted.

        Raises:
            RuntimeError: If the observation source cannot be opened.
        """
        self.source.open()
        self._running = True
        self._capture_done.clear()
        self.stats = EngineStats()
        logger.info(f"Pipeline started: source={self.source.source_id}")

        try:
            self._open_window()
            self._capture_thread = threading.Thread(
                target=self._capture_loop, name="capture", daemon=True
            )
            self._capture_thread.start()

            while self._running:
                self.display_queue.drain(timeout=self.config.poll_interval)
                self.pipeline.check_timeout()
                self._poll_viewport()

                frame = self._latest.take()
                if frame is not None:
                    self._preview = frame
                    self.pipeline.on_frame_size(frame.size)
                    if not self._redraw():
                        break

                self._handle_periodic_tasks()

                if self._capture_done.is_set() and self._is_settled():
                    # Source exhausted: show the final result once more
                    self._preview = self._latest.take() or self._preview
                    self._redraw()
                    break
        except KeyboardInterrupt:
            logger.info("Pipeline interrupted by user")
        finally:
            self._cleanup()

    def stop(self) -> None:
        """Signal both contexts to stop."""
        self._running = False

    def _capture_loop(self) -> None:
        try:
            while self._running:
                frame_data = self.source.read()

                if frame_data is None:
                    self.stats.consecutive_failures += 1
                    if self.stats.consecutive_failures >= self.config.max_consecutive_failures:
                        logger.error(
                            f"Too many consecutive failures ({self.stats.consecutive_failures}), stopping"
                        )
                        break
                    logger.warning(
                        f"Frame read failed ({self.stats.consecutive_failures}/"
                        f"{self.config.max_consecutive_failures})"
                    )
                    time.sleep(self.config.retry_delay)
                    continue

                self.stats.consecutive_failures = 0
                self.stats.frames_read += 1
                self._latest.put(frame_data)
                self.pipeline.submit(frame_data)
        except Exception:
            logger.exception("Capture loop failed")
        finally:
            self._capture_done.set()

    def _is_settled(self) -> bool:
        return not self.pipeline.is_busy and self.display_queue.pending == 0

    def _redraw(self) -> bool:
        """
        Render and show the current state.

        Returns False if user pressed 'q' to quit.
        """
        overlay = self.pipeline.overlay
        canvas = self.renderer.render(
            self._preview, overlay, self.pipeline.transform, self.pipeline.display_size
        )
        self.last_canvas = canvas
        self.stats.frames_rendered += 1

        for callback in self._callbacks:
            try:
                callback(canvas, overlay)
            except Exception as e:
                logger.warning(f"Callback error: {e}")

        if self.config.headless:
            return True
        cv2.imshow(self.config.window_name, canvas)
        key = cv2.waitKey(1) & 0xFF
        return key != ord('q')

    def _open_window(self) -> None:
        if self.config.headless:
            return
        width, height = self.config.display_size
        cv2.namedWindow(self.config.window_name, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(self.config.window_name, width, height)
        self._window_open = True

    def _poll_viewport(self) -> None:
        """Feed window resizes (including rotation) to the pipeline."""
        if not self._window_open:
            return
        try:
            _, _, width, height = cv2.getWindowImageRect(self.config.window_name)
        except cv2.error:
            return
        if width > 0 and height > 0:
            self.pipeline.on_viewport_change((width, height))

    def _handle_periodic_tasks(self) -> None:
        now = time.time()
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            logger.info(
                f"Pipeline stats: frames={self.stats.frames_read}, "
                f"rendered={self.stats.frames_rendered}, "
                f"detector={self.pipeline.stats.to_dict()}"
            )
            self.stats.last_stats_log_time = now

    def _cleanup(self) -> None:
        self._running = False

        if self._capture_thread is not None:
            self._capture_thread.join(timeout=2.0)

        try:
            self.source.close()
        except Exception as e:
            logger.warning(f"Error closing source: {e}")

        if self._detector is not None:
            self._detector.shutdown(wait=False)

        if self._window_open:
            cv2.destroyWindow(self.config.window_name)
            self._window_open = False

        logger.info(
            f"Pipeline stopped: frames={self.stats.frames_read}, "
            f"count={self.pipeline.count}, detector={self.pipeline.stats.to_dict()}"
        )


def create_engine_from_config(
    config: Dict[str, Any],
    headless: Optional[bool] = None,
) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from the config dict.

    Args:
        config: Full application config dict.
        headless: Override display.headless.

    Raises:
        DetectorUnavailableError: If the detector cannot be created.
        ValueError: If the camera backend is not supported.
    """
    camera_cfg = config.get("camera", {}) or {}
    detection_cfg = config.get("detection", {}) or {}
    display_cfg = config.get("display", {}) or {}
    pipeline_cfg = config.get("pipeline", {}) or {}

    source = create_source_from_config(camera_cfg, source_id="main-camera")
    detector = AsyncDetector(create_detector_from_config(detection_cfg))

    display_size = tuple(display_cfg.get("size", [480, 640]))
    resolution = camera_cfg.get("resolution")
    display_queue = DisplayQueue()
    pipeline = DetectionPipeline(
        detector,
        display_size=display_size,
        frame_size=tuple(resolution) if resolution else None,
        rotation=display_cfg.get("rotation", 0),
        mirror=display_cfg.get("mirror", False),
        timeout_seconds=detection_cfg.get("timeout_seconds", 2.0),
        dispatch=display_queue.post,
    )
    renderer = OverlayRenderer(label_noun=display_cfg.get("label_noun", "Coins"))

    engine_config = EngineConfig(
        display_size=display_size,
        window_name=display_cfg.get("window_name", "Coin Counter"),
        headless=display_cfg.get("headless", False) if headless is None else headless,
        max_consecutive_failures=pipeline_cfg.get("max_consecutive_failures", 10),
        stats_log_interval=pipeline_cfg.get("stats_log_interval", 60.0),
    )
    return PipelineEngine(source, pipeline, renderer, display_queue, engine_config, detector=detector)
