"""
Tests for the pipeline engine.
"""

import time

import numpy as np
import pytest

from coin_counter.inference.dispatch import AsyncDetector
from coin_counter.models.detection import Detection, DetectionSet, NormalizedBox
from coin_counter.models.frame import FrameData
from coin_counter.observation.base import ObservationConfig, ObservationSource
from coin_counter.pipeline.detection import DetectionPipeline
from coin_counter.pipeline.dispatch import DisplayQueue
from coin_counter.pipeline.engine import (
    EngineConfig,
    LatestFrame,
    PipelineEngine,
    create_engine_from_config,
)
from coin_counter.pipeline.stages.annotate import OverlayRenderer


class MockObservationSource(ObservationSource):
    """Mock source for testing."""

    def __init__(self, config: ObservationConfig, frames: list = None, max_frames: int = 10):
        super().__init__(config)
        self._frames = frames
        self._max_frames = max_frames
        self._pos = 0
        self.closed = False

    def open(self) -> None:
        self._is_open = True
        self._pos = 0
        self._frame_index = 0

    def read(self):
        if not self._is_open:
            return None

        if self._frames is not None:
            if self._pos >= len(self._frames):
                return None
            frame = self._frames[self._pos]
        else:
            if self._pos >= self._max_frames:
                return None
            frame = np.zeros((480, 640, 3), dtype=np.uint8)

        self._pos += 1
        self._frame_index += 1

        return FrameData.from_numpy(
            frame,
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        self._is_open = False
        self.closed = True


class BrokenSource(MockObservationSource):
    def open(self) -> None:
        raise RuntimeError("Failed to open device 0 after 3 attempts")


class MockDetector:
    """Mock detector that always finds the same coins."""

    def __init__(self, coins: int = 2):
        self.coins = coins
        self.calls = 0

    def detect(self, frame):
        self.calls += 1
        return DetectionSet.from_detections(
            [Detection(NormalizedBox(0.2 * i, 0.2, 0.1, 0.1)) for i in range(self.coins)],
            frame_size=frame.size,
            frame_index=frame.frame_index,
        )


def _build_engine(source, inner_detector, **config_overrides):
    detector = AsyncDetector(inner_detector)
    queue = DisplayQueue()
    pipeline = DetectionPipeline(
        detector,
        display_size=(480, 640),
        frame_size=(640, 480),
        rotation=90,
        dispatch=queue.post,
    )
    params = dict(
        display_size=(480, 640),
        headless=True,
        max_consecutive_failures=1,
        retry_delay=0.0,
    )
    params.update(config_overrides)
    return PipelineEngine(
        source, pipeline, OverlayRenderer(), queue, EngineConfig(**params), detector=detector
    )


class TestEngineConfig:
    def test_default_values(self):
        config = EngineConfig()
        assert config.max_consecutive_failures == 10
        assert config.stats_log_interval == 60.0
        assert config.headless is False
        assert config.display_size == (480, 640)


class TestLatestFrame:
    def test_newer_frame_replaces_older(self, make_frame):
        slot = LatestFrame()
        slot.put(make_frame(frame_index=1))
        slot.put(make_frame(frame_index=2))

        assert slot.take().frame_index == 2
        assert slot.take() is None


class TestPipelineEngine:
    def test_engine_counts_coins(self):
        source = MockObservationSource(ObservationConfig(source_id="test"), max_frames=5)
        inner = MockDetector(coins=2)
        engine = _build_engine(source, inner)

        engine.run()

        assert engine.stats.frames_read == 5
        assert engine.pipeline.count == 2
        assert inner.calls >= 1
        stats = engine.pipeline.stats
        assert stats.accepted + stats.dropped == stats.frames_received == 5
        assert source.closed

    def test_callbacks_receive_canvas(self):
        source = MockObservationSource(ObservationConfig(source_id="test"), max_frames=3)
        engine = _build_engine(source, MockDetector(coins=1))
        seen = []
        engine.add_callback(lambda canvas, overlay: seen.append((canvas.shape, overlay.count)))

        engine.run()

        assert seen
        assert all(shape == (640, 480, 3) for shape, _ in seen)
        assert seen[-1][1] == 1
        assert engine.last_canvas.shape == (640, 480, 3)

    def test_callback_error_does_not_stop_engine(self):
        source = MockObservationSource(ObservationConfig(source_id="test"), max_frames=3)
        engine = _build_engine(source, MockDetector())

        def bad_callback(canvas, overlay):
            raise RuntimeError("sink failed")

        engine.add_callback(bad_callback)
        engine.run()

        assert engine.stats.frames_read == 3

    def test_engine_stops_on_failures(self):
        source = MockObservationSource(ObservationConfig(source_id="test"), frames=[])
        engine = _build_engine(source, MockDetector(), max_consecutive_failures=3)

        engine.run()

        assert engine.stats.frames_read == 0
        assert engine.stats.consecutive_failures == 3
        assert engine.pipeline.count == 0
        # Nothing captured: the final canvas is black apart from the label
        assert engine.last_canvas.shape == (640, 480, 3)

    def test_stop_from_callback(self):
        source = MockObservationSource(ObservationConfig(source_id="test"), max_frames=10_000_000)
        engine = _build_engine(source, MockDetector())
        engine.add_callback(lambda canvas, overlay: engine.stop())

        engine.run()

        assert engine.stats.frames_rendered >= 1
        assert source.closed

    def test_open_failure_propagates(self):
        source = BrokenSource(ObservationConfig(source_id="test"))
        engine = _build_engine(source, MockDetector())

        with pytest.raises(RuntimeError, match="Failed to open"):
            engine.run()


class TestCreateEngineFromConfig:
    def test_builds_headless_hough_engine(self, valid_config):
        engine = create_engine_from_config(valid_config, headless=True)
        try:
            assert engine.config.headless is True
            assert engine.config.display_size == (480, 640)
            assert engine.pipeline.display_size == (480, 640)
            assert engine.pipeline.transform.rotation == 90
            assert engine.renderer.label_noun == "Coins"
            assert engine.source.source_id == "main-camera"
        finally:
            engine._detector.shutdown()

    def test_unsupported_camera_backend(self, valid_config):
        valid_config["camera"]["backend"] = "picamera2"
        with pytest.raises(ValueError, match="camera backend"):
            create_engine_from_config(valid_config, headless=True)
