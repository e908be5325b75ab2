"""
Tests for typed models.
"""

import time

import numpy as np
import pytest

from coin_counter.models.frame import FrameData
from coin_counter.models.detection import Detection, DetectionSet, NormalizedBox
from coin_counter.models.geometry import Rect
from coin_counter.models.overlay import OverlayGeometry, OverlayRect
from coin_counter.models.status import PipelineState, PipelineStats
from coin_counter.models.config import (
    Config,
    CameraConfig,
    DetectionConfig,
    DisplayConfig,
    HoughConfig,
    YoloConfig,
)


class TestFrameData:
    def test_from_numpy(self):
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        fd = FrameData.from_numpy(frame, timestamp=time.time(), frame_index=42)

        assert fd.width == 640
        assert fd.height == 480
        assert fd.frame_index == 42
        assert fd.size == (640, 480)
        assert fd.pixel_format == "bgr24"

    def test_as_bgr_from_gray(self):
        frame = np.full((4, 6), 200, dtype=np.uint8)
        fd = FrameData.from_numpy(frame, timestamp=0.0, pixel_format="gray8")

        bgr = fd.as_bgr()
        assert bgr.shape == (4, 6, 3)
        assert int(bgr[0, 0, 1]) == 200

    def test_as_gray_from_bgr(self):
        frame = np.zeros((4, 6, 3), dtype=np.uint8)
        fd = FrameData.from_numpy(frame, timestamp=0.0)
        assert fd.as_gray().shape == (4, 6)

    def test_unknown_pixel_format(self):
        fd = FrameData.from_numpy(np.zeros((2, 2, 3), dtype=np.uint8), 0.0, pixel_format="yuv420")
        with pytest.raises(ValueError, match="pixel format"):
            fd.as_bgr()


class TestNormalizedBox:
    def test_to_pixels(self):
        box = NormalizedBox(0.25, 0.25, 0.5, 0.5)
        assert box.to_pixels(640, 480) == Rect(160.0, 120.0, 320.0, 240.0)

    def test_center(self):
        assert NormalizedBox(0.0, 0.2, 0.5, 0.4).center == pytest.approx((0.25, 0.4))

    @pytest.mark.parametrize("args", [
        (-0.1, 0.0, 0.5, 0.5),
        (0.0, 0.0, 1.5, 0.5),
        (0.6, 0.0, 0.5, 0.5),
        (0.0, 0.7, 0.5, 0.5),
    ])
    def test_out_of_range_rejected(self, args):
        with pytest.raises(ValueError):
            NormalizedBox(*args)

    def test_from_xyxy_pixels_clamps(self):
        box = NormalizedBox.from_xyxy_pixels(-10, 40, 330, 500, 640, 480)
        assert box.x == 0.0
        assert box.y == pytest.approx(40 / 480)
        assert box.width == pytest.approx(330 / 640)
        assert box.y + box.height == pytest.approx(1.0)

    def test_from_xyxy_pixels_requires_frame_size(self):
        with pytest.raises(ValueError):
            NormalizedBox.from_xyxy_pixels(0, 0, 1, 1, 0, 480)


class TestDetectionSet:
    def test_count_and_iteration(self):
        dets = [Detection(NormalizedBox(0.1, 0.1, 0.1, 0.1), confidence=0.9) for _ in range(3)]
        ds = DetectionSet.from_detections(dets, frame_size=(640, 480), frame_index=7)

        assert ds.count == 3
        assert len(ds) == 3
        assert list(ds) == dets
        assert ds.frame_index == 7

    def test_detections_stored_as_tuple(self):
        ds = DetectionSet(detections=[Detection(NormalizedBox(0, 0, 1, 1))], frame_size=(10, 10))
        assert isinstance(ds.detections, tuple)

    def test_rejects_non_detection_items(self):
        with pytest.raises(TypeError, match="Detection"):
            DetectionSet(detections=[None], frame_size=(640, 480))

    def test_empty(self):
        ds = DetectionSet.empty((640, 480))
        assert ds.count == 0
        assert ds.frame_size == (640, 480)


class TestRect:
    def test_properties(self):
        r = Rect(10, 20, 30, 40)
        assert r.x2 == 40
        assert r.y2 == 60
        assert r.center == (25.0, 40.0)
        assert r.area == 1200

    def test_from_corners_normalizes_order(self):
        assert Rect.from_corners(50, 60, 10, 20) == Rect(10, 20, 40, 40)

    def test_as_int_tuple_rounds(self):
        assert Rect(10.6, 20.4, 10.0, 10.0).as_int_tuple() == (11, 20, 21, 30)


class TestOverlayGeometry:
    def test_empty(self):
        overlay = OverlayGeometry.empty()
        assert overlay.is_empty
        assert overlay.count == 0
        assert len(overlay) == 0

    def test_equality_is_structural(self):
        a = OverlayGeometry((OverlayRect(Rect(0, 0, 1, 1)),), count=1)
        b = OverlayGeometry((OverlayRect(Rect(0, 0, 1, 1)),), count=1)
        assert a == b


class TestPipelineStats:
    def test_drop_ratio(self):
        stats = PipelineStats(frames_received=10, dropped=4)
        assert stats.drop_ratio == 0.4

    def test_drop_ratio_no_frames(self):
        assert PipelineStats().drop_ratio == 0.0

    def test_to_dict(self):
        d = PipelineStats(frames_received=2, accepted=1, dropped=1).to_dict()
        assert d["accepted"] == 1
        assert d["drop_ratio"] == 0.5

    def test_state_values(self):
        assert PipelineState.IDLE.value == "idle"
        assert PipelineState.BUSY.value == "busy"


class TestConfigModels:
    def test_camera_defaults(self):
        cfg = CameraConfig.from_dict({})
        assert cfg.resolution == [640, 480]
        assert cfg.pixel_format == "bgr24"
        assert cfg.buffer_size == 1

    def test_detection_from_dict(self):
        cfg = DetectionConfig.from_dict({
            "backend": "yolo",
            "timeout_seconds": 1.5,
            "yolo": {"model": "coins.pt", "conf_threshold": 0.4},
        })
        assert cfg.backend == "yolo"
        assert cfg.timeout_seconds == 1.5
        assert isinstance(cfg.yolo, YoloConfig)
        assert cfg.yolo.model == "coins.pt"
        assert cfg.hough is None

    def test_hough_roundtrip(self):
        cfg = HoughConfig(min_radius=5, max_radius=50)
        assert HoughConfig.from_dict(cfg.to_dict()) == cfg

    def test_display_defaults(self):
        cfg = DisplayConfig.from_dict({})
        assert cfg.size == [480, 640]
        assert cfg.label_noun == "Coins"

    def test_full_config(self, valid_config):
        cfg = Config.from_dict(valid_config)
        assert cfg.camera.device_id == 0
        assert cfg.detection.backend == "hough"
        assert cfg.detection.hough.blur_ksize == 9
        assert cfg.display.rotation == 90
        assert cfg.pipeline.max_consecutive_failures == 10

        d = cfg.to_dict()
        assert d["log_level"] == "INFO"
        assert d["display"]["size"] == [480, 640]
