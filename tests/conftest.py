"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import time

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from coin_counter.models.frame import FrameData  # noqa: E402


@pytest.fixture
def make_frame():
    """Factory for FrameData with a blank image of the given size."""
    def _make(width=640, height=480, frame_index=1, pixel_format="bgr24"):
        if pixel_format == "gray8":
            image = np.zeros((height, width), dtype=np.uint8)
        else:
            image = np.zeros((height, width, 3), dtype=np.uint8)
        return FrameData.from_numpy(
            image,
            timestamp=time.time(),
            frame_index=frame_index,
            source="test",
            pixel_format=pixel_format,
        )
    return _make


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  backend: "opencv"
  device_id: 0
  resolution: [640, 480]
  fps: 30

detection:
  backend: "hough"
  timeout_seconds: 2.0
  hough:
    min_radius: 10
    max_radius: 80

display:
  size: [480, 640]
  rotation: 90

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "backend": "opencv",
            "device_id": 0,
            "resolution": [640, 480],
            "fps": 30,
            "pixel_format": "bgr24",
        },
        "detection": {
            "backend": "hough",
            "timeout_seconds": 2.0,
            "hough": {"min_radius": 10, "max_radius": 80, "blur_ksize": 9},
        },
        "display": {
            "size": [480, 640],
            "rotation": 90,
            "label_noun": "Coins",
        },
        "pipeline": {"max_consecutive_failures": 10},
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
