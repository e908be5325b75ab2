"""
Live coin counter.

Opens the camera, runs the coin detector on incoming frames and shows the
boxes and the running count in a window.

Usage:
    coin-counter --config config/config.yaml
    python -m coin_counter.main --config config/config.yaml --headless

Arguments:
    --config: Path to configuration file
    --headless: Run without a display window
    --source: Override camera.device_id (camera index, video file or RTSP URL)
    --backend: Override detection.backend
"""

import argparse
import logging
import os
import sys
from typing import Any, Dict, Optional, Tuple

import yaml

from coin_counter.inference import DETECTOR_BACKENDS, DetectorUnavailableError
from coin_counter.models.geometry import VALID_ROTATIONS
from coin_counter.observation.opencv_source import PIXEL_FORMAT_CONVERSIONS
from coin_counter.observation.rtsp_utils import inject_rtsp_credentials
from coin_counter.ops.logging import setup_logging
from coin_counter.pipeline import create_engine_from_config

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping at the top level")
    return data


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        config_dir = os.path.dirname(config_path)
        base_path = os.path.join(config_dir, "default.yaml")
        merged: Dict[str, Any] = _read_yaml(base_path) if os.path.exists(base_path) else {}

        local_overrides_path = os.path.join(config_dir, "config.yaml")
        if os.path.exists(local_overrides_path):
            merged = _deep_merge(merged, _read_yaml(local_overrides_path))

        if os.path.exists(config_path) and os.path.abspath(config_path) not in (
            os.path.abspath(local_overrides_path),
            os.path.abspath(base_path),
        ):
            merged = _deep_merge(merged, _read_yaml(config_path))

        return merged
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_size(value: Any) -> bool:
    return (
        isinstance(value, list)
        and len(value) == 2
        and all(isinstance(x, int) and x > 0 for x in value)
    )


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'detection', 'display', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera') or {}
    if camera.get('backend', 'opencv') != 'opencv':
        return False, "camera.backend must be: opencv"
    if 'device_id' not in camera:
        return False, "Missing camera.device_id"
    device_id = camera['device_id']
    if isinstance(device_id, bool) or not isinstance(device_id, (int, str)):
        return False, "camera.device_id must be an integer (index) or string (URL/path)"
    if isinstance(device_id, int) and device_id < 0:
        return False, "camera.device_id integer must be non-negative"
    if not _is_size(camera.get('resolution')):
        return False, "camera.resolution must be a list of two positive integers [width, height]"
    if 'fps' in camera and (not isinstance(camera['fps'], int) or camera['fps'] <= 0):
        return False, "camera.fps must be a positive integer"
    if camera.get('pixel_format', 'bgr24') not in PIXEL_FORMAT_CONVERSIONS:
        return False, f"camera.pixel_format must be one of: {', '.join(PIXEL_FORMAT_CONVERSIONS)}"
    if camera.get('rotate', 0) not in VALID_ROTATIONS:
        return False, "camera.rotate must be one of: 0, 90, 180, 270"

    # Detection
    detection = config.get('detection') or {}
    backend = detection.get('backend', 'yolo')
    if backend not in DETECTOR_BACKENDS:
        return False, f"detection.backend must be one of: {', '.join(DETECTOR_BACKENDS)}"
    timeout = detection.get('timeout_seconds', 2.0)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout < 0:
        return False, "detection.timeout_seconds must be a non-negative number"
    if backend == 'yolo':
        yolo_cfg = detection.get('yolo') or {}
        if not isinstance(yolo_cfg.get('model'), str) or not yolo_cfg.get('model'):
            return False, "detection.yolo.model is required when detection.backend is 'yolo'"
        for key in ('conf_threshold', 'iou_threshold'):
            value = yolo_cfg.get(key, 0.5)
            if not isinstance(value, (int, float)) or not (0 <= value <= 1):
                return False, f"detection.yolo.{key} must be between 0 and 1"
    if backend == 'hough':
        hough_cfg = detection.get('hough') or {}
        ksize = hough_cfg.get('blur_ksize', 9)
        if not isinstance(ksize, int) or ksize < 1 or ksize % 2 == 0:
            return False, "detection.hough.blur_ksize must be a positive odd integer"
        min_radius = hough_cfg.get('min_radius', 10)
        max_radius = hough_cfg.get('max_radius', 80)
        for key, value in (('min_radius', min_radius), ('max_radius', max_radius)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                return False, f"detection.hough.{key} must be a non-negative integer"
        # max_radius 0 means no upper bound
        if max_radius and max_radius < min_radius:
            return False, "detection.hough.max_radius must be >= min_radius or 0"

    # Display
    display = config.get('display') or {}
    if 'size' in display and not _is_size(display['size']):
        return False, "display.size must be a list of two positive integers [width, height]"
    if display.get('rotation', 0) not in VALID_ROTATIONS:
        return False, "display.rotation must be one of: 0, 90, 180, 270"

    # Pipeline
    pipeline = config.get('pipeline') or {}
    mcf = pipeline.get('max_consecutive_failures', 10)
    if not isinstance(mcf, int) or mcf <= 0:
        return False, "pipeline.max_consecutive_failures must be a positive integer"

    # Logging
    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def _parse_source(value: str):
    """Camera indices are integers; anything else is a path or URL."""
    return int(value) if value.isdigit() else value


def main(argv=None) -> int:
    """Main application function."""
    parser = argparse.ArgumentParser(description='Live Coin Counter')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--headless', action='store_true',
                        help='Run without a display window')
    parser.add_argument('--source', type=str, default=None,
                        help='Camera index, video file or RTSP URL (overrides camera.device_id)')
    parser.add_argument('--backend', choices=DETECTOR_BACKENDS, default=None,
                        help='Detector backend (overrides detection.backend)')
    args = parser.parse_args(argv)

    config = load_config(args.config)
    config.setdefault('camera', {})
    config.setdefault('detection', {})
    if args.source is not None:
        config['camera']['device_id'] = _parse_source(args.source)
    if args.backend is not None:
        config['detection']['backend'] = args.backend

    try:
        inject_rtsp_credentials(config['camera'])
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Error loading camera secrets: {e}")

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logger.error(f"Configuration validation failed: {error_msg}")
        return 1

    setup_logging(config['log_path'], config['log_level'])
    logger.info("Starting Coin Counter")

    try:
        engine = create_engine_from_config(config, headless=args.headless or None)
        engine.run()
    except DetectorUnavailableError as e:
        logger.error(f"Detector unavailable: {e}")
        return 1
    except (RuntimeError, ValueError) as e:
        logger.error(f"Startup failed: {e}")
        return 1

    logger.info("Coin Counter stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
