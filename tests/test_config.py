"""
Smoke tests for configuration loading, validation and the CLI entry point.
"""

import os

import pytest

from coin_counter.main import load_config, main, validate_config


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_config_passes(self, valid_config):
        """A complete valid config passes validation."""
        is_valid, error = validate_config(valid_config)

        assert is_valid is True
        assert error is None

    @pytest.mark.parametrize("section", ["camera", "detection", "display", "log_path", "log_level"])
    def test_missing_required_section(self, valid_config, section):
        del valid_config[section]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert section in error.lower()

    def test_pipeline_section_optional(self, valid_config):
        del valid_config["pipeline"]
        assert validate_config(valid_config) == (True, None)

    def test_invalid_device_id_type(self, valid_config):
        """device_id with invalid type fails."""
        valid_config["camera"]["device_id"] = [1, 2, 3]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "device_id" in error.lower()

    def test_bool_device_id_rejected(self, valid_config):
        valid_config["camera"]["device_id"] = True

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "device_id" in error.lower()

    def test_negative_device_id(self, valid_config):
        """Negative integer device_id fails."""
        valid_config["camera"]["device_id"] = -1

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "device_id" in error.lower()

    def test_string_device_id_valid(self, valid_config):
        """String device_id (RTSP URL) is valid."""
        valid_config["camera"]["device_id"] = "rtsp://192.168.1.1/stream"

        is_valid, error = validate_config(valid_config)

        assert is_valid is True

    @pytest.mark.parametrize("resolution", [1920, [1920], [0, 480], ["640", "480"]])
    def test_invalid_resolution(self, valid_config, resolution):
        valid_config["camera"]["resolution"] = resolution

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "resolution" in error.lower()

    def test_invalid_fps(self, valid_config):
        """Non-positive fps fails."""
        valid_config["camera"]["fps"] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "fps" in error.lower()

    def test_invalid_camera_backend(self, valid_config):
        """Unknown camera backend fails."""
        valid_config["camera"]["backend"] = "picamera2"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "backend" in error.lower()

    def test_invalid_pixel_format(self, valid_config):
        valid_config["camera"]["pixel_format"] = "nv12"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "pixel_format" in error.lower()

    def test_invalid_detection_backend(self, valid_config):
        """Unknown detection backend fails."""
        valid_config["detection"]["backend"] = "magic"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "backend" in error.lower()

    @pytest.mark.parametrize("timeout", [-1, "2s", True])
    def test_invalid_timeout(self, valid_config, timeout):
        valid_config["detection"]["timeout_seconds"] = timeout

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "timeout_seconds" in error.lower()

    def test_zero_timeout_disables_deadline(self, valid_config):
        valid_config["detection"]["timeout_seconds"] = 0
        assert validate_config(valid_config) == (True, None)

    def test_yolo_backend_requires_model(self, valid_config):
        """YOLO backend without model fails."""
        valid_config["detection"]["backend"] = "yolo"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "model" in error.lower()

    def test_yolo_backend_with_model(self, valid_config):
        """YOLO backend with model passes."""
        valid_config["detection"]["backend"] = "yolo"
        valid_config["detection"]["yolo"] = {"model": "models/coin_detector.pt"}

        is_valid, error = validate_config(valid_config)

        assert is_valid is True

    def test_invalid_yolo_threshold(self, valid_config):
        valid_config["detection"]["backend"] = "yolo"
        valid_config["detection"]["yolo"] = {"model": "coins.pt", "conf_threshold": 1.5}

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "conf_threshold" in error.lower()

    def test_even_blur_kernel_rejected(self, valid_config):
        valid_config["detection"]["hough"]["blur_ksize"] = 8

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "blur_ksize" in error.lower()

    def test_hough_radius_order(self, valid_config):
        valid_config["detection"]["hough"]["max_radius"] = 5

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "max_radius" in error.lower()

    def test_zero_max_radius_means_unbounded(self, valid_config):
        valid_config["detection"]["hough"]["max_radius"] = 0
        assert validate_config(valid_config) == (True, None)

    @pytest.mark.parametrize("key, value", [("max_radius", "big"), ("min_radius", None), ("min_radius", -1)])
    def test_invalid_hough_radius(self, valid_config, key, value):
        valid_config["detection"]["hough"][key] = value

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert key in error.lower()

    def test_invalid_display_size(self, valid_config):
        valid_config["display"]["size"] = [480]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "display.size" in error.lower()

    def test_invalid_display_rotation(self, valid_config):
        valid_config["display"]["rotation"] = 45

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "rotation" in error.lower()

    def test_invalid_max_consecutive_failures(self, valid_config):
        valid_config["pipeline"]["max_consecutive_failures"] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "max_consecutive_failures" in error.lower()

    def test_invalid_log_level(self, valid_config):
        """Invalid log level fails."""
        valid_config["log_level"] = "VERBOSE"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "log_level" in error.lower()


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_default_yaml(self, temp_config_dir):
        """Config loads from default.yaml when only it exists."""
        config = load_config(str(temp_config_dir / "config.yaml"))

        assert config["camera"]["backend"] == "opencv"
        assert config["camera"]["device_id"] == 0
        assert config["camera"]["resolution"] == [640, 480]
        assert config["display"]["rotation"] == 90

    def test_local_overrides_merge(self, temp_config_dir):
        """Local config.yaml overrides default.yaml."""
        config_yaml = temp_config_dir / "config.yaml"
        config_yaml.write_text("""
camera:
  resolution: [1280, 720]
  fps: 60
""")

        config = load_config(str(config_yaml))

        assert config["camera"]["resolution"] == [1280, 720]
        assert config["camera"]["fps"] == 60
        assert config["camera"]["backend"] == "opencv"
        assert config["camera"]["device_id"] == 0

    def test_deep_merge_preserves_nested(self, temp_config_dir):
        """Deep merge preserves nested keys not overridden."""
        config_yaml = temp_config_dir / "config.yaml"
        config_yaml.write_text("""
detection:
  hough:
    max_radius: 120
""")

        config = load_config(str(config_yaml))

        assert config["detection"]["hough"]["max_radius"] == 120
        assert config["detection"]["hough"]["min_radius"] == 10
        assert config["detection"]["backend"] == "hough"
        assert config["detection"]["timeout_seconds"] == 2.0

    def test_explicit_path_applied_last(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text("display:\n  rotation: 180\n")
        explicit = temp_config_dir / "bench.yaml"
        explicit.write_text("display:\n  rotation: 270\n")

        config = load_config(str(explicit))

        assert config["display"]["rotation"] == 270
        assert config["display"]["size"] == [480, 640]

    def test_shipped_defaults_are_valid(self):
        config_dir = os.path.join(os.path.dirname(__file__), "..", "config")
        config = load_config(os.path.join(config_dir, "config.yaml"))

        assert validate_config(config) == (True, None)
        assert config["display"]["rotation"] == 90
        assert config["display"]["size"] == [480, 640]

    def test_non_mapping_exits(self, temp_config_dir):
        config_yaml = temp_config_dir / "config.yaml"
        config_yaml.write_text("- not\n- a mapping\n")

        with pytest.raises(SystemExit):
            load_config(str(config_yaml))


class TestMain:
    def test_invalid_config_returns_error(self, temp_config_dir):
        config_yaml = temp_config_dir / "config.yaml"
        config_yaml.write_text('log_level: "VERBOSE"\n')

        assert main(["--config", str(config_yaml), "--headless"]) == 1

    def test_unavailable_detector_returns_error(self, temp_config_dir, tmp_path):
        config_yaml = temp_config_dir / "config.yaml"
        config_yaml.write_text(f"""
detection:
  backend: "yolo"
  yolo:
    model: "{tmp_path / 'missing.pt'}"
log_path: "{tmp_path / 'logs' / 'test.log'}"
""")

        assert main(["--config", str(config_yaml), "--headless"]) == 1

    def test_backend_flag_is_validated(self, temp_config_dir):
        with pytest.raises(SystemExit):
            main(["--config", str(temp_config_dir / "config.yaml"), "--backend", "magic"])
