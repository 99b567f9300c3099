"""
Tests for YAML configuration.
"""

import tempfile
from pathlib import Path

import pytest
import yaml

from sfm_codec.config import CodecConfig, DefaultCamera


class TestCodecConfig:
    """Tests for loading, saving and validating options."""

    def test_defaults(self):
        config = CodecConfig()

        assert config.image_dir_name == "images"
        assert config.image_search_depth == 4
        assert config.default_camera == DefaultCamera(1920, 1080, 1000.0)
        assert config.missing_camera_policy == "substitute"

    def test_yaml_round_trip(self):
        config = CodecConfig(
            image_dir_name="frames",
            image_search_depth=2,
            default_camera=DefaultCamera(width=640, height=480, focal_length=525.0),
            normalize_quaternions=False,
            text_float_format="%.9g",
            missing_camera_policy="report",
        )

        with tempfile.TemporaryDirectory() as d:
            path = Path(d) / "codec.yaml"
            config.to_yaml(str(path))
            loaded = CodecConfig.from_yaml(str(path))

        assert loaded == config

    def test_partial_yaml_uses_defaults(self):
        with tempfile.TemporaryDirectory() as d:
            path = Path(d) / "codec.yaml"
            path.write_text(yaml.dump({'default_camera': {'focal_length': 700}}))
            config = CodecConfig.from_yaml(str(path))

        assert config.default_camera.focal_length == 700.0
        assert config.default_camera.width == 1920
        assert config.image_dir_name == "images"

    def test_empty_yaml(self):
        with tempfile.TemporaryDirectory() as d:
            path = Path(d) / "codec.yaml"
            path.write_text("")
            assert CodecConfig.from_yaml(str(path)) == CodecConfig()

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            CodecConfig.from_yaml("/nonexistent/codec.yaml")

    @pytest.mark.parametrize("kwargs", [
        {'image_search_depth': 0},
        {'missing_camera_policy': 'ignore'},
        {'default_camera': DefaultCamera(width=0)},
        {'text_float_format': 'no placeholder'},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            CodecConfig(**kwargs)
