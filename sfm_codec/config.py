"""
Configuration module for the reconstruction codec.

Handles loading and validation of codec options from YAML files.
"""

import yaml
from pathlib import Path
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)

MISSING_CAMERA_POLICIES = ("substitute", "report")


@dataclass
class DefaultCamera:
    """
    Intrinsics substituted for images whose camera id is not in the scene.
    The principal point defaults to the image centre.
    """
    width: int = 1920  # Image width in pixels
    height: int = 1080  # Image height in pixels
    focal_length: float = 1000.0  # Focal length in pixels


@dataclass
class CodecConfig:
    """
    Options shared by every codec.

    Attributes:
        image_dir_name: Name of the directory holding source imagery
        image_search_depth: Number of directory levels searched for image_dir_name
        default_camera: Intrinsics used when an image's camera is missing
        normalize_quaternions: Normalize orientations before pose conversion
        text_float_format: printf-style format for floats in text files
        missing_camera_policy: 'substitute' (use default_camera) or 'report'
    """
    image_dir_name: str = "images"
    image_search_depth: int = 4
    default_camera: DefaultCamera = field(default_factory=DefaultCamera)
    normalize_quaternions: bool = True
    text_float_format: str = "%.17g"
    missing_camera_policy: str = "substitute"

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ValueError on inconsistent settings."""
        if self.image_search_depth < 1:
            raise ValueError(
                f"image_search_depth must be >= 1, got {self.image_search_depth}"
            )
        if self.missing_camera_policy not in MISSING_CAMERA_POLICIES:
            raise ValueError(
                f"missing_camera_policy must be one of {MISSING_CAMERA_POLICIES}, "
                f"got '{self.missing_camera_policy}'"
            )
        if self.default_camera.width <= 0 or self.default_camera.height <= 0:
            raise ValueError("default_camera width and height must be positive")
        try:
            self.text_float_format % 1.0
        except (TypeError, ValueError) as e:
            raise ValueError(
                f"Invalid text_float_format '{self.text_float_format}': {e}"
            ) from e

    @classmethod
    def from_yaml(cls, config_path: str) -> "CodecConfig":
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            CodecConfig with loaded options

        Example YAML structure:
            image_dir_name: images
            image_search_depth: 4
            default_camera:
              width: 1920
              height: 1080
              focal_length: 1000.0
            normalize_quaternions: true
            text_float_format: "%.17g"
            missing_camera_policy: substitute
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        logger.info(f"Loading configuration from {config_path}")

        cam_data = data.get('default_camera', {}) or {}
        default_camera = DefaultCamera(
            width=int(cam_data.get('width', 1920)),
            height=int(cam_data.get('height', 1080)),
            focal_length=float(cam_data.get('focal_length', 1000.0)),
        )

        return cls(
            image_dir_name=data.get('image_dir_name', 'images'),
            image_search_depth=int(data.get('image_search_depth', 4)),
            default_camera=default_camera,
            normalize_quaternions=bool(data.get('normalize_quaternions', True)),
            text_float_format=data.get('text_float_format', '%.17g'),
            missing_camera_policy=data.get('missing_camera_policy', 'substitute'),
        )

    def to_yaml(self, config_path: str) -> None:
        """Save configuration to a YAML file."""
        data = {
            'image_dir_name': self.image_dir_name,
            'image_search_depth': self.image_search_depth,
            'default_camera': {
                'width': self.default_camera.width,
                'height': self.default_camera.height,
                'focal_length': self.default_camera.focal_length,
            },
            'normalize_quaternions': self.normalize_quaternions,
            'text_float_format': self.text_float_format,
            'missing_camera_policy': self.missing_camera_policy,
        }

        with open(config_path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {config_path}")
