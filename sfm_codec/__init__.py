"""
Sparse Reconstruction Codec Package

Reads and writes sparse structure-from-motion reconstructions: a 3D point
cloud with visibility tracks, posed images, and camera intrinsics.

Pose Conventions:
    On disk:   world-to-camera quaternion q and translation t
               X_camera = R(q) @ X_world + t
    In memory: camera-to-world centre C and orientation q'

Supported Formats:
    - Binary reconstruction (cameras.bin, images.bin, points3D.bin)
    - Text reconstruction (cameras.txt, images.txt, points3D.txt)
    - Plain point lists (ASCII PLY, OBJ, XYZ)

Deleted points stay in a Scene as tombstones. On export they are dropped
and any image feature referencing them is written as untriangulated.
"""

from .config import CodecConfig, DefaultCamera
from .scene import (
    INVALID_POINT3D_ID,
    Camera,
    CameraPose,
    Feature,
    Point,
    PointMetadata,
    PointState,
    Scene,
    TrackElement,
)
from .camera_models import CameraIntrinsics, CameraModelSpec, decode_intrinsics, get_model
from .transforms import pose_to_world_to_camera, world_to_camera_to_pose
from .diagnostics import (
    Diagnostic,
    Diagnostics,
    ExportReport,
    LoadResult,
    ModelFormatError,
    UnsupportedFormatError,
)
from .exporter import ExportPlan
from .binary_codec import BinaryModelCodec
from .text_codec import TextModelCodec
from .model_io import find_image_base_path
from .dispatcher import detect_format, load_folder, load_scene, write_folder, write_scene

__version__ = "1.0.0"
__all__ = [
    "CodecConfig",
    "DefaultCamera",
    "INVALID_POINT3D_ID",
    "Camera",
    "CameraPose",
    "Feature",
    "Point",
    "PointMetadata",
    "PointState",
    "Scene",
    "TrackElement",
    "CameraIntrinsics",
    "CameraModelSpec",
    "decode_intrinsics",
    "get_model",
    "pose_to_world_to_camera",
    "world_to_camera_to_pose",
    "Diagnostic",
    "Diagnostics",
    "ExportReport",
    "LoadResult",
    "ModelFormatError",
    "UnsupportedFormatError",
    "ExportPlan",
    "BinaryModelCodec",
    "TextModelCodec",
    "find_image_base_path",
    "detect_format",
    "load_folder",
    "load_scene",
    "write_folder",
    "write_scene",
]
