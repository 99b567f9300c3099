"""
In-memory data model for a sparse reconstruction.

A Scene owns:
    - points: 3D positions with colour and a liveness state
    - metadata: index-aligned per-point id, reprojection error and track
    - cameras: camera id -> intrinsic sensor definition
    - images: image id -> posed capture with its 2D features

Points are never removed mid-session. Deleting a point marks it
TOMBSTONED; the exporter drops it and rewrites references to it.

Invariants:
    - len(metadata) <= len(points); a point without metadata is exported
      with id index + 1, zero error and an empty track
    - Feature.point3d_id is either INVALID_POINT3D_ID or the id of a point
      (checked by the exporter, not here)
    - CameraPose.camera_id should resolve in Scene.cameras; missing
      references are tolerated and never repaired
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional

import numpy as np

from .camera_models import CameraIntrinsics, decode_intrinsics, model_name
from .config import DefaultCamera

# Reserved point3D id meaning "feature not triangulated" (2^64 - 1)
INVALID_POINT3D_ID = 0xFFFFFFFFFFFFFFFF


class PointState(IntEnum):
    """Liveness of a point."""
    TOMBSTONED = -1
    PRESENT = 0
    SELECTED = 1

    @classmethod
    def from_liveness(cls, value: float) -> "PointState":
        """Map the legacy float encoding (> 0.5 selected, < -0.5 deleted)."""
        if value > 0.5:
            return cls.SELECTED
        if value < -0.5:
            return cls.TOMBSTONED
        return cls.PRESENT


def _vec3(values, dtype) -> np.ndarray:
    return np.asarray(values, dtype=dtype).reshape(3)


@dataclass
class Point:
    """A 3D point with colour in [0, 1]."""
    position: np.ndarray  # (3,) float32
    color: np.ndarray  # (3,) float32, RGB in [0, 1]
    state: PointState = PointState.PRESENT

    def __post_init__(self):
        self.position = _vec3(self.position, np.float32)
        self.color = _vec3(self.color, np.float32)
        self.state = PointState(self.state)

    @property
    def liveness(self) -> float:
        return float(self.state)

    @property
    def is_tombstoned(self) -> bool:
        return self.state == PointState.TOMBSTONED

    @property
    def is_selected(self) -> bool:
        return self.state == PointState.SELECTED

    def color_u8(self) -> np.ndarray:
        """Colour as rounded 0-255 bytes."""
        return np.clip(np.rint(self.color.astype(np.float64) * 255.0), 0, 255).astype(np.uint8)


@dataclass
class TrackElement:
    """One observation of a 3D point: image id and feature slot."""
    image_id: int
    point2d_idx: int


@dataclass
class PointMetadata:
    """Per-point data that only exists for points read from a reconstruction."""
    original_id: int
    error: float = 0.0
    track: List[TrackElement] = field(default_factory=list)


@dataclass
class Camera:
    """Intrinsic sensor definition."""
    camera_id: int
    model_id: int
    width: int
    height: int
    params: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def __post_init__(self):
        self.params = np.asarray(self.params, dtype=np.float64).reshape(-1)

    @property
    def model_name(self) -> str:
        return model_name(self.model_id)

    def intrinsics(self) -> Optional[CameraIntrinsics]:
        """Decoded focal length and principal point, or None if unknown."""
        return decode_intrinsics(self.model_id, self.params)


@dataclass
class Feature:
    """A 2D keypoint in an image and the 3D point it triangulates."""
    xy: np.ndarray  # (2,) float64 pixel coordinates
    point3d_id: int = INVALID_POINT3D_ID

    def __post_init__(self):
        self.xy = np.asarray(self.xy, dtype=np.float64).reshape(2)

    @property
    def has_point3d(self) -> bool:
        return self.point3d_id != INVALID_POINT3D_ID


@dataclass
class CameraPose:
    """
    A posed image.

    Attributes:
        image_id: Image identifier
        camera_id: Key into Scene.cameras
        name: File name of the picture, relative to the image base path
        position: Camera centre in world coordinates
        orientation: Camera-to-world rotation as quaternion (w, x, y, z)
        features: 2D observations in file order
    """
    image_id: int
    camera_id: int
    name: str
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: np.ndarray = field(default_factory=lambda: np.array([1.0, 0.0, 0.0, 0.0]))
    features: List[Feature] = field(default_factory=list)

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64).reshape(3)
        self.orientation = np.asarray(self.orientation, dtype=np.float64).reshape(4)

    @property
    def num_triangulated(self) -> int:
        return sum(1 for f in self.features if f.has_point3d)


@dataclass
class Scene:
    """A complete sparse reconstruction."""
    points: List[Point] = field(default_factory=list)
    metadata: List[PointMetadata] = field(default_factory=list)
    cameras: Dict[int, Camera] = field(default_factory=dict)
    images: Dict[int, CameraPose] = field(default_factory=dict)
    image_base_path: str = ""
    image_base_is_fallback: bool = False

    @property
    def num_points(self) -> int:
        return len(self.points)

    def has_metadata(self, index: int) -> bool:
        return index < len(self.metadata)

    def point_id(self, index: int) -> int:
        """Identifier a point is written with: its original id, else index + 1."""
        if self.has_metadata(index):
            return self.metadata[index].original_id
        return index + 1

    def live_point_indices(self) -> List[int]:
        return [i for i, p in enumerate(self.points) if not p.is_tombstoned]

    def tombstone(self, index: int) -> None:
        """Mark a point as deleted without removing it."""
        self.points[index].state = PointState.TOMBSTONED

    def missing_camera_ids(self) -> Dict[int, int]:
        """Map image id -> camera id for images whose camera is absent."""
        return {
            image_id: pose.camera_id
            for image_id, pose in self.images.items()
            if pose.camera_id not in self.cameras
        }

    def intrinsics_for(
        self,
        pose: CameraPose,
        defaults: Optional[DefaultCamera] = None,
        policy: str = "substitute",
    ) -> Optional[CameraIntrinsics]:
        """
        Intrinsics of the camera that captured an image.

        Args:
            pose: The image
            defaults: Values substituted when the camera is missing or unknown
            policy: 'substitute' returns defaults for missing cameras,
                    'report' returns None

        Returns:
            CameraIntrinsics or None
        """
        camera = self.cameras.get(pose.camera_id)
        intrinsics = camera.intrinsics() if camera is not None else None
        if intrinsics is not None:
            return intrinsics
        if policy != "substitute":
            return None

        defaults = defaults or DefaultCamera()
        width = camera.width if camera is not None and camera.width else defaults.width
        height = camera.height if camera is not None and camera.height else defaults.height
        return CameraIntrinsics(
            focal_length=defaults.focal_length,
            focal_length_y=defaults.focal_length,
            principal_point_x=width / 2.0,
            principal_point_y=height / 2.0,
        )

    def statistics(self) -> Dict[str, int]:
        """Get summary statistics about the scene."""
        return {
            'num_points': len(self.points),
            'num_live_points': len(self.live_point_indices()),
            'num_metadata': len(self.metadata),
            'num_cameras': len(self.cameras),
            'num_images': len(self.images),
            'num_features': sum(len(p.features) for p in self.images.values()),
            'num_observations': sum(len(m.track) for m in self.metadata),
        }
