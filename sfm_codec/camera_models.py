"""
Camera model registry.

Each camera stores a numeric model tag and a parameter vector whose length
and meaning depend on that tag. The registry names every parameter slot so
intrinsics are read by name instead of by position.

Supported Models:
    0  SIMPLE_PINHOLE   f, cx, cy
    1  PINHOLE          fx, fy, cx, cy
    2  SIMPLE_RADIAL    f, cx, cy, k1
    3  RADIAL           f, cx, cy, k1, k2
    4  OPENCV           fx, fy, cx, cy, k1, k2, p1, p2
    5  OPENCV_FISHEYE   fx, fy, cx, cy, k1..k6, sx1, sy1
    6  FULL_OPENCV      fx, fy, cx, cy, k1

Model 6 uses a conservative 5-slot layout; files written by other tools with
the 12-slot variant are read with only the first 5 values.

Decoding:
    Shared focal length (first slot 'f'):  fy = f, principal point = slots 1, 2
    Separate focal lengths ('fx', 'fy'):   fy = slot 1, principal point = slots 2, 3
    Remaining slots are distortion terms, kept verbatim.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple
import logging

logger = logging.getLogger(__name__)

UNKNOWN_MODEL_ID = -1
UNKNOWN_MODEL_NAME = "UNKNOWN"

# Parameters consumed from a binary stream when the model tag is not recognised
BINARY_FALLBACK_NUM_PARAMS = 3


@dataclass(frozen=True)
class CameraModelSpec:
    """Parameter layout of one camera model."""
    model_id: int
    model_name: str
    slots: Tuple[str, ...]

    @property
    def num_params(self) -> int:
        return len(self.slots)

    @property
    def shared_focal(self) -> bool:
        """True when a single focal length serves both axes."""
        return bool(self.slots) and self.slots[0] == "f"

    @property
    def num_intrinsic_slots(self) -> int:
        """Number of leading slots holding focal length and principal point."""
        if not self.slots:
            return 0
        return 3 if self.shared_focal else 4


@dataclass
class CameraIntrinsics:
    """Decoded pinhole intrinsics plus the untouched distortion terms."""
    focal_length: float
    focal_length_y: float
    principal_point_x: float
    principal_point_y: float
    distortion: Dict[str, float] = field(default_factory=dict)

    @property
    def principal_point(self) -> Tuple[float, float]:
        return (self.principal_point_x, self.principal_point_y)


CAMERA_MODELS = (
    CameraModelSpec(0, "SIMPLE_PINHOLE", ("f", "cx", "cy")),
    CameraModelSpec(1, "PINHOLE", ("fx", "fy", "cx", "cy")),
    CameraModelSpec(2, "SIMPLE_RADIAL", ("f", "cx", "cy", "k1")),
    CameraModelSpec(3, "RADIAL", ("f", "cx", "cy", "k1", "k2")),
    CameraModelSpec(4, "OPENCV", ("fx", "fy", "cx", "cy", "k1", "k2", "p1", "p2")),
    CameraModelSpec(
        5,
        "OPENCV_FISHEYE",
        ("fx", "fy", "cx", "cy", "k1", "k2", "k3", "k4", "k5", "k6", "sx1", "sy1"),
    ),
    CameraModelSpec(6, "FULL_OPENCV", ("fx", "fy", "cx", "cy", "k1")),
)

UNKNOWN_MODEL = CameraModelSpec(UNKNOWN_MODEL_ID, UNKNOWN_MODEL_NAME, ())

CAMERA_MODEL_IDS: Dict[int, CameraModelSpec] = {m.model_id: m for m in CAMERA_MODELS}
CAMERA_MODEL_NAMES: Dict[str, CameraModelSpec] = {m.model_name: m for m in CAMERA_MODELS}


def get_model(model_id: int) -> Optional[CameraModelSpec]:
    """Return the CameraModelSpec for a model tag, or None if the tag is unknown."""
    return CAMERA_MODEL_IDS.get(model_id)


def get_model_by_name(model_name: str) -> Optional[CameraModelSpec]:
    """Return the CameraModelSpec for a model name (case-insensitive), or None."""
    return CAMERA_MODEL_NAMES.get(model_name.strip().upper())


def model_name(model_id: int) -> str:
    """Name of a model tag; unknown tags map to UNKNOWN."""
    spec = get_model(model_id)
    return spec.model_name if spec else UNKNOWN_MODEL_NAME


def num_params(model_id: int) -> int:
    """
    Number of parameters stored for a model tag.

    Unknown tags have no parameters.
    """
    spec = get_model(model_id)
    return spec.num_params if spec else 0


def decode_intrinsics(
    model_id: int, params: Sequence[float]
) -> Optional[CameraIntrinsics]:
    """
    Decode focal length and principal point from a parameter vector.

    Args:
        model_id: Camera model tag
        params: Parameter vector laid out as the model's slots

    Returns:
        CameraIntrinsics, or None for unknown models and short vectors
    """
    spec = get_model(model_id)
    if spec is None:
        return None

    if len(params) < spec.num_intrinsic_slots:
        logger.debug(
            f"{spec.model_name} needs {spec.num_intrinsic_slots} intrinsic "
            f"parameters, got {len(params)}"
        )
        return None

    values = [float(p) for p in params]

    if spec.shared_focal:
        focal_length = values[0]
        focal_length_y = focal_length
        cx, cy = values[1], values[2]
    else:
        focal_length = values[0]
        focal_length_y = values[1]
        cx, cy = values[2], values[3]

    distortion = {
        name: value
        for name, value in zip(spec.slots[spec.num_intrinsic_slots:],
                               values[spec.num_intrinsic_slots:])
    }

    return CameraIntrinsics(
        focal_length=focal_length,
        focal_length_y=focal_length_y,
        principal_point_x=cx,
        principal_point_y=cy,
        distortion=distortion,
    )
