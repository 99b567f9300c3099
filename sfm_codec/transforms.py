"""
Coordinate transformation module for camera poses.

Reconstruction files store each image pose as world-to-camera:

    X_camera = R(q) @ X_world + t

Consumers place cameras in a world-space scene graph, so the in-memory
pose is camera-to-world: a camera centre C and an orientation q'.

    Load:    R = R(q),     C = -R.T @ t,   q' = conj(q)
    Export:  R = R(q').T,  t = -R @ C,     q  = conj(q')

conj(q) is quat(R.T) with the sign of q preserved, so the two conversions
are exact inverses for every unit quaternion, including those with w < 0.

Quaternion Conventions:
    - Scalar-first (w, x, y, z), as in the file formats
    - Hamilton convention, right-hand rule
    - Signs are never flipped; q and -q are the same rotation but different bytes
"""

import numpy as np
from typing import Tuple
from scipy.spatial.transform import Rotation


def _to_scipy(qvec: np.ndarray) -> np.ndarray:
    """Reorder (w, x, y, z) to scipy's scalar-last (x, y, z, w)."""
    return np.array([qvec[1], qvec[2], qvec[3], qvec[0]], dtype=np.float64)


def normalize_quaternion(qvec: np.ndarray) -> np.ndarray:
    """
    Scale a quaternion to unit length.

    Args:
        qvec: Quaternion (w, x, y, z)

    Returns:
        Unit quaternion (w, x, y, z)

    Raises:
        ValueError: If the quaternion has zero norm
    """
    qvec = np.asarray(qvec, dtype=np.float64)
    norm = np.linalg.norm(qvec)
    if norm == 0 or not np.isfinite(norm):
        raise ValueError(f"Cannot normalize quaternion {qvec}")
    return qvec / norm


def quaternion_conjugate(qvec: np.ndarray) -> np.ndarray:
    """Conjugate (w, -x, -y, -z): the inverse rotation of a unit quaternion."""
    qvec = np.asarray(qvec, dtype=np.float64).reshape(4)
    return np.array([qvec[0], -qvec[1], -qvec[2], -qvec[3]])


def qvec_to_rotmat(qvec: np.ndarray) -> np.ndarray:
    """
    Convert a scalar-first quaternion to a 3x3 rotation matrix.

    Args:
        qvec: Quaternion (w, x, y, z)

    Returns:
        3x3 rotation matrix
    """
    qvec = np.asarray(qvec, dtype=np.float64)
    return Rotation.from_quat(_to_scipy(qvec)).as_matrix()


def world_to_camera_to_pose(
    qvec: np.ndarray, tvec: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert an on-disk world-to-camera pose to camera centre and orientation.

    Args:
        qvec: World-to-camera rotation as quaternion (w, x, y, z)
        tvec: World-to-camera translation

    Returns:
        Tuple of (center, orientation) where orientation is the
        camera-to-world rotation as quaternion (w, x, y, z)

    Example:
        q = (1, 0, 0, 0), t = (0, 0, 5)  ->  center (0, 0, -5), orientation (1, 0, 0, 0)
    """
    R = qvec_to_rotmat(qvec)
    t = np.asarray(tvec, dtype=np.float64).reshape(3)

    center = -R.T @ t
    orientation = quaternion_conjugate(qvec)

    return center, orientation


def pose_to_world_to_camera(
    center: np.ndarray, orientation: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert camera centre and orientation back to the on-disk convention.

    Exact inverse of world_to_camera_to_pose up to floating-point rounding.

    Args:
        center: Camera centre in world coordinates
        orientation: Camera-to-world rotation as quaternion (w, x, y, z)

    Returns:
        Tuple of (qvec, tvec) for the world-to-camera pose
    """
    R = qvec_to_rotmat(orientation).T
    c = np.asarray(center, dtype=np.float64).reshape(3)

    tvec = -R @ c
    qvec = quaternion_conjugate(orientation)

    return qvec, tvec
