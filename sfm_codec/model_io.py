"""
Shared logic for the binary and text reconstruction codecs.

A reconstruction is stored as three companion files in one directory:

    cameras.{bin,txt}    intrinsic sensor definitions
    images.{bin,txt}     posed images with their 2D features
    points3D.{bin,txt}   3D points with visibility tracks

Both codecs read and write the same Scene through the same camera model
registry and pose conversion, so a scene can move between the two formats
losing only ASCII precision.

Error Policy:
    - File cannot be opened             -> FileNotFoundError / OSError
    - Record count cannot be read       -> ModelFormatError
    - Single malformed record           -> skipped, warning diagnostic
    - Companion cameras/images missing  -> empty set, warning diagnostic
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple
import logging

import numpy as np

from .config import CodecConfig
from .diagnostics import Diagnostics, ExportReport, LoadResult
from .exporter import ExportPlan
from .scene import Camera, CameraPose, Point, PointMetadata, Scene
from .transforms import (
    normalize_quaternion,
    pose_to_world_to_camera,
    world_to_camera_to_pose,
)

logger = logging.getLogger(__name__)

CAMERAS_NAME = "cameras"
IMAGES_NAME = "images"
POINTS_NAME = "points3D"


def companion_paths(directory, extension: str) -> Dict[str, Path]:
    """Paths of the three companion files in a directory."""
    directory = Path(directory)
    return {
        'cameras': directory / f"{CAMERAS_NAME}{extension}",
        'images': directory / f"{IMAGES_NAME}{extension}",
        'points': directory / f"{POINTS_NAME}{extension}",
    }


def find_image_base_path(
    points_path,
    image_dir_name: str = "images",
    max_depth: int = 4,
    diagnostics: Optional[Diagnostics] = None,
) -> Tuple[str, bool]:
    """
    Locate the directory holding the source imagery.

    Checks <dir>/images, <dir>/../images, ... for up to max_depth levels,
    starting at the directory that contains the points file.

    Args:
        points_path: Path to the points file
        image_dir_name: Name of the image directory
        max_depth: Number of directory levels searched
        diagnostics: Receives a warning when nothing is found

    Returns:
        Tuple of (image_base_path, is_fallback). When no image directory
        exists the points file's own directory is returned with is_fallback=True.
    """
    start = Path(points_path).resolve().parent
    current = start

    for _ in range(max_depth):
        candidate = current / image_dir_name
        if candidate.is_dir():
            logger.info(f"Found images directory at: {candidate}")
            return str(candidate), False
        if current.parent == current:
            break
        current = current.parent

    message = f"Could not find '{image_dir_name}' directory. Defaulting to: {start}"
    if diagnostics is not None:
        diagnostics.warning(str(points_path), message)
    else:
        logger.warning(message)
    return str(start), True


class ReconstructionCodec:
    """
    Base class for the companion-file codecs.

    Subclasses set `extension` and `format_name` and implement the six
    per-file readers and writers.
    """

    extension = ""
    format_name = ""

    def __init__(self, config: Optional[CodecConfig] = None):
        self.config = config or CodecConfig()

    # Per-file operations implemented by subclasses

    def read_cameras(self, path: Path, diagnostics: Diagnostics) -> Dict[int, Camera]:
        raise NotImplementedError

    def read_images(self, path: Path, diagnostics: Diagnostics) -> Dict[int, CameraPose]:
        raise NotImplementedError

    def read_points3d(
        self, path: Path, diagnostics: Diagnostics
    ) -> Tuple[List[Point], List[PointMetadata]]:
        raise NotImplementedError

    def write_cameras(self, path: Path, scene: Scene, report: ExportReport) -> None:
        raise NotImplementedError

    def write_images(
        self, path: Path, scene: Scene, plan: ExportPlan, report: ExportReport
    ) -> None:
        raise NotImplementedError

    def write_points3d(self, path: Path, plan: ExportPlan, report: ExportReport) -> None:
        raise NotImplementedError

    # Pose conversion shared by both formats

    def pose_from_disk(
        self, qvec: np.ndarray, tvec: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """World-to-camera (q, t) -> camera centre and orientation."""
        if self.config.normalize_quaternions:
            qvec = normalize_quaternion(qvec)
        return world_to_camera_to_pose(qvec, tvec)

    def pose_to_disk(self, pose: CameraPose) -> Tuple[np.ndarray, np.ndarray]:
        """Camera centre and orientation -> world-to-camera (q, t)."""
        orientation = pose.orientation
        if self.config.normalize_quaternions:
            orientation = normalize_quaternion(orientation)
        return pose_to_world_to_camera(pose.position, orientation)

    # Whole-reconstruction operations

    def load(self, points_path, diagnostics: Optional[Diagnostics] = None) -> LoadResult:
        """
        Load a reconstruction given the path of its points file.

        The cameras and images files are looked up next to the points file.

        Args:
            points_path: Path to points3D.bin / points3D.txt
            diagnostics: Optional list to append to

        Returns:
            LoadResult with a new Scene
        """
        path = Path(points_path)
        if not path.is_file():
            raise FileNotFoundError(f"Points file not found: {points_path}")

        if diagnostics is None:
            diagnostics = Diagnostics()

        logger.info(f"Loading {self.format_name} reconstruction: {path}")

        points, metadata = self.read_points3d(path, diagnostics)
        scene = Scene(points=points, metadata=metadata)

        paths = companion_paths(path.parent, self.extension)

        if paths['cameras'].is_file():
            scene.cameras = self.read_cameras(paths['cameras'], diagnostics)
        else:
            diagnostics.warning(
                str(paths['cameras']),
                "Cameras file not found. Camera intrinsics will not be loaded.",
            )

        if paths['images'].is_file():
            scene.images = self.read_images(paths['images'], diagnostics)
        else:
            diagnostics.warning(
                str(paths['images']),
                f"{paths['images'].name} not found in {path.parent}. "
                f"Cameras will not be loaded.",
            )

        self._report_missing_cameras(scene, diagnostics, str(paths['images']))

        logger.info(
            f"Loaded {len(scene.points)} points, {len(scene.cameras)} cameras, "
            f"{len(scene.images)} camera poses"
        )
        return LoadResult(scene=scene, diagnostics=diagnostics, format_name=self.format_name)

    def write(self, points_path, scene: Scene) -> ExportReport:
        """
        Write a reconstruction, placing cameras and images next to the points file.

        Tombstoned points are dropped and feature references to them are
        written as untriangulated. The scene is not modified.

        Args:
            points_path: Destination of the points file
            scene: Scene to serialise

        Returns:
            ExportReport with counts and diagnostics
        """
        path = Path(points_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        paths = companion_paths(path.parent, self.extension)

        plan = ExportPlan.from_scene(scene)
        report = ExportReport()

        self.write_cameras(paths['cameras'], scene, report)
        self.write_images(paths['images'], scene, plan, report)
        self.write_points3d(path, plan, report)

        report.paths = [str(paths['cameras']), str(paths['images']), str(path)]
        report.remapped_references = plan.remapped_references
        report.unresolved_references = plan.unresolved_references
        plan.report_references(report.diagnostics, str(paths['images']))

        logger.info(
            f"Exported {self.format_name} reconstruction: {report.points_written} points "
            f"({report.points_dropped} deleted), {report.images_written} images"
        )
        return report

    def _report_missing_cameras(
        self, scene: Scene, diagnostics: Diagnostics, source: str
    ) -> None:
        missing = scene.missing_camera_ids()
        if not missing:
            return

        defaults = self.config.default_camera
        listed = ", ".join(
            f"image {image_id} -> camera {camera_id}"
            for image_id, camera_id in sorted(missing.items())[:5]
        )
        more = f" (+{len(missing) - 5} more)" if len(missing) > 5 else ""

        if self.config.missing_camera_policy == "substitute":
            action = (
                f"defaults substituted ({defaults.width}x{defaults.height}, "
                f"f={defaults.focal_length:g})"
            )
        else:
            action = "no intrinsics available"

        diagnostics.warning(
            source,
            f"{len(missing)} images reference cameras that are not defined: "
            f"{listed}{more}; {action}",
        )
