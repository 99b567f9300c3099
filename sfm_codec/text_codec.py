"""
Text reconstruction codec.

Files start with a block of '#' comment lines; comments are accepted
anywhere. Values are whitespace-separated.

cameras.txt, one line per camera:
    CAMERA_ID MODEL WIDTH HEIGHT PARAMS[]

images.txt, two lines per image:
    IMAGE_ID QW QX QY QZ TX TY TZ CAMERA_ID NAME
    POINTS2D[] as (X Y POINT3D_ID)

    POINT3D_ID = -1 marks an untriangulated feature. The second line may
    be empty when an image has no features.

points3D.txt, one line per point:
    POINT3D_ID X Y Z R G B ERROR TRACK[] as (IMAGE_ID POINT2D_IDX)

Example:
    # 3D point list with one line of data per point:
    12 0.5 -1.25 3.0 200 180 40 0.73 1 15 4 102

A line that fails to parse is skipped with a warning; the rest of the file
is still read. An unknown model name is kept as an UNKNOWN camera with no
parameters.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple
import logging

import numpy as np

from .camera_models import UNKNOWN_MODEL_ID, get_model, get_model_by_name
from .diagnostics import Diagnostics, ExportReport
from .exporter import ExportPlan
from .model_io import ReconstructionCodec
from .scene import (
    INVALID_POINT3D_ID,
    Camera,
    CameraPose,
    Feature,
    Point,
    PointMetadata,
    Scene,
    TrackElement,
)

logger = logging.getLogger(__name__)

TEXT_SENTINEL = "-1"


def _data_lines(path: Path):
    """Yield (line_number, stripped line) for non-empty, non-comment lines."""
    with open(path, 'r') as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            yield line_num, line


def parse_point3d_id(token: str) -> int:
    """Convert a text point3D id to an integer, mapping -1 to the sentinel."""
    value = int(token)
    if value == -1:
        return INVALID_POINT3D_ID
    if value < 0:
        raise ValueError(f"negative point3D id {value}")
    return value


def format_point3d_id(point3d_id: int) -> str:
    if point3d_id == INVALID_POINT3D_ID:
        return TEXT_SENTINEL
    return str(point3d_id)


class TextModelCodec(ReconstructionCodec):
    """Reads and writes cameras.txt, images.txt and points3D.txt."""

    extension = ".txt"
    format_name = "text"

    def _fmt(self, value: float) -> str:
        return self.config.text_float_format % value

    # Readers

    def read_cameras(self, path: Path, diagnostics: Diagnostics) -> Dict[int, Camera]:
        cameras: Dict[int, Camera] = {}

        for line_num, line in _data_lines(path):
            camera = self._parse_camera(line, line_num, path, diagnostics)
            if camera is not None:
                cameras[camera.camera_id] = camera

        logger.info(f"Read {len(cameras)} cameras from {path}")
        return cameras

    def _parse_camera(
        self, line: str, line_num: int, path: Path, diagnostics: Diagnostics
    ) -> Optional[Camera]:
        """
        Parse a camera line.

        Format: CAMERA_ID MODEL WIDTH HEIGHT PARAMS[]
        Example: "1 PINHOLE 640 480 800 810 320 240"
        """
        parts = line.split()
        if len(parts) < 4:
            diagnostics.warning(str(path), f"Skipping invalid camera line {line_num}: {line}")
            return None

        try:
            camera_id = int(parts[0])
            width = int(parts[2])
            height = int(parts[3])
            values = [float(v) for v in parts[4:]]
        except ValueError as e:
            diagnostics.warning(str(path), f"Parse error on camera line {line_num}: {e}")
            return None

        spec = get_model_by_name(parts[1])
        if spec is None:
            diagnostics.warning(
                str(path),
                f"Unknown camera model '{parts[1]}' on line {line_num}; "
                f"camera {camera_id} kept as UNKNOWN",
            )
            return Camera(camera_id, UNKNOWN_MODEL_ID, width, height, np.zeros(0))

        if len(values) < spec.num_params:
            diagnostics.warning(
                str(path),
                f"Skipping camera {camera_id} on line {line_num}: {spec.model_name} "
                f"needs {spec.num_params} parameters, got {len(values)}",
            )
            return None
        if len(values) > spec.num_params:
            diagnostics.warning(
                str(path),
                f"Camera {camera_id} ({spec.model_name}) has {len(values)} parameters; "
                f"keeping the first {spec.num_params}",
            )

        return Camera(
            camera_id=camera_id,
            model_id=spec.model_id,
            width=width,
            height=height,
            params=np.array(values[:spec.num_params]),
        )

    def read_images(self, path: Path, diagnostics: Diagnostics) -> Dict[int, CameraPose]:
        """
        Parse images.txt.

        The feature line is read unconditionally after a pose line, since it
        is blank for images without features.
        """
        images: Dict[int, CameraPose] = {}

        with open(path, 'r', encoding='utf-8', errors='surrogateescape') as f:
            lines = f.readlines()

        i = 0
        while i < len(lines):
            line = lines[i].strip()

            if not line or line.startswith('#'):
                i += 1
                continue

            pose_line_num = i + 1
            features_line = lines[i + 1].strip() if i + 1 < len(lines) else ""
            i += 2

            pose = self._parse_image(line, features_line, pose_line_num, path, diagnostics)
            if pose is not None:
                images[pose.image_id] = pose

        logger.info(f"Read {len(images)} images from {path}")
        return images

    def _parse_image(
        self,
        pose_line: str,
        features_line: str,
        line_num: int,
        path: Path,
        diagnostics: Diagnostics,
    ) -> Optional[CameraPose]:
        parts = pose_line.split(None, 9)
        if len(parts) < 10:
            diagnostics.warning(
                str(path), f"Skipping invalid image line {line_num}: {pose_line}"
            )
            return None

        try:
            image_id = int(parts[0])
            qvec = np.array([float(v) for v in parts[1:5]])
            tvec = np.array([float(v) for v in parts[5:8]])
            camera_id = int(parts[8])
            name = parts[9].strip()

            tokens = features_line.split()
            if len(tokens) % 3 != 0:
                raise ValueError(
                    f"feature line has {len(tokens)} values, not a multiple of 3"
                )
            features = [
                Feature(
                    xy=(float(tokens[j]), float(tokens[j + 1])),
                    point3d_id=parse_point3d_id(tokens[j + 2]),
                )
                for j in range(0, len(tokens), 3)
            ]

            position, orientation = self.pose_from_disk(qvec, tvec)
        except ValueError as e:
            diagnostics.warning(str(path), f"Parse error on image line {line_num}: {e}")
            return None

        return CameraPose(
            image_id=image_id,
            camera_id=camera_id,
            name=name,
            position=position,
            orientation=orientation,
            features=features,
        )

    def read_points3d(
        self, path: Path, diagnostics: Diagnostics
    ) -> Tuple[List[Point], List[PointMetadata]]:
        points: List[Point] = []
        metadata: List[PointMetadata] = []

        for line_num, line in _data_lines(path):
            parsed = self._parse_point(line)
            if parsed is None:
                diagnostics.warning(str(path), f"Skipping invalid point line {line_num}: {line}")
                continue
            point, meta = parsed
            points.append(point)
            metadata.append(meta)

        logger.info(f"Read {len(points)} points from {path}")
        return points, metadata

    def _parse_point(self, line: str) -> Optional[Tuple[Point, PointMetadata]]:
        """
        Parse a point line.

        Format: POINT3D_ID X Y Z R G B ERROR (IMAGE_ID POINT2D_IDX)*

        Returns:
            Tuple of (Point, PointMetadata) or None if not valid
        """
        parts = line.split()
        if len(parts) < 8 or (len(parts) - 8) % 2 != 0:
            return None

        try:
            point_id = int(parts[0])
            xyz = [float(v) for v in parts[1:4]]
            rgb = [int(v) for v in parts[4:7]]
            error = float(parts[7])
            track = [
                TrackElement(image_id=int(parts[j]), point2d_idx=int(parts[j + 1]))
                for j in range(8, len(parts), 2)
            ]
        except ValueError:
            return None

        if point_id < 0 or any(c < 0 or c > 255 for c in rgb):
            return None

        point = Point(position=xyz, color=np.array(rgb, dtype=np.float32) / 255.0)
        return point, PointMetadata(original_id=point_id, error=error, track=track)

    # Writers

    def write_cameras(self, path: Path, scene: Scene, report: ExportReport) -> None:
        with open(path, 'w') as f:
            f.write("# Camera list with one line of data per camera:\n")
            f.write("#   CAMERA_ID, MODEL, WIDTH, HEIGHT, PARAMS[]\n")
            f.write(f"# Number of cameras: {len(scene.cameras)}\n")

            for camera in scene.cameras.values():
                spec = get_model(camera.model_id)
                params = camera.params if spec is not None else []
                tokens = [
                    str(camera.camera_id),
                    camera.model_name,
                    str(camera.width),
                    str(camera.height),
                ] + [self._fmt(p) for p in params]
                f.write(" ".join(tokens) + "\n")

        report.cameras_written = len(scene.cameras)
        logger.debug(f"Wrote {len(scene.cameras)} cameras to {path}")

    def write_images(
        self, path: Path, scene: Scene, plan: ExportPlan, report: ExportReport
    ) -> None:
        num_features = sum(len(p.features) for p in scene.images.values())
        mean_obs = num_features / len(scene.images) if scene.images else 0.0

        with open(path, 'w', encoding='utf-8', errors='surrogateescape') as f:
            f.write("# Image list with two lines of data per image:\n")
            f.write("#   IMAGE_ID, QW, QX, QY, QZ, TX, TY, TZ, CAMERA_ID, NAME\n")
            f.write("#   POINTS2D[] as (X, Y, POINT3D_ID)\n")
            f.write(
                f"# Number of images: {len(scene.images)}, "
                f"mean observations per image: {mean_obs:g}\n"
            )

            for pose in scene.images.values():
                qvec, tvec = self.pose_to_disk(pose)
                tokens = [str(pose.image_id)]
                tokens += [self._fmt(v) for v in qvec]
                tokens += [self._fmt(v) for v in tvec]
                tokens += [str(pose.camera_id), pose.name]
                f.write(" ".join(tokens) + "\n")

                feature_tokens = []
                for feature in pose.features:
                    feature_tokens += [
                        self._fmt(feature.xy[0]),
                        self._fmt(feature.xy[1]),
                        format_point3d_id(plan.remap_point3d_id(feature.point3d_id)),
                    ]
                f.write(" ".join(feature_tokens) + "\n")

        report.images_written = len(scene.images)
        logger.debug(f"Wrote {len(scene.images)} images to {path}")

    def write_points3d(self, path: Path, plan: ExportPlan, report: ExportReport) -> None:
        scene = plan.scene
        track_total = sum(len(plan.point_track(i)) for i in plan.kept_indices)
        mean_track = track_total / plan.num_kept if plan.num_kept else 0.0

        with open(path, 'w') as f:
            f.write("# 3D point list with one line of data per point:\n")
            f.write(
                "#   POINT3D_ID, X, Y, Z, R, G, B, ERROR, "
                "TRACK[] as (IMAGE_ID, POINT2D_IDX)\n"
            )
            f.write(
                f"# Number of points: {plan.num_kept}, mean track length: {mean_track:g}\n"
            )

            for index in plan.kept_indices:
                point = scene.points[index]
                tokens = [str(plan.point_id(index))]
                tokens += [self._fmt(float(v)) for v in point.position]
                tokens += [str(c) for c in point.color_u8().tolist()]
                tokens.append(self._fmt(plan.point_error(index)))
                for element in plan.point_track(index):
                    tokens += [str(element.image_id), str(element.point2d_idx)]
                f.write(" ".join(tokens) + "\n")

        report.points_written = plan.num_kept
        report.points_dropped = plan.num_dropped
        logger.info(f"Exported text points: {path}")
