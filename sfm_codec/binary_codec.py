"""
Binary reconstruction codec.

All values are little-endian. Each file starts with a u64 record count.

cameras.bin, per record:
    u32 camera_id, i32 model_id, u64 width, u64 height,
    f64 params[num_params(model_id)]

images.bin, per record:
    u32 image_id, f64 qw qx qy qz, f64 tx ty tz, u32 camera_id,
    NUL-terminated name, u64 num_points2D,
    num_points2D x {f64 x, f64 y, u64 point3D_id}

    point3D_id = 2^64 - 1 marks an untriangulated feature.

points3D.bin, per record:
    u64 point3D_id, f64 x y z, u8 r g b, f64 error, u64 track_length,
    track_length x {u32 image_id, u32 point2D_idx}

A record cut short by the end of the file ends the read: records already
parsed are kept and a warning is recorded. A file too short to hold its
count raises ModelFormatError.
"""

import os
import struct
from pathlib import Path
from typing import BinaryIO, Dict, List, Tuple
import logging

import numpy as np

from .camera_models import (
    BINARY_FALLBACK_NUM_PARAMS,
    UNKNOWN_MODEL_ID,
    get_model,
)
from .diagnostics import Diagnostics, ExportReport, ModelFormatError
from .exporter import ExportPlan
from .model_io import ReconstructionCodec
from .scene import (
    Camera,
    CameraPose,
    Feature,
    Point,
    PointMetadata,
    Scene,
    TrackElement,
)

logger = logging.getLogger(__name__)

CAMERA_FORMAT = "<IiQQ"  # 24 bytes
IMAGE_FORMAT = "<I7dI"  # 64 bytes
FEATURE_FORMAT = "<ddQ"  # 24 bytes
POINT_FORMAT = "<Q3d3Bd"  # 43 bytes
TRACK_FORMAT = "<II"  # 8 bytes
COUNT_FORMAT = "<Q"


def read_next_bytes(fid: BinaryIO, num_bytes: int, format_char_sequence: str) -> tuple:
    """
    Read and unpack the next bytes from a binary file.

    Args:
        fid: Open binary file
        num_bytes: Number of bytes to read
        format_char_sequence: struct format, including the byte order

    Returns:
        Tuple of unpacked values

    Raises:
        EOFError: If fewer than num_bytes remain
    """
    data = fid.read(num_bytes)
    if len(data) < num_bytes:
        raise EOFError(f"expected {num_bytes} bytes, got {len(data)}")
    return struct.unpack(format_char_sequence, data)


def read_block(fid: BinaryIO, num_bytes: int) -> bytes:
    """
    Read a variable-length block whose size comes from the file itself.

    A corrupt length is checked against the bytes left in the file before
    anything is allocated.

    Raises:
        EOFError: If the block does not fit in the rest of the file
    """
    remaining = os.fstat(fid.fileno()).st_size - fid.tell()
    if num_bytes > remaining:
        raise EOFError(f"expected {num_bytes} bytes, {remaining} left in file")
    return fid.read(num_bytes)


def read_count(fid: BinaryIO, path: Path) -> int:
    """Read the u64 record count that starts every file."""
    try:
        return read_next_bytes(fid, 8, COUNT_FORMAT)[0]
    except EOFError as e:
        raise ModelFormatError(f"Cannot read record count from {path}: {e}") from e


def read_nul_terminated(fid: BinaryIO) -> bytes:
    """Read bytes up to (and consuming) a NUL terminator."""
    chars = []
    while True:
        c = fid.read(1)
        if not c:
            raise EOFError("unterminated string")
        if c == b"\x00":
            return b"".join(chars)
        chars.append(c)


class BinaryModelCodec(ReconstructionCodec):
    """Reads and writes cameras.bin, images.bin and points3D.bin."""

    extension = ".bin"
    format_name = "binary"

    # Readers

    def read_cameras(self, path: Path, diagnostics: Diagnostics) -> Dict[int, Camera]:
        """
        Parse a cameras.bin file.

        Unknown model tags cannot be skipped exactly; a fallback block of
        BINARY_FALLBACK_NUM_PARAMS doubles is consumed and the camera is kept
        as UNKNOWN with no parameters.
        """
        cameras: Dict[int, Camera] = {}

        with open(path, 'rb') as fid:
            num_cameras = read_count(fid, path)

            for i in range(num_cameras):
                try:
                    camera_id, model_id, width, height = read_next_bytes(
                        fid, 24, CAMERA_FORMAT
                    )
                    spec = get_model(model_id)
                    if spec is None:
                        read_next_bytes(
                            fid,
                            8 * BINARY_FALLBACK_NUM_PARAMS,
                            "<" + "d" * BINARY_FALLBACK_NUM_PARAMS,
                        )
                        diagnostics.warning(
                            str(path),
                            f"Unknown camera model ID: {model_id} (camera {camera_id})",
                        )
                        params = np.zeros(0)
                        model_id = UNKNOWN_MODEL_ID
                    else:
                        params = np.array(read_next_bytes(
                            fid, 8 * spec.num_params, "<" + "d" * spec.num_params
                        ))
                except EOFError as e:
                    diagnostics.warning(
                        str(path),
                        f"Camera record {i + 1} of {num_cameras} is truncated ({e}); "
                        f"stopping after {len(cameras)} cameras",
                    )
                    break

                cameras[camera_id] = Camera(
                    camera_id=camera_id,
                    model_id=model_id,
                    width=width,
                    height=height,
                    params=params,
                )

        logger.info(f"Read {len(cameras)} cameras from {path}")
        return cameras

    def read_images(self, path: Path, diagnostics: Diagnostics) -> Dict[int, CameraPose]:
        """Parse an images.bin file into camera-to-world poses."""
        images: Dict[int, CameraPose] = {}

        with open(path, 'rb') as fid:
            num_images = read_count(fid, path)

            for i in range(num_images):
                try:
                    props = read_next_bytes(fid, 64, IMAGE_FORMAT)
                    name = read_nul_terminated(fid)
                    num_points2d = read_next_bytes(fid, 8, COUNT_FORMAT)[0]
                    data = read_block(fid, 24 * num_points2d)
                except EOFError as e:
                    diagnostics.warning(
                        str(path),
                        f"Image record {i + 1} of {num_images} is truncated ({e}); "
                        f"stopping after {len(images)} images",
                    )
                    break

                image_id = props[0]
                qvec = np.array(props[1:5])
                tvec = np.array(props[5:8])
                camera_id = props[8]

                try:
                    position, orientation = self.pose_from_disk(qvec, tvec)
                except ValueError as e:
                    diagnostics.warning(
                        str(path), f"Skipping image {image_id}: invalid pose ({e})"
                    )
                    continue

                features = [
                    Feature(xy=(x, y), point3d_id=point3d_id)
                    for x, y, point3d_id in struct.iter_unpack(FEATURE_FORMAT, data)
                ]

                images[image_id] = CameraPose(
                    image_id=image_id,
                    camera_id=camera_id,
                    name=name.decode('utf-8', errors='surrogateescape'),
                    position=position,
                    orientation=orientation,
                    features=features,
                )

        logger.info(f"Read {len(images)} images from {path}")
        return images

    def read_points3d(
        self, path: Path, diagnostics: Diagnostics
    ) -> Tuple[List[Point], List[PointMetadata]]:
        """Parse a points3D.bin file into points and index-aligned metadata."""
        points: List[Point] = []
        metadata: List[PointMetadata] = []

        with open(path, 'rb') as fid:
            num_points = read_count(fid, path)

            for i in range(num_points):
                try:
                    props = read_next_bytes(fid, 43, POINT_FORMAT)
                    track_length = read_next_bytes(fid, 8, COUNT_FORMAT)[0]
                    data = read_block(fid, 8 * track_length)
                except EOFError as e:
                    diagnostics.warning(
                        str(path),
                        f"Point record {i + 1} of {num_points} is truncated ({e}); "
                        f"stopping after {len(points)} points",
                    )
                    break

                point_id = props[0]
                xyz = props[1:4]
                rgb = np.array(props[4:7], dtype=np.float32) / 255.0
                error = props[7]

                points.append(Point(position=xyz, color=rgb))
                metadata.append(PointMetadata(
                    original_id=point_id,
                    error=error,
                    track=[
                        TrackElement(image_id=image_id, point2d_idx=point2d_idx)
                        for image_id, point2d_idx in struct.iter_unpack(TRACK_FORMAT, data)
                    ],
                ))

        logger.info(f"Read {len(points)} points from {path}")
        return points, metadata

    # Writers

    def write_cameras(self, path: Path, scene: Scene, report: ExportReport) -> None:
        """
        Write cameras.bin.

        Cameras with an unknown model cannot be represented and are left
        out; their images fall back to default intrinsics on reload.
        """
        writable = []
        for camera in scene.cameras.values():
            spec = get_model(camera.model_id)
            if spec is None:
                report.diagnostics.warning(
                    str(path),
                    f"Camera {camera.camera_id} has unknown model {camera.model_id}; not written",
                )
                continue
            params = camera.params
            if len(params) != spec.num_params:
                report.diagnostics.warning(
                    str(path),
                    f"Camera {camera.camera_id} ({spec.model_name}) has {len(params)} "
                    f"parameters, expected {spec.num_params}; "
                    f"{'padding with zeros' if len(params) < spec.num_params else 'truncating'}",
                )
                padded = np.zeros(spec.num_params)
                n = min(len(params), spec.num_params)
                padded[:n] = params[:n]
                params = padded
            writable.append((camera, spec, params))

        with open(path, 'wb') as fid:
            fid.write(struct.pack(COUNT_FORMAT, len(writable)))
            for camera, spec, params in writable:
                fid.write(struct.pack(
                    CAMERA_FORMAT,
                    camera.camera_id,
                    camera.model_id,
                    camera.width,
                    camera.height,
                ))
                fid.write(struct.pack("<" + "d" * spec.num_params, *params))

        report.cameras_written = len(writable)
        logger.debug(f"Wrote {len(writable)} cameras to {path}")

    def write_images(
        self, path: Path, scene: Scene, plan: ExportPlan, report: ExportReport
    ) -> None:
        """Write images.bin, rewriting references to deleted points."""
        with open(path, 'wb') as fid:
            fid.write(struct.pack(COUNT_FORMAT, len(scene.images)))
            for pose in scene.images.values():
                qvec, tvec = self.pose_to_disk(pose)
                fid.write(struct.pack(
                    IMAGE_FORMAT, pose.image_id, *qvec, *tvec, pose.camera_id
                ))
                fid.write(pose.name.encode('utf-8', errors='surrogateescape') + b"\x00")
                fid.write(struct.pack(COUNT_FORMAT, len(pose.features)))
                for feature in pose.features:
                    fid.write(struct.pack(
                        FEATURE_FORMAT,
                        feature.xy[0],
                        feature.xy[1],
                        plan.remap_point3d_id(feature.point3d_id),
                    ))

        report.images_written = len(scene.images)
        logger.debug(f"Wrote {len(scene.images)} images to {path}")

    def write_points3d(self, path: Path, plan: ExportPlan, report: ExportReport) -> None:
        """Write points3D.bin with only the points that were not deleted."""
        scene = plan.scene

        with open(path, 'wb') as fid:
            fid.write(struct.pack(COUNT_FORMAT, plan.num_kept))
            for index in plan.kept_indices:
                point = scene.points[index]
                track = plan.point_track(index)
                fid.write(struct.pack(
                    POINT_FORMAT,
                    plan.point_id(index),
                    *point.position.astype(np.float64),
                    *point.color_u8().tolist(),
                    plan.point_error(index),
                ))
                fid.write(struct.pack(COUNT_FORMAT, len(track)))
                for element in track:
                    fid.write(struct.pack(
                        TRACK_FORMAT, element.image_id, element.point2d_idx
                    ))

        report.points_written = plan.num_kept
        report.points_dropped = plan.num_dropped
        logger.info(f"Exported binary points: {path}")
