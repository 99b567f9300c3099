"""
Plain point-list formats: ASCII PLY, OBJ vertices and XYZ.

These formats carry positions and colours only. Nothing about cameras,
poses or tracks is read or written; deleted points are skipped on export.

PLY (ascii):  header ending in 'end_header', then 'x y z r g b' per vertex.
              Colours above 1 are treated as 0-255.
OBJ:          'v x y z [r g b]' lines, colours in 0-1, default white.
XYZ:          'x y z r g b' per line, colours 0-255, '#' comments skipped.
"""

from pathlib import Path
from typing import List, Optional
import logging

import numpy as np

from .diagnostics import Diagnostics, ExportReport, ModelFormatError
from .scene import Point, Scene

logger = logging.getLogger(__name__)


def _parse_floats(tokens: List[str], count: int) -> Optional[List[float]]:
    if len(tokens) < count:
        return None
    try:
        return [float(t) for t in tokens[:count]]
    except ValueError:
        return None


def read_ply(path, diagnostics: Diagnostics) -> Scene:
    """Read the vertices of an ASCII PLY file."""
    scene = Scene()
    header_ended = False
    vertex_count = 0

    with open(path, 'r') as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not header_ended:
                if line.startswith("element vertex"):
                    try:
                        vertex_count = int(line.split()[2])
                    except (IndexError, ValueError) as e:
                        raise ModelFormatError(f"Invalid PLY vertex count in {path}: {line}") from e
                elif line == "end_header":
                    header_ended = True
                continue

            values = _parse_floats(line.split(), 6)
            if values is None:
                if line:
                    diagnostics.warning(str(path), f"Skipping invalid vertex line {line_num}")
                continue
            color = np.array(values[3:6])
            if np.any(color > 1.0):
                color = color / 255.0
            scene.points.append(Point(position=values[:3], color=color))

    if not header_ended:
        raise ModelFormatError(f"PLY header not terminated in {path}")
    if vertex_count and vertex_count != len(scene.points):
        diagnostics.warning(
            str(path),
            f"Header declares {vertex_count} vertices, read {len(scene.points)}",
        )
    return scene


def read_obj(path, diagnostics: Diagnostics) -> Scene:
    """Read 'v' lines of an OBJ file."""
    scene = Scene()

    with open(path, 'r') as f:
        for line_num, line in enumerate(f, 1):
            if not line.startswith("v "):
                continue
            tokens = line[2:].split()
            position = _parse_floats(tokens, 3)
            if position is None:
                diagnostics.warning(str(path), f"Skipping invalid vertex line {line_num}")
                continue
            color = _parse_floats(tokens[3:], 3) or [1.0, 1.0, 1.0]
            scene.points.append(Point(position=position, color=color))

    return scene


def read_xyz(path, diagnostics: Diagnostics) -> Scene:
    """Read an XYZ list with 0-255 colours."""
    scene = Scene()

    with open(path, 'r') as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            values = _parse_floats(line.split(), 6)
            if values is None:
                diagnostics.warning(str(path), f"Skipping invalid point line {line_num}")
                continue
            scene.points.append(Point(
                position=values[:3],
                color=np.array(values[3:6]) / 255.0,
            ))

    return scene


def _live_points(scene: Scene) -> List[Point]:
    return [p for p in scene.points if not p.is_tombstoned]


def write_ply(path, scene: Scene, report: ExportReport) -> None:
    points = _live_points(scene)
    with open(path, 'w') as out:
        out.write("ply\n")
        out.write("format ascii 1.0\n")
        out.write(f"element vertex {len(points)}\n")
        for axis in ("x", "y", "z"):
            out.write(f"property float {axis}\n")
        for channel in ("red", "green", "blue"):
            out.write(f"property uchar {channel}\n")
        out.write("end_header\n")
        for p in points:
            r, g, b = p.color_u8().tolist()
            x, y, z = (float(v) for v in p.position)
            out.write(f"{x!r} {y!r} {z!r} {r} {g} {b}\n")
    _finish(path, scene, points, report, "PLY")


def write_obj(path, scene: Scene, report: ExportReport) -> None:
    points = _live_points(scene)
    with open(path, 'w') as out:
        out.write("# SfM scene export\n")
        for p in points:
            x, y, z = (float(v) for v in p.position)
            r, g, b = (float(v) for v in p.color)
            out.write(f"v {x!r} {y!r} {z!r} {r!r} {g!r} {b!r}\n")
    _finish(path, scene, points, report, "OBJ")


def write_xyz(path, scene: Scene, report: ExportReport) -> None:
    points = _live_points(scene)
    with open(path, 'w') as out:
        for p in points:
            r, g, b = p.color_u8().tolist()
            x, y, z = (float(v) for v in p.position)
            out.write(f"{x!r} {y!r} {z!r} {r} {g} {b}\n")
    _finish(path, scene, points, report, "XYZ")


def _finish(path, scene: Scene, points: List[Point], report: ExportReport, label: str) -> None:
    report.paths = [str(path)]
    report.points_written = len(points)
    report.points_dropped = len(scene.points) - len(points)
    logger.info(f"Exported {label}: {path}")


READERS = {
    '.ply': read_ply,
    '.obj': read_obj,
    '.xyz': read_xyz,
}

WRITERS = {
    '.ply': write_ply,
    '.obj': write_obj,
    '.xyz': write_xyz,
}


def load_point_list(path, diagnostics: Diagnostics, extension: Optional[str] = None) -> Scene:
    """Read a point list, choosing the parser by extension."""
    ext = (extension or Path(path).suffix).lower()
    return READERS[ext](path, diagnostics)


def write_point_list(path, scene: Scene, extension: Optional[str] = None) -> ExportReport:
    """Write a point list, choosing the writer by extension."""
    ext = (extension or Path(path).suffix).lower()
    report = ExportReport()
    WRITERS[ext](path, scene, report)
    return report
