"""
Tests for PLY, OBJ and XYZ point lists.
"""

import tempfile
from pathlib import Path

import pytest
from numpy.testing import assert_allclose

from sfm_codec.diagnostics import Diagnostics, ModelFormatError
from sfm_codec.point_lists import load_point_list, read_ply, write_point_list


@pytest.fixture
def workdir():
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


class TestReaders:
    """Tests for parsing point lists."""

    def test_ply_with_byte_colours(self, workdir):
        path = workdir / "cloud.ply"
        path.write_text(
            "ply\nformat ascii 1.0\nelement vertex 2\n"
            "property float x\nproperty float y\nproperty float z\n"
            "property uchar red\nproperty uchar green\nproperty uchar blue\n"
            "end_header\n"
            "0 0 0 255 0 0\n"
            "1 2 3 0 128 255\n"
        )

        scene = read_ply(path, Diagnostics())

        assert len(scene.points) == 2
        assert scene.points[0].color_u8().tolist() == [255, 0, 0]
        assert_allclose(scene.points[1].position, [1, 2, 3])

    def test_ply_vertex_count_mismatch(self, workdir):
        path = workdir / "cloud.ply"
        path.write_text("ply\nelement vertex 3\nend_header\n0 0 0 1 1 1\n")

        diagnostics = Diagnostics()
        scene = read_ply(path, diagnostics)

        assert len(scene.points) == 1
        assert diagnostics.find("declares 3 vertices") is not None

    def test_ply_without_end_header(self, workdir):
        path = workdir / "cloud.ply"
        path.write_text("ply\nelement vertex 1\n0 0 0 1 1 1\n")

        with pytest.raises(ModelFormatError):
            read_ply(path, Diagnostics())

    def test_obj_default_colour(self, workdir):
        path = workdir / "mesh.obj"
        path.write_text("# comment\nv 1 2 3\nv 4 5 6 0.5 0.25 0\nvn 0 0 1\nf 1 2 1\n")

        scene = load_point_list(path, Diagnostics())

        assert len(scene.points) == 2
        assert_allclose(scene.points[0].color, [1, 1, 1])
        assert_allclose(scene.points[1].color, [0.5, 0.25, 0])

    def test_xyz_skips_bad_lines(self, workdir):
        path = workdir / "scan.xyz"
        path.write_text("1 2 3 255 255 255\nbroken line\n4 5 6 0 0 0\n")

        diagnostics = Diagnostics()
        scene = load_point_list(path, diagnostics)

        assert len(scene.points) == 2
        assert len(diagnostics.warnings) == 1


class TestWriters:
    """Tests for writing point lists."""

    @pytest.mark.parametrize("name", ["cloud.ply", "mesh.obj", "scan.xyz"])
    def test_tombstoned_points_skipped(self, workdir, sample_scene, name):
        sample_scene.tombstone(0)
        path = workdir / name

        report = write_point_list(path, sample_scene)
        scene = load_point_list(path, Diagnostics())

        assert report.points_written == 2
        assert report.points_dropped == 1
        assert len(scene.points) == 2
        assert_allclose(scene.points[0].position, sample_scene.points[1].position)
        assert scene.points[1].color_u8().tolist() == [200, 180, 40]
