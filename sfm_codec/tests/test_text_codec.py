"""
Tests for the text reconstruction codec.
"""

import tempfile
from pathlib import Path

import pytest
import numpy as np
from numpy.testing import assert_allclose

from sfm_codec.camera_models import UNKNOWN_MODEL_ID
from sfm_codec.config import CodecConfig
from sfm_codec.diagnostics import Diagnostics
from sfm_codec.scene import INVALID_POINT3D_ID, Camera
from sfm_codec.text_codec import TextModelCodec, format_point3d_id, parse_point3d_id


@pytest.fixture
def model_dir():
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


class TestPointIdTokens:
    """Tests for the -1 sentinel in text files."""

    def test_minus_one_is_sentinel(self):
        assert parse_point3d_id("-1") == INVALID_POINT3D_ID
        assert format_point3d_id(INVALID_POINT3D_ID) == "-1"

    def test_regular_id(self):
        assert parse_point3d_id("42") == 42
        assert format_point3d_id(42) == "42"

    def test_other_negative_rejected(self):
        with pytest.raises(ValueError):
            parse_point3d_id("-2")


class TestReadPoints:
    """Tests for points3D.txt parsing."""

    def test_comments_and_values(self, model_dir):
        path = model_dir / "points3D.txt"
        path.write_text(
            "# 3D point list with one line of data per point:\n"
            "#   POINT3D_ID, X, Y, Z, R, G, B, ERROR, TRACK[] as (IMAGE_ID, POINT2D_IDX)\n"
            "12 0.5 -1.25 3.0 200 180 40 0.73 1 15 4 102\n"
            "\n"
            "# trailing comment\n"
            "13 1 2 3 0 0 0 0\n"
        )

        points, metadata = TextModelCodec().read_points3d(path, Diagnostics())

        assert len(points) == 2
        assert_allclose(points[0].position, [0.5, -1.25, 3.0])
        assert points[0].color_u8().tolist() == [200, 180, 40]
        assert metadata[0].original_id == 12
        assert metadata[0].error == pytest.approx(0.73)
        assert [(t.image_id, t.point2d_idx) for t in metadata[0].track] == [(1, 15), (4, 102)]
        assert metadata[1].track == []

    def test_malformed_line_is_skipped(self, model_dir):
        path = model_dir / "points3D.txt"
        path.write_text(
            "1 0 0 0 10 10 10 0.1\n"
            "2 0 0 not_a_number 10 10 10 0.1\n"
            "3 0 0 0 10 10\n"
            "4 0 0 0 10 10 10 0.1 1\n"
            "5 0 0 0 300 10 10 0.1\n"
            "6 1 1 1 20 20 20 0.2\n"
        )

        diagnostics = Diagnostics()
        _, metadata = TextModelCodec().read_points3d(path, diagnostics)

        assert [m.original_id for m in metadata] == [1, 6]
        assert len(diagnostics.warnings) == 4
        assert diagnostics.find("line 2") is not None


class TestReadCameras:
    """Tests for cameras.txt parsing."""

    def test_models_by_name(self, model_dir):
        path = model_dir / "cameras.txt"
        path.write_text(
            "# Camera list with one line of data per camera:\n"
            "1 PINHOLE 640 480 800 810 320 240\n"
            "2 SIMPLE_PINHOLE 1280 720 900 640 360\n"
        )

        cameras = TextModelCodec().read_cameras(path, Diagnostics())

        assert cameras[1].model_id == 1
        assert cameras[1].intrinsics().focal_length_y == 810
        assert cameras[2].intrinsics().focal_length_y == 900
        assert cameras[2].intrinsics().principal_point == (640, 360)

    def test_unknown_model_name(self, model_dir):
        path = model_dir / "cameras.txt"
        path.write_text("7 FANCY_LENS 800 600 1 2 3 4 5\n")

        diagnostics = Diagnostics()
        cameras = TextModelCodec().read_cameras(path, diagnostics)

        assert cameras[7].model_id == UNKNOWN_MODEL_ID
        assert (cameras[7].width, cameras[7].height) == (800, 600)
        assert cameras[7].intrinsics() is None
        assert diagnostics.find("FANCY_LENS") is not None

    def test_too_few_params_skipped(self, model_dir):
        path = model_dir / "cameras.txt"
        path.write_text("1 OPENCV 640 480 500 500 320\n2 PINHOLE 640 480 1 2 3 4\n")

        diagnostics = Diagnostics()
        cameras = TextModelCodec().read_cameras(path, diagnostics)

        assert list(cameras) == [2]
        assert diagnostics.find("needs 8 parameters") is not None

    def test_extra_params_truncated(self, model_dir):
        path = model_dir / "cameras.txt"
        path.write_text("1 SIMPLE_PINHOLE 640 480 500 320 240 0.1 0.2\n")

        diagnostics = Diagnostics()
        cameras = TextModelCodec().read_cameras(path, diagnostics)

        assert_allclose(cameras[1].params, [500, 320, 240])
        assert len(diagnostics.warnings) == 1


class TestReadImages:
    """Tests for images.txt parsing."""

    def test_empty_feature_line(self, model_dir):
        path = model_dir / "images.txt"
        path.write_text(
            "# Image list with two lines of data per image:\n"
            "1 1 0 0 0 0 0 5 3 first.jpg\n"
            "\n"
            "2 1 0 0 0 1 2 3 3 second.jpg\n"
            "10.0 20.0 -1 30.5 40.5 8\n"
        )

        images = TextModelCodec().read_images(path, Diagnostics())

        assert set(images) == {1, 2}
        assert images[1].features == []
        assert_allclose(images[1].position, [0, 0, -5], atol=1e-12)
        assert len(images[2].features) == 2
        assert images[2].features[0].point3d_id == INVALID_POINT3D_ID
        assert images[2].features[1].point3d_id == 8
        assert_allclose(images[2].features[1].xy, [30.5, 40.5])

    def test_name_with_spaces(self, model_dir):
        path = model_dir / "images.txt"
        path.write_text("1 1 0 0 0 0 0 0 1 my holiday/photo 01.jpg\n\n")

        images = TextModelCodec().read_images(path, Diagnostics())
        assert images[1].name == "my holiday/photo 01.jpg"

    def test_bad_feature_line_skips_image(self, model_dir):
        path = model_dir / "images.txt"
        path.write_text(
            "1 1 0 0 0 0 0 0 1 a.jpg\n"
            "1.0 2.0\n"
            "2 1 0 0 0 0 0 0 1 b.jpg\n"
            "1.0 2.0 3\n"
        )

        diagnostics = Diagnostics()
        images = TextModelCodec().read_images(path, diagnostics)

        assert list(images) == [2]
        assert diagnostics.find("multiple of 3") is not None


class TestRoundTrip:
    """Tests for write followed by load."""

    def test_text_round_trip(self, model_dir, sample_scene, assert_scenes_match):
        codec = TextModelCodec()
        report = codec.write(model_dir / "points3D.txt", sample_scene)

        assert report.points_written == 3
        assert report.images_written == 2

        result = codec.load(model_dir / "points3D.txt")
        assert result.format_name == "text"
        assert_scenes_match(result.scene, sample_scene)
        assert not result.diagnostics.warnings

    def test_headers_written(self, model_dir, sample_scene):
        TextModelCodec().write(model_dir / "points3D.txt", sample_scene)

        assert (model_dir / "cameras.txt").read_text().startswith("# Camera list")
        assert (model_dir / "images.txt").read_text().startswith("# Image list")
        assert (model_dir / "points3D.txt").read_text().startswith("# 3D point list")

    def test_untriangulated_feature_written_as_minus_one(self, model_dir, sample_scene):
        TextModelCodec().write(model_dir / "points3D.txt", sample_scene)

        lines = (model_dir / "images.txt").read_text().splitlines()
        data = [line for line in lines if not line.startswith("#")]
        # image 2 feature line
        assert data[3].split()[5] == "-1"

    def test_image_without_features(self, model_dir, sample_scene):
        sample_scene.images[1].features = []
        codec = TextModelCodec()
        codec.write(model_dir / "points3D.txt", sample_scene)

        result = codec.load(model_dir / "points3D.txt")

        assert result.scene.images[1].features == []
        assert len(result.scene.images[2].features) == 3

    def test_unknown_camera_round_trip(self, model_dir, sample_scene):
        sample_scene.cameras[3] = Camera(3, UNKNOWN_MODEL_ID, 100, 50)
        codec = TextModelCodec()
        codec.write(model_dir / "points3D.txt", sample_scene)

        result = codec.load(model_dir / "points3D.txt")

        camera = result.scene.cameras[3]
        assert camera.model_id == UNKNOWN_MODEL_ID
        assert (camera.width, camera.height) == (100, 50)

    def test_low_precision_float_format(self, model_dir, sample_scene, assert_scenes_match):
        codec = TextModelCodec(CodecConfig(text_float_format="%.6f"))
        codec.write(model_dir / "points3D.txt", sample_scene)

        result = codec.load(model_dir / "points3D.txt")
        assert_scenes_match(result.scene, sample_scene, rtol=1e-4, atol=1e-5)

    def test_orientation_is_unit_after_load(self, model_dir, sample_scene):
        codec = TextModelCodec()
        codec.write(model_dir / "points3D.txt", sample_scene)

        result = codec.load(model_dir / "points3D.txt")
        for pose in result.scene.images.values():
            assert np.linalg.norm(pose.orientation) == pytest.approx(1.0)
