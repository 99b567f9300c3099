"""
Shared fixtures for codec tests.
"""

import numpy as np
import pytest

from sfm_codec.scene import (
    Camera,
    CameraPose,
    Feature,
    Point,
    PointMetadata,
    Scene,
    TrackElement,
)
from sfm_codec.transforms import world_to_camera_to_pose


def _axis_angle_qvec(axis, angle):
    axis = np.asarray(axis, dtype=float)
    axis = axis / np.linalg.norm(axis)
    return np.concatenate([[np.cos(angle / 2)], np.sin(angle / 2) * axis])


def build_scene() -> Scene:
    """
    Small reconstruction: 2 cameras, 2 images, 3 points.

    Point ids are 5, 7 and 9. Image 1 observes all three, image 2 observes
    7 and 9 and has one untriangulated feature.
    """
    scene = Scene()
    scene.cameras[1] = Camera(1, 1, 640, 480, np.array([800.0, 810.0, 320.0, 240.0]))
    scene.cameras[2] = Camera(
        2, 4, 1920, 1080,
        np.array([1500.0, 1510.0, 960.0, 540.0, -0.1, 0.02, 0.001, -0.002]),
    )

    center1, orient1 = world_to_camera_to_pose(_axis_angle_qvec([0, 1, 0], 0.3), [0.5, -0.2, 4.0])
    center2, orient2 = world_to_camera_to_pose(_axis_angle_qvec([1, 1, 0], -0.6), [-1.0, 0.3, 6.5])

    scene.images[1] = CameraPose(
        image_id=1,
        camera_id=1,
        name="frame_0001.jpg",
        position=center1,
        orientation=orient1,
        features=[
            Feature(xy=(10.5, 20.25), point3d_id=5),
            Feature(xy=(100.0, 200.0), point3d_id=7),
            Feature(xy=(320.125, 240.5), point3d_id=9),
        ],
    )
    scene.images[2] = CameraPose(
        image_id=2,
        camera_id=2,
        name="frame_0002.jpg",
        position=center2,
        orientation=orient2,
        features=[
            Feature(xy=(15.0, 25.0), point3d_id=7),
            Feature(xy=(50.5, 60.5)),
            Feature(xy=(900.75, 500.25), point3d_id=9),
        ],
    )

    scene.points = [
        Point(position=[0.1, 0.2, 0.3], color=np.array([255, 0, 128]) / 255.0),
        Point(position=[-1.5, 2.25, 3.0], color=np.array([10, 20, 30]) / 255.0),
        Point(position=[100.0, -50.5, 7.75], color=np.array([200, 180, 40]) / 255.0),
    ]
    scene.metadata = [
        PointMetadata(original_id=5, error=0.5, track=[TrackElement(1, 0)]),
        PointMetadata(original_id=7, error=1.25, track=[TrackElement(1, 1), TrackElement(2, 0)]),
        PointMetadata(original_id=9, error=0.75, track=[TrackElement(1, 2), TrackElement(2, 2)]),
    ]
    return scene


@pytest.fixture
def sample_scene():
    return build_scene()


def _assert_scenes_match(actual: Scene, expected: Scene, rtol: float = 1e-5, atol: float = 1e-6):
    """Compare every numeric field of two scenes without tombstoned points."""
    assert len(actual.points) == len(expected.points)
    assert len(actual.metadata) == len(expected.metadata)

    for a, e in zip(actual.points, expected.points):
        np.testing.assert_allclose(a.position, e.position, rtol=rtol, atol=atol)
        np.testing.assert_array_equal(a.color_u8(), e.color_u8())

    for a, e in zip(actual.metadata, expected.metadata):
        assert a.original_id == e.original_id
        assert a.error == pytest.approx(e.error, rel=rtol)
        assert [(t.image_id, t.point2d_idx) for t in a.track] == \
            [(t.image_id, t.point2d_idx) for t in e.track]

    assert set(actual.cameras) == set(expected.cameras)
    for camera_id, e in expected.cameras.items():
        a = actual.cameras[camera_id]
        assert (a.model_id, a.width, a.height) == (e.model_id, e.width, e.height)
        np.testing.assert_allclose(a.params, e.params, rtol=rtol)

    assert set(actual.images) == set(expected.images)
    for image_id, e in expected.images.items():
        a = actual.images[image_id]
        assert a.camera_id == e.camera_id
        assert a.name == e.name
        np.testing.assert_allclose(a.position, e.position, rtol=rtol, atol=atol)
        np.testing.assert_allclose(a.orientation, e.orientation, rtol=rtol, atol=atol)
        assert len(a.features) == len(e.features)
        for fa, fe in zip(a.features, e.features):
            np.testing.assert_allclose(fa.xy, fe.xy, rtol=rtol)
            assert fa.point3d_id == fe.point3d_id


@pytest.fixture
def assert_scenes_match():
    return _assert_scenes_match
