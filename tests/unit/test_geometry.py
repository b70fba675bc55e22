from __future__ import annotations

import math

import numpy as np
import pytest

from py_framecoach.geometry import (
    CameraPose,
    ScreenRect,
    as_transform,
    distance,
    euler_angles,
    midpoint,
    project_point,
    translation,
    translation_matrix,
    unproject_point,
    vec3,
)

from conftest import make_camera

FOCAL_60 = 500.0 / math.tan(math.radians(30.0))


def test_vec3_accepts_sequences_and_transforms() -> None:
    assert vec3([1, 2, 3]) == (1.0, 2.0, 3.0)
    assert vec3(translation_matrix(4.0, 5.0, 6.0)) == (4.0, 5.0, 6.0)
    with pytest.raises(ValueError):
        vec3([1.0, 2.0])


def test_as_transform_defaults_to_identity_and_checks_shape() -> None:
    assert np.array_equal(as_transform(None), np.eye(4))
    with pytest.raises(ValueError):
        as_transform(np.eye(3))


def test_translation_distance_and_midpoint() -> None:
    assert translation(translation_matrix(1.0, -2.0, 3.0)) == (1.0, -2.0, 3.0)
    assert distance((0, 0, 0), (3, 4, 0)) == pytest.approx(5.0)
    assert midpoint((-0.2, 1.4, -2.0), (0.2, 1.4, -2.0)) == pytest.approx((0.0, 1.4, -2.0))


def test_camera_pose_rejects_invalid_fov() -> None:
    with pytest.raises(ValueError):
        CameraPose(transform=np.eye(4), hfov_deg=0.0, viewport=(100, 100))
    with pytest.raises(ValueError):
        CameraPose(transform=np.eye(4), hfov_deg=180.0, viewport=(100, 100))


def test_camera_pose_rejects_degenerate_viewport() -> None:
    with pytest.raises(ValueError, match="viewport"):
        CameraPose(transform=np.eye(4), hfov_deg=60.0, viewport=(0, 0))
    with pytest.raises(ValueError, match="viewport"):
        CameraPose(transform=np.eye(4), hfov_deg=60.0, viewport=(390, -1))


def test_camera_pose_rejects_singular_transform() -> None:
    with pytest.raises(ValueError, match="not invertible"):
        CameraPose(transform=np.zeros((4, 4)), hfov_deg=60.0, viewport=(100, 100))


def test_focal_length_from_horizontal_fov(camera) -> None:
    assert camera.focal_length == pytest.approx(FOCAL_60)
    assert camera.principal_point == (500.0, 500.0)


def test_project_point_on_optical_axis_hits_center(camera) -> None:
    assert project_point(camera, (0.0, 0.0, -2.0)) == pytest.approx((500.0, 500.0))


def test_project_point_axes_follow_screen_convention(camera) -> None:
    right = project_point(camera, (1.0, 0.0, -2.0))
    up = project_point(camera, (0.0, 1.0, -2.0))
    assert right[0] == pytest.approx(500.0 + FOCAL_60 * 0.5)
    # +Y world is up, screen y grows downward
    assert up[1] == pytest.approx(500.0 - FOCAL_60 * 0.5)


def test_project_point_behind_camera_is_none(camera) -> None:
    assert project_point(camera, (0.0, 0.0, 1.0)) is None
    assert project_point(camera, (0.0, 0.0, 0.0)) is None


def test_project_point_uses_camera_position() -> None:
    cam = make_camera(x=1.0)
    assert project_point(cam, (1.0, 0.0, -3.0)) == pytest.approx((500.0, 500.0))


def test_unproject_inverts_project() -> None:
    cam = make_camera(x=0.5, y=1.2, z=0.3)
    world = (0.4, 1.0, -2.5)
    screen = project_point(cam, world)
    depth = 0.3 - (-2.5)
    assert unproject_point(cam, screen, depth) == pytest.approx(world)


def test_euler_angles_single_axis_rotations() -> None:
    theta = math.radians(20.0)
    c, s = math.cos(theta), math.sin(theta)

    yaw_m = np.eye(4)
    yaw_m[:3, :3] = [[c, 0, s], [0, 1, 0], [-s, 0, c]]
    pitch_m = np.eye(4)
    pitch_m[:3, :3] = [[1, 0, 0], [0, c, -s], [0, s, c]]
    roll_m = np.eye(4)
    roll_m[:3, :3] = [[c, -s, 0], [s, c, 0], [0, 0, 1]]

    assert euler_angles(yaw_m) == pytest.approx((0.0, theta, 0.0))
    assert euler_angles(pitch_m) == pytest.approx((theta, 0.0, 0.0))
    assert euler_angles(roll_m) == pytest.approx((0.0, 0.0, theta))


class TestScreenRect:
    def test_geometry_properties(self) -> None:
        rect = ScreenRect(10.0, 20.0, 100.0, 50.0)
        assert rect.max_x == 110.0
        assert rect.max_y == 70.0
        assert rect.center == (60.0, 45.0)
        assert rect.area == 5000.0
        assert not rect.is_empty

    def test_from_center(self) -> None:
        assert ScreenRect.from_center(50.0, 50.0, 20.0, 40.0) == ScreenRect(40.0, 30.0, 20.0, 40.0)

    def test_intersection(self) -> None:
        a = ScreenRect(0.0, 0.0, 100.0, 100.0)
        b = ScreenRect(50.0, 25.0, 100.0, 100.0)
        assert a.intersection(b) == ScreenRect(50.0, 25.0, 50.0, 75.0)

    def test_disjoint_and_touching_rects_do_not_intersect(self) -> None:
        a = ScreenRect(0.0, 0.0, 10.0, 10.0)
        assert a.intersection(ScreenRect(20.0, 20.0, 5.0, 5.0)) is None
        assert a.intersection(ScreenRect(10.0, 0.0, 5.0, 5.0)) is None

    def test_enclosing(self) -> None:
        rect = ScreenRect.enclosing([(5.0, 9.0), (1.0, 3.0), (4.0, 4.0)])
        assert rect == ScreenRect(1.0, 3.0, 4.0, 6.0)
        assert ScreenRect.enclosing([]) is None

    def test_zero_size_is_empty(self) -> None:
        assert ScreenRect(0.0, 0.0, 0.0, 10.0).is_empty
        assert ScreenRect(0.0, 0.0, 10.0, 0.0).area == 0.0
