from __future__ import annotations

import math

import numpy as np
import pytest

from py_framecoach.geometry import translation_matrix
from py_framecoach.metrics import (
    EYES_UNAVAILABLE,
    SEARCHING_ANGLES,
    SEARCHING_VISIBLE,
    VISIBLE_OCCLUDED,
    LightEstimate,
    PlaneAnchor,
    PlaneClassification,
    camera_height,
    camera_readout,
    estimate_eye_height,
    first_success,
    format_camera_height,
    format_distance,
    format_eye_line,
    format_subject_orientation,
    format_visible_parts,
    joint_display_name,
    subject_distance_sample,
    subject_orientation,
    visible_joints,
)

from conftest import SCENARIO_JOINTS, make_camera


def plane(y: float, classification: str = "none", alignment: str = "horizontal", anchor_id: str = "p") -> PlaneAnchor:
    return PlaneAnchor(
        anchor_id=anchor_id,
        transform=translation_matrix(0.0, y, 0.0),
        classification=PlaneClassification.parse(classification),
        alignment=alignment,
    )


def test_first_success_returns_first_non_none() -> None:
    calls = []

    def miss():
        calls.append("miss")
        return None

    def hit():
        calls.append("hit")
        return 3

    def never():
        calls.append("never")
        return 4

    assert first_success([miss, hit, never]) == 3
    assert calls == ["miss", "hit"]
    assert first_success([miss]) is None


class TestDistance:
    def test_prefers_root_joint(self) -> None:
        d = subject_distance_sample((0, 0, 0), SCENARIO_JOINTS, (5.0, 5.0, 5.0))
        assert d == pytest.approx(math.sqrt(0.9**2 + 2.0**2))

    def test_falls_back_to_shoulder_midpoint(self) -> None:
        joints = {"left_shoulder": (-0.2, 0.0, -3.0), "right_shoulder": (0.2, 0.0, -3.0)}
        assert subject_distance_sample((0, 0, 0), joints, (5.0, 5.0, 5.0)) == pytest.approx(3.0)

    def test_single_shoulder_falls_back_to_anchor(self) -> None:
        joints = {"left_shoulder": (-0.2, 0.0, -3.0)}
        assert subject_distance_sample((0, 0, 0), joints, (0.0, 0.0, -4.0)) == pytest.approx(4.0)

    def test_close_range_uses_two_decimals(self) -> None:
        assert format_distance(0.756) == "0.76 m"
        assert format_distance(1.0) == "1.0 m"
        assert format_distance(2.19) == "2.2 m"


class TestCameraHeight:
    def test_nearest_classified_plane(self) -> None:
        planes = [plane(0.7, "table", anchor_id="t"), plane(0.0, "floor", anchor_id="f"), plane(-0.05, "none")]
        reading = camera_height(1.5, planes)
        assert reading.reference == "Floor"
        assert reading.text == "Cam Height: 1.50m (Floor)"

    def test_table_label(self) -> None:
        assert camera_height(1.5, [plane(0.7, "table")]).text == "Cam Height: 0.80m (Table)"

    def test_unclassified_horizontal_plane(self) -> None:
        planes = [plane(-0.2), plane(0.3, "floor", alignment="vertical")]
        assert camera_height(1.0, planes).text == "Cam Height: 1.20m (Plane)"

    def test_origin_fallback(self) -> None:
        assert camera_height(1.0, [plane(0.0, "floor", alignment="vertical")]).text == "Cam Height: 1.00m (Origin)"
        assert camera_height(1.0, []).reference == "Origin"

    def test_low_readings_are_flagged(self) -> None:
        assert camera_height(0.2, [plane(0.5, "floor")]).text == "Cam Height: -0.30m (Low?)"
        assert camera_height(0.2, [plane(0.5)]).text == "Cam Height: -0.30m (Plane - Low?)"

    def test_no_camera(self) -> None:
        assert format_camera_height(None) == "Cam Height: N/A"

    def test_unknown_classification_parses_as_none(self) -> None:
        assert PlaneClassification.parse("ceiling") == PlaneClassification.NONE
        assert PlaneClassification.parse("FLOOR") == PlaneClassification.FLOOR
        assert PlaneClassification.parse(None) == PlaneClassification.NONE


class TestEyeLine:
    def test_head_offset(self) -> None:
        assert estimate_eye_height(SCENARIO_JOINTS) == pytest.approx(1.63)

    def test_shoulder_fallback(self) -> None:
        joints = {"left_shoulder": (-0.2, 1.4, -2.0), "right_shoulder": (0.2, 1.4, -2.0)}
        assert estimate_eye_height(joints) == pytest.approx(1.68)

    def test_unavailable(self) -> None:
        assert estimate_eye_height({"root": (0, 0.9, -2)}) is None
        assert format_eye_line(1.5, None) == EYES_UNAVAILABLE

    def test_direction_with_dead_band(self) -> None:
        assert format_eye_line(1.65, 1.63) == "Eyes: Cam 0.02m Level with Subject"
        assert format_eye_line(2.0, 1.63) == "Eyes: Cam 0.37m Above Subject"
        assert format_eye_line(1.0, 1.63) == "Eyes: Cam 0.63m Below Subject"


class TestVisibleParts:
    def test_only_on_screen_joints_in_front_are_visible(self) -> None:
        camera = make_camera()
        joints = dict(SCENARIO_JOINTS)
        joints["left_foot"] = (0.0, 0.0, 1.0)  # behind the camera
        # At 2 m the 60 degree view only reaches 1.15 m above the optical axis
        assert visible_joints(camera, joints, ["head", "root", "left_foot"]) == ["root"]

    def test_display_names(self) -> None:
        assert joint_display_name("left_shoulder") == "Left shoulder"
        assert joint_display_name("root") == "Root"

    def test_list_is_truncated_after_five(self) -> None:
        names = ["head", "left_shoulder", "left_hand", "right_shoulder", "right_hand", "root"]
        assert (
            format_visible_parts(names, tracked=True)
            == "Visible: Head, Left shoulder, Left hand, Right shoulder, Right hand..."
        )

    def test_nothing_visible(self) -> None:
        assert format_visible_parts([], tracked=True) == VISIBLE_OCCLUDED
        assert format_visible_parts([], tracked=False) == SEARCHING_VISIBLE


class TestOrientation:
    def test_subject_to_the_right(self) -> None:
        pitch, yaw = subject_orientation((0, 0, 0), (2.0, 0.0, -2.0))
        assert yaw == pytest.approx(45.0)
        assert pitch == pytest.approx(0.0)
        assert format_subject_orientation((pitch, yaw)) == "P:0° Y:45°"

    def test_small_negative_angles_print_as_zero(self) -> None:
        assert format_subject_orientation((-0.3, -0.0)) == "P:0° Y:0°"

    def test_subject_below_camera_pitches_positive(self) -> None:
        pitch, _ = subject_orientation((0, 1.0, 0), (0.0, 0.0, -1.0))
        assert pitch == pytest.approx(45.0)

    def test_directly_overhead_is_unknown(self) -> None:
        assert subject_orientation((0, 0, 0), (0.0, 2.0, 0.005)) is None
        assert format_subject_orientation(None) == SEARCHING_ANGLES

    def test_camera_readout(self) -> None:
        readout = camera_readout(make_camera(), LightEstimate(ambient_lux=812.4, color_temperature_k=5200.0))
        assert readout.orientation == "R:0° P:0° Y:0°"
        assert readout.fov == "FOV H: 60.0°"
        assert readout.lux == "Lux: 812"
        assert readout.color_temperature == "Color K: 5200"

    def test_camera_readout_roll_is_negated(self) -> None:
        theta = math.radians(10.0)
        transform = np.eye(4)
        transform[:3, :3] = [
            [math.cos(theta), -math.sin(theta), 0],
            [math.sin(theta), math.cos(theta), 0],
            [0, 0, 1],
        ]
        camera = make_camera()
        rolled = type(camera)(transform=transform, hfov_deg=60.0, viewport=camera.viewport)
        assert camera_readout(rolled).orientation == "R:-10° P:0° Y:0°"

    def test_camera_readout_fallbacks(self) -> None:
        readout = camera_readout(None)
        assert readout.orientation == "R:N/A P:N/A Y:N/A"
        assert readout.fov == "FOV H: N/A"
        assert readout.lux == "Lux: N/A"
        assert readout.color_temperature == "Color K: N/A"

    def test_light_from_dict(self) -> None:
        assert LightEstimate.from_dict(None) == LightEstimate()
        assert LightEstimate.from_dict({"ambient_lux": 100}).ambient_lux == 100.0
