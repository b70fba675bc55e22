"""Camera-relative scalar measurements and their display strings.

Every measurement is an ordered ladder of strategies; each strategy returns a
value or ``None`` and the first success wins. Every ladder ends in a terminal
fallback so none of these functions raise for missing data.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Mapping, Optional, Sequence, TypeVar

import numpy as np

from py_framecoach.geometry import (
    CameraPose,
    as_transform,
    distance,
    euler_angles,
    is_on_screen,
    midpoint,
    project_point,
    translation,
    vec3,
)

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

SEARCHING_DISTANCE = "Looking for humans..."
SEARCHING_EYES = "Eyes: N/A"
SEARCHING_VISIBLE = "Visible Parts: N/A"
SEARCHING_ANGLES = "Subject Angles: N/A"
EYES_UNAVAILABLE = "Eyes: Head Joint N/A"
VISIBLE_OCCLUDED = "Visible Parts: Subject Occluded/Out of View"
HEIGHT_UNAVAILABLE = "Cam Height: N/A"


def first_success(strategies: Iterable[Callable[[], Optional[T]]]) -> Optional[T]:
    for strategy in strategies:
        result = strategy()
        if result is not None:
            return result
    return None


class PlaneClassification(str, Enum):
    FLOOR = "floor"
    TABLE = "table"
    NONE = "none"

    @classmethod
    def parse(cls, value: str | None) -> "PlaneClassification":
        try:
            return cls(str(value or "none").lower())
        except ValueError:
            return cls.NONE


@dataclass(frozen=True, eq=False)
class PlaneAnchor:
    anchor_id: str
    transform: np.ndarray
    classification: PlaneClassification = PlaneClassification.NONE
    alignment: str = "horizontal"

    @classmethod
    def from_dict(cls, data: Mapping) -> "PlaneAnchor":
        return cls(
            anchor_id=str(data["anchor_id"]),
            transform=as_transform(data.get("transform")),
            classification=PlaneClassification.parse(data.get("classification")),
            alignment=str(data.get("alignment", "horizontal")).lower(),
        )

    @property
    def is_horizontal(self) -> bool:
        return self.alignment == "horizontal"

    @property
    def height(self) -> float:
        return translation(self.transform)[1]


@dataclass(frozen=True)
class LightEstimate:
    ambient_lux: Optional[float] = None
    color_temperature_k: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping | None) -> "LightEstimate":
        data = data or {}
        lux = data.get("ambient_lux")
        kelvin = data.get("color_temperature_k")
        return cls(
            ambient_lux=float(lux) if lux is not None else None,
            color_temperature_k=float(kelvin) if kelvin is not None else None,
        )


# ---------------------------------------------------------------------------
# Subject distance
# ---------------------------------------------------------------------------


def subject_distance_sample(
    camera_position: Sequence[float],
    joints: Mapping[str, Sequence[float]],
    anchor_position: Sequence[float],
) -> float:
    """Raw camera-to-subject distance: root joint, shoulder midpoint, then anchor."""

    def from_root() -> Optional[float]:
        root = joints.get("root")
        return distance(camera_position, root) if root is not None else None

    def from_shoulders() -> Optional[float]:
        left = joints.get("left_shoulder")
        right = joints.get("right_shoulder")
        if left is None or right is None:
            return None
        return distance(camera_position, midpoint(left, right))

    result = first_success([from_root, from_shoulders])
    if result is None:
        result = distance(camera_position, anchor_position)
    return result


def format_distance(meters: float, close_range_m: float = 1.0) -> str:
    if meters < close_range_m:
        return f"{meters:.2f} m"
    return f"{meters:.1f} m"


# ---------------------------------------------------------------------------
# Camera height
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HeightReading:
    value: float
    reference: str  # "Floor" | "Table" | "Plane" | "Origin"
    low: bool = False

    @property
    def text(self) -> str:
        if self.low and self.reference == "Plane":
            label = "Plane - Low?"
        elif self.low and self.reference in ("Floor", "Table"):
            label = "Low?"
        else:
            label = self.reference
        return f"Cam Height: {self.value:.2f}m ({label})"


def camera_height(
    camera_y: float,
    planes: Iterable[PlaneAnchor],
    low_threshold: float = -0.1,
) -> HeightReading:
    """Camera height above the most plausible support surface."""
    horizontal = [p for p in planes if p.is_horizontal]

    def nearest(candidates: list[PlaneAnchor]) -> Optional[PlaneAnchor]:
        if not candidates:
            return None
        return min(candidates, key=lambda p: abs(p.height))

    def from_classified() -> Optional[HeightReading]:
        plane = nearest(
            [p for p in horizontal if p.classification in (PlaneClassification.FLOOR, PlaneClassification.TABLE)]
        )
        if plane is None:
            return None
        height = camera_y - plane.height
        label = "Floor" if plane.classification == PlaneClassification.FLOOR else "Table"
        return HeightReading(height, label, low=height < low_threshold)

    def from_any_plane() -> Optional[HeightReading]:
        plane = nearest(horizontal)
        if plane is None:
            return None
        height = camera_y - plane.height
        return HeightReading(height, "Plane", low=height < low_threshold)

    reading = first_success([from_classified, from_any_plane])
    return reading if reading is not None else HeightReading(camera_y, "Origin")


def format_camera_height(reading: Optional[HeightReading]) -> str:
    return reading.text if reading is not None else HEIGHT_UNAVAILABLE


# ---------------------------------------------------------------------------
# Eye line
# ---------------------------------------------------------------------------


def estimate_eye_height(
    joints: Mapping[str, Sequence[float]],
    head_offset: float = -0.07,
    shoulder_offset: float = 0.28,
) -> Optional[float]:
    def from_head() -> Optional[float]:
        head = joints.get("head")
        return vec3(head)[1] + head_offset if head is not None else None

    def from_shoulders() -> Optional[float]:
        left = joints.get("left_shoulder")
        right = joints.get("right_shoulder")
        if left is None or right is None:
            return None
        return midpoint(left, right)[1] + shoulder_offset

    return first_success([from_head, from_shoulders])


def format_eye_line(camera_y: float, eye_y: Optional[float], tolerance: float = 0.05) -> str:
    if eye_y is None:
        return EYES_UNAVAILABLE
    diff = camera_y - eye_y
    if abs(diff) < tolerance:
        direction = "Level with"
    elif diff > 0:
        direction = "Above"
    else:
        direction = "Below"
    return f"Eyes: Cam {abs(diff):.2f}m {direction} Subject"


# ---------------------------------------------------------------------------
# Visible parts
# ---------------------------------------------------------------------------


def joint_display_name(name: str) -> str:
    return name.replace("_", " ").capitalize()


def visible_joints(
    camera: CameraPose,
    joints: Mapping[str, Sequence[float]],
    joints_of_interest: Sequence[str],
) -> list[str]:
    """Joints of interest that are in front of the camera and inside the viewport."""
    visible: list[str] = []
    for name in joints_of_interest:
        position = joints.get(name)
        if position is None:
            continue
        screen = project_point(camera, position)
        if screen is not None and is_on_screen(camera, screen):
            visible.append(name)
    return visible


def format_visible_parts(visible: Sequence[str], tracked: bool, max_names: int = 5) -> str:
    if visible:
        names = ", ".join(joint_display_name(n) for n in visible[:max_names])
        suffix = "..." if len(visible) > max_names else ""
        return f"Visible: {names}{suffix}"
    return VISIBLE_OCCLUDED if tracked else SEARCHING_VISIBLE


# ---------------------------------------------------------------------------
# Orientation readouts
# ---------------------------------------------------------------------------


def subject_orientation(
    camera_position: Sequence[float],
    subject_position: Sequence[float],
) -> Optional[tuple[float, float]]:
    """Pitch and yaw (degrees) from the camera toward the subject."""
    dx, dy, dz = (np.asarray(vec3(subject_position)) - np.asarray(vec3(camera_position))).tolist()
    horizontal = math.hypot(dx, dz)
    if horizontal <= 0.01:
        return None
    pitch = math.degrees(math.atan2(-dy, horizontal))
    yaw = math.degrees(math.atan2(dx, -dz))
    return pitch, yaw


def _whole_degrees(value: float) -> int:
    # Rounds to an int so small negative angles print as 0, never -0
    return int(round(value))


def format_subject_orientation(angles: Optional[tuple[float, float]]) -> str:
    if angles is None:
        return SEARCHING_ANGLES
    pitch, yaw = angles
    return f"P:{_whole_degrees(pitch)}° Y:{_whole_degrees(yaw)}°"


@dataclass(frozen=True)
class CameraReadout:
    orientation: str
    fov: str
    lux: str
    color_temperature: str

    def to_dict(self) -> dict:
        return {
            "orientation": self.orientation,
            "fov": self.fov,
            "lux": self.lux,
            "color_temperature": self.color_temperature,
        }


def camera_readout(camera: Optional[CameraPose], light: Optional[LightEstimate] = None) -> CameraReadout:
    if camera is not None:
        pitch, yaw, roll = (math.degrees(a) for a in euler_angles(camera.transform))
        orientation = f"R:{_whole_degrees(-roll)}° P:{_whole_degrees(pitch)}° Y:{_whole_degrees(yaw)}°"
        fov = f"FOV H: {camera.hfov_deg:.1f}°"
    else:
        orientation = "R:N/A P:N/A Y:N/A"
        fov = "FOV H: N/A"
    light = light or LightEstimate()
    lux = f"Lux: {light.ambient_lux:.0f}" if light.ambient_lux is not None else "Lux: N/A"
    kelvin = (
        f"Color K: {light.color_temperature_k:.0f}" if light.color_temperature_k is not None else "Color K: N/A"
    )
    return CameraReadout(orientation=orientation, fov=fov, lux=lux, color_temperature=kelvin)


# ---------------------------------------------------------------------------
# Aggregate per-subject readout
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SubjectReadout:
    distance: str = SEARCHING_DISTANCE
    eyes: str = SEARCHING_EYES
    visible_parts: str = SEARCHING_VISIBLE
    subject_angles: str = SEARCHING_ANGLES
    distance_m: Optional[float] = None

    @classmethod
    def searching(cls) -> "SubjectReadout":
        return cls()

    def to_dict(self) -> dict:
        return {
            "distance": self.distance,
            "eyes": self.eyes,
            "visible_parts": self.visible_parts,
            "subject_angles": self.subject_angles,
            "distance_m": round(self.distance_m, 4) if self.distance_m is not None else None,
        }


__all__ = [
    "SEARCHING_DISTANCE",
    "SEARCHING_EYES",
    "SEARCHING_VISIBLE",
    "SEARCHING_ANGLES",
    "EYES_UNAVAILABLE",
    "VISIBLE_OCCLUDED",
    "HEIGHT_UNAVAILABLE",
    "first_success",
    "PlaneClassification",
    "PlaneAnchor",
    "LightEstimate",
    "subject_distance_sample",
    "format_distance",
    "HeightReading",
    "camera_height",
    "format_camera_height",
    "estimate_eye_height",
    "format_eye_line",
    "joint_display_name",
    "visible_joints",
    "format_visible_parts",
    "subject_orientation",
    "format_subject_orientation",
    "CameraReadout",
    "camera_readout",
    "SubjectReadout",
]
