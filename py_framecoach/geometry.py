"""Vector, transform and camera projection helpers.

World space follows the AR convention: +Y is up and a camera looks down its
local -Z axis. Screen space has its origin at the top-left corner of the
viewport with +y pointing down, measured in points.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Sequence, TypeAlias

import numpy as np

Vec3: TypeAlias = tuple[float, float, float]

# Points closer than this to the camera plane are treated as undefined.
NEAR_PLANE_M = 1e-3


def vec3(value: Sequence[float] | np.ndarray) -> Vec3:
    """Coerce a 3-sequence (or 4x4 transform) into an ``(x, y, z)`` tuple."""
    arr = np.asarray(value, dtype=float)
    if arr.shape == (4, 4):
        arr = arr[:3, 3]
    if arr.shape != (3,):
        raise ValueError(f"Expected a 3-vector or 4x4 transform, got shape {arr.shape}")
    return (float(arr[0]), float(arr[1]), float(arr[2]))


def as_transform(value: Sequence[Sequence[float]] | np.ndarray | None) -> np.ndarray:
    """Return a 4x4 float matrix; ``None`` maps to identity."""
    if value is None:
        return np.eye(4)
    matrix = np.asarray(value, dtype=float)
    if matrix.shape != (4, 4):
        raise ValueError(f"Expected a 4x4 transform, got shape {matrix.shape}")
    return matrix


def translation(transform: Sequence[Sequence[float]] | np.ndarray) -> Vec3:
    """Translation column of a 4x4 transform."""
    matrix = as_transform(transform)
    return (float(matrix[0, 3]), float(matrix[1, 3]), float(matrix[2, 3]))


def translation_matrix(x: float, y: float, z: float) -> np.ndarray:
    matrix = np.eye(4)
    matrix[:3, 3] = (x, y, z)
    return matrix


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    return float(np.linalg.norm(np.asarray(a, dtype=float) - np.asarray(b, dtype=float)))


def midpoint(a: Sequence[float], b: Sequence[float]) -> Vec3:
    return vec3((np.asarray(a, dtype=float) + np.asarray(b, dtype=float)) / 2.0)


def euler_angles(transform: Sequence[Sequence[float]] | np.ndarray) -> tuple[float, float, float]:
    """Return ``(pitch, yaw, roll)`` in radians for a camera transform.

    The rotation is decomposed as ``R = Ry(yaw) @ Rx(pitch) @ Rz(roll)``, the
    order AR frameworks use for camera euler angles.
    """
    rot = as_transform(transform)[:3, :3]
    pitch = math.asin(max(-1.0, min(1.0, -float(rot[1, 2]))))
    yaw = math.atan2(float(rot[0, 2]), float(rot[2, 2]))
    roll = math.atan2(float(rot[1, 0]), float(rot[1, 1]))
    return pitch, yaw, roll


@dataclass(frozen=True)
class ScreenRect:
    """Axis-aligned rectangle in screen points (top-left origin)."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_center(cls, cx: float, cy: float, width: float, height: float) -> "ScreenRect":
        return cls(cx - width / 2.0, cy - height / 2.0, width, height)

    @classmethod
    def enclosing(cls, points: Iterable[tuple[float, float]]) -> "ScreenRect | None":
        xs: list[float] = []
        ys: list[float] = []
        for px, py in points:
            xs.append(float(px))
            ys.append(float(py))
        if not xs:
            return None
        return cls(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0.0 or self.height <= 0.0

    def intersection(self, other: "ScreenRect") -> "ScreenRect | None":
        x1 = max(self.x, other.x)
        y1 = max(self.y, other.y)
        x2 = min(self.max_x, other.max_x)
        y2 = min(self.max_y, other.max_y)
        if x2 <= x1 or y2 <= y1:
            return None
        return ScreenRect(x1, y1, x2 - x1, y2 - y1)

    def to_dict(self) -> dict:
        return {
            "x": round(self.x, 3),
            "y": round(self.y, 3),
            "width": round(self.width, 3),
            "height": round(self.height, 3),
        }


@dataclass(frozen=True, eq=False)
class CameraPose:
    """Camera-to-world transform plus the pinhole parameters needed to project.

    ``hfov_deg`` is the horizontal field of view of the displayed viewport;
    pixels are assumed square so the vertical focal length equals the
    horizontal one.
    """

    transform: np.ndarray
    hfov_deg: float
    viewport: tuple[float, float]
    _world_to_camera: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "transform", as_transform(self.transform))
        width, height = self.viewport
        object.__setattr__(self, "viewport", (float(width), float(height)))
        if not 0.0 < float(self.hfov_deg) < 180.0:
            raise ValueError(f"hfov_deg must be in (0, 180), got {self.hfov_deg}")
        if not (width > 0 and height > 0):
            raise ValueError(f"viewport must have positive size, got {self.viewport}")
        try:
            inverse = np.linalg.inv(self.transform)
        except np.linalg.LinAlgError as exc:
            raise ValueError("camera transform is not invertible") from exc
        object.__setattr__(self, "_world_to_camera", inverse)

    @property
    def position(self) -> Vec3:
        return translation(self.transform)

    @property
    def focal_length(self) -> float:
        return (self.viewport[0] / 2.0) / math.tan(math.radians(self.hfov_deg) / 2.0)

    @property
    def principal_point(self) -> tuple[float, float]:
        return (self.viewport[0] / 2.0, self.viewport[1] / 2.0)

    def to_camera_space(self, point: Sequence[float]) -> np.ndarray:
        world = np.append(np.asarray(point, dtype=float), 1.0)
        return (self._world_to_camera @ world)[:3]


def project_point(camera: CameraPose, point: Sequence[float]) -> tuple[float, float] | None:
    """Project a world point to screen points, or ``None`` if behind the camera."""
    cam = camera.to_camera_space(point)
    depth = -float(cam[2])
    if depth <= NEAR_PLANE_M:
        return None
    f = camera.focal_length
    cx, cy = camera.principal_point
    u = cx + f * float(cam[0]) / depth
    v = cy - f * float(cam[1]) / depth
    if not (math.isfinite(u) and math.isfinite(v)):
        return None
    return (u, v)


def unproject_point(camera: CameraPose, screen_point: tuple[float, float], depth: float) -> Vec3:
    """World position of a screen point at ``depth`` metres in front of the camera."""
    f = camera.focal_length
    cx, cy = camera.principal_point
    u, v = screen_point
    cam = np.array([(u - cx) / f * depth, -(v - cy) / f * depth, -depth, 1.0])
    return vec3((camera.transform @ cam)[:3])


def is_on_screen(camera: CameraPose, point: tuple[float, float]) -> bool:
    width, height = camera.viewport
    return 0.0 <= point[0] <= width and 0.0 <= point[1] <= height


__all__ = [
    "Vec3",
    "NEAR_PLANE_M",
    "vec3",
    "as_transform",
    "translation",
    "translation_matrix",
    "distance",
    "midpoint",
    "euler_angles",
    "ScreenRect",
    "CameraPose",
    "project_point",
    "unproject_point",
    "is_on_screen",
]
