import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from py_framecoach.continuity import BodyAnchor  # noqa: E402
from py_framecoach.geometry import CameraPose, translation_matrix  # noqa: E402
from py_framecoach.session import FrameInput  # noqa: E402

VIEWPORT = (1000.0, 1000.0)

# Subject standing 2 m in front of a camera at the origin looking down -Z
SCENARIO_JOINTS = {
    "head": (0.0, 1.7, -2.0),
    "root": (0.0, 0.9, -2.0),
    "left_shoulder": (-0.2, 1.4, -2.0),
    "right_shoulder": (0.2, 1.4, -2.0),
}


def make_camera(x: float = 0.0, y: float = 0.0, z: float = 0.0, hfov_deg: float = 60.0) -> CameraPose:
    return CameraPose(transform=translation_matrix(x, y, z), hfov_deg=hfov_deg, viewport=VIEWPORT)


def make_body(anchor_id: str = "body-1", joints=None, offset=(0.0, 0.0, 0.0)) -> BodyAnchor:
    joints = dict(SCENARIO_JOINTS if joints is None else joints)
    dx, dy, dz = offset
    moved = {name: (p[0] + dx, p[1] + dy, p[2] + dz) for name, p in joints.items()}
    root = moved.get("root", (dx, 0.9 + dy, -2.0 + dz))
    return BodyAnchor(anchor_id=anchor_id, transform=translation_matrix(*root), joints=moved)


_DEFAULT_CAMERA = object()


def make_frame(timestamp: float = 0.0, bodies=None, camera=_DEFAULT_CAMERA, **kwargs) -> FrameInput:
    return FrameInput(
        timestamp=timestamp,
        camera=make_camera() if camera is _DEFAULT_CAMERA else camera,
        bodies=list(bodies) if bodies is not None else [],
        **kwargs,
    )


def axis(direction: str = "no_change", magnitude=None, unit: str = "m") -> dict:
    return {"direction": direction, "magnitude": magnitude, "unit": unit}


def make_recommendation(framing=None, summary="Step back slightly", confidence=0.8, **axes) -> dict:
    """Recommendation document; axis kwargs are (direction, magnitude) pairs."""
    translation = {}
    for name in ("x", "y", "z"):
        direction, magnitude = axes.get(name, ("no_change", None))
        translation[name] = axis(direction, magnitude, "m")
    rotation = {}
    for name in ("yaw", "pitch", "roll"):
        direction, magnitude = axes.get(name, ("no_change", None))
        rotation[name] = axis(direction, magnitude, "deg")
    adjustments = {"translation": translation, "rotation": rotation}
    if framing is not None:
        adjustments["framing"] = framing
    return {"adjustments": adjustments, "summary": summary, "confidence": confidence}


@pytest.fixture
def camera() -> CameraPose:
    return make_camera()


@pytest.fixture
def scenario_joints() -> dict:
    return dict(SCENARIO_JOINTS)


@pytest.fixture
def body() -> BodyAnchor:
    return make_body()


@pytest.fixture
def identity() -> np.ndarray:
    return np.eye(4)
