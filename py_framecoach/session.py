"""Recorded session I/O.

A session is a JSON Lines file with one frame per line::

    {"timestamp": 0.0,
     "camera": {"transform": [[...4x4...]], "hfov_deg": 60.0, "viewport": [390, 844]},
     "bodies": [{"anchor_id": "a1", "transform": [[...]], "joints": {"head": [0, 1.7, -2]}}],
     "planes": [{"anchor_id": "p1", "transform": [[...]], "classification": "floor", "alignment": "horizontal"}],
     "detections": [{"box": [0.4, 0.2, 0.2, 0.6], "confidence": 0.9}],
     "light": {"ambient_lux": 800, "color_temperature_k": 5200},
     "recommendation": {...optional, applied before the frame...}}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Mapping, Optional

from py_framecoach.bounds_fusion import Detection2D
from py_framecoach.continuity import BodyAnchor
from py_framecoach.geometry import CameraPose
from py_framecoach.metrics import LightEstimate, PlaneAnchor

LOGGER = logging.getLogger(__name__)


@dataclass
class FrameInput:
    """Everything the pose and detection collaborators supply for one frame."""

    timestamp: float
    camera: Optional[CameraPose] = None
    bodies: List[BodyAnchor] = field(default_factory=list)
    planes: List[PlaneAnchor] = field(default_factory=list)
    # None means "no detection result delivered with this frame"
    detections: Optional[List[Detection2D]] = None
    light: LightEstimate = field(default_factory=LightEstimate)
    removed_anchor_ids: List[str] = field(default_factory=list)
    image: Any = None
    recommendation: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FrameInput":
        camera_data = data.get("camera")
        camera = None
        if camera_data:
            camera = CameraPose(
                transform=camera_data.get("transform"),
                hfov_deg=float(camera_data["hfov_deg"]),
                viewport=tuple(camera_data["viewport"]),
            )
        detections = data.get("detections")
        return cls(
            timestamp=float(data.get("timestamp", 0.0)),
            camera=camera,
            bodies=[BodyAnchor.from_dict(b) for b in data.get("bodies") or []],
            planes=[PlaneAnchor.from_dict(p) for p in data.get("planes") or []],
            detections=[Detection2D.from_dict(d) for d in detections] if detections is not None else None,
            light=LightEstimate.from_dict(data.get("light")),
            removed_anchor_ids=[str(i) for i in data.get("removed_anchor_ids") or []],
            recommendation=data.get("recommendation"),
        )


def read_session(path: Path) -> Iterator[FrameInput]:
    """Yield frames from a JSON Lines session file, skipping blank lines."""
    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{line_no}: invalid JSON ({exc.msg})") from exc
            try:
                yield FrameInput.from_dict(data)
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError(f"{path}:{line_no}: invalid frame ({exc})") from exc


def write_jsonl(path: Path, rows: Iterable[Mapping[str, Any]]) -> int:
    """Write rows as JSON Lines; returns the number of rows written."""
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, "w") as f:
        for row in rows:
            f.write(json.dumps(row, ensure_ascii=False) + "\n")
            count += 1
    LOGGER.info(f"Wrote {count} rows to {path}")
    return count


__all__ = ["FrameInput", "read_session", "write_jsonl"]
