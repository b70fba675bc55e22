"""
Subject Bounds Fusion.

Builds a 3D bounding volume for the subject from skeletal joints and,
independently, from 2D person detections, then merges the two estimates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

import numpy as np

from py_framecoach.config import FusionConfig
from py_framecoach.geometry import CameraPose, Vec3, distance, unproject_point, vec3

logger = logging.getLogger(__name__)


class BoundsSource(str, Enum):
    SKELETAL = "skeletal"
    VISUAL = "visual"
    FUSED = "fused"


@dataclass(frozen=True)
class SubjectBounds:
    """Axis-aligned subject volume in world metres."""

    center: Vec3
    size: Vec3  # (width, height, depth)
    confidence: float
    source: BoundsSource

    @property
    def corners(self) -> List[Vec3]:
        c = np.asarray(self.center)
        half = np.asarray(self.size) / 2.0
        return [
            vec3(c + half * np.array([sx, sy, sz]))
            for sx in (-1.0, 1.0)
            for sy in (-1.0, 1.0)
            for sz in (-1.0, 1.0)
        ]

    def to_dict(self) -> dict:
        return {
            "center": [round(v, 4) for v in self.center],
            "size": [round(v, 4) for v in self.size],
            "confidence": round(self.confidence, 4),
            "source": self.source.value,
        }


@dataclass(frozen=True)
class Detection2D:
    """Person detection in normalized image coordinates (top-left origin)."""

    box: tuple[float, float, float, float]  # (x, y, w, h), each in [0, 1]
    confidence: float = 1.0

    @classmethod
    def from_dict(cls, data: Mapping) -> "Detection2D":
        box = data["box"]
        if len(box) != 4:
            raise ValueError(f"Detection box must have 4 values, got {len(box)}")
        return cls(
            box=(float(box[0]), float(box[1]), float(box[2]), float(box[3])),
            confidence=float(data.get("confidence", 1.0)),
        )

    @property
    def center(self) -> tuple[float, float]:
        x, y, w, h = self.box
        return (x + w / 2.0, y + h / 2.0)


class DepthEstimator(Protocol):
    def estimate(self, detection: Detection2D) -> Optional[float]:
        """Distance in metres from the camera, or None if it cannot be estimated."""
        ...


@dataclass(frozen=True)
class HeightRatioDepth:
    """Depth from apparent height: a person filling the frame is ~k/1 metres away."""

    k: float = 2.0

    def estimate(self, detection: Detection2D) -> Optional[float]:
        height = detection.box[3]
        if height <= 0.0:
            return None
        return self.k / height


class SubjectBoundsFusion:
    """Subject bounds estimation and skeletal/visual fusion.

    All methods are pure; absence is reported as ``None``.
    """

    def __init__(
        self,
        config: FusionConfig | None = None,
        depth_estimator: DepthEstimator | None = None,
    ):
        self.config = config or FusionConfig()
        self.depth_estimator = depth_estimator or HeightRatioDepth(k=self.config.depth_constant)

    def _apply_minimums(self, size: Sequence[float]) -> Vec3:
        return (
            max(float(size[0]), self.config.min_width),
            max(float(size[1]), self.config.min_height),
            max(float(size[2]), self.config.min_depth),
        )

    def from_skeleton(self, joints: Mapping[str, Sequence[float]]) -> Optional[SubjectBounds]:
        """Bounds from the observed joints of interest."""
        observed: Dict[str, np.ndarray] = {}
        for name in self.config.joints_of_interest:
            position = joints.get(name)
            if position is not None:
                observed[name] = np.asarray(vec3(position))
        if not observed:
            return None

        points = np.stack(list(observed.values()))
        lo = points.min(axis=0)
        hi = points.max(axis=0)
        size = self._apply_minimums((hi - lo) * (1.0 + self.config.padding))

        # The root joint is the body anchor origin; it is steadier than the extent midpoint
        if "root" in observed:
            center = vec3(observed["root"])
        else:
            center = vec3((lo + hi) / 2.0)

        confidence = len(observed) / len(self.config.joints_of_interest)
        return SubjectBounds(center=center, size=size, confidence=confidence, source=BoundsSource.SKELETAL)

    def from_detection(self, detection: Detection2D, camera: CameraPose) -> Optional[SubjectBounds]:
        """Bounds from a single 2D detection unprojected through ``camera``."""
        depth = self.depth_estimator.estimate(detection)
        if depth is None or not np.isfinite(depth) or depth <= 0.0:
            return None

        _, _, w, h = detection.box
        u, v = detection.center
        width, height = camera.viewport
        center = unproject_point(camera, (u * width, v * height), depth)
        size = self._apply_minimums(
            (
                w * depth * self.config.visual_width_ratio,
                h * depth * self.config.visual_height_ratio,
                self.config.visual_depth_size,
            )
        )
        confidence = min(1.0, max(0.0, float(detection.confidence)))
        return SubjectBounds(center=center, size=size, confidence=confidence, source=BoundsSource.VISUAL)

    def fuse(
        self,
        skeletal: Optional[SubjectBounds],
        visual: Iterable[SubjectBounds] = (),
    ) -> Optional[SubjectBounds]:
        """Merge a skeletal estimate with the nearest visual candidate."""
        candidates = list(visual)
        if skeletal is None:
            if not candidates:
                return None
            return max(candidates, key=lambda b: b.confidence)
        if not candidates:
            return skeletal

        nearest = min(candidates, key=lambda b: distance(b.center, skeletal.center))
        total = skeletal.confidence + nearest.confidence
        if total > 0.0:
            size = (
                np.asarray(skeletal.size) * skeletal.confidence + np.asarray(nearest.size) * nearest.confidence
            ) / total
        else:
            size = (np.asarray(skeletal.size) + np.asarray(nearest.size)) / 2.0

        return SubjectBounds(
            center=skeletal.center,
            size=self._apply_minimums(size),
            confidence=(skeletal.confidence + nearest.confidence) / 2.0,
            source=BoundsSource.FUSED,
        )

    def estimate(
        self,
        joints: Optional[Mapping[str, Sequence[float]]],
        detections: Iterable[Detection2D] = (),
        camera: Optional[CameraPose] = None,
    ) -> Optional[SubjectBounds]:
        """Full per-frame estimate from whatever sources are available."""
        skeletal = self.from_skeleton(joints) if joints else None
        visual: List[SubjectBounds] = []
        if camera is not None:
            for detection in detections:
                bounds = self.from_detection(detection, camera)
                if bounds is not None:
                    visual.append(bounds)
        fused = self.fuse(skeletal, visual)
        if fused is not None:
            logger.debug(
                f"Subject bounds: source={fused.source.value} center={fused.center} "
                f"confidence={fused.confidence:.2f} visual_candidates={len(visual)}"
            )
        return fused


__all__ = [
    "BoundsSource",
    "SubjectBounds",
    "Detection2D",
    "DepthEstimator",
    "HeightRatioDepth",
    "SubjectBoundsFusion",
]
