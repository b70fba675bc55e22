"""Tracked-subject identity and temporal smoothing.

``SubjectContinuity`` keeps one skeletal anchor as "the subject" across
frames. It switches to another valid anchor only when the tracked one
disappears, and on loss it resets its smoothing window and readout.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Protocol, Sequence

import numpy as np

from py_framecoach.config import ContinuityConfig, JOINTS_OF_INTEREST
from py_framecoach.geometry import CameraPose, Vec3, as_transform, translation, vec3
from py_framecoach.metrics import (
    SubjectReadout,
    estimate_eye_height,
    format_distance,
    format_eye_line,
    format_subject_orientation,
    format_visible_parts,
    subject_distance_sample,
    subject_orientation,
    visible_joints,
)

LOGGER = logging.getLogger(__name__)

PRIORITY_JOINTS: tuple[str, ...] = ("head", "root", "left_shoulder", "right_shoulder")


class SmoothingBuffer:
    """Fixed-capacity rolling window of float samples."""

    def __init__(self, capacity: int = 3) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._samples: deque[float] = deque(maxlen=capacity)

    def push(self, sample: float) -> None:
        self._samples.append(float(sample))

    def mean(self) -> Optional[float]:
        if not self._samples:
            return None
        return sum(self._samples) / len(self._samples)

    def clear(self) -> None:
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> list[float]:
        return list(self._samples)


@dataclass(frozen=True, eq=False)
class BodyAnchor:
    """Skeletal anchor with joint positions already resolved to world space."""

    anchor_id: str
    transform: np.ndarray
    joints: Mapping[str, Vec3] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "transform", as_transform(self.transform))

    @classmethod
    def from_dict(cls, data: Mapping) -> "BodyAnchor":
        joints = {str(name): vec3(pos) for name, pos in (data.get("joints") or {}).items()}
        return cls(
            anchor_id=str(data["anchor_id"]),
            transform=as_transform(data.get("transform")),
            joints=joints,
        )

    @property
    def position(self) -> Vec3:
        return translation(self.transform)


class TrustPolicy(Protocol):
    def is_human(self, anchor: BodyAnchor) -> bool: ...

    def evict(self, anchor_ids: Iterable[str]) -> None: ...


class TrustUpstreamPolicy:
    """Every skeletal anchor from the tracker is a human."""

    def is_human(self, anchor: BodyAnchor) -> bool:
        return True

    def evict(self, anchor_ids: Iterable[str]) -> None:
        return None


class JointCountPolicy:
    """Require ``min_joints`` of the priority joints, cached per anchor id."""

    def __init__(self, min_joints: int = 2, priority: Sequence[str] = PRIORITY_JOINTS) -> None:
        self.min_joints = min_joints
        self.priority = tuple(priority)
        self.cache: Dict[str, bool] = {}

    def is_human(self, anchor: BodyAnchor) -> bool:
        cached = self.cache.get(anchor.anchor_id)
        if cached is not None:
            return cached
        found = sum(1 for name in self.priority if name in anchor.joints)
        result = found >= self.min_joints
        self.cache[anchor.anchor_id] = result
        if not result:
            LOGGER.debug(f"Anchor {anchor.anchor_id} rejected: {found}/{self.min_joints} priority joints")
        return result

    def evict(self, anchor_ids: Iterable[str]) -> None:
        for anchor_id in anchor_ids:
            self.cache.pop(anchor_id, None)


def build_trust_policy(config: ContinuityConfig) -> TrustPolicy:
    if config.trust_policy == "joint_count":
        return JointCountPolicy(min_joints=config.min_joints)
    return TrustUpstreamPolicy()


class SubjectContinuity:
    """``NoSubject -> Tracking(id) -> Tracking(new id) | NoSubject`` state machine."""

    def __init__(
        self,
        config: ContinuityConfig | None = None,
        policy: TrustPolicy | None = None,
        joints_of_interest: Sequence[str] = JOINTS_OF_INTEREST,
    ) -> None:
        self.config = config or ContinuityConfig()
        self.policy = policy or build_trust_policy(self.config)
        self.joints_of_interest = tuple(joints_of_interest)
        self.buffer = SmoothingBuffer(self.config.smoothing_capacity)
        self.tracked: Optional[BodyAnchor] = None
        self.readout = SubjectReadout.searching()
        self._known_ids: set[str] = set()

    @property
    def tracked_id(self) -> Optional[str]:
        return self.tracked.anchor_id if self.tracked is not None else None

    @property
    def is_tracking(self) -> bool:
        return self.tracked is not None

    def observe(self, anchors: Iterable[BodyAnchor]) -> Optional[BodyAnchor]:
        """Update with the full set of skeletal anchors present this frame."""
        current = list(anchors)
        current_ids = {a.anchor_id for a in current}
        gone = self._known_ids - current_ids
        if gone:
            self.policy.evict(gone)
        self._known_ids = current_ids

        valid = [a for a in current if self.policy.is_human(a)]
        previous_id = self.tracked_id
        if previous_id is not None:
            for anchor in valid:
                if anchor.anchor_id == previous_id:
                    self.tracked = anchor
                    return anchor

        if valid:
            self.tracked = valid[0]
            if previous_id is None:
                LOGGER.info(f"Subject acquired: anchor {self.tracked.anchor_id}")
            else:
                LOGGER.info(f"Subject switched: {previous_id} -> {self.tracked.anchor_id}")
                self.buffer.clear()
            return self.tracked

        if previous_id is not None:
            self._lose(f"anchor {previous_id} no longer present")
        return None

    def remove(self, anchor_ids: Iterable[str]) -> None:
        """Handle explicit anchor removal events."""
        ids = set(anchor_ids)
        self.policy.evict(ids)
        self._known_ids -= ids
        if self.tracked_id is not None and self.tracked_id in ids:
            self._lose(f"anchor {self.tracked_id} removed")

    def reset(self) -> None:
        if self.tracked is not None:
            self._lose("reset")

    def _lose(self, reason: str) -> None:
        LOGGER.info(f"Subject lost ({reason})")
        self.tracked = None
        self.buffer.clear()
        self.readout = SubjectReadout.searching()

    def measure(self, camera: CameraPose) -> SubjectReadout:
        """Refresh the smoothed distance and per-subject readout for this frame."""
        anchor = self.tracked
        if anchor is None:
            self.readout = SubjectReadout.searching()
            return self.readout

        cam_pos = camera.position
        sample = subject_distance_sample(cam_pos, anchor.joints, anchor.position)
        self.buffer.push(sample)
        smoothed = self.buffer.mean()

        eye_y = estimate_eye_height(
            anchor.joints,
            head_offset=self.config.eye_offset_from_head,
            shoulder_offset=self.config.eye_offset_from_shoulders,
        )
        visible = visible_joints(camera, anchor.joints, self.joints_of_interest)
        subject_pos = anchor.joints.get("root", anchor.position)

        self.readout = SubjectReadout(
            distance=format_distance(smoothed, self.config.close_range_m),
            eyes=format_eye_line(cam_pos[1], eye_y, self.config.eye_level_tolerance),
            visible_parts=format_visible_parts(visible, tracked=True, max_names=self.config.max_visible_parts),
            subject_angles=format_subject_orientation(subject_orientation(cam_pos, subject_pos)),
            distance_m=smoothed,
        )
        return self.readout


__all__ = [
    "PRIORITY_JOINTS",
    "SmoothingBuffer",
    "BodyAnchor",
    "TrustPolicy",
    "TrustUpstreamPolicy",
    "JointCountPolicy",
    "build_trust_policy",
    "SubjectContinuity",
]
