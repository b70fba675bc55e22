"""Screen-space framing: subject projection, target rectangle and alignment score."""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, Optional

from py_framecoach.bounds_fusion import SubjectBounds
from py_framecoach.config import FramingConfig, ScoringConfig
from py_framecoach.geometry import CameraPose, ScreenRect, project_point
from py_framecoach.recommendation import DOFAdjustment, FramingGuidance

LOGGER = logging.getLogger(__name__)


def project_bounds(bounds: SubjectBounds, camera: CameraPose) -> Optional[ScreenRect]:
    """Enclosing screen rectangle of the 8 box corners.

    ``None`` when any corner cannot be projected or the result has no area.
    """
    points = []
    for corner in bounds.corners:
        screen = project_point(camera, corner)
        if screen is None:
            return None
        points.append(screen)
    rect = ScreenRect.enclosing(points)
    if rect is None or rect.is_empty:
        return None
    return rect


def _token(value: Optional[str]) -> str:
    return (value or "").strip().lower().replace("-", "_").replace(" ", "_")


def framing_multiplier(framing: Optional[FramingGuidance], config: FramingConfig) -> float:
    if framing is None:
        return config.default_multiplier
    p = framing.ideal_subject_percentage
    if p is not None and 0.0 < p <= 1.0:
        return 1.0 / p
    return config.multipliers.get(_token(framing.framing_type), config.default_multiplier)


def target_center(framing: Optional[FramingGuidance], viewport: tuple[float, float]) -> tuple[float, float]:
    width, height = viewport
    cx, cy = width / 2.0, height / 2.0
    position = _token(framing.subject_position) if framing is not None else ""
    if position == "left_third":
        cx = width / 3.0
    elif position == "right_third":
        cx = width * 2.0 / 3.0
    elif position == "top_third":
        cy = height / 3.0
    elif position == "bottom_third":
        cy = height * 2.0 / 3.0
    return cx, cy


def compute_target_rect(
    subject_rect: ScreenRect,
    viewport: tuple[float, float],
    framing: Optional[FramingGuidance] = None,
    config: FramingConfig | None = None,
) -> Optional[ScreenRect]:
    """Target framing rectangle for the subject's current on-screen size."""
    config = config or FramingConfig()
    if subject_rect.is_empty:
        return None
    multiplier = framing_multiplier(framing, config)
    width = subject_rect.width * multiplier
    height = subject_rect.height * multiplier

    max_w = viewport[0] * config.max_viewport_fraction
    max_h = viewport[1] * config.max_viewport_fraction
    scale = min(1.0, max_w / width, max_h / height)
    width *= scale
    height *= scale

    cx, cy = target_center(framing, viewport)
    return ScreenRect.from_center(cx, cy, width, height)


def _coverage(ratio: float, config: ScoringConfig) -> float:
    for threshold, score in config.coverage_steps:
        if ratio >= threshold:
            return score
    return ratio * config.partial_coverage_factor


def alignment_score(
    subject: ScreenRect,
    target: ScreenRect,
    config: ScoringConfig | None = None,
) -> Optional[float]:
    """How well ``subject`` sits inside ``target``, in [0, 1].

    ``None`` for zero-area input; 0 when the rectangles do not intersect.
    """
    config = config or ScoringConfig()
    if subject.is_empty or target.is_empty:
        return None
    overlap = subject.intersection(target)
    if overlap is None:
        return 0.0

    containment = overlap.area / subject.area
    coverage = _coverage(containment, config)

    sx, sy = subject.center
    tx, ty = target.center
    max_distance = math.hypot(target.width, target.height) / 2.0
    centering = 1.0 - min(math.hypot(sx - tx, sy - ty) / max_distance, 1.0)

    fill = subject.area / target.area
    size_match = 1.0 - min(abs(fill - config.ideal_fill) / config.ideal_fill, 1.0)

    score = (
        config.coverage_weight * coverage
        + config.centering_weight * centering
        + config.size_weight * size_match
    )
    if containment < config.coverage_steps[0][0]:
        score = min(score, config.partial_score_cap)
    return max(0.0, min(1.0, score))


class AlignmentTier(str, Enum):
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"


def alignment_tier(score: Optional[float], config: ScoringConfig | None = None) -> Optional[AlignmentTier]:
    config = config or ScoringConfig()
    if score is None:
        return None
    if score < config.poor_below:
        return AlignmentTier.POOR
    if score < config.fair_below:
        return AlignmentTier.FAIR
    return AlignmentTier.GOOD


_PREFIXES = ("move_", "turn_", "tilt_", "roll_", "rotate_")

_ARROWS: Dict[str, Dict[str, str]] = {
    "x": {"left": "move_left", "right": "move_right"},
    "y": {"up": "move_up", "down": "move_down"},
    "z": {"forward": "move_forward", "back": "move_back", "backward": "move_back", "backwards": "move_back"},
    "yaw": {"left": "turn_left", "right": "turn_right"},
    "pitch": {"up": "tilt_up", "down": "tilt_down"},
    "roll": {
        "clockwise": "roll_clockwise",
        "cw": "roll_clockwise",
        "counter_clockwise": "roll_counter_clockwise",
        "counterclockwise": "roll_counter_clockwise",
        "anticlockwise": "roll_counter_clockwise",
        "ccw": "roll_counter_clockwise",
    },
}


def _direction_token(direction: str) -> str:
    token = _token(direction)
    for prefix in _PREFIXES:
        if token.startswith(prefix):
            return token[len(prefix):]
    return token


@dataclass(frozen=True)
class GuidanceDirections:
    """Arrow magnitudes for the overlay, one field per movement."""

    move_left: float = 0.0
    move_right: float = 0.0
    move_up: float = 0.0
    move_down: float = 0.0
    move_forward: float = 0.0
    move_back: float = 0.0
    turn_left: float = 0.0
    turn_right: float = 0.0
    tilt_up: float = 0.0
    tilt_down: float = 0.0
    roll_clockwise: float = 0.0
    roll_counter_clockwise: float = 0.0

    @classmethod
    def from_adjustment(cls, adjustment: DOFAdjustment) -> "GuidanceDirections":
        arrows: Dict[str, float] = {}
        for axis, adj in adjustment.axes():
            if adj.is_no_change:
                continue
            arrow = _ARROWS[axis].get(_direction_token(adj.direction))
            if arrow is None:
                LOGGER.debug(f"No arrow for {axis} direction '{adj.direction}'")
                continue
            arrows[arrow] = adj.amount
        return cls(**arrows)

    def active(self) -> Dict[str, float]:
        return {name: value for name, value in asdict(self).items() if value}

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


__all__ = [
    "project_bounds",
    "framing_multiplier",
    "target_center",
    "compute_target_rect",
    "alignment_score",
    "AlignmentTier",
    "alignment_tier",
    "GuidanceDirections",
]
