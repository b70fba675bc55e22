"""Engine configuration.

Every threshold the engine uses lives here so tests (and field tuning) can
override them deterministically. Values load from YAML; keys missing from the
file keep the defaults below.

Environment Variables:
    FRAMECOACH_CONFIG: Path to a YAML config used by ``load_config()`` when no
        explicit path is given (default: config/pipeline/guidance.yaml when it
        exists, otherwise built-in defaults).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/pipeline/guidance.yaml")

JOINTS_OF_INTEREST: tuple[str, ...] = (
    "head",
    "left_shoulder",
    "left_hand",
    "right_shoulder",
    "right_hand",
    "left_foot",
    "right_foot",
    "root",
)

TRUST_POLICIES = ("trust_upstream", "joint_count")


def _section(data: Mapping[str, Any] | None, key: str) -> Mapping[str, Any]:
    value = (data or {}).get(key) or {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Config section '{key}' must be a mapping, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class FusionConfig:
    """Subject bounds construction and fusion."""

    # Joint extent is padded by this fraction to approximate body volume
    padding: float = 0.4
    min_width: float = 0.5
    min_height: float = 1.4
    min_depth: float = 0.4
    joints_of_interest: tuple[str, ...] = JOINTS_OF_INTEREST

    # 2D-only estimates: depth = depth_constant / normalized box height
    depth_constant: float = 2.0
    visual_width_ratio: float = 0.8
    visual_height_ratio: float = 0.9
    visual_depth_size: float = 0.4
    # Detection batches older than this are ignored by the engine
    max_detection_age_s: float = 1.5

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FusionConfig":
        joints = data.get("joints_of_interest")
        return cls(
            padding=float(data.get("padding", cls.padding)),
            min_width=float(data.get("min_width", cls.min_width)),
            min_height=float(data.get("min_height", cls.min_height)),
            min_depth=float(data.get("min_depth", cls.min_depth)),
            joints_of_interest=tuple(joints) if joints else JOINTS_OF_INTEREST,
            depth_constant=float(data.get("depth_constant", cls.depth_constant)),
            visual_width_ratio=float(data.get("visual_width_ratio", cls.visual_width_ratio)),
            visual_height_ratio=float(data.get("visual_height_ratio", cls.visual_height_ratio)),
            visual_depth_size=float(data.get("visual_depth_size", cls.visual_depth_size)),
            max_detection_age_s=float(data.get("max_detection_age_s", cls.max_detection_age_s)),
        )


@dataclass(frozen=True)
class ContinuityConfig:
    """Tracked-subject identity, smoothing and camera-relative metrics."""

    # "trust_upstream" accepts every skeletal anchor; "joint_count" requires
    # min_joints of the priority joints to be present
    trust_policy: str = "trust_upstream"
    min_joints: int = 2
    smoothing_capacity: int = 3

    eye_offset_from_head: float = -0.07
    eye_offset_from_shoulders: float = 0.28
    eye_level_tolerance: float = 0.05
    low_camera_threshold: float = -0.1
    # Distances below this are displayed with an extra decimal place
    close_range_m: float = 1.0
    max_visible_parts: int = 5

    def __post_init__(self) -> None:
        if self.trust_policy not in TRUST_POLICIES:
            raise ValueError(f"Unknown trust policy: {self.trust_policy} (expected one of {TRUST_POLICIES})")
        if self.smoothing_capacity < 1:
            raise ValueError("smoothing_capacity must be >= 1")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ContinuityConfig":
        return cls(
            trust_policy=str(data.get("trust_policy", cls.trust_policy)),
            min_joints=int(data.get("min_joints", cls.min_joints)),
            smoothing_capacity=int(data.get("smoothing_capacity", cls.smoothing_capacity)),
            eye_offset_from_head=float(data.get("eye_offset_from_head", cls.eye_offset_from_head)),
            eye_offset_from_shoulders=float(data.get("eye_offset_from_shoulders", cls.eye_offset_from_shoulders)),
            eye_level_tolerance=float(data.get("eye_level_tolerance", cls.eye_level_tolerance)),
            low_camera_threshold=float(data.get("low_camera_threshold", cls.low_camera_threshold)),
            close_range_m=float(data.get("close_range_m", cls.close_range_m)),
            max_visible_parts=int(data.get("max_visible_parts", cls.max_visible_parts)),
        )


@dataclass(frozen=True)
class SafetyLimits:
    """Ceilings applied to externally recommended camera movements."""

    max_roll_deg: float = 40.0
    max_pitch_deg: float = 30.0
    max_yaw_deg: float = 45.0
    max_translation_m: float = 3.0
    # Fraction of a ceiling above which a non-blocking warning is raised
    warning_fraction: float = 0.7

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SafetyLimits":
        return cls(
            max_roll_deg=float(data.get("max_roll_deg", cls.max_roll_deg)),
            max_pitch_deg=float(data.get("max_pitch_deg", cls.max_pitch_deg)),
            max_yaw_deg=float(data.get("max_yaw_deg", cls.max_yaw_deg)),
            max_translation_m=float(data.get("max_translation_m", cls.max_translation_m)),
            warning_fraction=float(data.get("warning_fraction", cls.warning_fraction)),
        )

    def ceiling(self, axis: str) -> float:
        return {
            "roll": self.max_roll_deg,
            "pitch": self.max_pitch_deg,
            "yaw": self.max_yaw_deg,
        }.get(axis, self.max_translation_m)


DEFAULT_FRAMING_MULTIPLIERS: dict[str, float] = {
    "close_up": 1.2,
    "medium_shot": 1.5,
    "full_body": 1.8,
    "environmental": 2.5,
}


@dataclass(frozen=True)
class FramingConfig:
    """Target framing rectangle construction."""

    multipliers: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_FRAMING_MULTIPLIERS))
    default_multiplier: float = 1.5
    max_viewport_fraction: float = 0.9

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FramingConfig":
        multipliers = dict(DEFAULT_FRAMING_MULTIPLIERS)
        multipliers.update({str(k): float(v) for k, v in (data.get("multipliers") or {}).items()})
        return cls(
            multipliers=multipliers,
            default_multiplier=float(data.get("default_multiplier", cls.default_multiplier)),
            max_viewport_fraction=float(data.get("max_viewport_fraction", cls.max_viewport_fraction)),
        )


@dataclass(frozen=True)
class ScoringConfig:
    """Alignment score weights and thresholds."""

    coverage_weight: float = 0.5
    centering_weight: float = 0.3
    size_weight: float = 0.2
    # Subject should fill about 60% of the target frame
    ideal_fill: float = 0.6
    # (minimum containment ratio, coverage score), checked in order
    coverage_steps: tuple[tuple[float, float], ...] = ((0.99, 1.0), (0.95, 0.8), (0.90, 0.6))
    partial_coverage_factor: float = 0.5
    # Scores never exceed this unless the subject is fully contained
    partial_score_cap: float = 0.8
    poor_below: float = 0.3
    fair_below: float = 0.7

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScoringConfig":
        steps = data.get("coverage_steps")
        return cls(
            coverage_weight=float(data.get("coverage_weight", cls.coverage_weight)),
            centering_weight=float(data.get("centering_weight", cls.centering_weight)),
            size_weight=float(data.get("size_weight", cls.size_weight)),
            ideal_fill=float(data.get("ideal_fill", cls.ideal_fill)),
            coverage_steps=tuple((float(a), float(b)) for a, b in steps) if steps else cls.coverage_steps,
            partial_coverage_factor=float(data.get("partial_coverage_factor", cls.partial_coverage_factor)),
            partial_score_cap=float(data.get("partial_score_cap", cls.partial_score_cap)),
            poor_below=float(data.get("poor_below", cls.poor_below)),
            fair_below=float(data.get("fair_below", cls.fair_below)),
        )


@dataclass(frozen=True)
class EngineConfig:
    """Frame loop scheduling."""

    # Target rectangle is recomputed only after the subject moves this far
    recompute_distance_m: float = 0.1
    detection_interval_s: float = 0.5

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EngineConfig":
        return cls(
            recompute_distance_m=float(data.get("recompute_distance_m", cls.recompute_distance_m)),
            detection_interval_s=float(data.get("detection_interval_s", cls.detection_interval_s)),
        )


@dataclass(frozen=True)
class GuidanceConfig:
    """Top-level configuration for the guidance engine."""

    fusion: FusionConfig = field(default_factory=FusionConfig)
    continuity: ContinuityConfig = field(default_factory=ContinuityConfig)
    safety: SafetyLimits = field(default_factory=SafetyLimits)
    framing: FramingConfig = field(default_factory=FramingConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "GuidanceConfig":
        return cls(
            fusion=FusionConfig.from_dict(_section(data, "subject_fusion")),
            continuity=ContinuityConfig.from_dict(_section(data, "continuity")),
            safety=SafetyLimits.from_dict(_section(data, "safety_limits")),
            framing=FramingConfig.from_dict(_section(data, "framing")),
            scoring=ScoringConfig.from_dict(_section(data, "alignment_scoring")),
            engine=EngineConfig.from_dict(_section(data, "engine")),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "GuidanceConfig":
        """Load config from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, Mapping):
            raise ValueError(f"Config file {path} must contain a mapping at the top level")
        return cls.from_dict(data)


def load_config(path: Path | str | None = None) -> GuidanceConfig:
    """Resolve and load the engine config.

    Resolution order: explicit ``path``, ``FRAMECOACH_CONFIG``, the default
    config file when present, then built-in defaults.
    """
    candidate = path or os.getenv("FRAMECOACH_CONFIG")
    if candidate:
        config_path = Path(candidate)
        if not config_path.exists():
            raise FileNotFoundError(f"Config not found: {config_path}")
        LOGGER.info(f"Loading guidance config from: {config_path}")
        return GuidanceConfig.from_yaml(config_path)
    if DEFAULT_CONFIG_PATH.exists():
        LOGGER.info(f"Loading guidance config from: {DEFAULT_CONFIG_PATH}")
        return GuidanceConfig.from_yaml(DEFAULT_CONFIG_PATH)
    LOGGER.debug("No guidance config file found; using built-in defaults")
    return GuidanceConfig()


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "JOINTS_OF_INTEREST",
    "TRUST_POLICIES",
    "FusionConfig",
    "ContinuityConfig",
    "SafetyLimits",
    "FramingConfig",
    "ScoringConfig",
    "EngineConfig",
    "GuidanceConfig",
    "load_config",
]
