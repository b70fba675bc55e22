"""
framecoach

Subject tracking and composition guidance for a handheld camera: locates a
human subject in 3D, bounds externally recommended camera movements, and
scores how well the live framing matches the recommended target.

Usage:
    python -m py_framecoach --stage replay --session SESSION.jsonl --recommendation REC.json

Library use:
    from py_framecoach import GuidanceEngine, FrameInput

    engine = GuidanceEngine()
    engine.apply_recommendation(document)
    snapshot = engine.process_frame(frame)
"""

from .bounds_fusion import BoundsSource, Detection2D, HeightRatioDepth, SubjectBounds, SubjectBoundsFusion
from .config import GuidanceConfig, SafetyLimits, load_config
from .continuity import BodyAnchor, JointCountPolicy, SmoothingBuffer, SubjectContinuity, TrustUpstreamPolicy
from .detection_worker import DetectionBatch, DetectionWorker
from .engine import GuidanceEngine, GuidanceSnapshot, GuidanceState
from .errors import RecommendationDecodeError
from .framing import GuidanceDirections, alignment_score, compute_target_rect, project_bounds
from .geometry import CameraPose, ScreenRect
from .metrics import LightEstimate, PlaneAnchor
from .recommendation import DOFAdjustment, DirectionAdjustment, StructuredResponse, decode_recommendation
from .safety import (
    ExcessiveRotation,
    ExcessiveTranslation,
    LargeMovement,
    SafetyWarning,
    ValidationResult,
    validate_and_clamp,
)
from .session import FrameInput

__all__ = [
    # Configuration
    "GuidanceConfig",
    "SafetyLimits",
    "load_config",
    # Geometry
    "CameraPose",
    "ScreenRect",
    # Fusion
    "BoundsSource",
    "Detection2D",
    "HeightRatioDepth",
    "SubjectBounds",
    "SubjectBoundsFusion",
    # Continuity
    "BodyAnchor",
    "JointCountPolicy",
    "SmoothingBuffer",
    "SubjectContinuity",
    "TrustUpstreamPolicy",
    "PlaneAnchor",
    "LightEstimate",
    # Recommendations and safety
    "DOFAdjustment",
    "DirectionAdjustment",
    "StructuredResponse",
    "decode_recommendation",
    "RecommendationDecodeError",
    "SafetyWarning",
    "ExcessiveRotation",
    "ExcessiveTranslation",
    "LargeMovement",
    "ValidationResult",
    "validate_and_clamp",
    # Framing
    "GuidanceDirections",
    "alignment_score",
    "compute_target_rect",
    "project_bounds",
    # Engine
    "DetectionBatch",
    "DetectionWorker",
    "FrameInput",
    "GuidanceEngine",
    "GuidanceSnapshot",
    "GuidanceState",
]
