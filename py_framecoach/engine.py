"""Per-frame orchestration of subject tracking and composition guidance.

Frame data flow::

    camera pose + skeletal anchors + latest 2D detections
        -> continuity (tracked anchor, smoothed metrics)
        -> fusion (SubjectBounds)
        -> framing (subject rect, target rect, alignment score)

A recommendation enters through ``apply_recommendation``: it is decoded,
clamped, and activated once subject bounds exist.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from py_framecoach.bounds_fusion import SubjectBounds, SubjectBoundsFusion
from py_framecoach.config import GuidanceConfig
from py_framecoach.continuity import SubjectContinuity
from py_framecoach.detection_worker import DetectionBatch, DetectionWorker, Detector
from py_framecoach.framing import (
    AlignmentTier,
    GuidanceDirections,
    alignment_score,
    alignment_tier,
    compute_target_rect,
    project_bounds,
)
from py_framecoach.geometry import CameraPose, ScreenRect, Vec3, distance
from py_framecoach.metrics import (
    CameraReadout,
    SubjectReadout,
    camera_height,
    camera_readout,
    format_camera_height,
)
from py_framecoach.recommendation import DOFAdjustment, StructuredResponse, decode_recommendation
from py_framecoach.safety import SafetyWarning, ValidationResult, validate_and_clamp
from py_framecoach.session import FrameInput

LOGGER = logging.getLogger(__name__)

HINT_ACTIVE = "Follow the arrows to align your shot"
HINT_DISABLED = "Guidance disabled"
HINT_NO_DATA = "No guidance data available. Analyze scene first."
HINT_WAITING = "No subject detected. Guidance will start once a subject is found."


@dataclass
class GuidanceState:
    """Mutable guidance aggregate owned by the engine."""

    current_bounds: Optional[SubjectBounds] = None
    active_adjustment: Optional[DOFAdjustment] = None
    target_rect: Optional[ScreenRect] = None
    subject_rect: Optional[ScreenRect] = None
    alignment_score: Optional[float] = None
    is_active: bool = False
    pending: bool = False
    warnings: List[SafetyWarning] = field(default_factory=list)
    directions: GuidanceDirections = field(default_factory=GuidanceDirections)
    hint: Optional[str] = None
    last_computed_center: Optional[Vec3] = None

    def hide_overlay(self) -> None:
        """Hide the on-screen rectangles for one frame without deactivating."""
        self.subject_rect = None
        self.target_rect = None
        self.alignment_score = None

    def clear_guidance(self) -> None:
        """Drop every derived guidance value in one step."""
        self.active_adjustment = None
        self.target_rect = None
        self.subject_rect = None
        self.alignment_score = None
        self.is_active = False
        self.pending = False
        self.warnings = []
        self.directions = GuidanceDirections()
        self.last_computed_center = None


@dataclass(frozen=True)
class GuidanceSnapshot:
    """Read-only view of the engine state for renderers and UI."""

    timestamp: Optional[float]
    is_active: bool
    pending: bool
    tracked_anchor_id: Optional[str]
    current_bounds: Optional[SubjectBounds]
    active_adjustment: Optional[DOFAdjustment]
    target_rect: Optional[ScreenRect]
    subject_rect: Optional[ScreenRect]
    alignment_score: Optional[float]
    alignment_tier: Optional[AlignmentTier]
    warnings: tuple[SafetyWarning, ...]
    directions: GuidanceDirections
    hint: Optional[str]
    readout: SubjectReadout
    camera_height: str
    camera: CameraReadout

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "is_active": self.is_active,
            "pending": self.pending,
            "tracked_anchor_id": self.tracked_anchor_id,
            "subject_bounds": self.current_bounds.to_dict() if self.current_bounds else None,
            "adjustment": self.active_adjustment.model_dump(mode="json") if self.active_adjustment else None,
            "target_rect": self.target_rect.to_dict() if self.target_rect else None,
            "subject_rect": self.subject_rect.to_dict() if self.subject_rect else None,
            "alignment_score": round(self.alignment_score, 4) if self.alignment_score is not None else None,
            "alignment_tier": self.alignment_tier.value if self.alignment_tier else None,
            "warnings": [w.to_dict() for w in self.warnings],
            "directions": self.directions.active(),
            "hint": self.hint,
            "readout": self.readout.to_dict(),
            "camera_height": self.camera_height,
            "camera": self.camera.to_dict(),
        }


class GuidanceEngine:
    """Subject tracking and composition guidance for one camera session.

    ``process_frame`` is single-flight: a call made while another frame is
    still being processed returns ``None`` immediately.
    """

    def __init__(
        self,
        config: GuidanceConfig | None = None,
        fusion: SubjectBoundsFusion | None = None,
        continuity: SubjectContinuity | None = None,
        detection_worker: DetectionWorker | None = None,
        detector: Detector | None = None,
    ) -> None:
        self.config = config or GuidanceConfig()
        self.fusion = fusion or SubjectBoundsFusion(self.config.fusion)
        self.continuity = continuity or SubjectContinuity(
            self.config.continuity, joints_of_interest=self.config.fusion.joints_of_interest
        )
        if detection_worker is None and detector is not None:
            detection_worker = DetectionWorker(detector, interval_s=self.config.engine.detection_interval_s)
        self.detection_worker = detection_worker
        self.state = GuidanceState()

        self._frame_lock = threading.Lock()
        self._state_lock = threading.RLock()
        self._recommendation: Optional[StructuredResponse] = None
        self._detections: Optional[DetectionBatch] = None
        self._camera: Optional[CameraPose] = None
        self._timestamp: Optional[float] = None
        self._camera_height_text = format_camera_height(None)
        self._camera_readout = camera_readout(None)

    # ------------------------------------------------------------------
    # Frame loop
    # ------------------------------------------------------------------

    def process_frame(self, frame: FrameInput) -> Optional[GuidanceSnapshot]:
        if not self._frame_lock.acquire(blocking=False):
            LOGGER.debug(f"Dropping frame t={frame.timestamp:.3f}: previous frame still processing")
            return None
        try:
            with self._state_lock:
                self._process(frame)
                return self.snapshot()
        finally:
            self._frame_lock.release()

    def _process(self, frame: FrameInput) -> None:
        self._timestamp = frame.timestamp
        self._camera = frame.camera

        if frame.camera is not None:
            reading = camera_height(
                frame.camera.position[1], frame.planes, self.config.continuity.low_camera_threshold
            )
            self._camera_height_text = format_camera_height(reading)
        else:
            self._camera_height_text = format_camera_height(None)
        self._camera_readout = camera_readout(frame.camera, frame.light)

        was_tracking = self.continuity.is_tracking
        if frame.removed_anchor_ids:
            self.continuity.remove(frame.removed_anchor_ids)
        anchor = self.continuity.observe(frame.bodies)
        if was_tracking and anchor is None:
            self._on_subject_lost()

        batch = self._update_detections(frame)

        if anchor is not None and frame.camera is not None:
            self.continuity.measure(frame.camera)

        bounds = self.fusion.estimate(
            anchor.joints if anchor is not None else None,
            batch.detections if batch is not None else (),
            batch.camera if batch is not None else None,
        )
        self.state.current_bounds = bounds

        if bounds is None:
            if self.state.is_active:
                self._on_subject_lost()
            return
        if frame.camera is None:
            if self.state.is_active:
                self.state.hide_overlay()
            return

        if self.state.pending:
            self._activate()
        elif self.state.is_active:
            self._refresh(frame.camera, bounds)

    def _update_detections(self, frame: FrameInput) -> Optional[DetectionBatch]:
        max_age = self.config.fusion.max_detection_age_s
        if frame.detections is not None and frame.camera is not None:
            self._detections = DetectionBatch(frame.timestamp, frame.camera, list(frame.detections))
        elif self.detection_worker is not None:
            self.detection_worker.poll()
            if frame.image is not None and frame.camera is not None:
                self.detection_worker.maybe_submit(frame.image, frame.camera, frame.timestamp)
            latest = self.detection_worker.latest(frame.timestamp, max_age)
            if latest is not None:
                self._detections = latest

        if self._detections is not None and self._detections.age(frame.timestamp) > max_age:
            LOGGER.debug(f"Discarding stale detections from t={self._detections.timestamp:.3f}")
            self._detections = None
        return self._detections

    def _on_subject_lost(self) -> None:
        if self.state.is_active or self.state.pending:
            LOGGER.info("Subject lost; clearing guidance")
        self.state.clear_guidance()
        self.state.hint = None

    # ------------------------------------------------------------------
    # Guidance
    # ------------------------------------------------------------------

    def _activate(self) -> None:
        self.state.is_active = True
        self.state.pending = False
        self.state.hint = HINT_ACTIVE
        self.state.target_rect = None
        self.state.last_computed_center = None
        LOGGER.info("Guidance activated")
        if self._camera is not None and self.state.current_bounds is not None:
            self._refresh(self._camera, self.state.current_bounds)

    def _refresh(self, camera: CameraPose, bounds: SubjectBounds) -> None:
        subject_rect = project_bounds(bounds, camera)
        if subject_rect is None:
            self.state.hide_overlay()
            return

        last = self.state.last_computed_center
        if (
            self.state.target_rect is None
            or last is None
            or distance(bounds.center, last) > self.config.engine.recompute_distance_m
        ):
            self._recompute(camera, bounds, subject_rect)

        self.state.subject_rect = subject_rect
        if self.state.target_rect is not None:
            self.state.alignment_score = alignment_score(subject_rect, self.state.target_rect, self.config.scoring)
        else:
            self.state.alignment_score = None

    def _recompute(self, camera: CameraPose, bounds: SubjectBounds, subject_rect: ScreenRect) -> None:
        if self._recommendation is None:
            return
        result = validate_and_clamp(self._recommendation.adjustments, self.config.safety)
        self._store_result(result)
        self.state.target_rect = compute_target_rect(
            subject_rect, camera.viewport, result.safe.framing, self.config.framing
        )
        self.state.last_computed_center = bounds.center
        LOGGER.debug(f"Recomputed target rect at subject center {bounds.center}")

    def _store_result(self, result: ValidationResult) -> None:
        self.state.active_adjustment = result.safe
        self.state.warnings = list(result.warnings)
        self.state.directions = GuidanceDirections.from_adjustment(result.safe)

    def apply_recommendation(self, payload: str | bytes | Mapping[str, Any]) -> ValidationResult:
        """Decode, clamp and activate (or queue) a recommendation.

        Raises:
            RecommendationDecodeError: the payload is malformed; state is unchanged.
        """
        response = decode_recommendation(payload)
        result = validate_and_clamp(response.adjustments, self.config.safety)
        with self._state_lock:
            self._recommendation = response
            self._store_result(result)
            if self.state.current_bounds is not None and self._camera is not None:
                self._activate()
            else:
                self.state.is_active = False
                self.state.pending = True
                self.state.hint = HINT_WAITING
                LOGGER.info("Recommendation queued until a subject is found")
        return result

    def toggle(self) -> bool:
        """Switch guidance on or off; returns the new active flag."""
        with self._state_lock:
            if self.state.is_active:
                self.state.clear_guidance()
                self.state.hint = HINT_DISABLED
                LOGGER.info("Guidance disabled")
                return False
            if (
                self._recommendation is not None
                and self.state.current_bounds is not None
                and self._camera is not None
            ):
                self._activate()
                return True
            self.state.hint = HINT_NO_DATA
            return False

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def snapshot(self) -> GuidanceSnapshot:
        with self._state_lock:
            state = self.state
            return GuidanceSnapshot(
                timestamp=self._timestamp,
                is_active=state.is_active,
                pending=state.pending,
                tracked_anchor_id=self.continuity.tracked_id,
                current_bounds=state.current_bounds,
                active_adjustment=state.active_adjustment,
                target_rect=state.target_rect,
                subject_rect=state.subject_rect,
                alignment_score=state.alignment_score,
                alignment_tier=alignment_tier(state.alignment_score, self.config.scoring),
                warnings=tuple(state.warnings),
                directions=state.directions,
                hint=state.hint,
                readout=self.continuity.readout,
                camera_height=self._camera_height_text,
                camera=self._camera_readout,
            )

    def close(self) -> None:
        if self.detection_worker is not None:
            self.detection_worker.shutdown()


__all__ = [
    "HINT_ACTIVE",
    "HINT_DISABLED",
    "HINT_NO_DATA",
    "HINT_WAITING",
    "GuidanceState",
    "GuidanceSnapshot",
    "GuidanceEngine",
]
