"""Offline drivers: session replay and recommendation validation."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from py_framecoach.config import GuidanceConfig, SafetyLimits
from py_framecoach.engine import GuidanceEngine
from py_framecoach.errors import RecommendationDecodeError
from py_framecoach.recommendation import decode_recommendation
from py_framecoach.safety import validate_and_clamp
from py_framecoach.session import FrameInput, read_session, write_jsonl

LOGGER = logging.getLogger(__name__)


def load_recommendation_text(path: Path) -> str:
    if not path.exists():
        raise FileNotFoundError(f"Recommendation not found: {path}")
    return path.read_text(encoding="utf-8")


def replay_frames(
    engine: GuidanceEngine,
    frames: Iterable[FrameInput],
    recommendation: Any = None,
) -> Iterator[dict]:
    """Feed frames through ``engine`` and yield one snapshot dict per frame.

    ``recommendation`` is applied before the first frame; frames carrying their
    own ``recommendation`` apply it just before they are processed. A malformed
    per-frame document is logged and skipped, matching a failed guidance request.
    """
    if recommendation is not None:
        engine.apply_recommendation(recommendation)
    for frame in frames:
        if frame.recommendation is not None:
            try:
                engine.apply_recommendation(frame.recommendation)
            except RecommendationDecodeError as exc:
                LOGGER.warning(f"Frame t={frame.timestamp:.3f}: recommendation rejected: {exc}")
        snapshot = engine.process_frame(frame)
        if snapshot is not None:
            yield snapshot.to_dict()


def run_replay(
    session_path: Path,
    config: GuidanceConfig,
    recommendation_path: Optional[Path] = None,
    output_path: Optional[Path] = None,
) -> int:
    """Replay a recorded session; returns the number of snapshots produced."""
    if not session_path.exists():
        raise FileNotFoundError(f"Session not found: {session_path}")
    recommendation = load_recommendation_text(recommendation_path) if recommendation_path else None

    engine = GuidanceEngine(config)
    try:
        rows = replay_frames(engine, read_session(session_path), recommendation)
        if output_path is not None:
            return write_jsonl(output_path, rows)
        count = 0
        for row in rows:
            print(json.dumps(row, ensure_ascii=False))
            count += 1
        return count
    finally:
        engine.close()


def validate_document(payload: Any, limits: SafetyLimits | None = None) -> dict:
    """Decode and clamp a recommendation; returns the safe adjustment and warnings."""
    response = decode_recommendation(payload)
    result = validate_and_clamp(response.adjustments, limits)
    report = result.to_dict()
    report["summary"] = response.summary
    report["confidence"] = response.confidence
    return report


__all__ = ["load_recommendation_text", "replay_frames", "run_replay", "validate_document"]
