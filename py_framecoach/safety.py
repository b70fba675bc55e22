"""Safety bounds for externally recommended camera movements.

``validate_and_clamp`` pins every axis magnitude to its ceiling and reports
what it changed. It never rejects a well-formed adjustment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from py_framecoach.config import SafetyLimits
from py_framecoach.recommendation import AXES, ROTATION_AXES, DirectionAdjustment, DOFAdjustment

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SafetyWarning:
    axis: str

    kind = "safety_warning"
    severity = "caution"

    @property
    def message(self) -> str:
        return f"{self.axis} adjustment needs attention"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "severity": self.severity, "axis": self.axis, "message": self.message}


@dataclass(frozen=True)
class ExcessiveRotation(SafetyWarning):
    requested: float = 0.0
    clamped: float = 0.0

    kind = "excessive_rotation"
    severity = "clamped"

    @property
    def message(self) -> str:
        return f"{self.axis.capitalize()} rotation of {int(self.requested)}° is too large. Limited to {int(self.clamped)}°"

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload.update({"requested": self.requested, "clamped": self.clamped})
        return payload


@dataclass(frozen=True)
class ExcessiveTranslation(SafetyWarning):
    requested: float = 0.0
    clamped: float = 0.0

    kind = "excessive_translation"
    severity = "clamped"

    @property
    def message(self) -> str:
        return f"{self.axis.upper()} movement of {self.requested:.1f}m is too far. Limited to {self.clamped:.1f}m"

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload.update({"requested": self.requested, "clamped": self.clamped})
        return payload


@dataclass(frozen=True)
class LargeMovement(SafetyWarning):
    magnitude: float = 0.0

    kind = "large_movement"
    severity = "caution"

    @property
    def message(self) -> str:
        unit = "°" if self.axis in ROTATION_AXES else "m"
        return f"Large {self.axis} adjustment: {self.magnitude:.1f}{unit}"

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["magnitude"] = self.magnitude
        return payload


@dataclass(frozen=True)
class ValidationResult:
    safe: DOFAdjustment
    warnings: List[SafetyWarning] = field(default_factory=list)

    @property
    def was_clamped(self) -> bool:
        return any(w.severity == "clamped" for w in self.warnings)

    def to_dict(self) -> dict:
        return {
            "adjustment": self.safe.model_dump(mode="json"),
            "warnings": [w.to_dict() for w in self.warnings],
        }


def _check_axis(axis: str, adjustment: DirectionAdjustment, limits: SafetyLimits):
    """Return (replacement or None, warning or None) for one axis."""
    magnitude = adjustment.amount
    ceiling = limits.ceiling(axis)
    if magnitude > ceiling:
        if axis in ROTATION_AXES:
            warning: SafetyWarning = ExcessiveRotation(axis=axis, requested=magnitude, clamped=ceiling)
        else:
            warning = ExcessiveTranslation(axis=axis, requested=magnitude, clamped=ceiling)
        return adjustment.with_magnitude(ceiling), warning
    if magnitude > ceiling * limits.warning_fraction:
        return None, LargeMovement(axis=axis, magnitude=magnitude)
    return None, None


def validate_and_clamp(adjustment: DOFAdjustment, limits: SafetyLimits | None = None) -> ValidationResult:
    """Clamp each axis to its safety ceiling.

    Warnings are ordered roll, pitch, yaw, x, y, z. Framing guidance passes
    through untouched. Applying this to an already-safe adjustment is a no-op.
    """
    limits = limits or SafetyLimits()
    replacements: dict[str, DirectionAdjustment] = {}
    warnings: List[SafetyWarning] = []
    for axis in AXES:
        replacement, warning = _check_axis(axis, adjustment.axis(axis), limits)
        if replacement is not None:
            replacements[axis] = replacement
        if warning is not None:
            warnings.append(warning)

    safe = adjustment.with_axes(replacements) if replacements else adjustment
    for warning in warnings:
        if warning.severity == "clamped":
            LOGGER.warning(f"Clamped recommendation: {warning.message}")
    return ValidationResult(safe=safe, warnings=warnings)


__all__ = [
    "SafetyWarning",
    "ExcessiveRotation",
    "ExcessiveTranslation",
    "LargeMovement",
    "ValidationResult",
    "validate_and_clamp",
]
