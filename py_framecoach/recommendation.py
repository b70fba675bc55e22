"""Recommendation documents: wire schema and decoding.

A recommendation is an untrusted 6-DOF camera adjustment produced by an
external service. Models are frozen so validation always yields new copies.
"""

from __future__ import annotations

import json
import logging
import math
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from py_framecoach.errors import DecodeErrorCode, RecommendationDecodeError

LOGGER = logging.getLogger(__name__)

ROTATION_AXES = ("roll", "pitch", "yaw")
TRANSLATION_AXES = ("x", "y", "z")
# Validation and warning order
AXES = ROTATION_AXES + TRANSLATION_AXES

_UNIT_ALIASES = {
    "m": "m",
    "meter": "m",
    "meters": "m",
    "metre": "m",
    "metres": "m",
    "deg": "deg",
    "degree": "deg",
    "degrees": "deg",
    "°": "deg",
}


class AdjustmentUnit(str, Enum):
    METERS = "m"
    DEGREES = "deg"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class DirectionAdjustment(_Frozen):
    direction: str = Field(..., description="Axis-specific token, e.g. left/right/no_change")
    magnitude: Optional[float] = Field(None, description="Non-negative amount; null or 0 means no change")
    unit: AdjustmentUnit
    description: Optional[str] = None

    @field_validator("unit", mode="before")
    @classmethod
    def _normalize_unit(cls, value: Any) -> Any:
        if isinstance(value, str):
            normalized = _UNIT_ALIASES.get(value.strip().lower())
            if normalized is None:
                raise ValueError(f"unknown unit '{value}'")
            return normalized
        return value

    @field_validator("magnitude", mode="before")
    @classmethod
    def _reject_boolean_magnitude(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("magnitude must be a number, not a boolean")
        return value

    @field_validator("magnitude")
    @classmethod
    def _check_magnitude(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return value
        if not math.isfinite(value):
            raise ValueError("magnitude must be finite")
        if value < 0:
            raise ValueError("magnitude must be non-negative")
        return value

    @property
    def is_no_change(self) -> bool:
        return not self.magnitude

    @property
    def amount(self) -> float:
        return float(self.magnitude or 0.0)

    def with_magnitude(self, magnitude: float) -> "DirectionAdjustment":
        return self.model_copy(update={"magnitude": magnitude})


def _default_units(data: Any, unit: str) -> Any:
    if not isinstance(data, Mapping):
        return data
    filled = dict(data)
    for key, value in data.items():
        if isinstance(value, Mapping) and value.get("unit") is None:
            filled[key] = {**value, "unit": unit}
    return filled


class TranslationAdjustment(_Frozen):
    x: DirectionAdjustment
    y: DirectionAdjustment
    z: DirectionAdjustment

    @model_validator(mode="before")
    @classmethod
    def _fill_units(cls, data: Any) -> Any:
        return _default_units(data, "m")


class RotationAdjustment(_Frozen):
    yaw: DirectionAdjustment
    pitch: DirectionAdjustment
    roll: DirectionAdjustment

    @model_validator(mode="before")
    @classmethod
    def _fill_units(cls, data: Any) -> Any:
        return _default_units(data, "deg")


class FramingGuidance(_Frozen):
    subject_position: Optional[str] = None
    composition_rule: Optional[str] = None
    framing_type: Optional[str] = None
    ideal_subject_percentage: Optional[float] = None


class DOFAdjustment(_Frozen):
    translation: TranslationAdjustment
    rotation: RotationAdjustment
    framing: Optional[FramingGuidance] = None

    def axis(self, name: str) -> DirectionAdjustment:
        if name in ROTATION_AXES:
            return getattr(self.rotation, name)
        if name in TRANSLATION_AXES:
            return getattr(self.translation, name)
        raise KeyError(name)

    def axes(self) -> list[tuple[str, DirectionAdjustment]]:
        return [(name, self.axis(name)) for name in AXES]

    def with_axes(self, updates: Mapping[str, DirectionAdjustment]) -> "DOFAdjustment":
        """Copy with the given axes replaced."""
        rotation = {k: v for k, v in updates.items() if k in ROTATION_AXES}
        translation = {k: v for k, v in updates.items() if k in TRANSLATION_AXES}
        return self.model_copy(
            update={
                "rotation": self.rotation.model_copy(update=rotation),
                "translation": self.translation.model_copy(update=translation),
            }
        )


class StructuredResponse(_Frozen):
    adjustments: DOFAdjustment
    summary: Optional[str] = None
    confidence: Optional[float] = None


def clean_response_text(text: str) -> str:
    """Strip whitespace and Markdown code fences around a JSON document."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json"):]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def _error_details(exc: ValidationError) -> list[dict]:
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


def decode_recommendation(payload: str | bytes | Mapping[str, Any]) -> StructuredResponse:
    """Parse and validate a recommendation document.

    Raises:
        RecommendationDecodeError: the payload is not JSON or violates the schema.
    """
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RecommendationDecodeError(
                DecodeErrorCode.INVALID_JSON, "Recommendation is not valid UTF-8", {"error": str(exc)}
            ) from exc

    if isinstance(payload, str):
        try:
            data = json.loads(clean_response_text(payload))
        except json.JSONDecodeError as exc:
            raise RecommendationDecodeError(
                DecodeErrorCode.INVALID_JSON,
                "Recommendation is not valid JSON",
                {"error": exc.msg, "line": exc.lineno, "column": exc.colno},
            ) from exc
    else:
        data = payload

    if not isinstance(data, Mapping):
        raise RecommendationDecodeError(
            DecodeErrorCode.SCHEMA_VIOLATION,
            "Recommendation must be a JSON object",
            {"type": type(data).__name__},
        )

    try:
        response = StructuredResponse.model_validate(dict(data))
    except ValidationError as exc:
        details = _error_details(exc)
        LOGGER.warning(f"Rejected recommendation: {len(details)} schema error(s)")
        raise RecommendationDecodeError(
            DecodeErrorCode.SCHEMA_VIOLATION, "Recommendation does not match the adjustment schema", details
        ) from exc
    return response


__all__ = [
    "ROTATION_AXES",
    "TRANSLATION_AXES",
    "AXES",
    "AdjustmentUnit",
    "DirectionAdjustment",
    "TranslationAdjustment",
    "RotationAdjustment",
    "FramingGuidance",
    "DOFAdjustment",
    "StructuredResponse",
    "clean_response_text",
    "decode_recommendation",
]
