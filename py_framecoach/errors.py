"""Typed failures surfaced to callers of the guidance engine.

Absence (no subject, no plane, no joint) is never an error; only malformed
external input propagates, as a ``RecommendationDecodeError``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class DecodeErrorCode(str, Enum):
    INVALID_JSON = "invalid_json"
    SCHEMA_VIOLATION = "schema_violation"


def _as_envelope(code: str, message: str, details: Any | None = None) -> Mapping[str, Any]:
    """Standardize error payloads for the CLI and UI collaborators."""
    payload: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        payload["details"] = details
    return payload


class RecommendationDecodeError(ValueError):
    """A recommendation document could not be parsed or violates the schema.

    The guidance request that produced it should be aborted and may be retried.
    """

    def __init__(
        self,
        code: DecodeErrorCode | str,
        message: str,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.code = DecodeErrorCode(code)
        self.message = message
        self.details = details

    @property
    def retryable(self) -> bool:
        return True

    def to_envelope(self) -> Mapping[str, Any]:
        return _as_envelope(self.code.value, self.message, self.details)

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


__all__ = ["DecodeErrorCode", "RecommendationDecodeError"]
