"""Results of typed flag evaluations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .flag import ErrorCode, ResolutionReason

T = TypeVar("T")


@dataclass
class VariationResult:
    """What an evaluation decided, apart from the value itself."""

    track_events: bool = False
    variation_type: str = ""
    failed: bool = False
    version: float = 0.0
    reason: ResolutionReason | str = ""
    error_code: ErrorCode | str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the result."""
        return {
            "trackEvents": self.track_events,
            "variationType": self.variation_type,
            "failed": self.failed,
            "version": self.version,
            "reason": str(self.reason or ""),
            "errorCode": str(self.error_code or ""),
        }


@dataclass
class VarResult(VariationResult, Generic[T]):
    """An evaluation result together with the value served."""

    value: T | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the result, including ``value``."""
        data = super().to_dict()
        data["value"] = self.value
        return data