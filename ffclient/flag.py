"""Core flag abstractions shared by every flag format."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

VARIATION_SDK_DEFAULT = "SdkDefault"


class ErrorCode(StrEnum):
    """Evaluation error codes, following the OpenFeature specification."""

    PROVIDER_NOT_READY = "PROVIDER_NOT_READY"
    FLAG_NOT_FOUND = "FLAG_NOT_FOUND"
    PARSE_ERROR = "PARSE_ERROR"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    GENERAL = "GENERAL"


class ResolutionReason(StrEnum):
    """Why an evaluation produced its value, following the OpenFeature specification."""

    TARGETING_MATCH = "TARGETING_MATCH"
    SPLIT = "SPLIT"
    DISABLED = "DISABLED"
    DEFAULT = "DEFAULT"
    STATIC = "STATIC"
    UNKNOWN = "UNKNOWN"
    ERROR = "ERROR"


@dataclass(frozen=True)
class EvaluationContext:
    """Information about the surroundings of an evaluation."""

    environment: str = ""
    default_sdk_value: Any = None


@dataclass(frozen=True)
class ResolutionDetails:
    """The variant chosen for an evaluation and the reason it was chosen."""

    variant: str
    reason: ResolutionReason
    error_code: ErrorCode | None = None


class Flag(ABC):
    """A feature flag that can be evaluated for a user."""

    @abstractmethod
    def value(
        self, flag_name: str, user: Any, evaluation_ctx: EvaluationContext
    ) -> tuple[Any, ResolutionDetails]:
        """Return the value of the flag for the user and how it was resolved."""

    @abstractmethod
    def variation_value(self, variation_name: str) -> Any:
        """Return the value of the named variation, or None if it is unknown."""

    @abstractmethod
    def raw_values(self) -> dict[str, str]:
        """Return the flag fields rendered as text, for display in notifications."""

    @abstractmethod
    def version(self) -> float:
        """Return the version of the flag (0 when unset)."""

    @abstractmethod
    def track_events(self) -> bool:
        """Return whether evaluations of this flag are exported (True when unset)."""

    @abstractmethod
    def disable(self) -> bool:
        """Return whether the flag is disabled (False when unset)."""

    @abstractmethod
    def default_variation(self) -> str:
        """Return the name of the variation served when something goes wrong."""