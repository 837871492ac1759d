"""Snapshots of flag evaluations for one user, ready to be sent to a front-end."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from .flag import ErrorCode, ResolutionReason


@dataclass
class FlagState:
    """The state of one flag for a user at the time it was evaluated."""

    value: Any = None
    timestamp: int = 0
    variation_type: str = ""
    track_events: bool = False
    failed: bool = False
    error_code: ErrorCode | str = ""
    reason: ResolutionReason | str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the state; ``failed`` is not part of it."""
        return {
            "value": self.value,
            "timestamp": self.timestamp,
            "variationType": self.variation_type,
            "trackEvents": self.track_events,
            "errorCode": str(self.error_code or ""),
            "reason": str(self.reason or ""),
        }


class AllFlags:
    """The states of several flags for one user; invalid once any of them failed."""

    def __init__(self) -> None:
        self._flags: dict[str, FlagState] = {}
        self._valid = True

    def add_flag(self, flag_key: str, state: FlagState) -> None:
        """Record the state of a flag."""
        self._flags[flag_key] = state
        if state.failed:
            self._valid = False

    def to_json(self) -> str:
        """Return the compact JSON form; ``flags`` is left out when there are none."""
        payload: dict[str, Any] = {}
        if self._flags:
            payload["flags"] = {key: self._flags[key].to_dict() for key in sorted(self._flags)}
        payload["valid"] = self._valid
        return json.dumps(payload, separators=(",", ":"))

    def is_valid(self) -> bool:
        """Return whether every added flag was evaluated without failure."""
        return self._valid

    def flags(self) -> dict[str, FlagState]:
        """Return the recorded states keyed by flag name."""
        return dict(self._flags)