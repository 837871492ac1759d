"""Differences between two versions of the flag configuration, and the notifier interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from .flag import Flag


class NotifierError(Exception):
    """Raised by a notifier that could not deliver a notification."""


def _flag_to_dict(flag: Flag) -> dict[str, Any]:
    to_dict = getattr(flag, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return flag.raw_values()


@dataclass
class DiffUpdated:
    """A flag whose configuration changed."""

    before: Flag
    after: Flag

    def to_dict(self) -> dict[str, Any]:
        return {"old_value": _flag_to_dict(self.before), "new_value": _flag_to_dict(self.after)}


@dataclass
class DiffCache:
    """Flags deleted, added and updated by a configuration refresh."""

    deleted: dict[str, Flag] = field(default_factory=dict)
    added: dict[str, Flag] = field(default_factory=dict)
    updated: dict[str, DiffUpdated] = field(default_factory=dict)

    def has_diff(self) -> bool:
        """Return whether anything changed."""
        return bool(self.deleted) or bool(self.added) or bool(self.updated)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the differences, with keys in sorted order."""
        deleted = self.deleted or {}
        added = self.added or {}
        updated = self.updated or {}
        return {
            "deleted": {key: _flag_to_dict(deleted[key]) for key in sorted(deleted)},
            "added": {key: _flag_to_dict(added[key]) for key in sorted(added)},
            "updated": {key: updated[key].to_dict() for key in sorted(updated)},
        }


class Notifier(ABC):
    """Something told about changes in the flag configuration."""

    @abstractmethod
    def notify(self, diff: DiffCache) -> None:
        """Deliver the differences; raise NotifierError when that fails."""