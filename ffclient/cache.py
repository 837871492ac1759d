"""An in-memory store of flags keyed by name."""

from __future__ import annotations

from copy import copy as _shallow_copy
from dataclasses import dataclass, field
from typing import Mapping

from .flag_data import FlagData


class FlagNotFoundError(LookupError):
    """Raised when a flag is not in the cache."""

    def __init__(self, key: str):
        super().__init__(f"flag [{key}] does not exists")
        self.key = key


@dataclass
class InMemoryCache:
    """Flags held in a dict; readers always receive copies."""

    flags: dict[str, FlagData] = field(default_factory=dict)

    def init(self, flags: Mapping[str, FlagData]) -> None:
        """Replace the content of the cache."""
        self.flags = dict(flags)

    def get_flag(self, key: str) -> FlagData:
        """Return a copy of the flag; raise FlagNotFoundError if it is missing."""
        try:
            return _shallow_copy(self.flags[key])
        except KeyError:
            raise FlagNotFoundError(key) from None

    def copy(self) -> InMemoryCache:
        """Return a new cache holding copies of the flags."""
        return InMemoryCache({key: _shallow_copy(value) for key, value in self.flags.items()})

    def all(self) -> dict[str, FlagData]:
        """Return copies of every flag, keyed by name."""
        return {key: self.get_flag(key) for key in self.flags}