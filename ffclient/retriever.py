"""Sources of the flag configuration file."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


class Retriever(ABC):
    """Loads the raw content of a flag configuration file (YAML, JSON or TOML)."""

    @abstractmethod
    def retrieve(self) -> bytes:
        """Return the content of the configuration file; raise when it cannot be read."""


@dataclass
class FileRetriever(Retriever):
    """Reads the flag configuration from a local file."""

    path: str | os.PathLike[str]

    def retrieve(self) -> bytes:
        """Return the content of the file; raise OSError when it cannot be read."""
        return Path(self.path).read_bytes()