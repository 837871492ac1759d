"""Thread-safe holder of the current flag configuration."""

from __future__ import annotations

import json
import logging
import threading
import tomllib
from datetime import datetime, timezone
from typing import Any, Mapping

import yaml

from .cache import InMemoryCache
from .flag_data import FlagData
from .notification_service import NotificationService


class CacheNotInitializedError(RuntimeError):
    """Raised when flags are read from a cache that is closed."""

    def __init__(self) -> None:
        super().__init__("impossible to read the flag before the initialisation")


def _parse_flags(loaded_flags: bytes | str, file_format: str) -> dict[str, FlagData]:
    fmt = (file_format or "").lower()
    try:
        text = loaded_flags.decode("utf-8") if isinstance(loaded_flags, bytes) else loaded_flags
        if fmt == "toml":
            raw: Any = tomllib.loads(text)
        elif fmt == "json":
            raw = json.loads(text)
        else:
            raw = yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as exc:
        raise ValueError(f"impossible to parse the flag file: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError("the flag file must contain a mapping of flag names to flags")
    return {str(key): FlagData.from_dict(value) for key, value in raw.items()}


class CacheManager:
    """Keeps the loaded flags and notifies the changes when they are refreshed."""

    def __init__(self, notification_service: NotificationService | None = None):
        self._cache: InMemoryCache | None = InMemoryCache()
        self._lock = threading.RLock()
        self._notification_service = notification_service
        self._latest_update = datetime.min.replace(tzinfo=timezone.utc)

    def update_cache(
        self,
        loaded_flags: bytes | str,
        file_format: str = "yaml",
        logger: logging.Logger | None = None,
    ) -> None:
        """Replace the flags with those of the file; YAML is used for unknown formats.

        Raises ValueError when the file cannot be read; the cache is then unchanged.
        """
        new_flags = _parse_flags(loaded_flags, file_format)
        new_cache = InMemoryCache()
        new_cache.init(new_flags)
        new_cache_flags = new_cache.all()

        with self._lock:
            old_cache_flags = self._cache.all() if self._cache is not None else {}
            self._cache = new_cache
            self._latest_update = datetime.now(timezone.utc)

        if self._notification_service is not None:
            self._notification_service.notify(old_cache_flags, new_cache_flags, logger)

    def close(self) -> None:
        """Empty the cache and wait for the pending notifications."""
        with self._lock:
            self._cache = None
        if self._notification_service is not None:
            self._notification_service.close()

    def get_flag(self, key: str) -> FlagData:
        """Return a copy of the flag; raise FlagNotFoundError or CacheNotInitializedError."""
        with self._lock:
            if self._cache is None:
                raise CacheNotInitializedError()
            return self._cache.get_flag(key)

    def all_flags(self) -> dict[str, FlagData]:
        """Return copies of every flag; raise CacheNotInitializedError after close."""
        with self._lock:
            if self._cache is None:
                raise CacheNotInitializedError()
            return self._cache.all()

    def latest_update(self) -> datetime:
        """Return when the flags were last loaded (the minimum datetime if never)."""
        with self._lock:
            return self._latest_update