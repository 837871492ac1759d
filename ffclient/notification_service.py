"""Computes the differences between two caches and dispatches them to notifiers."""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Mapping

from . import fflog
from .diff_cache import DiffCache, DiffUpdated, Notifier
from .flag import Flag


class NotificationService:
    """Sends every change of the flag configuration to each notifier, in background threads."""

    def __init__(self, notifiers: Iterable[Notifier] | None = None):
        self.notifiers = list(notifiers or [])
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()

    def notify(
        self,
        old_cache: Mapping[str, Flag],
        new_cache: Mapping[str, Flag],
        logger: logging.Logger | None = None,
    ) -> None:
        """Start one thread per notifier if the caches differ; failures are logged."""
        diff = self.get_differences(old_cache, new_cache)
        if not diff.has_diff():
            return
        for notifier in self.notifiers:
            thread = threading.Thread(
                target=self._deliver, args=(notifier, diff, logger), daemon=True
            )
            with self._lock:
                self._threads.append(thread)
            thread.start()

    @staticmethod
    def _deliver(notifier: Notifier, diff: DiffCache, logger: logging.Logger | None) -> None:
        try:
            notifier.notify(diff)
        except Exception as exc:  # a failing notifier must not stop the others
            fflog.printf(logger, "error while calling the notifier: %v", exc)

    def close(self) -> None:
        """Wait for every notification in progress to finish."""
        with self._lock:
            threads, self._threads = self._threads, []
        for thread in threads:
            thread.join()

    def get_differences(
        self, old_cache: Mapping[str, Flag], new_cache: Mapping[str, Flag]
    ) -> DiffCache:
        """Return the flags deleted, updated and added between the two caches."""
        diff = DiffCache()
        for key, old_flag in old_cache.items():
            if key not in new_cache:
                diff.deleted[key] = old_flag
                continue
            new_flag = new_cache[key]
            if old_flag != new_flag:
                diff.updated[key] = DiffUpdated(before=old_flag, after=new_flag)
        for key, new_flag in new_cache.items():
            if key not in old_cache:
                diff.added[key] = new_flag
        return diff