"""Collects evaluation events and hands them to an exporter, in bulk or one by one."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Sequence

from . import fflog

DEFAULT_FLUSH_INTERVAL = 60.0
DEFAULT_MAX_EVENT_IN_MEMORY = 100_000


class Exporter(ABC):
    """Somewhere evaluation events are sent."""

    @abstractmethod
    def export(self, logger: logging.Logger | None, events: Sequence[Any]) -> None:
        """Send the events; raise an exception when that fails."""

    @abstractmethod
    def is_bulk(self) -> bool:
        """Return True to collect events and send them in bulk, False to send each at once."""


class Scheduler:
    """Buffers events and flushes them when the buffer is full or on a timer.

    ``flush_interval`` is in seconds; 0 means 60 seconds. ``max_event_in_memory``
    of 0 means 100000. A failed export keeps the events for the next flush.
    """

    def __init__(
        self,
        exporter: Exporter,
        flush_interval: float = 0.0,
        max_event_in_memory: int = 0,
        logger: logging.Logger | None = None,
    ):
        self._exporter = exporter
        self._flush_interval = flush_interval or DEFAULT_FLUSH_INTERVAL
        self._max_event_in_cache = max_event_in_memory or DEFAULT_MAX_EVENT_IN_MEMORY
        self._logger = logger
        self._local_cache: list[Any] = []
        self._lock = threading.Lock()
        self._stopped = threading.Event()

    def add_event(self, event: Any) -> None:
        """Buffer an event, exporting first if the buffer is full (or always, if not bulk)."""
        with self._lock:
            if not self._exporter.is_bulk():
                self._local_cache.append(event)
                self._flush()
                return
            if len(self._local_cache) >= self._max_event_in_cache:
                self._flush()
            self._local_cache.append(event)

    def start_daemon(self) -> None:
        """Flush every interval until close() is called; meant to run in its own thread."""
        while not self._stopped.wait(self._flush_interval):
            with self._lock:
                self._flush()

    def close(self) -> None:
        """Stop the daemon and export the events still buffered."""
        self._stopped.set()
        with self._lock:
            self._flush()

    def __enter__(self) -> Scheduler:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _flush(self) -> None:
        # Must be called with the lock held.
        if self._local_cache:
            try:
                self._exporter.export(self._logger, list(self._local_cache))
            except Exception as exc:  # the exporter's failure is reported, not raised
                fflog.printf(self._logger, "error while exporting data: %v\n", exc)
                return
        self._local_cache = []