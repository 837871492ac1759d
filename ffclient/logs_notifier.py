"""A notifier that writes configuration changes to a logger."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from . import fflog
from .diff_cache import DiffCache, Notifier


@dataclass
class LogsNotifier(Notifier):
    """Writes one log line for every deleted, added or updated flag."""

    logger: logging.Logger | None = None

    def notify(self, diff: DiffCache) -> None:
        """Log the differences; flags are reported in key order."""
        for key in sorted(diff.deleted or {}):
            fflog.printf(self.logger, "flag %v removed\n", key)

        for key in sorted(diff.added or {}):
            fflog.printf(self.logger, "flag %v added\n", key)

        updated = diff.updated or {}
        for key in sorted(updated):
            change = updated[key]
            if change.after.disable() != change.before.disable():
                if change.after.disable():
                    fflog.printf(self.logger, "flag %v is turned OFF\n", key)
                else:
                    fflog.printf(
                        self.logger, "flag %v is turned ON (flag=[%v])  \n", key, change.after
                    )
                continue
            fflog.printf(
                self.logger,
                "flag %s updated, old=[%v], new=[%v]\n",
                key,
                change.before,
                change.after,
            )