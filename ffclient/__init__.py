"""In-process feature flags: flag files, per-user evaluation, change notifiers and event export."""

__version__ = "0.1.0"