"""Timestamped log lines written to an optional logger."""

from __future__ import annotations

import logging
from datetime import datetime

RFC3339_REGEX = (
    "([0-9]+)-(0[1-9]|1[012])-(0[1-9]|[12][0-9]|3[01])[Tt]([01][0-9]|2[0-3]):"
    "([0-5][0-9]):([0-5][0-9]|60)(\\.[0-9]+)?(([Zz])|([\\+|\\-]([01][0-9]|2[0-3]):[0-5][0-9]))"
)


def _now_rfc3339() -> str:
    stamp = datetime.now().astimezone().isoformat(timespec="seconds")
    if stamp.endswith("+00:00"):
        stamp = stamp[: -len("+00:00")] + "Z"
    return stamp


def printf(logger: logging.Logger | None, fmt: str, *args: object) -> None:
    """Log ``fmt % args`` prefixed by the current RFC 3339 time; do nothing without a logger.

    ``%v`` in the format is accepted as a synonym of ``%s``.
    """
    if logger is None:
        return
    message = fmt.replace("%v", "%s") % args if args else fmt
    logger.info("[%s] %s", _now_rfc3339(), message.rstrip("\n"))