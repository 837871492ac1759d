"""A notifier that posts configuration changes as JSON to an HTTP endpoint."""

from __future__ import annotations

import json
import re
import socket
import threading
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

from .diff_cache import DiffCache, Notifier, NotifierError
from .http_client import HTTPClient, default_http_client
from .signer import sign

_HOST_RE = re.compile(r"[A-Za-z0-9\-._~!$&'()*+,;=:\[\]%]*")


def _is_valid_url(url: str) -> bool:
    if any(ord(char) < 0x20 or ord(char) == 0x7F for char in url):
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    host = parts.netloc.rpartition("@")[2]
    return _HOST_RE.fullmatch(host) is not None


def _integral_floats(value: Any) -> Any:
    """Write whole floats as integers, as most JSON producers do."""
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return int(value)
    if isinstance(value, dict):
        return {key: _integral_floats(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_integral_floats(item) for item in value]
    return value


@dataclass
class WebhookNotifier(Notifier):
    """POSTs ``{"meta": ..., "flags": <differences>}`` to ``endpoint_url``.

    When ``secret`` is set the body is signed in the ``X-Hub-Signature-256`` header.
    The ``hostname`` entry of ``meta`` defaults to the name of this machine.
    """

    endpoint_url: str = ""
    secret: str = ""
    meta: dict[str, str] | None = None
    http_client: HTTPClient | None = None
    _initialized: bool = field(default=False, init=False, repr=False)
    _init_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def _initialize(self) -> None:
        with self._init_lock:
            if self._initialized:
                return
            if self.http_client is None:
                self.http_client = default_http_client()
            self.meta = dict(self.meta or {})
            self.meta.setdefault("hostname", socket.gethostname())
            self._initialized = True

    def notify(self, diff: DiffCache) -> None:
        """Post the differences; raise NotifierError when that fails."""
        if not self.endpoint_url:
            raise NotifierError(
                "invalid notifier configuration, no endpointURL provided for the webhook notifier"
            )
        self._initialize()

        if not _is_valid_url(self.endpoint_url):
            raise NotifierError(
                f"error: (Webhook Notifier) invalid EnpointURL:{self.endpoint_url}"
            )

        body = {"meta": self.meta, "flags": diff.to_dict()}
        try:
            payload = json.dumps(
                _integral_floats(body), separators=(",", ":"), ensure_ascii=False
            ).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise NotifierError(
                f"error: (Webhook Notifier) impossible to read differences; {exc}"
            ) from exc

        headers = {"Content-Type": "application/json"}
        if self.secret:
            headers["X-Hub-Signature-256"] = sign(payload, self.secret.encode("utf-8"))

        try:
            response = self.http_client.request("POST", self.endpoint_url, headers, payload)
        except Exception as exc:
            raise NotifierError(f"error: while calling webhook: {exc}") from exc

        if response.status_code > 399:
            raise NotifierError(
                f"error: while calling webhook, statusCode = {response.status_code}"
            )