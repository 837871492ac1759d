"""A small HTTP client with a fixed timeout."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

import requests

DEFAULT_TIMEOUT = 10.0


@dataclass
class HTTPClient:
    """Sends HTTP requests through a shared session with a timeout in seconds."""

    timeout: float = DEFAULT_TIMEOUT
    session: requests.Session = field(default_factory=requests.Session, repr=False)

    def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        body: bytes | str | None = None,
    ) -> requests.Response:
        """Send a request and return the response, whatever its status code."""
        return self.session.request(
            method, url, headers=headers, data=body, timeout=self.timeout
        )


def default_http_client() -> HTTPClient:
    """Return a client with the default ten-second timeout."""
    return http_client_with_timeout(DEFAULT_TIMEOUT)


def http_client_with_timeout(timeout: float) -> HTTPClient:
    """Return a client that gives up after ``timeout`` seconds."""
    return HTTPClient(timeout=timeout)