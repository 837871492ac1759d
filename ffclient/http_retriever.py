"""Loads the flag configuration from an HTTP endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

import requests

from .http_client import DEFAULT_TIMEOUT, HTTPClient, http_client_with_timeout
from .retriever import Retriever


@dataclass
class HTTPRetriever(Retriever):
    """Fetches the configuration file with an HTTP request.

    ``method`` defaults to GET and ``timeout`` (seconds) to 10 when not positive.
    """

    url: str = ""
    method: str = ""
    body: str = ""
    headers: Mapping[str, str] | None = None
    timeout: float = 0.0
    http_client: HTTPClient | None = None

    def retrieve(self) -> bytes:
        """Return the response body.

        Raises ValueError without a URL and requests.HTTPError when the
        status code is above 399; transport errors propagate.
        """
        timeout = self.timeout if self.timeout > 0 else DEFAULT_TIMEOUT
        if not self.url:
            raise ValueError("URL is a mandatory parameter when using HTTPRetriever")

        method = self.method or "GET"
        headers = dict(self.headers) if self.headers else None

        if self.http_client is None:
            self.http_client = http_client_with_timeout(timeout)

        response = self.http_client.request(
            method, self.url, headers, self.body.encode("utf-8")
        )
        if response.status_code > 399:
            raise requests.HTTPError(
                f"request to {self.url} failed with code {response.status_code}",
                response=response,
            )
        return response.content