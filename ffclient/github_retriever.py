"""Loads the flag configuration from a file in a GitHub repository."""

from __future__ import annotations

from dataclasses import dataclass

from .http_client import HTTPClient
from .http_retriever import HTTPRetriever
from .retriever import Retriever

_RAW_CONTENT_URL = "https://raw.githubusercontent.com/{slug}/{branch}/{path}"


@dataclass
class GithubRetriever(Retriever):
    """Fetches ``file_path`` from ``repository_slug`` on ``branch`` (default ``main``).

    When ``github_token`` is set it is sent in the Authorization header.
    """

    repository_slug: str = ""
    file_path: str = ""
    branch: str = ""
    github_token: str = ""
    timeout: float = 0.0
    http_client: HTTPClient | None = None

    def retrieve(self) -> bytes:
        """Return the file content; raise ValueError when the slug or path is missing."""
        if not self.file_path or not self.repository_slug:
            raise ValueError(
                f"missing mandatory information filePath={self.file_path}, "
                f"repositorySlug={self.repository_slug}"
            )

        headers: dict[str, str] = {}
        if self.github_token:
            headers["Authorization"] = f"token {self.github_token}"

        url = _RAW_CONTENT_URL.format(
            slug=self.repository_slug, branch=self.branch or "main", path=self.file_path
        )
        return HTTPRetriever(
            url=url,
            method="GET",
            headers=headers,
            timeout=self.timeout,
            http_client=self.http_client,
        ).retrieve()