"""A notifier that posts configuration changes to a Slack incoming webhook."""

from __future__ import annotations

import json
import re
import socket
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

from .diff_cache import DiffCache, Notifier, NotifierError
from .http_client import HTTPClient, default_http_client

SLACK_FOOTER = "ffclient"
COLOR_DELETED = "#FF0000"
COLOR_UPDATED = "#FFA500"
COLOR_ADDED = "#008000"
LONG_SLACK_ATTACHMENT = 35

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


def _field(title: str, value: str) -> dict[str, Any]:
    return {
        "title": title,
        "value": value,
        "short": len(value.encode("utf-8")) < LONG_SLACK_ATTACHMENT,
    }


def _attachment(title: str, color: str, fields: list[dict[str, Any]] | None) -> dict[str, Any]:
    return {"color": color, "title": title, "fields": fields, "footer": SLACK_FOOTER}


def _deleted_attachments(diff: DiffCache) -> list[dict[str, Any]]:
    return [
        _attachment(f'❌ Flag "{key}" deleted', COLOR_DELETED, None)
        for key in sorted(diff.deleted or {})
    ]


def _updated_attachments(diff: DiffCache) -> list[dict[str, Any]]:
    attachments = []
    updated = diff.updated or {}
    for key in sorted(updated):
        before = updated[key].before.raw_values()
        after = updated[key].after.raw_values()
        fields = []
        for name in sorted(before):
            old, new = before[name], after.get(name, "")
            if old != new:
                fields.append(_field(name, f"{old or '<empty>'} => {new or '<empty>'}"))
        attachments.append(_attachment(f'✏️ Flag "{key}" updated', COLOR_UPDATED, fields))
    return attachments


def _added_attachments(diff: DiffCache) -> list[dict[str, Any]]:
    attachments = []
    added = diff.added or {}
    for key in sorted(added):
        raw = added[key].raw_values()
        fields = [_field(name, raw[name]) for name in sorted(raw) if raw[name] != ""]
        attachments.append(_attachment(f'🆕 Flag "{key}" created', COLOR_ADDED, fields))
    return attachments


def convert_to_slack_message(diff: DiffCache) -> dict[str, Any]:
    """Return the Slack message describing the differences: deletions, updates, additions."""
    hostname = socket.gethostname()
    return {
        "icon_url": "",
        "text": f"Changes detected in your feature flag file on: *{hostname}*",
        "attachments": (
            _deleted_attachments(diff) + _updated_attachments(diff) + _added_attachments(diff)
        ),
    }


@dataclass
class SlackNotifier(Notifier):
    """Posts a summary of every change to a Slack webhook."""

    slack_webhook_url: str = ""
    http_client: HTTPClient | None = None
    icon_url: str = ""

    def notify(self, diff: DiffCache) -> None:
        """Post the differences; raise NotifierError when that fails."""
        if not self.slack_webhook_url:
            raise NotifierError(
                "error: (Slack Notifier) invalid notifier configuration, no "
                "SlackWebhookURL provided for the slack notifier"
            )
        if self.http_client is None:
            self.http_client = default_http_client()

        if not _is_valid_url(self.slack_webhook_url):
            raise NotifierError(
                f"error: (Slack Notifier) invalid SlackWebhookURL: {self.slack_webhook_url}"
            )

        message = convert_to_slack_message(diff)
        if self.icon_url:
            message["icon_url"] = self.icon_url
            for attachment in message["attachments"]:
                attachment["footer_icon"] = self.icon_url
        try:
            payload = json.dumps(message, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise NotifierError(
                f"error: (Slack Notifier) impossible to read differences; {exc}"
            ) from exc

        try:
            response = self.http_client.request(
                "POST", self.slack_webhook_url, {"Content-type": "application/json"}, payload
            )
        except Exception as exc:
            raise NotifierError(
                f"error: (Slack Notifier) error: while calling webhook: {exc}"
            ) from exc

        if response.status_code > 399:
            raise NotifierError(
                "error: (Slack Notifier) while calling slack webhook, "
                f"statusCode = {response.status_code}"
            )