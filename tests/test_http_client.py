import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest import mock

import pytest
import requests

from ffclient.http_client import HTTPClient, default_http_client, http_client_with_timeout


class _Handler(BaseHTTPRequestHandler):
    def _reply(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length).decode() if length else ""
        status = 404 if self.path == "/missing" else 200
        payload = json.dumps(
            {
                "method": self.command,
                "body": body,
                "content_type": self.headers.get("Content-Type"),
            }
        ).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    do_GET = _reply
    do_POST = _reply

    def log_message(self, *args):
        pass


@pytest.fixture
def server_url(monkeypatch):
    for name in ("HTTP_PROXY", "http_proxy", "ALL_PROXY", "all_proxy"):
        monkeypatch.delenv(name, raising=False)
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def test_default_client_timeout():
    assert default_http_client().timeout == 10


def test_client_with_timeout():
    assert http_client_with_timeout(2.5).timeout == 2.5


def test_request_passes_timeout_and_arguments():
    client = http_client_with_timeout(3.0)
    with mock.patch.object(requests.Session, "request") as fake:
        result = client.request("GET", "http://example.com/x", {"A": "b"}, "body")
    fake.assert_called_once_with(
        "GET", "http://example.com/x", headers={"A": "b"}, data="body", timeout=3.0
    )
    assert result is fake.return_value


def test_post_round_trip(server_url):
    client = HTTPClient(timeout=5)
    response = client.request(
        "POST", server_url + "/hook", {"Content-Type": "application/json"}, b'{"a": 1}'
    )
    assert response.status_code == 200
    assert response.json() == {
        "method": "POST",
        "body": '{"a": 1}',
        "content_type": "application/json",
    }


def test_error_status_is_returned_not_raised(server_url):
    response = HTTPClient(timeout=5).request("GET", server_url + "/missing")
    assert response.status_code == 404