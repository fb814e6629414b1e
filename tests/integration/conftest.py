"""
Integration test fixtures — a real HTTP server standing in for the Notifer API.
Mark with @pytest.mark.integration to skip in unit-only runs.

Run: pytest tests/integration/ -v -m integration
"""

from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest


# Custom marker for integration tests
def pytest_configure(config):
    config.addinivalue_line("markers", "integration: starts a local HTTP server on 127.0.0.1")


class FakeNotiferServer:
    """Records POSTs and answers with the configured status/body."""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.body = {"id": "msg_live", "topic": "ci", "priority": 2, "tags": []}
        self._server = ThreadingHTTPServer(("127.0.0.1", 0), self._handler_class())
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    @property
    def url(self) -> str:
        host, port = self._server.server_address[:2]
        return f"http://{host}:{port}"

    def _handler_class(self):
        fake = self

        class Handler(BaseHTTPRequestHandler):
            def do_POST(self):
                length = int(self.headers.get("Content-Length", 0))
                fake.requests.append({
                    "path": self.path,
                    "headers": dict(self.headers),
                    "body": json.loads(self.rfile.read(length) or b"null"),
                })
                payload = fake.body if isinstance(fake.body, str) else json.dumps(fake.body)
                data = payload.encode("utf-8")
                self.send_response(fake.status_code)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(data)))
                self.end_headers()
                self.wfile.write(data)

            def log_message(self, format, *args):
                pass

        return Handler

    def start(self):
        self._thread.start()

    def stop(self):
        self._server.shutdown()
        self._server.server_close()


@pytest.fixture
def notifer_server():
    server = FakeNotiferServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def integration_project(tmp_path, notifer_server):
    """Project directory whose notifer.yaml points at the local server."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "notifer.yaml").write_text(
        "notifer:\n"
        f"  server_url: {notifer_server.url}\n"
        "  default_credentials_id: ci-token\n"
        "  default_topic: ci\n"
        "logging:\n"
        "  directory: " + str(root / ".notifer" / "logs") + "\n",
        encoding="utf-8",
    )
    return root
