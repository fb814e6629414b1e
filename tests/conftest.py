"""
Notifer Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest


# ---------------------------------------------------------------------------
# Isolation — reset module singletons between tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch):
    """Reset the global config and the secret key env var."""
    import notifer.engine.config as cfg_mod

    monkeypatch.delenv("NOTIFER_SECRET_KEY", raising=False)
    cfg_mod.reset_config()
    yield
    cfg_mod.reset_config()


# ---------------------------------------------------------------------------
# HTTP — recording handler for httpx.MockTransport
# ---------------------------------------------------------------------------

class RecordingHandler:
    """
    httpx.MockTransport handler that records every request and answers with
    a fixed response (or raises a fixed exception).
    """

    def __init__(
        self,
        status_code: int = 200,
        json_body: Optional[Any] = None,
        text: Optional[str] = None,
        raises: Optional[Exception] = None,
    ):
        self.status_code = status_code
        self.json_body = json_body
        self.text = text
        self.raises = raises
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raises is not None:
            raise self.raises
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.json_body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def last_body(self) -> Dict[str, Any]:
        return json.loads(self.last_request.content)


@pytest.fixture
def ok_response() -> Dict[str, Any]:
    return {
        "id": "msg_123",
        "topic": "ci",
        "message": "Build #42 FAILURE",
        "priority": 5,
        "tags": ["failure", "jenkins"],
    }


@pytest.fixture
def handler(ok_response) -> RecordingHandler:
    """A handler answering 200 with a valid success record."""
    return RecordingHandler(json_body=ok_response)


@pytest.fixture
def handler_factory():
    """Build a RecordingHandler with custom behaviour."""
    return RecordingHandler


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def build_context():
    from notifer.engine.models import BuildContext

    return BuildContext(job_name="MyJob", build_number=42, build_url="https://h/job/42")


@pytest.fixture
def global_defaults():
    from notifer.engine.config import GlobalDefaults

    return GlobalDefaults(
        server_url="https://notifer.example",
        default_credentials_id="ci-token",
        default_topic="ci",
    )


@pytest.fixture
def project_root(tmp_path):
    """
    Create a project directory with a notifer.yaml.
    Returns the root Path.
    """
    root = tmp_path / "project"
    root.mkdir()
    (root / "notifer.yaml").write_text(
        "notifer:\n"
        "  server_url: https://notifer.example\n"
        "  default_credentials_id: ci-token\n"
        "  default_topic: ci\n"
        "  default_priority: 4\n"
        "logging:\n"
        "  level: DEBUG\n"
        "  directory: " + str(root / ".notifer" / "logs") + "\n"
        "credentials:\n"
        "  store_path: .notifer/credentials.yaml\n",
        encoding="utf-8",
    )
    return root
