"""
Integration tests — CLI end-to-end workflows against a live local HTTP server.
"""

import pytest

from notifer.cli import main
from notifer.engine.logging import FileLogger


def _cli(project, *args):
    return main(["--config", str(project / "notifer.yaml"), *args])


@pytest.fixture(autouse=True)
def _build_env(monkeypatch):
    monkeypatch.setenv("JOB_NAME", "MyJob")
    monkeypatch.setenv("BUILD_NUMBER", "42")
    monkeypatch.setenv("BUILD_URL", "https://jenkins/job/MyJob/42")
    monkeypatch.delenv("BUILD_RESULT", raising=False)


@pytest.mark.integration
class TestSendWorkflow:
    def test_store_token_then_send(self, integration_project, notifer_server, capsys):
        assert _cli(integration_project, "credentials", "set", "ci-token", "tk_live") == 0
        assert _cli(integration_project, "send", "--result", "UNSTABLE", "--tags", "nightly") == 0
        assert "msg_live" in capsys.readouterr().out

        request = notifer_server.requests[-1]
        assert request["path"] == "/ci"
        assert request["headers"]["X-Topic-Token"] == "tk_live"
        assert request["body"] == {
            "message": "Build #42 UNSTABLE\nJob: MyJob\nDetails: https://jenkins/job/MyJob/42",
            "title": "[UNSTABLE] MyJob #42",
            "priority": 3,
            "tags": ["unstable", "jenkins", "nightly"],
        }

        entries = FileLogger(str(integration_project / ".notifer" / "logs")).query(
            "notifications", "execution",
        )
        assert entries[-1]["notification_id"] == "msg_live"

    def test_rejection_with_fail_on_error(self, integration_project, notifer_server, capsys):
        _cli(integration_project, "credentials", "set", "ci-token", "tk_live")
        notifer_server.status_code = 403
        notifer_server.body = "forbidden"
        assert _cli(integration_project, "send", "--result", "FAILURE", "--fail-on-error") == 1
        assert "status 403: forbidden" in capsys.readouterr().out

    def test_connection_refused_tolerated(self, integration_project, notifer_server, capsys):
        _cli(integration_project, "credentials", "set", "ci-token", "tk_live")
        _cli(integration_project, "config", "set", "server_url=http://127.0.0.1:1")
        capsys.readouterr()
        assert _cli(integration_project, "send", "--result", "FAILURE") == 0
        assert "[INFO] No notification sent" in capsys.readouterr().out

        entries = FileLogger(str(integration_project / ".notifer" / "logs")).query(
            "notifications", "execution", filters={"event": "notification_failed"},
        )
        assert entries[-1]["status_code"] == -1
        assert entries[-1]["error_type"] == "TransportFailure"


@pytest.mark.integration
class TestConnectionWorkflow:
    def test_connection_test(self, integration_project, notifer_server, capsys):
        _cli(integration_project, "credentials", "set", "ci-token", "tk_live")
        assert _cli(integration_project, "test-connection") == 0
        assert "[OK] Success!" in capsys.readouterr().out
        assert notifer_server.requests[-1]["body"]["tags"] == ["jenkins-test"]
