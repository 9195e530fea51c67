from pathlib import Path

from taskpilot.infrastructure.config import Settings


def test_defaults(monkeypatch):
    monkeypatch.setenv("XDG_STATE_HOME", "/tmp/state")
    for name in ("TASKPILOT_BACKEND_URL", "TASKPILOT_REQUEST_TIMEOUT", "TASKPILOT_STORAGE_PATH", "TASKPILOT_PORT"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.backend_url == "http://localhost:8000"
    assert settings.request_timeout == 60.0
    assert settings.storage_path == Path("/tmp/state/taskpilot/storage.json")
    assert settings.storage_key == "chats"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TASKPILOT_BACKEND_URL", "http://chat.internal:9000")
    monkeypatch.setenv("TASKPILOT_STORAGE_PATH", "/var/lib/taskpilot/data.json")
    monkeypatch.setenv("TASKPILOT_PORT", "9090")
    monkeypatch.setenv("TASKPILOT_REQUEST_TIMEOUT", "15")

    settings = Settings.from_env()

    assert settings.backend_url == "http://chat.internal:9000"
    assert settings.storage_path == Path("/var/lib/taskpilot/data.json")
    assert settings.port == 9090
    assert settings.request_timeout == 15.0


def test_timeout_can_be_disabled(monkeypatch):
    monkeypatch.setenv("TASKPILOT_REQUEST_TIMEOUT", "none")

    assert Settings.from_env().request_timeout is None
