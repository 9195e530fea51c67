from typing import Optional
from pathlib import Path
import os

from pydantic import BaseModel, Field


def _default_storage_path() -> Path:
    state_dir = os.getenv("XDG_STATE_HOME") or Path.home() / ".local" / "state"
    return Path(state_dir) / "taskpilot" / "storage.json"


class Settings(BaseModel):
    """Runtime settings for the task assistant"""
    backend_url: str = Field(default="http://localhost:8000", description="Base URL of the chat backend")
    request_timeout: Optional[float] = Field(default=60.0, description="Chat request timeout in seconds, None to disable")
    storage_path: Path = Field(default_factory=_default_storage_path)
    storage_key: str = Field(default="chats", description="Record name holding all conversations")
    log_level: str = "INFO"
    log_format: str = "json"
    service_name: str = "taskpilot"
    host: str = "127.0.0.1"
    port: int = 8080

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, keeping defaults for unset ones"""

        values = {}
        env_map = {
            "backend_url": "TASKPILOT_BACKEND_URL",
            "storage_path": "TASKPILOT_STORAGE_PATH",
            "storage_key": "TASKPILOT_STORAGE_KEY",
            "log_level": "LOG_LEVEL",
            "log_format": "LOG_FORMAT",
            "host": "TASKPILOT_HOST",
            "port": "TASKPILOT_PORT",
        }
        for field, env_name in env_map.items():
            value = os.getenv(env_name)
            if value:
                values[field] = value

        timeout = os.getenv("TASKPILOT_REQUEST_TIMEOUT")
        if timeout is not None:
            values["request_timeout"] = None if timeout.strip().lower() in ("", "none", "0") else timeout

        return cls(**values)
