"""Agent settings: pydantic-settings with env var support."""

from __future__ import annotations

from urllib.parse import quote

from pydantic import field_validator
from pydantic_settings import BaseSettings

AGENT_ENV_PREFIX = "WATCHTOWER_AGENT_"


class AgentSettings(BaseSettings):
    """Device-side settings. An empty ``token`` means the agent is unconfigured."""

    server_url: str = "http://localhost:8080"
    token: str = ""
    cache_path: str = "watchtower-agent.json"
    sync_interval: float = 120.0
    heartbeat_interval: float = 60.0
    reconnect_interval: float = 60.0
    blocked_page_url: str = "http://localhost:8765/blocked"
    log_level: str = "INFO"

    model_config = {"env_prefix": AGENT_ENV_PREFIX}

    @field_validator("server_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self.token)


def uninstall_url(settings: AgentSettings) -> str:
    """URL the browser opens when the agent is removed."""
    return f"{settings.server_url}/api/uninstall?token={quote(settings.token, safe='')}"


def ws_url(settings: AgentSettings) -> str:
    """Persistent channel URL: the server URL with a ws scheme plus the token."""
    base = settings.server_url
    if base.startswith("http"):
        base = "ws" + base[len("http"):]
    return f"{base}/api/ws?token={quote(settings.token, safe='')}"
