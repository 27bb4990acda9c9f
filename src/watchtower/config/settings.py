"""Settings model: pydantic-settings with env var support."""

from __future__ import annotations

from pydantic import model_validator
from pydantic_settings import BaseSettings

ENV_PREFIX = "WATCHTOWER_"


class Settings(BaseSettings):
    """Server settings.

    Use ``ConfigLoader.load_settings()`` to build with YAML + env var layering.
    Direct construction (e.g. in tests) skips YAML loading.
    """

    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite+aiosqlite:///watchtower.db"
    jwt_algorithm: str = "HS256"
    session_expire_minutes: int = 24 * 60
    base_url: str = "http://localhost:8080"
    log_level: str = "INFO"
    cors_allow_origins: list[str] = ["*"]
    liveness_threshold_seconds: int = 120
    liveness_sweep_interval_seconds: float = 60
    ws_write_wait_seconds: float = 10.0
    ws_pong_wait_seconds: float = 60.0
    ws_ping_period_seconds: float = 54.0
    ws_queue_size: int = 256
    ws_max_message_size: int = 512

    model_config = {"env_prefix": ENV_PREFIX}

    @model_validator(mode="after")
    def _check_keepalive_timing(self) -> Settings:
        """Probe timing must leave room for the liveness sweep and read deadline."""
        if self.ws_ping_period_seconds >= self.ws_pong_wait_seconds:
            raise ValueError("ws_ping_period_seconds must be less than ws_pong_wait_seconds")
        if self.liveness_threshold_seconds <= self.ws_ping_period_seconds:
            raise ValueError(
                "liveness_threshold_seconds must exceed ws_ping_period_seconds",
            )
        return self
