"""ConfigLoader: per-environment YAML layered under env vars and explicit overrides."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from watchtower.config.settings import ENV_PREFIX, Settings

logger = logging.getLogger(__name__)

_CONFIG_ROOT = Path(__file__).resolve().parent
DEFAULT_ENV = "dev"


class ConfigLoader:
    """Resolve server settings.

    Priority: overrides > ``WATCHTOWER_*`` env vars > YAML > field defaults.
    The YAML file is ``config/<WATCHTOWER_ENV>/settings.yaml`` unless
    ``WATCHTOWER_CONFIG_FILE`` names one explicitly.
    """

    @staticmethod
    def config_path() -> Path:
        """The YAML file the current environment selects."""
        explicit = os.environ.get(f"{ENV_PREFIX}CONFIG_FILE")
        if explicit:
            return Path(explicit)
        env = os.environ.get(f"{ENV_PREFIX}ENV", DEFAULT_ENV)
        return _CONFIG_ROOT / env / "settings.yaml"

    @staticmethod
    def read_yaml(path: Path) -> dict[str, Any]:
        """Known setting keys from a YAML file. Missing files yield {}."""
        if not path.is_file():
            return {}
        with path.open() as config_file:
            data = yaml.safe_load(config_file) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping")
        known = {key: value for key, value in data.items() if key in Settings.model_fields}
        for key in data.keys() - known.keys():
            logger.warning("Ignoring unknown setting %r in %s", key, path)
        return known

    @staticmethod
    def load_settings(**overrides: Any) -> Settings:
        """Build Settings from YAML, env vars, and keyword overrides."""
        from_file = ConfigLoader.read_yaml(ConfigLoader.config_path())
        # Constructor kwargs outrank env vars in pydantic-settings.
        from_file = {
            key: value for key, value in from_file.items()
            if f"{ENV_PREFIX}{key.upper()}" not in os.environ
        }
        return Settings(**{**from_file, **overrides})
