"""Configuration package: re-exports for convenience."""

from watchtower.config.loader import ConfigLoader
from watchtower.config.settings import Settings

__all__ = ["ConfigLoader", "Settings"]
