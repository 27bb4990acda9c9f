"""HTML pages: the uninstall confirmation (server) and the blocked page (agent)."""

from __future__ import annotations

import html
from functools import lru_cache
from pathlib import Path
from string import Template

_TEMPLATE_DIR = Path(__file__).parent


@lru_cache(maxsize=None)
def load_template(name: str) -> Template:
    """Read ``name`` from this package once; ``$placeholders`` survive CSS braces.

    Raises:
        FileNotFoundError: If the template does not exist.
    """
    return Template((_TEMPLATE_DIR / name).read_text(encoding="utf-8"))


def render(name: str, **values: str) -> str:
    """Fill a template with HTML-escaped values. Unknown placeholders are left as-is."""
    escaped = {key: html.escape(value, quote=True) for key, value in values.items()}
    return load_template(name).safe_substitute(escaped)
