"""
custody_config -- settings for the custody engine.

``get_settings()`` is the single runtime entry point: it loads the YAML
settings once per process and caches them.  Tests call ``load_settings``
with an explicit path, or ``reset_settings()`` between cases.
"""

from __future__ import annotations

from custody_config.loader import load_settings, parse_settings
from custody_config.schema import CustodySettings, DatabaseSettings

_active: CustodySettings | None = None


def get_settings() -> CustodySettings:
    global _active
    if _active is None:
        _active = load_settings()
    return _active


def reset_settings() -> None:
    """FOR TESTING ONLY."""
    global _active
    _active = None


__all__ = [
    "CustodySettings",
    "DatabaseSettings",
    "get_settings",
    "load_settings",
    "parse_settings",
    "reset_settings",
]
