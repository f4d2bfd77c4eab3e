"""
Configuration Loader (``custody_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen
``CustodySettings`` dataclass.  Defaults ship as ``defaults.yaml`` inside
this package; environment variables may point at another file
(``CUSTODY_CONFIG``) or override the database URL
(``CUSTODY_DATABASE_URL``).

Architecture position
---------------------
**Config layer** -- sits above ``custody_kernel``.  The kernel never
imports from here; the HTTP layer and scripts read settings and pass the
relevant values into kernel and module services.

Failure modes
-------------
* Missing file -> ``ConfigurationError``.
* Malformed YAML -> ``ConfigurationError`` wrapping ``yaml.YAMLError``.
* Missing or mistyped keys -> ``ConfigurationError`` naming the key.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from custody_config.schema import DEFAULT_HEAD_OFFICE_STORE_CODE, CustodySettings, DatabaseSettings
from custody_kernel.exceptions import ConfigurationError
from custody_kernel.logging_config import get_logger

logger = get_logger("config.loader")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_CONFIG_PATH = "CUSTODY_CONFIG"
ENV_DATABASE_URL = "CUSTODY_DATABASE_URL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Settings file not found: {path}", source=str(path)) from None
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}", source=str(path)) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings root must be a mapping: {path}", source=str(path))
    return data


def _require_str(data: Mapping[str, Any], key: str, source: str | None) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"'{key}' must be a non-empty string", source=source)
    return value.strip()


def parse_settings(data: Mapping[str, Any], source: str | None = None) -> CustodySettings:
    """Build ``CustodySettings`` from a parsed YAML mapping."""
    db = data.get("database") or {}
    if not isinstance(db, Mapping):
        raise ConfigurationError("'database' must be a mapping", source=source)

    lab_types = data.get("lab_office_types", ["DISTRICT_LAB"])
    if not isinstance(lab_types, list) or not all(isinstance(t, str) for t in lab_types):
        raise ConfigurationError("'lab_office_types' must be a list of strings", source=source)

    transfers = data.get("transfers") or {}
    store_code = transfers.get("head_office_store_code", DEFAULT_HEAD_OFFICE_STORE_CODE)
    if not isinstance(store_code, str) or not store_code.strip():
        raise ConfigurationError(
            "'transfers.head_office_store_code' must be a non-empty string", source=source,
        )

    logging_section = data.get("logging") or {}
    notifications = data.get("notifications") or {}

    return CustodySettings(
        database=DatabaseSettings(
            url=_require_str(db, "url", source),
            echo=bool(db.get("echo", False)),
            pool_size=int(db.get("pool_size", 20)),
            max_overflow=int(db.get("max_overflow", 10)),
        ),
        head_office_store_code=store_code.strip(),
        lab_office_types=tuple(lab_types),
        log_level=str(logging_section.get("level", "INFO")).upper(),
        notifications_enabled=bool(notifications.get("enabled", True)),
        source=source,
    )


def load_settings(path: str | Path | None = None) -> CustodySettings:
    """
    Load settings from ``path``, else ``$CUSTODY_CONFIG``, else the packaged
    defaults.  ``$CUSTODY_DATABASE_URL`` overrides the database URL.
    """
    resolved = Path(path or os.environ.get(ENV_CONFIG_PATH) or DEFAULTS_PATH)
    data = load_yaml_file(resolved)

    override = os.environ.get(ENV_DATABASE_URL)
    if override:
        data = {**data, "database": {**(data.get("database") or {}), "url": override}}

    settings = parse_settings(data, source=str(resolved))
    logger.info(
        "settings_loaded",
        extra={
            "source": str(resolved),
            "head_office_store_code": settings.head_office_store_code,
            "notifications_enabled": settings.notifications_enabled,
        },
    )
    return settings
