"""Typed settings for the custody engine."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_HEAD_OFFICE_STORE_CODE = "HEAD_OFFICE_STORE"


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class CustodySettings:
    """
    Runtime settings.

    ``head_office_store_code`` names the store every transfer passes through.
    ``lab_office_types`` are the office types allowed to hold LAB_ONLY items.
    """

    database: DatabaseSettings
    head_office_store_code: str = DEFAULT_HEAD_OFFICE_STORE_CODE
    lab_office_types: tuple[str, ...] = ("DISTRICT_LAB",)
    log_level: str = "INFO"
    notifications_enabled: bool = True
    source: str | None = field(default=None, compare=False)
