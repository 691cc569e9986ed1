"""
Runtime settings (``dairy_config.settings``).

The only module that reads environment variables.  Everything else
receives a ``DairySettings`` instance.

    DAIRY_DATABASE_URL  SQLAlchemy URL of the row store (default sqlite:///dairy.db)
    DAIRY_LOG_LEVEL     Logging level name (default INFO)
    DAIRY_RATE_BOOK     Optional path of a YAML rate book to seed from
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DATABASE_URL = "sqlite:///dairy.db"


@dataclass(frozen=True)
class DairySettings:
    database_url: str = DEFAULT_DATABASE_URL
    log_level: int = logging.INFO
    rate_book: Path | None = None


def _parse_level(value: str | None) -> int:
    if not value:
        return logging.INFO
    level = logging.getLevelName(value.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {value!r}")
    return level


def get_settings(environ: Mapping[str, str] | None = None) -> DairySettings:
    """
    Build settings from the environment.

    Raises:
        ValueError: if DAIRY_LOG_LEVEL is not a logging level name.
    """
    env = os.environ if environ is None else environ
    rate_book = env.get("DAIRY_RATE_BOOK")
    return DairySettings(
        database_url=env.get("DAIRY_DATABASE_URL") or DEFAULT_DATABASE_URL,
        log_level=_parse_level(env.get("DAIRY_LOG_LEVEL")),
        rate_book=Path(rate_book) if rate_book else None,
    )
