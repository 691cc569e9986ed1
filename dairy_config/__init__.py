"""
dairy_config -- rate table loading and runtime settings.

Responsibility:
    Converts rate tables between their stored/authored form (JSON rows,
    YAML rate books) and the typed configurations the rate engine prices
    against, and exposes the runtime settings read from the environment.

Architecture position:
    Configuration -- sits above ``dairy_kernel`` and below
    ``dairy_services``.  The kernel and engines MUST NEVER import from here.
"""

from dairy_config.loader import (
    RateBookEntry,
    compute_checksum,
    load_rate_book,
    parse_method,
    parse_rate_book,
    parse_rate_config,
    serialize_rate_config,
)
from dairy_config.settings import DairySettings, get_settings

__all__ = [
    "DairySettings",
    "RateBookEntry",
    "compute_checksum",
    "get_settings",
    "load_rate_book",
    "parse_method",
    "parse_rate_book",
    "parse_rate_config",
    "serialize_rate_config",
]
