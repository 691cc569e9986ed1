"""
Process start-up.

Wires settings into logging and the row store, and optionally seeds rate
tables from a YAML rate book.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.orm import Session

from dairy_config.loader import RateBookEntry, load_rate_book
from dairy_config.settings import DairySettings, get_settings
from dairy_kernel.db.engine import create_tables, init_engine_from_url, session_scope
from dairy_kernel.logging_config import configure_logging, get_logger
from dairy_services.rate_config_service import RateConfigService, StoredRateConfig

logger = get_logger("services.bootstrap")


def seed_rate_book(session: Session, entries: Iterable[RateBookEntry]) -> list[StoredRateConfig]:
    """
    Save every table of a rate book.

    Entries marked active are activated in book order, so when a book
    activates two methods for the same branch and milk type the later one
    wins.  The caller owns the transaction.
    """
    service = RateConfigService(session)
    saved = []
    for entry in entries:
        save = service.save_and_activate if entry.active else service.save_draft
        saved.append(save(entry.branch_id, entry.milk_type, entry.config.method, entry.config))
    return saved


def init_from_settings(settings: DairySettings | None = None) -> DairySettings:
    """
    Configure logging, connect to the row store, create tables and seed
    the rate book named by the settings, if any.

    Returns:
        The settings used.
    """
    settings = settings or get_settings()
    configure_logging(level=settings.log_level)
    init_engine_from_url(settings.database_url)
    create_tables()

    if settings.rate_book is not None:
        entries = load_rate_book(settings.rate_book)
        with session_scope() as session:
            saved = seed_rate_book(session, entries)
        logger.info(
            "rate_book_seeded",
            extra={"path": str(settings.rate_book), "table_count": len(saved)},
        )
    return settings
