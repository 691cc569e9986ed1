"""
Pytest fixtures for the dairy test suite.

Provides:
- An in-memory SQLite row store, created once per test session
- Per-test sessions rolled back at teardown
- Structured log capture
- Rate table and entry builders
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from dairy_engines.billing import CollectionEntry, FarmerRef
from dairy_kernel.db.base import Base
from dairy_kernel.db.engine import init_engine_from_url, reset_engine
from dairy_kernel.domain.rate_tables import (
    ChartRateConfig,
    ChartRow,
    FatRateConfig,
    FatRow,
    TsNewRateConfig,
    TsNewRow,
    TsRateConfig,
    TsRow,
)
from dairy_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
import dairy_kernel.models  # noqa: F401  registers tables on Base.metadata

BRANCH = "B1"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture dairy logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            compute_bill(...)
            logs = captured_logs()
            assert any(r["message"] == "rate_not_applicable" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("dairy")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Row store
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single in-memory SQLite engine with all tables, for the whole session."""
    eng = init_engine_from_url("sqlite://")
    Base.metadata.create_all(eng)
    yield eng
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """
    Provide a database session for testing.

    The session joins an outer transaction that is rolled back at
    teardown, undoing every change the test made.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Rate tables
# =============================================================================


@pytest.fixture
def ts_cow_config() -> TsRateConfig:
    return TsRateConfig(
        rows=(
            TsRow(
                min_fat=Decimal("3.5"),
                max_fat=Decimal("4.5"),
                min_snf=Decimal("8.0"),
                max_snf=Decimal("9.0"),
                fat_rate=Decimal("10"),
            ),
        )
    )


@pytest.fixture
def ts_buffalo_config() -> TsRateConfig:
    return TsRateConfig(
        rows=(
            TsRow(min_fat=Decimal("5.5"), max_fat=Decimal("6.5"), fat_rate=Decimal("8")),
        )
    )


@pytest.fixture
def ts_new_config() -> TsNewRateConfig:
    return TsNewRateConfig(
        rows=(
            TsNewRow(
                code="T1",
                ts_from=Decimal("10"),
                ts_to=Decimal("13"),
                rate=Decimal("7"),
                incentive=Decimal("0.5"),
            ),
        )
    )


@pytest.fixture
def chart_config() -> ChartRateConfig:
    return ChartRateConfig(
        rows=(
            ChartRow(fat=Decimal("3.5"), snf=Decimal("8.5"), rate=Decimal("32.00")),
            ChartRow(fat=Decimal("4.0"), snf=Decimal("8.5"), rate=Decimal("35.50")),
            ChartRow(fat=Decimal("4.0"), snf=Decimal("9.0"), rate=Decimal("37.25")),
        )
    )


@pytest.fixture
def fat_config() -> FatRateConfig:
    return FatRateConfig(
        rows=(
            FatRow(code="F1", fat=Decimal("6.0"), rate=Decimal("48.00")),
            FatRow(code="F2", fat=Decimal("6.5"), rate=Decimal("52.00")),
        )
    )


# =============================================================================
# Entries
# =============================================================================


def make_entry(
    farmer_id=None,
    day: date = date(2024, 6, 1),
    shift: str = "Morning",
    milk_type: str = "Cow",
    quantity: str = "10",
    fat: str = "4.0",
    snf: str = "8.5",
    rate: str = "35.50",
    amount: str | None = None,
    branch_id: str = BRANCH,
) -> CollectionEntry:
    """Build a saved entry; amount defaults to rate * quantity."""
    if amount is None:
        amount = str(Decimal(rate) * Decimal(quantity))
    return CollectionEntry(
        branch_id=branch_id,
        farmer_id=farmer_id or uuid4(),
        date=day,
        shift=shift,
        milk_type=milk_type,
        quantity=Decimal(quantity),
        fat=Decimal(fat),
        snf=Decimal(snf),
        rate=Decimal(rate),
        amount=Decimal(amount),
    )


@pytest.fixture
def entry_factory():
    return make_entry


@pytest.fixture
def farmer_ref_factory():
    def _make(name: str = "Ramesh", manual_id: str = "101", farmer_id=None) -> FarmerRef:
        return FarmerRef(farmer_id=farmer_id or uuid4(), name=name, manual_id=manual_id)

    return _make
