"""
Active rate resolution.

The entry-save workflow needs "the table currently governing new entries
for this branch and milk type".  That lookup lives here, behind a small
protocol, so the rate engine never learns what "active" means.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from dairy_config.loader import compute_checksum, parse_rate_config, serialize_rate_config
from dairy_kernel.domain.rate_tables import RateConfig
from dairy_kernel.domain.values import MilkType, RateMethod
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.rate_config import RateConfigRecord

logger = get_logger("services.rate_resolver")


@dataclass(frozen=True)
class ActiveRate:
    """The active pricing method and table for a branch and milk type."""

    branch_id: str
    milk_type: MilkType
    method: RateMethod
    config: RateConfig
    version: int = 1
    checksum: str = ""


class ActiveRateResolver(Protocol):
    def resolve(self, branch_id: str, milk_type: MilkType | str) -> ActiveRate | None:
        """The active rate, or None when the pair has no active table."""
        ...


class SqlActiveRateResolver:
    """Reads the active ``RateConfigRecord`` from the row store."""

    def __init__(self, session: Session):
        self.session = session

    def resolve(self, branch_id: str, milk_type: MilkType | str) -> ActiveRate | None:
        kind = MilkType.coerce(milk_type)
        stmt = (
            select(RateConfigRecord)
            .where(
                RateConfigRecord.branch_id == branch_id,
                RateConfigRecord.milk_type == kind.value,
                RateConfigRecord.is_active.is_(True),
            )
            .order_by(RateConfigRecord.updated_at.desc())
        )
        records = self.session.execute(stmt).scalars().all()
        if not records:
            logger.info(
                "no_active_rate",
                extra={"branch_id": branch_id, "milk_type": kind.value},
            )
            return None
        if len(records) > 1:
            logger.warning(
                "multiple_active_rates",
                extra={
                    "branch_id": branch_id,
                    "milk_type": kind.value,
                    "methods": [r.method for r in records],
                },
            )
        record = records[0]
        config = parse_rate_config(record.method, record.rows)
        return ActiveRate(
            branch_id=branch_id,
            milk_type=kind,
            method=config.method,
            config=config,
            version=record.version,
            checksum=record.checksum,
        )


class StaticActiveRateResolver:
    """Serves active rates from an in-memory mapping keyed by (branch_id, milk type)."""

    def __init__(self, rates: Mapping[tuple[str, MilkType], RateConfig] | None = None):
        self._rates: dict[tuple[str, MilkType], RateConfig] = dict(rates or {})

    def activate(self, branch_id: str, milk_type: MilkType | str, config: RateConfig) -> None:
        """Make ``config`` the active table, replacing whatever was active."""
        self._rates[(branch_id, MilkType.coerce(milk_type))] = config

    def resolve(self, branch_id: str, milk_type: MilkType | str) -> ActiveRate | None:
        kind = MilkType.coerce(milk_type)
        config = self._rates.get((branch_id, kind))
        if config is None:
            return None
        return ActiveRate(
            branch_id=branch_id,
            milk_type=kind,
            method=config.method,
            config=config,
            checksum=compute_checksum(serialize_rate_config(config)),
        )
