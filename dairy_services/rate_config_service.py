"""
Service layer for rate configurations.

Responsibility:
    Saves the per-branch, per-milk-type rate tables and maintains the
    "exactly one active method" rule.  A table is stored once per
    (branch, milk type, method); saving again replaces its rows.

Architecture position:
    Services.  Parses rows through ``dairy_config.loader`` before anything
    is written, so an invalid table never reaches the row store.

Invariants enforced:
    - After ``save_and_activate`` exactly one record of the branch and milk
      type is active, the one just saved.
    - ``save_draft`` never changes which record is active.
    - ``version`` increases only when the saved rows actually change
      (checksum differs).

Failure modes:
    - Unknown method  -> ``UnknownRateMethodError``.
    - Invalid row  -> ``InvalidRateTableError``; nothing is flushed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union
from uuid import UUID

from sqlalchemy import select, update

from dairy_config.loader import (
    compute_checksum,
    parse_method,
    parse_rate_config,
    serialize_rate_config,
)
from dairy_kernel.domain.rate_tables import CONFIG_TYPES, RateConfig
from dairy_kernel.domain.values import MilkType, RateMethod
from dairy_kernel.exceptions import RateConfigError
from dairy_kernel.logging_config import LogContext, get_logger
from dairy_kernel.models.rate_config import RateConfigRecord
from dairy_services.base import BaseService

logger = get_logger("services.rate_config")

RateRows = Union[RateConfig, list[dict[str, Any]], None]


@dataclass(frozen=True)
class StoredRateConfig:
    """Immutable view of a saved rate table."""

    id: UUID
    branch_id: str
    milk_type: MilkType
    method: RateMethod
    config: RateConfig
    is_active: bool
    version: int
    checksum: str


class RateConfigService(BaseService[RateConfigRecord]):
    """
    Saves rate tables and switches the active pricing method.

    All public methods return StoredRateConfig DTOs, not ORM records.
    """

    def _to_dto(self, record: RateConfigRecord) -> StoredRateConfig:
        return StoredRateConfig(
            id=record.id,
            branch_id=record.branch_id,
            milk_type=MilkType.coerce(record.milk_type),
            method=parse_method(record.method),
            config=parse_rate_config(record.method, record.rows),
            is_active=record.is_active,
            version=record.version,
            checksum=record.checksum,
        )

    def _find(
        self,
        branch_id: str,
        milk_type: MilkType,
        method: RateMethod,
    ) -> RateConfigRecord | None:
        stmt = select(RateConfigRecord).where(
            RateConfigRecord.branch_id == branch_id,
            RateConfigRecord.milk_type == milk_type.value,
            RateConfigRecord.method == method.value,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _typed(method: RateMethod, rows: RateRows) -> RateConfig:
        if isinstance(rows, tuple(CONFIG_TYPES.values())):
            if rows.method is not method:
                raise RateConfigError(
                    f"{rows.method.value} table cannot be saved as {method.value}"
                )
            return rows
        return parse_rate_config(method, rows)

    def _upsert(
        self,
        branch_id: str,
        milk_type: MilkType,
        method: RateMethod,
        config: RateConfig,
        active: bool | None,
    ) -> RateConfigRecord:
        rows = serialize_rate_config(config)
        checksum = compute_checksum(rows)
        record = self._find(branch_id, milk_type, method)
        if record is None:
            record = RateConfigRecord(
                branch_id=branch_id,
                milk_type=milk_type.value,
                method=method.value,
                rows=rows,
                is_active=bool(active),
                version=1,
                checksum=checksum,
            )
            self.session.add(record)
        else:
            if record.checksum != checksum:
                record.rows = rows
                record.checksum = checksum
                record.version += 1
            if active is not None:
                record.is_active = active
        self.session.flush()
        return record

    def save_draft(
        self,
        branch_id: str,
        milk_type: MilkType | str,
        method: RateMethod | str,
        rows: RateRows,
    ) -> StoredRateConfig:
        """
        Save a table without changing which method is active.

        A table saved for the first time starts inactive; an existing one
        keeps its active flag.

        Args:
            branch_id: Branch the table prices for.
            milk_type: Cow or Buffalo.
            method: Pricing method of the table.
            rows: Loose row dicts, or an already typed configuration.

        Returns:
            StoredRateConfig DTO.

        Raises:
            UnknownRateMethodError: If ``method`` is not a pricing method.
            RateConfigError: If a typed configuration belongs to another method.
            InvalidRateTableError: If a row cannot be parsed.
        """
        kind = MilkType.coerce(milk_type)
        parsed = parse_method(method)
        config = self._typed(parsed, rows)
        with LogContext.bind(branch_id=branch_id):
            record = self._upsert(branch_id, kind, parsed, config, active=None)
            logger.info(
                "rate_config_saved",
                extra={
                    "milk_type": kind.value,
                    "method": parsed.value,
                    "version": record.version,
                    "row_count": len(config.rows),
                },
            )
        return self._to_dto(record)

    def save_and_activate(
        self,
        branch_id: str,
        milk_type: MilkType | str,
        method: RateMethod | str,
        rows: RateRows,
    ) -> StoredRateConfig:
        """
        Save a table and make it the active method for the branch and milk type.

        Every other record of the pair is deactivated first, in the same
        transaction.

        Raises:
            RateConfigError: as save_draft.
        """
        kind = MilkType.coerce(milk_type)
        parsed = parse_method(method)
        config = self._typed(parsed, rows)
        with LogContext.bind(branch_id=branch_id):
            self.session.execute(
                update(RateConfigRecord)
                .where(
                    RateConfigRecord.branch_id == branch_id,
                    RateConfigRecord.milk_type == kind.value,
                    RateConfigRecord.method != parsed.value,
                )
                .values(is_active=False)
                .execution_options(synchronize_session="fetch")
            )
            record = self._upsert(branch_id, kind, parsed, config, active=True)
            logger.info(
                "rate_config_activated",
                extra={
                    "milk_type": kind.value,
                    "method": parsed.value,
                    "version": record.version,
                    "row_count": len(config.rows),
                },
            )
        return self._to_dto(record)

    def get_config(
        self,
        branch_id: str,
        milk_type: MilkType | str,
        method: RateMethod | str,
    ) -> StoredRateConfig | None:
        """The saved table for one method, or None if it was never saved."""
        record = self._find(branch_id, MilkType.coerce(milk_type), parse_method(method))
        return self._to_dto(record) if record else None

    def list_configs(
        self,
        branch_id: str,
        milk_type: MilkType | str | None = None,
    ) -> list[StoredRateConfig]:
        """
        All saved tables of a branch, ordered by milk type then method.

        Args:
            branch_id: Branch to list.
            milk_type: Restrict to one milk type when given.
        """
        stmt = select(RateConfigRecord).where(RateConfigRecord.branch_id == branch_id)
        if milk_type is not None:
            stmt = stmt.where(
                RateConfigRecord.milk_type == MilkType.coerce(milk_type).value
            )
        stmt = stmt.order_by(RateConfigRecord.milk_type, RateConfigRecord.method)
        records = self.session.execute(stmt).scalars().all()
        return [self._to_dto(r) for r in records]
