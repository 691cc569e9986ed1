"""
Module: dairy_kernel.models.rate_config
Responsibility: ORM persistence for per-branch, per-milk-type rate tables.
    One record per (branch_id, milk_type, method); the rows column holds the
    method's table serialized by ``dairy_config.loader.serialize_rate_config``.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - At most one record per (branch_id, milk_type, method)
      (uq_rate_config_branch_type_method).
    - At most one record per (branch_id, milk_type) has is_active=True.
      This is maintained by RateConfigService.save_and_activate, not by a
      database constraint.
    - checksum is the SHA-256 of the serialized rows; version increases by
      one whenever a save changes the checksum.

Non-goals:
    - Entries are never re-priced when a record changes.  The rate and
      amount stored on an entry are a point-in-time snapshot.
"""

from typing import Any

from sqlalchemy import JSON, Boolean, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import TrackedBase
from dairy_kernel.domain.values import MilkType, RateMethod


class RateConfigRecord(TrackedBase):
    """A saved rate table for one pricing method; active or draft."""

    __tablename__ = "rate_configs"

    __table_args__ = (
        UniqueConstraint(
            "branch_id", "milk_type", "method",
            name="uq_rate_config_branch_type_method",
        ),
        Index("idx_rate_config_active", "branch_id", "milk_type", "is_active"),
    )

    branch_id: Mapped[str] = mapped_column(String(64), nullable=False)

    milk_type: Mapped[MilkType] = mapped_column(String(16), nullable=False)

    method: Mapped[RateMethod] = mapped_column(String(16), nullable=False)

    rows: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    checksum: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        state = "active" if self.is_active else "draft"
        return (
            f"<RateConfigRecord {self.branch_id}/{self.milk_type}/{self.method} "
            f"v{self.version} {state}>"
        )
