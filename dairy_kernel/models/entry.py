"""
Module: dairy_kernel.models.entry
Responsibility: ORM persistence for milk collection entries.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - rate and amount are written once, when the entry is saved or edited,
      from the rate engine's result against the then-active configuration.
      Nothing recomputes them afterwards; reports read them verbatim.
    - rate_matched records whether an applicable rate rule was found, so a
      zero-rate entry saved while pricing was incomplete can be told apart
      from a deliberately configured zero rate.

Non-goals:
    - No uniqueness on (farmer, date, shift).  Duplicate prevention is the
      caller's decision.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import TrackedBase
from dairy_kernel.domain.values import MilkType, RateMethod, Shift


class MilkEntry(TrackedBase):
    """One milk delivery by one farmer in one shift."""

    __tablename__ = "milk_entries"

    __table_args__ = (
        Index("idx_entry_branch_date", "branch_id", "entry_date"),
        Index("idx_entry_farmer", "farmer_id"),
    )

    branch_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # No foreign key: see module docstring
    farmer_id: Mapped[UUID] = mapped_column(nullable=False)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    shift: Mapped[Shift] = mapped_column(String(16), nullable=False)

    milk_type: Mapped[MilkType] = mapped_column(String(16), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    fat: Mapped[Decimal] = mapped_column(nullable=False)

    snf: Mapped[Decimal] = mapped_column(nullable=False)

    # Snapshot of the rate engine result at save time
    rate: Mapped[Decimal] = mapped_column(nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    rate_method: Mapped[RateMethod | None] = mapped_column(String(16), nullable=True)

    rate_matched: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    quality_note: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    def __repr__(self) -> str:
        return (
            f"<MilkEntry {self.entry_date} {self.shift} farmer={self.farmer_id} "
            f"{self.quantity}L @ {self.rate}>"
        )
