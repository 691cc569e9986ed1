"""
Module: dairy_kernel.models.farmer
Responsibility: ORM persistence for farmers registered with a branch.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - manual_id (the number printed on the farmer's passbook) is unique
      within a branch (uq_farmer_branch_manual_id).

Non-goals:
    - Collection entries do NOT hold a foreign key to this table.  An entry
      whose farmer was deleted must still show up in reports under a
      placeholder name, so the reference is allowed to dangle.
"""

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import TrackedBase
from dairy_kernel.domain.values import MilkType


class Farmer(TrackedBase):
    """A milk supplier registered with one branch."""

    __tablename__ = "farmers"

    __table_args__ = (
        UniqueConstraint("branch_id", "manual_id", name="uq_farmer_branch_manual_id"),
        Index("idx_farmer_branch", "branch_id"),
    )

    branch_id: Mapped[str] = mapped_column(String(64), nullable=False)

    manual_id: Mapped[str] = mapped_column(String(32), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Default milk type pre-selected on the entry form
    milk_type: Mapped[MilkType] = mapped_column(
        String(16),
        nullable=False,
        default=MilkType.COW.value,
    )

    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    def __repr__(self) -> str:
        return f"<Farmer {self.manual_id}: {self.name} ({self.branch_id})>"
