"""
Service layer for farmers.

Returns FarmerInfo DTOs instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from dairy_engines.billing import FarmerRef
from dairy_kernel.domain.values import MilkType
from dairy_kernel.exceptions import DuplicateFarmerError, FarmerNotFoundError
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.farmer import Farmer
from dairy_services.base import BaseService

logger = get_logger("services.farmer")


@dataclass(frozen=True)
class FarmerInfo:
    """Immutable DTO for farmer data."""

    id: UUID
    branch_id: str
    manual_id: str
    name: str
    milk_type: MilkType
    phone: str | None

    def as_ref(self) -> FarmerRef:
        return FarmerRef(farmer_id=self.id, name=self.name, manual_id=self.manual_id)


class FarmerService(BaseService[Farmer]):
    """Registers farmers with a branch and looks them up for reports."""

    def _to_dto(self, farmer: Farmer) -> FarmerInfo:
        return FarmerInfo(
            id=farmer.id,
            branch_id=farmer.branch_id,
            manual_id=farmer.manual_id,
            name=farmer.name,
            milk_type=MilkType.coerce(farmer.milk_type),
            phone=farmer.phone,
        )

    def _get_by_id(self, farmer_id: UUID) -> Farmer:
        farmer = self.session.get(Farmer, farmer_id)
        if farmer is None:
            raise FarmerNotFoundError(str(farmer_id))
        return farmer

    def register_farmer(
        self,
        branch_id: str,
        manual_id: str,
        name: str,
        milk_type: MilkType | str = MilkType.COW,
        phone: str | None = None,
    ) -> FarmerInfo:
        """
        Register a farmer with a branch.

        Args:
            branch_id: Branch the farmer delivers to.
            manual_id: Passbook number, unique within the branch.
            name: Display name.
            milk_type: Milk type pre-selected on the entry form.
            phone: Optional contact number.

        Returns:
            Created FarmerInfo DTO.

        Raises:
            DuplicateFarmerError: If ``manual_id`` is taken at the branch.
        """
        if self.find_by_manual_id(branch_id, manual_id) is not None:
            raise DuplicateFarmerError(branch_id, manual_id)
        farmer = Farmer(
            branch_id=branch_id,
            manual_id=manual_id,
            name=name,
            milk_type=MilkType.coerce(milk_type).value,
            phone=phone,
        )
        self.session.add(farmer)
        self.session.flush()
        logger.info(
            "farmer_registered",
            extra={"branch_id": branch_id, "manual_id": manual_id},
        )
        return self._to_dto(farmer)

    def get_farmer(self, farmer_id: UUID) -> FarmerInfo:
        """
        Get farmer by ID.

        Raises:
            FarmerNotFoundError: If the farmer doesn't exist.
        """
        return self._to_dto(self._get_by_id(farmer_id))

    def find_by_manual_id(self, branch_id: str, manual_id: str) -> FarmerInfo | None:
        stmt = select(Farmer).where(
            Farmer.branch_id == branch_id,
            Farmer.manual_id == manual_id,
        )
        farmer = self.session.execute(stmt).scalar_one_or_none()
        return self._to_dto(farmer) if farmer else None

    def list_farmers(self, branch_id: str) -> list[FarmerInfo]:
        """Farmers of a branch ordered by manual ID."""
        stmt = (
            select(Farmer)
            .where(Farmer.branch_id == branch_id)
            .order_by(Farmer.manual_id)
        )
        return [self._to_dto(f) for f in self.session.execute(stmt).scalars().all()]

    def farmer_refs(self, branch_id: str) -> list[FarmerRef]:
        """The branch's farmers in the shape the billing aggregator takes."""
        return [f.as_ref() for f in self.list_farmers(branch_id)]

    def remove_farmer(self, farmer_id: UUID) -> None:
        """
        Delete a farmer.  Their saved entries are kept and report as "Unknown".

        Raises:
            FarmerNotFoundError: If the farmer doesn't exist.
        """
        farmer = self._get_by_id(farmer_id)
        self.session.delete(farmer)
        self.session.flush()
        logger.info(
            "farmer_removed",
            extra={"branch_id": farmer.branch_id, "manual_id": farmer.manual_id},
        )
