"""
Entry-save workflow.

Responsibility:
    Prices a milk delivery against the branch's active rate table and
    stores the resulting rate and amount with the entry.  Edits re-price
    against whatever table is active at edit time; nothing else ever
    re-prices a saved entry.

Architecture position:
    Services.  Depends on an ``ActiveRateResolver`` for "which table is
    active" and on ``dairy_engines.rate_engine.compute_bill`` for the
    price.  Neither knows about the other.

Invariants enforced:
    - A missing active table, a missing rule or unusable measurements
      never block the save; the entry is stored at a zero rate with
      ``rate_matched=False`` and the returned BillResult says why.
    - Stored rate/amount are exactly the BillResult's rounded values.

Failure modes:
    - Unknown entry ID  -> ``EntryNotFoundError``.
    - Shift other than Morning/Evening  -> ``ValueError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from dairy_engines.billing import CollectionEntry
from dairy_engines.rate_engine import (
    BillResult,
    QualityMeasurement,
    RateOutcome,
    compute_bill,
    unpriced,
)
from dairy_kernel.domain.values import MilkType, RateMethod, Shift
from dairy_kernel.exceptions import EntryNotFoundError
from dairy_kernel.logging_config import LogContext, get_logger
from dairy_kernel.models.entry import MilkEntry
from dairy_services.base import BaseService
from dairy_services.rate_resolver import ActiveRateResolver, SqlActiveRateResolver

logger = get_logger("services.entry")

# Number of recent deliveries shown beside the entry form
HISTORY_LIMIT = 5


@dataclass(frozen=True)
class EntryInfo:
    """Immutable DTO for a saved collection entry."""

    id: UUID
    branch_id: str
    farmer_id: UUID
    entry_date: date
    shift: Shift
    milk_type: MilkType
    quantity: Decimal
    fat: Decimal
    snf: Decimal
    rate: Decimal
    amount: Decimal
    rate_method: RateMethod | None
    rate_matched: bool
    quality_note: str

    def to_collection_entry(self) -> CollectionEntry:
        return CollectionEntry(
            branch_id=self.branch_id,
            farmer_id=self.farmer_id,
            date=self.entry_date,
            shift=self.shift,
            milk_type=self.milk_type,
            quantity=self.quantity,
            fat=self.fat,
            snf=self.snf,
            rate=self.rate,
            amount=self.amount,
            quality_note=self.quality_note,
            entry_id=self.id,
        )


@dataclass(frozen=True)
class SavedEntry:
    """A stored entry together with the bill it was priced at."""

    entry: EntryInfo
    bill: BillResult


def _parse_shift(value: Shift | str) -> Shift:
    shift = Shift.parse(value)
    if shift is None:
        raise ValueError(f"Shift must be Morning or Evening, got {value!r}")
    return shift


def to_entry_info(entry: MilkEntry) -> EntryInfo:
    """Convert an ORM MilkEntry to its DTO."""
    return EntryInfo(
        id=entry.id,
        branch_id=entry.branch_id,
        farmer_id=entry.farmer_id,
        entry_date=entry.entry_date,
        shift=_parse_shift(entry.shift),
        milk_type=MilkType.coerce(entry.milk_type),
        quantity=entry.quantity,
        fat=entry.fat,
        snf=entry.snf,
        rate=entry.rate,
        amount=entry.amount,
        rate_method=RateMethod.parse(entry.rate_method),
        rate_matched=entry.rate_matched,
        quality_note=entry.quality_note or "",
    )


class EntryService(BaseService[MilkEntry]):
    """
    Records, edits and lists milk collection entries.

    Contract:
        ``resolver`` defaults to reading the active table from the same
        session.  Pass a ``StaticActiveRateResolver`` to price against
        tables that are not in the row store.
    """

    def __init__(self, session, resolver: ActiveRateResolver | None = None):
        super().__init__(session)
        self.resolver = resolver or SqlActiveRateResolver(session)

    def _get_by_id(self, entry_id: UUID) -> MilkEntry:
        entry = self.session.get(MilkEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def quote(
        self,
        branch_id: str,
        milk_type: MilkType | str,
        fat: object,
        snf: object,
        quantity: object,
    ) -> BillResult:
        """
        Price a delivery against the active table without saving it.

        Form values may be loose strings; anything unparsable counts as 0.
        When the branch has no active table for the milk type the result
        is unmatched with outcome NO_ACTIVE_RATE.
        """
        kind = MilkType.coerce(milk_type)
        measurement = QualityMeasurement.of(fat=fat, snf=snf, quantity=quantity)
        active = self.resolver.resolve(branch_id, kind)
        if active is None:
            return unpriced(RateOutcome.NO_ACTIVE_RATE, None)
        return compute_bill(active.method, measurement, active.config, kind)

    def _apply_bill(self, entry: MilkEntry, bill: BillResult) -> None:
        entry.rate = bill.rate_per_litre
        entry.amount = bill.amount
        entry.rate_method = bill.method.value if bill.method else None
        entry.rate_matched = bill.matched

    def record_entry(
        self,
        branch_id: str,
        farmer_id: UUID,
        entry_date: date,
        shift: Shift | str,
        milk_type: MilkType | str,
        quantity: object,
        fat: object,
        snf: object,
        quality_note: str = "",
    ) -> SavedEntry:
        """
        Price and store one delivery.

        Args:
            branch_id: Collecting branch.
            farmer_id: Supplying farmer.
            entry_date: Collection day.
            shift: Morning or Evening, any case.
            milk_type: Cow or Buffalo.
            quantity: Litres.
            fat: Fat %.
            snf: SNF %.
            quality_note: Free text from the collector.

        Returns:
            SavedEntry with the stored entry and the bill it was priced at.

        Raises:
            ValueError: If ``shift`` is not Morning or Evening.
        """
        parsed_shift = _parse_shift(shift)
        kind = MilkType.coerce(milk_type)
        measurement = QualityMeasurement.of(fat=fat, snf=snf, quantity=quantity)
        bill = self.quote(
            branch_id, kind, measurement.fat, measurement.snf, measurement.quantity
        )

        entry = MilkEntry(
            branch_id=branch_id,
            farmer_id=farmer_id,
            entry_date=entry_date,
            shift=parsed_shift.value,
            milk_type=kind.value,
            quantity=measurement.quantity,
            fat=measurement.fat,
            snf=measurement.snf,
            quality_note=quality_note or "",
        )
        self._apply_bill(entry, bill)
        self.session.add(entry)
        self.session.flush()

        with LogContext.bind(branch_id=branch_id, farmer_id=farmer_id, entry_id=entry.id):
            logger.info(
                "entry_recorded",
                extra={
                    "shift": parsed_shift.value,
                    "milk_type": kind.value,
                    "quantity": measurement.quantity,
                    "rate": bill.rate_per_litre,
                    "amount": bill.amount,
                    "rate_matched": bill.matched,
                },
            )
        return SavedEntry(entry=to_entry_info(entry), bill=bill)

    def update_entry(
        self,
        entry_id: UUID,
        farmer_id: UUID | None = None,
        entry_date: date | None = None,
        shift: Shift | str | None = None,
        milk_type: MilkType | str | None = None,
        quantity: object = None,
        fat: object = None,
        snf: object = None,
        quality_note: str | None = None,
    ) -> SavedEntry:
        """
        Edit an entry and re-price it against the table active now.

        Fields left as None keep their stored value.

        Raises:
            EntryNotFoundError: If the entry doesn't exist.
            ValueError: If ``shift`` is given and is not Morning or Evening.
        """
        entry = self._get_by_id(entry_id)
        previous_rate = entry.rate

        if farmer_id is not None:
            entry.farmer_id = farmer_id
        if entry_date is not None:
            entry.entry_date = entry_date
        if shift is not None:
            entry.shift = _parse_shift(shift).value
        if milk_type is not None:
            entry.milk_type = MilkType.coerce(milk_type).value
        measurement = QualityMeasurement.of(
            fat=entry.fat if fat is None else fat,
            snf=entry.snf if snf is None else snf,
            quantity=entry.quantity if quantity is None else quantity,
        )
        entry.fat = measurement.fat
        entry.snf = measurement.snf
        entry.quantity = measurement.quantity
        if quality_note is not None:
            entry.quality_note = quality_note

        bill = self.quote(
            entry.branch_id,
            entry.milk_type,
            measurement.fat,
            measurement.snf,
            measurement.quantity,
        )
        self._apply_bill(entry, bill)
        self.session.flush()

        with LogContext.bind(
            branch_id=entry.branch_id, farmer_id=entry.farmer_id, entry_id=entry.id
        ):
            logger.info(
                "entry_updated",
                extra={
                    "previous_rate": previous_rate,
                    "rate": bill.rate_per_litre,
                    "amount": bill.amount,
                    "rate_matched": bill.matched,
                },
            )
        return SavedEntry(entry=to_entry_info(entry), bill=bill)

    def delete_entry(self, entry_id: UUID) -> None:
        """
        Delete an entry.

        Raises:
            EntryNotFoundError: If the entry doesn't exist.
        """
        entry = self._get_by_id(entry_id)
        branch_id = entry.branch_id
        self.session.delete(entry)
        self.session.flush()
        with LogContext.bind(branch_id=branch_id, entry_id=entry_id):
            logger.info("entry_deleted")

    def get_entry(self, entry_id: UUID) -> EntryInfo:
        """
        Get entry by ID.

        Raises:
            EntryNotFoundError: If the entry doesn't exist.
        """
        return to_entry_info(self._get_by_id(entry_id))

    def list_entries(
        self,
        branch_id: str,
        entry_date: date,
        shift: Shift | str | None = None,
        farmer_id: UUID | None = None,
    ) -> list[EntryInfo]:
        """
        Entries of one branch and day, oldest first.

        Args:
            branch_id: Collecting branch.
            entry_date: Collection day.
            shift: Restrict to Morning or Evening when given.
            farmer_id: Restrict to one farmer when given.

        Raises:
            ValueError: If ``shift`` is given and is not Morning or Evening.
        """
        stmt = select(MilkEntry).where(
            MilkEntry.branch_id == branch_id,
            MilkEntry.entry_date == entry_date,
        )
        if shift is not None:
            stmt = stmt.where(MilkEntry.shift == _parse_shift(shift).value)
        if farmer_id is not None:
            stmt = stmt.where(MilkEntry.farmer_id == farmer_id)
        stmt = stmt.order_by(MilkEntry.created_at, MilkEntry.id)
        return [to_entry_info(e) for e in self.session.execute(stmt).scalars().all()]

    def farmer_history(self, farmer_id: UUID, limit: int = HISTORY_LIMIT) -> list[EntryInfo]:
        """A farmer's most recent entries, newest first."""
        stmt = (
            select(MilkEntry)
            .where(MilkEntry.farmer_id == farmer_id)
            .order_by(MilkEntry.entry_date.desc(), MilkEntry.created_at.desc())
            .limit(limit)
        )
        return [to_entry_info(e) for e in self.session.execute(stmt).scalars().all()]
