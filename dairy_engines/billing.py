"""
Milk Billing Aggregator.

Pure functions with deterministic behavior. No I/O.

Takes collection entries that already carry their saved rate and amount,
narrows them to a report window, and rolls them up per farmer and per
shift for the billing and report screens.

Invariants:
- Saved rate/amount are read verbatim; nothing is re-priced here.
- Averages of fat and SNF are quantity weighted; a milk type with no
  litres reports 0.00, never an error.
- An entry whose farmer is not in the farmer list still gets a group
  (named "Unknown") so no collection is lost from a report.
- Every function accepts any iterable of entries and makes one pass.

Usage:
    from dairy_engines.billing import DateRange, filter_entries, summarize

    window = DateRange(date(2024, 6, 1), date(2024, 6, 10))
    entries = filter_entries(rows, window, branch_id="B1", shift="morning")
    summary = summarize(entries, farmers)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Union
from uuid import UUID

from dairy_kernel.domain.values import (
    ZERO,
    MilkType,
    Shift,
    safe_weighted_average,
    to_decimal,
)
from dairy_kernel.logging_config import get_logger

logger = get_logger("engines.billing")

FarmerKey = Union[UUID, str, int]

UNKNOWN_FARMER_NAME = "Unknown"

_SHIFT_ORDER = {Shift.MORNING: 0, Shift.EVENING: 1}


# ============================================================================
# Value Objects
# ============================================================================


@dataclass(frozen=True)
class CollectionEntry:
    """
    A saved milk collection entry as read back from the row store.

    ``date`` may be a date, a datetime or an ISO string; ``shift`` and
    ``milk_type`` may be enums or loose strings.  Numeric fields may be
    loose too and are parsed as zero when unusable.
    """

    branch_id: str
    farmer_id: FarmerKey
    date: date | datetime | str
    shift: Shift | str | None
    milk_type: MilkType | str | None
    quantity: Decimal
    fat: Decimal
    snf: Decimal
    rate: Decimal
    amount: Decimal
    quality_note: str = ""
    entry_id: FarmerKey | None = None

    @property
    def entry_day(self) -> date | None:
        return _as_day(self.date)


@dataclass(frozen=True)
class FarmerRef:
    """The farmer fields a report needs."""

    farmer_id: FarmerKey
    name: str
    manual_id: str | None = None


@dataclass(frozen=True)
class DateRange:
    """Inclusive day range of a report."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"DateRange start {self.start} is after end {self.end}"
            )

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class MilkTypeTotals:
    """Running sums for one milk type within one farmer's group."""

    quantity: Decimal = ZERO
    amount: Decimal = ZERO
    fat_weighted: Decimal = ZERO
    snf_weighted: Decimal = ZERO
    count: int = 0

    @property
    def avg_fat(self) -> Decimal:
        return safe_weighted_average(self.fat_weighted, self.quantity)

    @property
    def avg_snf(self) -> Decimal:
        return safe_weighted_average(self.snf_weighted, self.quantity)


@dataclass(frozen=True)
class FarmerAggregate:
    """Per-farmer totals for a report window."""

    farmer_id: FarmerKey
    manual_id: str
    name: str
    cow: MilkTypeTotals
    buffalo: MilkTypeTotals
    total_quantity: Decimal
    total_amount: Decimal
    entries: tuple[CollectionEntry, ...]

    @property
    def is_known(self) -> bool:
        return self.name != UNKNOWN_FARMER_NAME

    @property
    def avg_fat(self) -> Decimal:
        """Quantity-weighted fat across both milk types."""
        return safe_weighted_average(
            self.cow.fat_weighted + self.buffalo.fat_weighted, self.total_quantity
        )

    @property
    def avg_snf(self) -> Decimal:
        """Quantity-weighted SNF across both milk types."""
        return safe_weighted_average(
            self.cow.snf_weighted + self.buffalo.snf_weighted, self.total_quantity
        )

    def totals_for(self, milk_type: MilkType) -> MilkTypeTotals:
        return self.buffalo if milk_type is MilkType.BUFFALO else self.cow


@dataclass(frozen=True)
class ShiftTotals:
    """Litres and amount collected in one shift."""

    quantity: Decimal = ZERO
    amount: Decimal = ZERO
    count: int = 0


@dataclass(frozen=True)
class BillingSummary:
    """Branch-level rollup shown above the per-farmer bill table."""

    farmer_count: int
    total_quantity: Decimal
    total_amount: Decimal
    cow_quantity: Decimal
    buffalo_quantity: Decimal
    cow_amount: Decimal
    buffalo_amount: Decimal
    morning: ShiftTotals
    evening: ShiftTotals
    avg_fat: Decimal
    avg_snf: Decimal
    farmers: tuple[FarmerAggregate, ...] = field(default=())

    def farmers_with(self, milk_type: MilkType) -> tuple[FarmerAggregate, ...]:
        """Farmers who delivered any litres of ``milk_type`` in the window."""
        return tuple(
            f for f in self.farmers if f.totals_for(milk_type).quantity > ZERO
        )


# ============================================================================
# Helpers
# ============================================================================


def _as_day(value: object) -> date | None:
    """
    Calendar day of an entry date.

    Timestamps keep the offset they were written with: the day is read in
    that offset, not converted to the server's local time.  A ``Z`` suffix
    (browser ``toISOString()`` output) is read as UTC.  Unparsable values
    give None and are dropped by ``filter_entries``.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text[-1:] in ("Z", "z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            return None
    return None


def _matches_shift(entry_shift: object, shift: Shift | str | None) -> bool:
    if shift is None:
        return True
    if isinstance(shift, str) and not isinstance(shift, Shift) and shift.lower() == "all":
        return True
    wanted = Shift.parse(shift)
    return wanted is not None and Shift.parse(entry_shift) is wanted


class _TypeAccumulator:
    __slots__ = ("quantity", "amount", "fat_weighted", "snf_weighted", "count")

    def __init__(self) -> None:
        self.quantity = ZERO
        self.amount = ZERO
        self.fat_weighted = ZERO
        self.snf_weighted = ZERO
        self.count = 0

    def add(self, quantity: Decimal, amount: Decimal, fat: Decimal, snf: Decimal) -> None:
        self.quantity += quantity
        self.amount += amount
        self.fat_weighted += fat * quantity
        self.snf_weighted += snf * quantity
        self.count += 1

    def freeze(self) -> MilkTypeTotals:
        return MilkTypeTotals(
            quantity=self.quantity,
            amount=self.amount,
            fat_weighted=self.fat_weighted,
            snf_weighted=self.snf_weighted,
            count=self.count,
        )


class _FarmerAccumulator:
    __slots__ = ("farmer_id", "farmer", "cow", "buffalo", "entries")

    def __init__(self, farmer_id: FarmerKey, farmer: FarmerRef | None) -> None:
        self.farmer_id = farmer_id
        self.farmer = farmer
        self.cow = _TypeAccumulator()
        self.buffalo = _TypeAccumulator()
        self.entries: list[CollectionEntry] = []

    def add(self, entry: CollectionEntry) -> None:
        self.entries.append(entry)
        target = self.buffalo if MilkType.coerce(entry.milk_type) is MilkType.BUFFALO else self.cow
        target.add(
            to_decimal(entry.quantity),
            to_decimal(entry.amount),
            to_decimal(entry.fat),
            to_decimal(entry.snf),
        )

    def freeze(self) -> FarmerAggregate:
        cow = self.cow.freeze()
        buffalo = self.buffalo.freeze()
        if self.farmer is None:
            name = UNKNOWN_FARMER_NAME
            manual_id = str(self.farmer_id)
        else:
            name = self.farmer.name
            manual_id = self.farmer.manual_id or str(self.farmer_id)
        return FarmerAggregate(
            farmer_id=self.farmer_id,
            manual_id=manual_id,
            name=name,
            cow=cow,
            buffalo=buffalo,
            total_quantity=cow.quantity + buffalo.quantity,
            total_amount=cow.amount + buffalo.amount,
            entries=tuple(self.entries),
        )


# ============================================================================
# Operations
# ============================================================================


def filter_entries(
    entries: Iterable[CollectionEntry] | None,
    date_range: DateRange | None,
    branch_id: str | None = None,
    shift: Shift | str | None = "all",
    farmer_id: FarmerKey | None = None,
) -> list[CollectionEntry]:
    """
    Keep entries inside the report window.

    The row-store query may over-fetch, so every criterion is re-checked:
    branch (when given), day within the inclusive range, shift ("all" or a
    case-insensitive match) and farmer (when given).  Entries whose date
    cannot be read are dropped.  Input order is preserved.

    Args:
        entries: Any iterable of entries.
        date_range: Inclusive window; None returns an empty list.
        branch_id: Branch to keep; None keeps every branch.
        shift: "all", "morning", "evening" or a Shift.
        farmer_id: Farmer to keep; None keeps every farmer.

    Returns:
        The matching entries.
    """
    if entries is None or date_range is None:
        return []

    kept: list[CollectionEntry] = []
    for entry in entries:
        if branch_id is not None and entry.branch_id != branch_id:
            continue
        day = entry.entry_day
        if day is None or not date_range.contains(day):
            continue
        if not _matches_shift(entry.shift, shift):
            continue
        if farmer_id is not None and entry.farmer_id != farmer_id:
            continue
        kept.append(entry)
    return kept


def group_by_farmer(
    entries: Iterable[CollectionEntry],
    farmers: Iterable[FarmerRef] = (),
) -> list[FarmerAggregate]:
    """
    Roll entries up per farmer in a single pass.

    Groups come back in the order each farmer first appears.  Milk types
    are bucketed case-insensitively: anything mentioning buffalo is
    Buffalo, everything else (including a missing type) is Cow.

    Args:
        entries: Filtered entries.
        farmers: Known farmers; entries for farmers not listed still get
            a group named "Unknown".

    Returns:
        One FarmerAggregate per farmer with at least one entry.
    """
    directory = {f.farmer_id: f for f in farmers}
    groups: dict[FarmerKey, _FarmerAccumulator] = {}

    for entry in entries:
        acc = groups.get(entry.farmer_id)
        if acc is None:
            acc = _FarmerAccumulator(entry.farmer_id, directory.get(entry.farmer_id))
            groups[entry.farmer_id] = acc
        acc.add(entry)

    aggregates = [acc.freeze() for acc in groups.values()]
    unknown = sum(1 for a in aggregates if not a.is_known)
    if unknown:
        logger.warning(
            "entries_for_unknown_farmers",
            extra={"unknown_farmer_count": unknown},
        )
    return aggregates


def calculate_totals(entries: Iterable[CollectionEntry]) -> tuple[Decimal, Decimal]:
    """Total litres and amount of ``entries``."""
    quantity = ZERO
    amount = ZERO
    for entry in entries:
        quantity += to_decimal(entry.quantity)
        amount += to_decimal(entry.amount)
    return quantity, amount


def shift_totals(entries: Iterable[CollectionEntry]) -> dict[Shift, ShiftTotals]:
    """
    Litres and amount per shift in a single pass.

    An entry saved without a shift counts as Morning.  Entries carrying
    any other value than Morning or Evening are not counted in either
    bucket.
    """
    sums = {s: [ZERO, ZERO, 0] for s in Shift}
    for entry in entries:
        if entry.shift is None or not str(entry.shift).strip():
            shift = Shift.MORNING
        else:
            shift = Shift.parse(entry.shift)
        if shift is None:
            continue
        bucket = sums[shift]
        bucket[0] += to_decimal(entry.quantity)
        bucket[1] += to_decimal(entry.amount)
        bucket[2] += 1
    return {
        s: ShiftTotals(quantity=q, amount=a, count=c)
        for s, (q, a, c) in sums.items()
    }


def summarize(
    entries: Iterable[CollectionEntry],
    farmers: Iterable[FarmerRef] = (),
) -> BillingSummary:
    """
    Build the branch-level billing summary of filtered entries.

    Farmer count is the number of groups with at least one entry; litres,
    amount and weighted averages cover both milk types; shift totals are
    computed from the same entries.
    """
    materialized = list(entries)
    aggregates = group_by_farmer(materialized, farmers)
    shifts = shift_totals(materialized)

    cow_quantity = sum((a.cow.quantity for a in aggregates), ZERO)
    buffalo_quantity = sum((a.buffalo.quantity for a in aggregates), ZERO)
    cow_amount = sum((a.cow.amount for a in aggregates), ZERO)
    buffalo_amount = sum((a.buffalo.amount for a in aggregates), ZERO)
    fat_weighted = sum(
        (a.cow.fat_weighted + a.buffalo.fat_weighted for a in aggregates), ZERO
    )
    snf_weighted = sum(
        (a.cow.snf_weighted + a.buffalo.snf_weighted for a in aggregates), ZERO
    )
    total_quantity = cow_quantity + buffalo_quantity

    summary = BillingSummary(
        farmer_count=len(aggregates),
        total_quantity=total_quantity,
        total_amount=cow_amount + buffalo_amount,
        cow_quantity=cow_quantity,
        buffalo_quantity=buffalo_quantity,
        cow_amount=cow_amount,
        buffalo_amount=buffalo_amount,
        morning=shifts[Shift.MORNING],
        evening=shifts[Shift.EVENING],
        avg_fat=safe_weighted_average(fat_weighted, total_quantity),
        avg_snf=safe_weighted_average(snf_weighted, total_quantity),
        farmers=tuple(aggregates),
    )

    logger.info(
        "billing_summary_computed",
        extra={
            "entry_count": len(materialized),
            "farmer_count": summary.farmer_count,
            "total_quantity": summary.total_quantity,
            "total_amount": summary.total_amount,
        },
    )
    return summary


def _statement_sort_key(entry: CollectionEntry) -> tuple[date, int]:
    shift = Shift.parse(entry.shift)
    return (
        entry.entry_day or date.min,
        _SHIFT_ORDER.get(shift, len(_SHIFT_ORDER)),
    )


def farmer_statement(
    entries: Iterable[CollectionEntry],
    farmers: Iterable[FarmerRef],
    farmer_id: FarmerKey,
) -> FarmerAggregate | None:
    """
    One farmer's bill with entries ordered by day, morning before evening.

    Returns None when the farmer has no entries among ``entries``.
    """
    own = [e for e in entries if e.farmer_id == farmer_id]
    if not own:
        return None
    own.sort(key=_statement_sort_key)
    (aggregate,) = group_by_farmer(own, farmers)
    return aggregate
