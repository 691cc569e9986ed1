"""
Milk Rate Engine (``dairy_engines.rate_engine``).

Responsibility
--------------
Turn a milk quality measurement (fat %, SNF %, litres) into a price per
litre and a total amount under one of four pricing methods:

* CHART  -- exact (fat, snf) lookup in a rate chart
* FAT    -- exact fat lookup
* TS     -- fat band (plus SNF band for cow milk) times a per-100 multiplier
* TS_NEW -- total-solids band times a per-100 rate, plus an incentive

Architecture position
---------------------
**Engines layer** -- pure functional core.  ZERO I/O, ZERO database,
ZERO clock reads.  Knows nothing about which configuration is "active";
the caller passes the one table to price against.

Invariants enforced
-------------------
* First matching row in stored order wins; no interpolation.
* Two-stage rounding: the rate is rounded to 2 places first, the amount
  is computed from the *rounded* rate and rounded again.  Historical bills
  encode this, so it must not be collapsed into a single rounding.
* Deterministic: same inputs = same outputs.

Failure modes
-------------
* Never raises for business conditions.  Unknown method, mismatched or
  empty table, and no matching row all give a zero rate with
  ``matched=False`` and an ``outcome`` saying which case applied.
* Unparsable fat/SNF/quantity count as zero.
* Values too large to round to two places price at zero with outcome
  ``MALFORMED_INPUT``.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import TypeVar

from dairy_engines.tracer import traced_engine
from dairy_kernel.domain.rate_tables import (
    ChartRow,
    FatRow,
    RateConfig,
    TsNewRow,
    TsRow,
)
from dairy_kernel.domain.values import (
    HUNDRED,
    ZERO,
    MilkType,
    RateMethod,
    round_money,
    to_decimal,
)
from dairy_kernel.logging_config import get_logger

logger = get_logger("engines.rate")

_Row = TypeVar("_Row")


class RateOutcome(str, Enum):
    """Why a bill came out the way it did."""

    MATCHED = "matched"
    NO_MATCHING_ROW = "no_matching_row"
    EMPTY_CONFIG = "empty_config"
    INVALID_METHOD = "invalid_method"
    CONFIG_MISMATCH = "config_mismatch"
    MALFORMED_INPUT = "malformed_input"
    # Set by callers that had no active table to price against
    NO_ACTIVE_RATE = "no_active_rate"


@dataclass(frozen=True)
class QualityMeasurement:
    """Fat %, SNF % and litres of one delivery."""

    fat: Decimal = ZERO
    snf: Decimal = ZERO
    quantity: Decimal = ZERO

    @classmethod
    def of(cls, fat: object = None, snf: object = None, quantity: object = None) -> QualityMeasurement:
        """Build from raw form values; anything unparsable becomes zero."""
        return cls(
            fat=to_decimal(fat),
            snf=to_decimal(snf),
            quantity=to_decimal(quantity),
        )


@dataclass(frozen=True)
class BillResult:
    """
    Price of one delivery.

    Attributes:
        rate_per_litre: Rate rounded to 2 places.
        amount: rate_per_litre * quantity, rounded to 2 places.
        matched: True iff a rate rule applied.  A row configured with a
            zero rate still reports True.
        outcome: The specific reason, for warnings before save.
        method: The method priced with, or None if it was not recognized.
        row_index: Position of the matching row in its table.
        ts: The total-solids value used for TS_NEW lookups.
    """

    rate_per_litre: Decimal
    amount: Decimal
    matched: bool
    outcome: RateOutcome
    method: RateMethod | None = None
    row_index: int | None = None
    ts: Decimal | None = None

    @property
    def rate(self) -> Decimal:
        """Alias used when the result is stored on an entry."""
        return self.rate_per_litre


def _first_match(
    rows: Sequence[_Row],
    predicate: Callable[[_Row], bool],
) -> tuple[int, _Row] | None:
    for index, row in enumerate(rows):
        if predicate(row):
            return index, row
    return None


def _priced(
    raw_rate: Decimal,
    quantity: Decimal,
    method: RateMethod,
    row_index: int,
    ts: Decimal | None = None,
) -> BillResult:
    rate = round_money(raw_rate)
    return BillResult(
        rate_per_litre=rate,
        amount=round_money(rate * quantity),
        matched=True,
        outcome=RateOutcome.MATCHED,
        method=method,
        row_index=row_index,
        ts=ts,
    )


def unpriced(
    outcome: RateOutcome,
    method: RateMethod | None,
    ts: Decimal | None = None,
) -> BillResult:
    """A zero-rate, unmatched result for ``outcome``."""
    return BillResult(
        rate_per_litre=round_money(ZERO),
        amount=round_money(ZERO),
        matched=False,
        outcome=outcome,
        method=method,
        ts=ts,
    )


# ---------------------------------------------------------------------------
# Per-method pricing
# ---------------------------------------------------------------------------


def price_chart(
    rows: Sequence[ChartRow],
    fat: Decimal,
    snf: Decimal,
    quantity: Decimal,
) -> BillResult:
    """Exact (fat, snf) match.  Callers round to the chart's precision first."""
    hit = _first_match(rows, lambda row: row.fat == fat and row.snf == snf)
    if hit is None:
        return unpriced(RateOutcome.NO_MATCHING_ROW, RateMethod.CHART)
    index, row = hit
    return _priced(row.rate, quantity, RateMethod.CHART, index)


def price_fat(
    rows: Sequence[FatRow],
    fat: Decimal,
    quantity: Decimal,
) -> BillResult:
    """Exact fat match."""
    hit = _first_match(rows, lambda row: row.fat == fat)
    if hit is None:
        return unpriced(RateOutcome.NO_MATCHING_ROW, RateMethod.FAT)
    index, row = hit
    return _priced(row.rate, quantity, RateMethod.FAT, index)


def _ts_row_applies(row: TsRow, fat: Decimal, snf: Decimal, milk_type: MilkType) -> bool:
    if not row.min_fat <= fat <= row.max_fat:
        return False
    if milk_type is MilkType.BUFFALO:
        return True
    if row.min_snf is None or row.max_snf is None:
        return False
    return row.min_snf <= snf <= row.max_snf


def price_ts(
    rows: Sequence[TsRow],
    fat: Decimal,
    snf: Decimal,
    quantity: Decimal,
    milk_type: MilkType,
) -> BillResult:
    """
    Band lookup with a per-100 multiplier.

    Buffalo: fat * fat_rate / 100 (SNF bounds ignored).
    Cow:     (fat + snf) * fat_rate / 100.
    """
    hit = _first_match(rows, lambda row: _ts_row_applies(row, fat, snf, milk_type))
    if hit is None:
        return unpriced(RateOutcome.NO_MATCHING_ROW, RateMethod.TS)
    index, row = hit
    base = total_solids(fat, snf, milk_type)
    return _priced(base * row.fat_rate / HUNDRED, quantity, RateMethod.TS, index)


def total_solids(fat: Decimal, snf: Decimal, milk_type: MilkType) -> Decimal:
    """TS is fat alone for buffalo milk and fat + SNF for cow milk."""
    if milk_type is MilkType.BUFFALO:
        return fat
    return fat + snf


def price_ts_new(
    rows: Sequence[TsNewRow],
    fat: Decimal,
    snf: Decimal,
    quantity: Decimal,
    milk_type: MilkType,
) -> BillResult:
    """TS band lookup: ts * rate / 100 + incentive."""
    ts = total_solids(fat, snf, milk_type)
    hit = _first_match(rows, lambda row: row.ts_from <= ts <= row.ts_to)
    if hit is None:
        return unpriced(RateOutcome.NO_MATCHING_ROW, RateMethod.TS_NEW, ts=ts)
    index, row = hit
    raw = ts * row.rate / HUNDRED + row.incentive
    return _priced(raw, quantity, RateMethod.TS_NEW, index, ts=ts)


def _price(
    method: RateMethod,
    config: RateConfig,
    fat: Decimal,
    snf: Decimal,
    quantity: Decimal,
    milk_type: MilkType,
) -> BillResult:
    if method is RateMethod.CHART:
        return price_chart(config.rows, fat, snf, quantity)
    if method is RateMethod.FAT:
        return price_fat(config.rows, fat, quantity)
    if method is RateMethod.TS:
        return price_ts(config.rows, fat, snf, quantity, milk_type)
    return price_ts_new(config.rows, fat, snf, quantity, milk_type)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


@traced_engine("rate", "1.0", fingerprint_fields=("method", "measurement", "milk_type"))
def compute_bill(
    method: RateMethod | str | None,
    measurement: QualityMeasurement | None,
    config: RateConfig | None,
    milk_type: MilkType | str | None,
) -> BillResult:
    """
    Price one delivery.

    Args:
        method: Pricing method; unknown values price at zero.
        measurement: Fat %, SNF % and litres.  Non-numeric fields count as 0.
        config: The rate table for ``method``.  A table for a different
            method, an empty table or None prices at zero.
        milk_type: Cow or Buffalo; anything else is treated as Cow.

    Returns:
        BillResult with the rounded rate, amount and match flag.
    """
    parsed_method = RateMethod.parse(method)
    if measurement is None:
        measurement = QualityMeasurement()
    fat = to_decimal(measurement.fat)
    snf = to_decimal(measurement.snf)
    quantity = to_decimal(measurement.quantity)
    kind = MilkType.coerce(milk_type)

    if parsed_method is None:
        result = unpriced(RateOutcome.INVALID_METHOD, None)
    elif config is None:
        result = unpriced(RateOutcome.EMPTY_CONFIG, parsed_method)
    elif getattr(config, "method", None) is not parsed_method:
        result = unpriced(RateOutcome.CONFIG_MISMATCH, parsed_method)
    elif config.is_empty:
        result = unpriced(RateOutcome.EMPTY_CONFIG, parsed_method)
    else:
        try:
            result = _price(parsed_method, config, fat, snf, quantity, kind)
        except InvalidOperation:
            # Rate or amount exceeds the context precision when quantized
            result = unpriced(RateOutcome.MALFORMED_INPUT, parsed_method)

    if not result.matched:
        logger.warning(
            "rate_not_applicable",
            extra={
                "outcome": result.outcome.value,
                "method": str(getattr(method, "value", method)),
                "milk_type": kind.value,
                "fat": str(fat),
                "snf": str(snf),
            },
        )
    return result
