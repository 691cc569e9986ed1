"""
Rate tables -- typed rate configuration, one variant per pricing method.

Responsibility:
    Give each pricing method its own strongly typed row shape so a table
    saved for one method can never be read with another method's fields.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.  Built from loosely-typed rows by
    ``dairy_config.loader.parse_rate_config`` and consumed by
    ``dairy_engines.rate_engine``.

Invariants enforced:
    - Rows keep their stored order; lookups take the first matching row.
    - Overlapping or gapped rows are legal.  Nothing here resolves them.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar, Union

from dairy_kernel.domain.values import ZERO, RateMethod


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChartRow:
    """Exact (fat, snf) -> rate cell of a rate chart."""

    fat: Decimal
    snf: Decimal
    rate: Decimal


@dataclass(frozen=True)
class FatRow:
    """Exact fat -> rate entry."""

    code: str
    fat: Decimal
    rate: Decimal


@dataclass(frozen=True)
class TsRow:
    """
    Fat (and, for cow milk, SNF) band priced by a per-100 multiplier.

    Attributes:
        min_fat / max_fat: Inclusive fat band.
        fat_rate: Multiplier applied to fat (buffalo) or fat+SNF (cow), per 100.
        min_snf / max_snf: Inclusive SNF band; ignored for buffalo milk.
            A cow measurement never matches a row without SNF bounds.
        code: Optional label shown on the rate screen.
    """

    min_fat: Decimal
    max_fat: Decimal
    fat_rate: Decimal
    min_snf: Decimal | None = None
    max_snf: Decimal | None = None
    code: str | None = None


@dataclass(frozen=True)
class TsNewRow:
    """Total-solids band priced per 100 plus a flat per-litre incentive."""

    code: str
    ts_from: Decimal
    ts_to: Decimal
    rate: Decimal
    incentive: Decimal = ZERO


# ---------------------------------------------------------------------------
# Configurations (tagged union keyed by method)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChartRateConfig:
    method: ClassVar[RateMethod] = RateMethod.CHART
    rows: tuple[ChartRow, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.rows


@dataclass(frozen=True)
class FatRateConfig:
    method: ClassVar[RateMethod] = RateMethod.FAT
    rows: tuple[FatRow, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.rows


@dataclass(frozen=True)
class TsRateConfig:
    method: ClassVar[RateMethod] = RateMethod.TS
    rows: tuple[TsRow, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.rows


@dataclass(frozen=True)
class TsNewRateConfig:
    method: ClassVar[RateMethod] = RateMethod.TS_NEW
    rows: tuple[TsNewRow, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.rows


RateConfig = Union[ChartRateConfig, FatRateConfig, TsRateConfig, TsNewRateConfig]

CONFIG_TYPES: dict[RateMethod, type] = {
    RateMethod.CHART: ChartRateConfig,
    RateMethod.FAT: FatRateConfig,
    RateMethod.TS: TsRateConfig,
    RateMethod.TS_NEW: TsNewRateConfig,
}


def empty_config(method: RateMethod) -> RateConfig:
    """An empty table for ``method``."""
    return CONFIG_TYPES[method]()
