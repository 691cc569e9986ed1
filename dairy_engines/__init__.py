"""
Module: dairy_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines: milk rate pricing and billing aggregation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import dairy_kernel.domain and dairy_kernel.logging_config.
    MUST NOT import dairy_config or dairy_services.

Invariants enforced:
    - Purity: engines never read the clock, the environment or the row store.
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from dairy_engines import QualityMeasurement, compute_bill
    from dairy_engines import DateRange, filter_entries, summarize
"""

from dairy_engines.billing import (
    BillingSummary,
    CollectionEntry,
    DateRange,
    FarmerAggregate,
    FarmerRef,
    MilkTypeTotals,
    ShiftTotals,
    calculate_totals,
    farmer_statement,
    filter_entries,
    group_by_farmer,
    shift_totals,
    summarize,
)
from dairy_engines.rate_engine import (
    BillResult,
    QualityMeasurement,
    RateOutcome,
    compute_bill,
    total_solids,
    unpriced,
)

__all__ = [
    # Rate engine
    "BillResult",
    "QualityMeasurement",
    "RateOutcome",
    "compute_bill",
    "total_solids",
    "unpriced",
    # Billing aggregator
    "BillingSummary",
    "CollectionEntry",
    "DateRange",
    "FarmerAggregate",
    "FarmerRef",
    "MilkTypeTotals",
    "ShiftTotals",
    "calculate_totals",
    "farmer_statement",
    "filter_entries",
    "group_by_farmer",
    "shift_totals",
    "summarize",
]
