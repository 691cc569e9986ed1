"""Pure domain values shared by every layer."""

from dairy_kernel.domain.rate_tables import (
    CONFIG_TYPES,
    ChartRateConfig,
    ChartRow,
    FatRateConfig,
    FatRow,
    RateConfig,
    TsNewRateConfig,
    TsNewRow,
    TsRateConfig,
    TsRow,
    empty_config,
)
from dairy_kernel.domain.values import (
    HUNDRED,
    TWO_PLACES,
    ZERO,
    MilkType,
    RateMethod,
    Shift,
    parse_decimal,
    round_money,
    safe_weighted_average,
    to_decimal,
)

__all__ = [
    "ZERO",
    "TWO_PLACES",
    "HUNDRED",
    "MilkType",
    "RateMethod",
    "Shift",
    "parse_decimal",
    "round_money",
    "safe_weighted_average",
    "to_decimal",
    # Rate tables
    "ChartRow",
    "FatRow",
    "TsRow",
    "TsNewRow",
    "ChartRateConfig",
    "FatRateConfig",
    "TsRateConfig",
    "TsNewRateConfig",
    "RateConfig",
    "CONFIG_TYPES",
    "empty_config",
]
