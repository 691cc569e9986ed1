"""Row-store models for farmers, rate configurations and collection entries."""

from dairy_kernel.models.entry import MilkEntry
from dairy_kernel.models.farmer import Farmer
from dairy_kernel.models.rate_config import RateConfigRecord

__all__ = [
    "Farmer",
    "MilkEntry",
    "RateConfigRecord",
]
