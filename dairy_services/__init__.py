"""
dairy_services -- the imperative shell around the pure engines.

Rate table management, active-rate resolution, the entry-save workflow
and report building.  Services flush and never commit; the caller owns
the transaction (``dairy_kernel.db.session_scope``).
"""

from dairy_services.bootstrap import init_from_settings, seed_rate_book
from dairy_services.entry_service import EntryInfo, EntryService, SavedEntry
from dairy_services.farmer_service import FarmerInfo, FarmerService
from dairy_services.rate_config_service import RateConfigService, StoredRateConfig
from dairy_services.rate_resolver import (
    ActiveRate,
    ActiveRateResolver,
    SqlActiveRateResolver,
    StaticActiveRateResolver,
)
from dairy_services.report_service import ReportService

__all__ = [
    "ActiveRate",
    "ActiveRateResolver",
    "EntryInfo",
    "EntryService",
    "FarmerInfo",
    "FarmerService",
    "RateConfigService",
    "ReportService",
    "SavedEntry",
    "SqlActiveRateResolver",
    "StaticActiveRateResolver",
    "StoredRateConfig",
    "init_from_settings",
    "seed_rate_book",
]
