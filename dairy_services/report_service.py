"""
Report workflow.

Fetches saved entries for a report window and hands them to the billing
aggregator.  The store-level query narrows by branch and day range; the
aggregator's ``filter_entries`` re-applies every criterion so a loose
query can never widen a report.  Saved rate and amount are read back
unchanged.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from dairy_engines.billing import (
    BillingSummary,
    CollectionEntry,
    DateRange,
    FarmerAggregate,
    farmer_statement,
    filter_entries,
    summarize,
)
from dairy_kernel.domain.values import Shift
from dairy_kernel.logging_config import LogContext, get_logger
from dairy_kernel.models.entry import MilkEntry
from dairy_services.base import BaseService
from dairy_services.entry_service import EntryInfo, to_entry_info
from dairy_services.farmer_service import FarmerService

logger = get_logger("services.report")


class ReportService(BaseService[MilkEntry]):
    """Builds billing reports from saved entries."""

    def _fetch(self, branch_id: str, date_range: DateRange) -> list[MilkEntry]:
        stmt = (
            select(MilkEntry)
            .where(
                MilkEntry.branch_id == branch_id,
                MilkEntry.entry_date >= date_range.start,
                MilkEntry.entry_date <= date_range.end,
            )
            .order_by(MilkEntry.entry_date, MilkEntry.created_at)
        )
        return list(self.session.execute(stmt).scalars().all())

    def _collection_entries(
        self,
        branch_id: str,
        date_range: DateRange,
    ) -> list[CollectionEntry]:
        return [to_entry_info(e).to_collection_entry() for e in self._fetch(branch_id, date_range)]

    def build_report(
        self,
        branch_id: str,
        date_range: DateRange,
        shift: Shift | str = "all",
        farmer_id: UUID | None = None,
    ) -> BillingSummary:
        """
        Billing summary of a branch over an inclusive day range.

        Args:
            branch_id: Branch to report on.
            date_range: Inclusive report window.
            shift: "all", or Morning/Evening in any case.
            farmer_id: Restrict to one farmer (the farmer's own view).

        Returns:
            BillingSummary with per-farmer groups, milk-type and shift totals.
        """
        with LogContext.bind(branch_id=branch_id):
            entries = filter_entries(
                self._collection_entries(branch_id, date_range),
                date_range,
                branch_id=branch_id,
                shift=shift,
                farmer_id=farmer_id,
            )
            farmers = FarmerService(self.session).farmer_refs(branch_id)
            logger.info(
                "report_requested",
                extra={
                    "start": date_range.start,
                    "end": date_range.end,
                    "shift": getattr(shift, "value", shift),
                    "entry_count": len(entries),
                },
            )
            return summarize(entries, farmers)

    def farmer_bill(
        self,
        branch_id: str,
        farmer_id: UUID,
        date_range: DateRange,
    ) -> FarmerAggregate | None:
        """
        One farmer's bill for the window, entries ordered by day and shift.

        Returns None when the farmer delivered nothing in the window.
        """
        entries = filter_entries(
            self._collection_entries(branch_id, date_range),
            date_range,
            branch_id=branch_id,
        )
        farmers = FarmerService(self.session).farmer_refs(branch_id)
        return farmer_statement(entries, farmers, farmer_id)

    def unpriced_entries(self, branch_id: str, date_range: DateRange) -> list[EntryInfo]:
        """Entries in the window that were saved without an applicable rate rule."""
        return [
            to_entry_info(e)
            for e in self._fetch(branch_id, date_range)
            if not e.rate_matched
        ]
