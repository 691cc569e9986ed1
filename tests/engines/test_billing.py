"""
Tests for the milk billing aggregator.

Covers:
- filter_entries: window bounds, branch, shift, farmer, unreadable dates
- group_by_farmer: weighted averages, milk-type buckets, unknown farmers
- Shift totals and the morning/evening partition (Hypothesis)
- Saved rate/amount read verbatim
- Farmer statement ordering
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from dairy_engines.billing import (
    UNKNOWN_FARMER_NAME,
    CollectionEntry,
    DateRange,
    ShiftTotals,
    calculate_totals,
    farmer_statement,
    filter_entries,
    group_by_farmer,
    shift_totals,
    summarize,
)
from dairy_kernel.domain.values import MilkType, Shift

JUNE = DateRange(date(2024, 6, 1), date(2024, 6, 10))


# ===========================================================================
# DateRange
# ===========================================================================


class TestDateRange:
    def test_single_day(self):
        window = DateRange(date(2024, 6, 5), date(2024, 6, 5))
        assert window.contains(date(2024, 6, 5))

    def test_end_before_start_rejected(self):
        with pytest.raises(ValueError):
            DateRange(date(2024, 6, 10), date(2024, 6, 1))


# ===========================================================================
# filter_entries
# ===========================================================================


class TestFilterEntries:
    """Every criterion is re-checked on the in-memory entries."""

    def test_window_is_inclusive_on_both_ends(self, entry_factory):
        first = entry_factory(day=date(2024, 6, 1))
        last = entry_factory(day=date(2024, 6, 10))
        before = entry_factory(day=date(2024, 5, 31))
        after = entry_factory(day=date(2024, 6, 11))
        assert filter_entries([before, first, last, after], JUNE) == [first, last]

    def test_datetime_late_on_last_day_is_kept(self, entry_factory):
        late = entry_factory(day=datetime(2024, 6, 10, 23, 59, 59))
        assert filter_entries([late], JUNE) == [late]

    def test_iso_string_dates(self, entry_factory):
        inside = entry_factory(day="2024-06-03")
        outside = entry_factory(day="2024-07-03T06:30:00")
        assert filter_entries([inside, outside], JUNE) == [inside]

    def test_utc_suffix_dates(self, entry_factory):
        inside = entry_factory(day="2024-06-01T05:30:00.000Z")
        outside = entry_factory(day="2024-06-11T00:00:00Z")
        assert filter_entries([inside, outside], JUNE) == [inside]

    def test_offset_dates_keep_their_own_day(self, entry_factory):
        late = entry_factory(day="2024-06-10T23:30:00+05:30")
        assert filter_entries([late], JUNE) == [late]

    def test_unreadable_date_dropped(self, entry_factory):
        assert filter_entries([entry_factory(day="yesterday")], JUNE) == []

    def test_branch(self, entry_factory):
        mine = entry_factory(branch_id="B1")
        other = entry_factory(branch_id="B2")
        assert filter_entries([mine, other], JUNE, branch_id="B1") == [mine]
        assert filter_entries([mine, other], JUNE) == [mine, other]

    @pytest.mark.parametrize("shift", ["morning", "MORNING", "Morning", Shift.MORNING])
    def test_shift_is_case_insensitive(self, entry_factory, shift):
        am = entry_factory(shift="Morning")
        pm = entry_factory(shift="evening")
        assert filter_entries([am, pm], JUNE, shift=shift) == [am]

    def test_all_shifts(self, entry_factory):
        entries = [entry_factory(shift="Morning"), entry_factory(shift="Evening")]
        assert filter_entries(entries, JUNE, shift="all") == entries
        assert filter_entries(entries, JUNE, shift="ALL") == entries

    def test_farmer(self, entry_factory):
        farmer_id = uuid4()
        mine = entry_factory(farmer_id=farmer_id)
        other = entry_factory()
        assert filter_entries([mine, other], JUNE, farmer_id=farmer_id) == [mine]

    def test_missing_inputs_return_empty(self, entry_factory):
        assert filter_entries(None, JUNE) == []
        assert filter_entries([entry_factory()], None) == []

    def test_accepts_generator(self, entry_factory):
        entries = [entry_factory(), entry_factory()]
        assert filter_entries((e for e in entries), JUNE) == entries


# ===========================================================================
# group_by_farmer
# ===========================================================================


class TestGroupByFarmer:
    """Per-farmer, per-milk-type rollups."""

    def test_weighted_averages_per_type(self, entry_factory, farmer_ref_factory):
        farmer = farmer_ref_factory()
        entries = [
            entry_factory(farmer_id=farmer.farmer_id, quantity="10", fat="4.0", snf="8.0"),
            entry_factory(farmer_id=farmer.farmer_id, quantity="30", fat="5.0", snf="9.0"),
            entry_factory(
                farmer_id=farmer.farmer_id, milk_type="Buffalo", quantity="5", fat="7.0", snf="9.5"
            ),
        ]
        (group,) = group_by_farmer(entries, [farmer])

        # (4*10 + 5*30) / 40 = 4.75 ; (8*10 + 9*30) / 40 = 8.75
        assert group.cow.avg_fat == Decimal("4.75")
        assert group.cow.avg_snf == Decimal("8.75")
        assert group.cow.quantity == Decimal("40")
        assert group.cow.count == 2
        assert group.buffalo.avg_fat == Decimal("7.00")
        assert group.buffalo.count == 1
        # (190 + 35) / 45 = 5.00
        assert group.avg_fat == Decimal("5.00")
        assert group.total_quantity == Decimal("45")

    def test_type_without_entries_reports_zero(self, entry_factory, farmer_ref_factory):
        farmer = farmer_ref_factory()
        (group,) = group_by_farmer([entry_factory(farmer_id=farmer.farmer_id)], [farmer])
        assert group.buffalo.avg_fat == Decimal("0.00")
        assert group.buffalo.avg_snf == Decimal("0.00")
        assert group.buffalo.quantity == Decimal("0")

    def test_zero_litre_entries_do_not_divide_by_zero(self, entry_factory):
        (group,) = group_by_farmer([entry_factory(quantity="0", amount="0")])
        assert group.cow.avg_fat == Decimal("0.00")
        assert group.avg_snf == Decimal("0.00")

    def test_milk_type_buckets_case_insensitively(self, entry_factory):
        farmer_id = uuid4()
        entries = [
            entry_factory(farmer_id=farmer_id, milk_type="BUFFALO", quantity="2"),
            entry_factory(farmer_id=farmer_id, milk_type="buffalo milk", quantity="3"),
            entry_factory(farmer_id=farmer_id, milk_type=None, quantity="4"),
            entry_factory(farmer_id=farmer_id, milk_type="cow", quantity="5"),
        ]
        (group,) = group_by_farmer(entries)
        assert group.buffalo.quantity == Decimal("5")
        assert group.cow.quantity == Decimal("9")

    def test_unknown_farmer_keeps_its_entries(self, entry_factory, captured_logs):
        stray = uuid4()
        (group,) = group_by_farmer([entry_factory(farmer_id=stray, quantity="7")], [])
        assert group.name == UNKNOWN_FARMER_NAME
        assert group.manual_id == str(stray)
        assert group.is_known is False
        assert group.total_quantity == Decimal("7")
        assert any(r["message"] == "entries_for_unknown_farmers" for r in captured_logs())

    def test_groups_in_first_seen_order(self, entry_factory):
        a, b = uuid4(), uuid4()
        entries = [entry_factory(farmer_id=b), entry_factory(farmer_id=a), entry_factory(farmer_id=b)]
        groups = group_by_farmer(entries)
        assert [g.farmer_id for g in groups] == [b, a]
        assert len(groups[0].entries) == 2

    def test_saved_rate_and_amount_read_verbatim(self, entry_factory):
        # amount deliberately disagrees with rate * quantity
        entry = entry_factory(quantity="10", rate="35.50", amount="354.99")
        (group,) = group_by_farmer([entry])
        assert group.total_amount == Decimal("354.99")
        assert group.entries[0].rate == Decimal("35.50")
        assert group.entries[0] is entry


# ===========================================================================
# Totals and summary
# ===========================================================================


class TestTotals:
    def test_calculate_totals(self, entry_factory):
        entries = [
            entry_factory(quantity="10", amount="355.00"),
            entry_factory(quantity="2.5", amount="80.25"),
        ]
        assert calculate_totals(entries) == (Decimal("12.5"), Decimal("435.25"))

    def test_shift_totals(self, entry_factory):
        entries = [
            entry_factory(shift="Morning", quantity="10", amount="100"),
            entry_factory(shift="morning", quantity="5", amount="50"),
            entry_factory(shift="Evening", quantity="8", amount="90"),
            entry_factory(shift="Night", quantity="99", amount="999"),
        ]
        totals = shift_totals(entries)
        assert totals[Shift.MORNING].quantity == Decimal("15")
        assert totals[Shift.MORNING].count == 2
        assert totals[Shift.EVENING].amount == Decimal("90")

    @pytest.mark.parametrize("missing", [None, "", "  "])
    def test_missing_shift_counts_as_morning(self, entry_factory, missing):
        entries = [
            entry_factory(shift=missing, quantity="4", amount="40"),
            entry_factory(shift="Evening", quantity="6", amount="60"),
        ]
        totals = shift_totals(entries)
        assert totals[Shift.MORNING] == ShiftTotals(
            quantity=Decimal("4"), amount=Decimal("40"), count=1
        )
        summary = summarize(entries)
        assert summary.morning.quantity + summary.evening.quantity == summary.total_quantity
        assert summary.morning.amount + summary.evening.amount == summary.total_amount

    def test_summary(self, entry_factory, farmer_ref_factory):
        ramesh = farmer_ref_factory(name="Ramesh", manual_id="101")
        sita = farmer_ref_factory(name="Sita", manual_id="102")
        entries = [
            entry_factory(farmer_id=ramesh.farmer_id, quantity="10", fat="4.0", snf="8.0", amount="300"),
            entry_factory(
                farmer_id=sita.farmer_id,
                milk_type="Buffalo",
                shift="Evening",
                quantity="10",
                fat="7.0",
                snf="9.0",
                amount="500",
            ),
        ]
        summary = summarize(entries, [ramesh, sita])

        assert summary.farmer_count == 2
        assert summary.total_quantity == Decimal("20")
        assert summary.total_amount == Decimal("800")
        assert summary.cow_amount == Decimal("300")
        assert summary.buffalo_quantity == Decimal("10")
        assert summary.morning.amount == Decimal("300")
        assert summary.evening.quantity == Decimal("10")
        assert summary.avg_fat == Decimal("5.50")
        assert summary.avg_snf == Decimal("8.50")
        assert [f.name for f in summary.farmers_with(MilkType.BUFFALO)] == ["Sita"]

    def test_empty_summary(self):
        summary = summarize([], [])
        assert summary.farmer_count == 0
        assert summary.total_amount == Decimal("0")
        assert summary.avg_fat == Decimal("0.00")
        assert summary.farmers == ()


# ===========================================================================
# Farmer statement
# ===========================================================================


class TestFarmerStatement:
    def test_ordered_by_day_then_morning_first(self, entry_factory, farmer_ref_factory):
        farmer = farmer_ref_factory()
        fid = farmer.farmer_id
        entries = [
            entry_factory(farmer_id=fid, day=date(2024, 6, 2), shift="Morning"),
            entry_factory(farmer_id=fid, day=date(2024, 6, 1), shift="Evening"),
            entry_factory(farmer_id=fid, day=date(2024, 6, 1), shift="morning"),
            entry_factory(day=date(2024, 6, 1)),
        ]
        statement = farmer_statement(entries, [farmer], fid)
        assert [(e.entry_day, Shift.parse(e.shift)) for e in statement.entries] == [
            (date(2024, 6, 1), Shift.MORNING),
            (date(2024, 6, 1), Shift.EVENING),
            (date(2024, 6, 2), Shift.MORNING),
        ]
        assert statement.name == farmer.name

    def test_no_entries(self, entry_factory):
        assert farmer_statement([entry_factory()], [], uuid4()) is None


# ===========================================================================
# Shift partition property
# ===========================================================================


_entries = st.lists(
    st.builds(
        CollectionEntry,
        branch_id=st.just("B1"),
        farmer_id=st.integers(min_value=1, max_value=5),
        date=st.dates(min_value=date(2024, 6, 1), max_value=date(2024, 6, 10)),
        shift=st.sampled_from(["Morning", "Evening", "morning", "EVENING", "mOrNiNg"]),
        milk_type=st.sampled_from(["Cow", "Buffalo"]),
        quantity=st.decimals(min_value=Decimal("0"), max_value=Decimal("100"), places=1),
        fat=st.decimals(min_value=Decimal("2"), max_value=Decimal("9"), places=1),
        snf=st.decimals(min_value=Decimal("7"), max_value=Decimal("10"), places=1),
        rate=st.decimals(min_value=Decimal("0"), max_value=Decimal("80"), places=2),
        amount=st.decimals(min_value=Decimal("0"), max_value=Decimal("8000"), places=2),
    ),
    max_size=40,
)


class TestShiftPartition:
    """Morning and evening filters split the same entries exactly."""

    @given(entries=_entries)
    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_partition(self, entries):
        morning = filter_entries(entries, JUNE, shift="morning")
        evening = filter_entries(entries, JUNE, shift="evening")
        assert len(morning) + len(evening) == len(entries)
        assert {id(e) for e in morning}.isdisjoint({id(e) for e in evening})

    @given(entries=_entries)
    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_shift_totals_add_up(self, entries):
        totals = shift_totals(entries)
        quantity, amount = calculate_totals(entries)
        assert totals[Shift.MORNING].quantity + totals[Shift.EVENING].quantity == quantity
        assert totals[Shift.MORNING].amount + totals[Shift.EVENING].amount == amount
