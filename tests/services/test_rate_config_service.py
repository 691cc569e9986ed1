"""
Tests for RateConfigService and the active rate resolvers.

Covers:
- Draft saves keep the active flag
- Activation leaves exactly one active method per branch and milk type
- Versioning follows the checksum
- SqlActiveRateResolver / StaticActiveRateResolver
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from dairy_kernel.domain.values import MilkType, RateMethod
from dairy_kernel.exceptions import InvalidRateTableError, RateConfigError, UnknownRateMethodError
from dairy_kernel.models.rate_config import RateConfigRecord
from dairy_services.rate_config_service import RateConfigService
from dairy_services.rate_resolver import SqlActiveRateResolver, StaticActiveRateResolver

TS_ROWS = [{"min_fat": 3.5, "max_fat": 4.5, "min_snf": 8.0, "max_snf": 9.0, "fat_rate": 10}]
FAT_ROWS = [{"code": "F1", "fat": 4.0, "rate": 30}]
TS_NEW_ROWS = [{"code": "T1", "ts_from": 10, "ts_to": 13, "rate": 7, "incentive": 0.5}]


def _active(session, branch_id="B1", milk_type=MilkType.COW):
    stmt = select(RateConfigRecord).where(
        RateConfigRecord.branch_id == branch_id,
        RateConfigRecord.milk_type == milk_type.value,
        RateConfigRecord.is_active.is_(True),
    )
    return session.execute(stmt).scalars().all()


class TestSaveDraft:
    def test_new_table_starts_inactive(self, session):
        stored = RateConfigService(session).save_draft("B1", "Cow", "TS", TS_ROWS)
        assert stored.is_active is False
        assert stored.version == 1
        assert stored.method is RateMethod.TS
        assert len(stored.checksum) == 64
        assert stored.config.rows[0].fat_rate == Decimal("10")

    def test_draft_keeps_active_flag(self, session):
        service = RateConfigService(session)
        service.save_and_activate("B1", "Cow", "TS", TS_ROWS)
        wider = TS_ROWS + [
            {"min_fat": 4.6, "max_fat": 5.5, "min_snf": 8, "max_snf": 9, "fat_rate": 11}
        ]
        stored = service.save_draft("B1", "Cow", "TS", wider)
        assert stored.is_active is True

    def test_draft_of_other_method_does_not_activate(self, session):
        service = RateConfigService(session)
        service.save_and_activate("B1", "Cow", "TS", TS_ROWS)
        service.save_draft("B1", "Cow", "FAT", FAT_ROWS)
        (active,) = _active(session)
        assert active.method == "TS"

    def test_version_bumps_only_on_change(self, session):
        service = RateConfigService(session)
        first = service.save_draft("B1", "Cow", "FAT", FAT_ROWS)
        same = service.save_draft("B1", "Cow", "FAT", FAT_ROWS)
        changed = service.save_draft("B1", "Cow", "FAT", [{"code": "F1", "fat": 4.0, "rate": 31}])
        assert same.version == first.version == 1
        assert same.checksum == first.checksum
        assert changed.version == 2
        assert changed.checksum != first.checksum
        assert same.id == changed.id

    def test_typed_config_accepted(self, session, ts_new_config):
        stored = RateConfigService(session).save_draft("B1", "Cow", "TS_NEW", ts_new_config)
        assert stored.config == ts_new_config

    def test_typed_config_for_other_method_rejected(self, session, ts_new_config):
        with pytest.raises(RateConfigError):
            RateConfigService(session).save_draft("B1", "Cow", "FAT", ts_new_config)

    def test_invalid_row_is_not_saved(self, session):
        service = RateConfigService(session)
        with pytest.raises(InvalidRateTableError):
            service.save_draft("B1", "Cow", "FAT", [{"fat": "x", "rate": 1}])
        assert service.list_configs("B1") == []

    def test_unknown_method(self, session):
        with pytest.raises(UnknownRateMethodError):
            RateConfigService(session).save_draft("B1", "Cow", "SLAB", [])


class TestSaveAndActivate:
    def test_exactly_one_active(self, session):
        service = RateConfigService(session)
        service.save_and_activate("B1", "Cow", "TS", TS_ROWS)
        service.save_and_activate("B1", "Cow", "FAT", FAT_ROWS)
        service.save_and_activate("B1", "Cow", "TS_NEW", TS_NEW_ROWS)

        (active,) = _active(session)
        assert active.method == "TS_NEW"
        configs = service.list_configs("B1", "Cow")
        assert sorted(c.method.value for c in configs) == ["FAT", "TS", "TS_NEW"]
        assert [c.is_active for c in configs if c.method is not RateMethod.TS_NEW] == [False, False]

    def test_reactivating_previous_method(self, session):
        service = RateConfigService(session)
        service.save_and_activate("B1", "Cow", "TS", TS_ROWS)
        service.save_and_activate("B1", "Cow", "FAT", FAT_ROWS)
        service.save_and_activate("B1", "Cow", "TS", TS_ROWS)
        (active,) = _active(session)
        assert active.method == "TS"

    def test_other_milk_type_and_branch_untouched(self, session):
        service = RateConfigService(session)
        service.save_and_activate("B1", "Buffalo", "FAT", FAT_ROWS)
        service.save_and_activate("B2", "Cow", "FAT", FAT_ROWS)
        service.save_and_activate("B1", "Cow", "TS", TS_ROWS)

        assert len(_active(session, "B1", MilkType.BUFFALO)) == 1
        assert len(_active(session, "B2", MilkType.COW)) == 1
        assert len(_active(session, "B1", MilkType.COW)) == 1

    def test_activation_is_logged(self, session, captured_logs):
        RateConfigService(session).save_and_activate("B1", "Cow", "TS", TS_ROWS)
        (record,) = [r for r in captured_logs() if r["message"] == "rate_config_activated"]
        assert record["branch_id"] == "B1"
        assert record["method"] == "TS"

    def test_get_config(self, session):
        service = RateConfigService(session)
        service.save_and_activate("B1", "Cow", "TS", TS_ROWS)
        assert service.get_config("B1", "Cow", "TS").is_active is True
        assert service.get_config("B1", "Cow", "FAT") is None


class TestSqlActiveRateResolver:
    def test_resolves_active_table(self, session):
        RateConfigService(session).save_and_activate("B1", "Cow", "TS", TS_ROWS)
        active = SqlActiveRateResolver(session).resolve("B1", "cow")
        assert active.method is RateMethod.TS
        assert active.milk_type is MilkType.COW
        assert active.config.rows[0].min_snf == Decimal("8.0")

    def test_drafts_are_not_resolved(self, session):
        RateConfigService(session).save_draft("B1", "Cow", "TS", TS_ROWS)
        assert SqlActiveRateResolver(session).resolve("B1", MilkType.COW) is None

    def test_nothing_saved(self, session):
        assert SqlActiveRateResolver(session).resolve("B9", MilkType.BUFFALO) is None


class TestStaticActiveRateResolver:
    def test_mapping(self, ts_cow_config, fat_config):
        resolver = StaticActiveRateResolver({("B1", MilkType.COW): ts_cow_config})
        resolver.activate("B1", "Buffalo", fat_config)

        assert resolver.resolve("B1", "Cow").config is ts_cow_config
        assert resolver.resolve("B1", "buffalo").method is RateMethod.FAT
        assert resolver.resolve("B2", "Cow") is None

    def test_activate_replaces(self, ts_cow_config, fat_config):
        resolver = StaticActiveRateResolver()
        resolver.activate("B1", "Cow", ts_cow_config)
        resolver.activate("B1", "Cow", fat_config)
        assert resolver.resolve("B1", "Cow").method is RateMethod.FAT
