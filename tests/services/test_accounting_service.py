"""
Tests for ComplianceAccountingService.

End-to-end flows through the facade: metrics to CB, banking, pooling and
the adjusted CB that combines them.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from fueleu_kernel.domain.dtos import EntryKind, PoolMemberInput, RawShipYearMetrics
from fueleu_kernel.domain.route import FuelType, RouteRecord, VesselType
from fueleu_kernel.exceptions import (
    ComplianceRecordNotFoundError,
    ExceedsAdjustedBalanceError,
    InsufficientBankedAmountError,
    InvalidPoolSizeError,
    PoolNotFoundError,
    PoolSumNegativeError,
    ShipAlreadyPooledError,
)


def _members(**cbs):
    return [PoolMemberInput(ship_id, Decimal(cb)) for ship_id, cb in cbs.items()]


class TestComplianceBalance:
    def test_record_and_read(self, service):
        record = service.record_metrics(
            RawShipYearMetrics("IMO9000001", 2025, Decimal("91.0"), Decimal("5000"))
        )
        assert record.cb == Decimal("-340956000.00")
        assert service.get_compliance_balance("IMO9000001", 2025) == record

    def test_recompute_replaces(self, service):
        service.record_metrics(RawShipYearMetrics("S1", 2025, Decimal("91.0"), Decimal("10")))
        service.record_metrics(RawShipYearMetrics("S1", 2025, Decimal("88.0"), Decimal("10")))
        assert service.get_compliance_balance("S1", 2025).is_surplus

    def test_missing(self, service):
        with pytest.raises(ComplianceRecordNotFoundError):
            service.get_compliance_balance("S9", 2025)

    def test_record_logged(self, service, captured_logs):
        service.record_metrics(RawShipYearMetrics("S1", 2025, Decimal("88.0"), Decimal("10")))
        stored = [r for r in captured_logs() if r["message"] == "compliance_record_stored"]
        assert stored[0]["ship_id"] == "S1"
        assert stored[0]["schedule_version"] == "fueleu_maritime@2025.1"

    def test_compare_routes(self, service):
        def route(route_id, intensity):
            return RouteRecord(
                route_id, VesselType.TANKER, FuelType.LNG, 2025,
                Decimal(intensity), Decimal("100"), Decimal("1000"), Decimal("300"),
            )

        (comparison,) = service.compare_routes(route("R1", "91.0"), [route("R2", "88.0")])
        assert comparison.percent_diff == Decimal("-3.30")
        assert comparison.compliant


class TestAdjustedBalance:
    def test_banking_then_pooling(self, service, compliance_store, make_record):
        make_record(compliance_store, "S1", 2025, "1000")
        make_record(compliance_store, "S2", 2025, "-300")
        service.bank_surplus("S1", 2025, Decimal("100"))

        assert service.get_adjusted_compliance_balance("S1", 2025).adjusted_cb == Decimal("900")

        pool = service.create_pool_from_balances(2025, ["S1", "S2"])
        assert pool.member("S1").cb_before == Decimal("900")
        assert pool.member("S1").cb_after == Decimal("600")
        assert pool.member("S2").cb_after == Decimal("0")

        s1 = service.get_adjusted_compliance_balance("S1", 2025)
        assert (s1.original_cb, s1.banked, s1.applied, s1.pooled) == (
            Decimal("1000"),
            Decimal("100"),
            Decimal("0"),
            Decimal("-300"),
        )
        assert s1.adjusted_cb == Decimal("600")
        assert service.get_adjusted_compliance_balance("S2", 2025).adjusted_cb == Decimal("0")

    def test_applied_credit_raises_adjusted(
        self, service, compliance_store, make_record, deterministic_clock
    ):
        make_record(compliance_store, "S1", 2025, "1000")
        make_record(compliance_store, "S1", 2026, "-500")
        service.bank_surplus("S1", 2025, Decimal("200"))
        deterministic_clock.set_year(2026)
        service.apply_banked_surplus("S1", 2026, Decimal("150"))

        adjusted = service.get_adjusted_compliance_balance("S1", 2026)
        assert adjusted.applied == Decimal("150")
        assert adjusted.adjusted_cb == Decimal("-350")

    def test_pooled_surplus_cannot_be_banked_twice(self, service, compliance_store, make_record):
        make_record(compliance_store, "S1", 2025, "1000")
        make_record(compliance_store, "S2", 2025, "-950")
        service.create_pool(2025, _members(S1="1000", S2="-950"))

        available = service.get_adjusted_compliance_balance("S1", 2025).adjusted_cb
        assert available == Decimal("50")
        service.bank_surplus("S1", 2025, Decimal("50"))
        assert service.get_adjusted_compliance_balance("S1", 2025).adjusted_cb == Decimal("0")

    def test_banked_surplus_cannot_be_pooled(
        self, service, compliance_store, make_record, captured_logs
    ):
        make_record(compliance_store, "S1", 2025, "1000")
        make_record(compliance_store, "S2", 2025, "-950")
        service.bank_surplus("S1", 2025, Decimal("200"))

        with pytest.raises(ExceedsAdjustedBalanceError) as exc_info:
            service.create_pool(2025, _members(S1="1000", S2="-950"))
        assert exc_info.value.ship_id == "S1"
        assert exc_info.value.cb_before == Decimal("1000")
        assert exc_info.value.adjusted_cb == Decimal("800")
        assert service.get_pools_for_year(2025) == []

        rejected = [r for r in captured_logs() if r["message"] == "pool_creation_rejected"]
        assert rejected[0]["error_code"] == "EXCEEDS_ADJUSTED_BALANCE"

        make_record(compliance_store, "S3", 2025, "500")
        service.create_pool(2025, _members(S1="800", S2="-950", S3="500"))
        assert service.get_adjusted_compliance_balance("S1", 2025).adjusted_cb == Decimal("0")
        assert service.get_adjusted_compliance_balance("S2", 2025).adjusted_cb == Decimal("0")
        assert service.get_adjusted_compliance_balance("S3", 2025).adjusted_cb == Decimal("350")


class TestBankingFacade:
    def test_defaults_to_clock_year(self, service, compliance_store, make_record, deterministic_clock):
        make_record(compliance_store, "S1", 2025, "1000")
        service.bank_surplus("S1", 2025, Decimal("100"))

        assert service.get_available_balance("S1") == Decimal("100")
        deterministic_clock.set_year(2029)
        assert service.get_available_balance("S1") == Decimal("0")
        assert service.get_ledger_balance("S1").as_of_year == 2029

    def test_transfer_and_statistics(self, service, compliance_store, make_record):
        make_record(compliance_store, "S1", 2025, "1000")
        service.bank_surplus("S1", 2025, Decimal("200"))
        service.transfer_credits("S1", "S2", Decimal("50"))

        stats = service.get_banking_statistics("S1")
        assert stats.total_transferred_out == Decimal("50")
        assert stats.utilization_rate == Decimal("25.00")
        assert service.get_available_balance("S2") == Decimal("50")
        assert len(service.get_bank_entries("S2", 2025)) == 1

    def test_apply_uses_clock_year_for_expiry(
        self, service, compliance_store, make_record, deterministic_clock
    ):
        make_record(compliance_store, "S1", 2025, "1000")
        make_record(compliance_store, "S1", 2026, "-500")
        service.bank_surplus("S1", 2025, Decimal("100"))
        deterministic_clock.set_year(2032)

        with pytest.raises(InsufficientBankedAmountError) as exc_info:
            service.apply_banked_surplus("S1", 2026, Decimal("50"))
        assert exc_info.value.available == Decimal("0")
        assert [e.kind for e in service.get_bank_entries("S1")] == [
            EntryKind.DEPOSIT,
            EntryKind.EXPIRY,
        ]

    def test_apply_within_window_of_clock_year(
        self, service, compliance_store, make_record, deterministic_clock
    ):
        make_record(compliance_store, "S1", 2025, "1000")
        make_record(compliance_store, "S1", 2026, "-500")
        service.bank_surplus("S1", 2025, Decimal("100"))
        deterministic_clock.set_year(2028)

        entry = service.apply_banked_surplus("S1", 2026, Decimal("50"))
        assert entry.year == 2026
        assert [(d.source_year, d.amount) for d in entry.draws] == [(2025, Decimal("50"))]

    def test_expiring_credits(self, service, compliance_store, make_record):
        make_record(compliance_store, "S1", 2025, "1000")
        service.bank_surplus("S1", 2025, Decimal("100"))
        assert service.get_expiring_credits("S1", as_of_year=2025) == ()
        assert len(service.get_expiring_credits("S1", as_of_year=2028)) == 1


class TestPooling:
    def test_create_and_read(self, service, captured_logs):
        pool = service.create_pool(2025, _members(A="500", B="-300", C="-100"))

        assert service.get_pool(pool.pool_id) == pool
        assert service.get_pools_for_year(2025) == [pool]
        assert service.get_pools_for_ship("B") == [pool]
        assert service.get_pools_for_ship("B", 2026) == []

        created = [r for r in captured_logs() if r["message"] == "pool_created"]
        assert created[0]["member_count"] == 3

    def test_summary(self, service):
        pool = service.create_pool(2025, _members(A="500", B="-300", C="-100"))
        summary = service.get_pool_summary(pool.pool_id)
        assert summary.total_surplus == Decimal("500")
        assert summary.total_deficit == Decimal("-400")
        assert summary.net_balance == Decimal("100")
        assert summary.member_count == 3

    def test_negative_sum_persists_nothing(self, service):
        with pytest.raises(PoolSumNegativeError):
            service.create_pool(2025, _members(A="100", B="-200"))
        assert service.get_pools_for_year(2025) == []

    def test_invalid_size(self, service):
        with pytest.raises(InvalidPoolSizeError):
            service.create_pool(2025, _members(A="100"))

    def test_ship_pooled_once_per_year(self, service):
        first = service.create_pool(2025, _members(A="500", B="-300"))

        with pytest.raises(ShipAlreadyPooledError) as exc_info:
            service.create_pool(2025, _members(C="100", A="50"))
        assert exc_info.value.pool_id == str(first.pool_id)
        assert service.get_pools_for_ship("C") == []

        # Another year is fine
        service.create_pool(2026, _members(A="10", C="-10"))

    def test_unknown_pool(self, service):
        with pytest.raises(PoolNotFoundError):
            service.get_pool(uuid4())

    def test_from_balances_requires_records(self, service, compliance_store, make_record):
        make_record(compliance_store, "S1", 2025, "100")
        with pytest.raises(ComplianceRecordNotFoundError):
            service.create_pool_from_balances(2025, ["S1", "S2"])
