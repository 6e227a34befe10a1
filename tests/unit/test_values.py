"""
Unit tests for compliance value helpers and DTO invariants.

Rounding is half away from zero, amounts never pass through float, and
ledger entry signs follow their kind.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from fueleu_kernel.domain.dtos import (
    AdjustedComplianceBalance,
    CreditDraw,
    EntryKind,
    LedgerEntry,
    PoolMember,
    RawShipYearMetrics,
)
from fueleu_kernel.domain.values import round_cb, to_decimal

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


class TestToDecimal:
    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_int_and_str(self):
        assert to_decimal(5) == Decimal("5")
        assert to_decimal("91.16") == Decimal("91.16")

    def test_decimal_passthrough(self):
        value = Decimal("1.005")
        assert to_decimal(value) is value

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            to_decimal(True)

    def test_unsupported_type_rejected(self):
        with pytest.raises(TypeError):
            to_decimal([1])


class TestRoundCb:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("0.005", "0.01"),
            ("-0.005", "-0.01"),
            ("1.004", "1.00"),
            ("-1.004", "-1.00"),
            ("-340956000.004", "-340956000.00"),
        ],
    )
    def test_half_away_from_zero(self, value, expected):
        assert round_cb(Decimal(value)) == Decimal(expected)

    def test_result_has_two_places(self):
        assert str(round_cb(Decimal("7"))) == "7.00"

    def test_custom_places(self):
        assert round_cb(Decimal("1.2345"), 3) == Decimal("1.235")


class TestDtoCoercion:
    def test_metrics_coerced_to_decimal(self):
        metrics = RawShipYearMetrics("S1", 2025, 91.0, "5000")
        assert metrics.actual_intensity == Decimal("91.0")
        assert isinstance(metrics.fuel_consumption, Decimal)

    def test_pool_member_delta(self):
        member = PoolMember("S1", "-300", "0")
        assert member.delta == Decimal("300")

    def test_adjusted_cb(self):
        adjusted = AdjustedComplianceBalance(
            ship_id="S1",
            year=2025,
            original_cb=Decimal("1000"),
            banked=Decimal("200"),
            applied=Decimal("0"),
            pooled=Decimal("-300"),
        )
        assert adjusted.adjusted_cb == Decimal("500")


class TestLedgerEntrySigns:
    def _deposit(self, amount="100"):
        return LedgerEntry(
            entry_id=uuid4(),
            ship_id="S1",
            sequence=1,
            year=2025,
            amount=Decimal(amount),
            kind=EntryKind.DEPOSIT,
            created_at=NOW,
        )

    def test_deposit_positive(self):
        assert self._deposit().is_own_deposit

    def test_deposit_must_be_positive(self):
        with pytest.raises(ValueError):
            self._deposit("-1")

    def test_withdrawal_must_be_negative(self):
        deposit = self._deposit()
        with pytest.raises(ValueError):
            LedgerEntry(
                entry_id=uuid4(),
                ship_id="S1",
                sequence=2,
                year=2026,
                amount=Decimal("50"),
                kind=EntryKind.WITHDRAWAL,
                created_at=NOW,
                draws=(CreditDraw(deposit.entry_id, 2025, Decimal("50")),),
            )

    def test_draws_must_match_amount(self):
        deposit = self._deposit()
        with pytest.raises(ValueError, match="Draws total"):
            LedgerEntry(
                entry_id=uuid4(),
                ship_id="S1",
                sequence=2,
                year=2026,
                amount=Decimal("-50"),
                kind=EntryKind.WITHDRAWAL,
                created_at=NOW,
                draws=(CreditDraw(deposit.entry_id, 2025, Decimal("40")),),
            )

    def test_only_transfer_names_counterparty(self):
        deposit = self._deposit()
        draws = (CreditDraw(deposit.entry_id, 2025, Decimal("10")),)
        with pytest.raises(ValueError, match="counterparty"):
            LedgerEntry(
                entry_id=uuid4(),
                ship_id="S1",
                sequence=2,
                year=2025,
                amount=Decimal("-10"),
                kind=EntryKind.TRANSFER,
                created_at=NOW,
                draws=draws,
            )

    def test_kind_accepts_value_string(self):
        entry = LedgerEntry(
            entry_id=uuid4(),
            ship_id="S1",
            sequence=1,
            year=2025,
            amount=Decimal("5"),
            kind="deposit",
            created_at=NOW,
        )
        assert entry.kind is EntryKind.DEPOSIT

    def test_draw_amount_must_be_positive(self):
        with pytest.raises(ValueError):
            CreditDraw(uuid4(), 2025, Decimal("0"))
