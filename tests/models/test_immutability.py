"""
Append-only enforcement for ledger entries and pools.

The ORM listeners registered by create_tables() reject UPDATE and DELETE
of LedgerEntryModel, PoolModel and PoolMemberModel rows.  Compliance
records stay mutable: recomputing a ship-year replaces its CB.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from fueleu_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from fueleu_kernel.domain.dtos import EntryKind, LedgerEntry, Pool, PoolMember
from fueleu_kernel.exceptions import ImmutabilityViolationError
from fueleu_kernel.models.compliance_record import ComplianceRecordModel
from fueleu_kernel.models.ledger_entry import LedgerEntryModel
from fueleu_kernel.models.pool import PoolMemberModel, PoolModel

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


@pytest.fixture
def stored_entry(sql_ledger_store):
    entry = LedgerEntry(
        entry_id=uuid4(),
        ship_id="S1",
        sequence=1,
        year=2025,
        amount=Decimal("100"),
        kind=EntryKind.DEPOSIT,
        created_at=NOW,
    )
    sql_ledger_store.append([entry])
    return entry


@pytest.fixture
def stored_pool(sql_pool_store):
    pool = Pool(
        pool_id=uuid4(),
        year=2025,
        created_at=NOW,
        members=(
            PoolMember("A", Decimal("500"), Decimal("200")),
            PoolMember("B", Decimal("-300"), Decimal("0")),
        ),
    )
    return sql_pool_store.save(pool)


class TestLedgerEntryImmutability:
    def test_update_blocked(self, sql_session_factory, stored_entry):
        with sql_session_factory() as session:
            model = session.execute(
                select(LedgerEntryModel).where(LedgerEntryModel.entry_id == stored_entry.entry_id)
            ).scalar_one()
            model.amount = Decimal("1000000")
            with pytest.raises(ImmutabilityViolationError) as exc_info:
                session.flush()
            assert exc_info.value.entity_type == "LedgerEntryModel"
            session.rollback()

    def test_delete_blocked(self, sql_session_factory, stored_entry):
        with sql_session_factory() as session:
            model = session.execute(select(LedgerEntryModel)).scalar_one()
            session.delete(model)
            with pytest.raises(ImmutabilityViolationError):
                session.flush()
            session.rollback()

    def test_violation_logged(self, sql_session_factory, stored_entry, captured_logs):
        with sql_session_factory() as session:
            model = session.execute(select(LedgerEntryModel)).scalar_one()
            model.year = 2030
            with pytest.raises(ImmutabilityViolationError):
                session.flush()
            session.rollback()

        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["operation"] == "UPDATE"
        assert blocked[0]["entity_id"] == str(stored_entry.entry_id)

    def test_unregister_allows_update(self, sql_session_factory, stored_entry):
        unregister_immutability_listeners()
        try:
            with sql_session_factory() as session:
                model = session.execute(select(LedgerEntryModel)).scalar_one()
                model.year = 2026
                session.commit()
        finally:
            register_immutability_listeners()


class TestPoolImmutability:
    def test_pool_update_blocked(self, sql_session_factory, stored_pool):
        with sql_session_factory() as session:
            model = session.execute(
                select(PoolModel).where(PoolModel.pool_id == stored_pool.pool_id)
            ).scalar_one()
            model.year = 2026
            with pytest.raises(ImmutabilityViolationError):
                session.flush()
            session.rollback()

    def test_member_update_blocked(self, sql_session_factory, stored_pool):
        with sql_session_factory() as session:
            member = session.execute(
                select(PoolMemberModel).where(PoolMemberModel.ship_id == "A")
            ).scalar_one()
            member.cb_after = Decimal("500")
            with pytest.raises(ImmutabilityViolationError):
                session.flush()
            session.rollback()

    def test_member_delete_blocked(self, sql_session_factory, stored_pool):
        with sql_session_factory() as session:
            member = session.execute(
                select(PoolMemberModel).where(PoolMemberModel.ship_id == "B")
            ).scalar_one()
            session.delete(member)
            with pytest.raises(ImmutabilityViolationError):
                session.flush()
            session.rollback()


class TestComplianceRecordMutable:
    def test_recompute_updates_in_place(
        self, sql_session_factory, sql_compliance_store, make_record
    ):
        make_record(sql_compliance_store, "S1", 2025, "100")
        make_record(sql_compliance_store, "S1", 2025, "-100")

        with sql_session_factory() as session:
            models = session.execute(select(ComplianceRecordModel)).scalars().all()
            assert len(models) == 1
            assert models[0].cb == Decimal("-100")
