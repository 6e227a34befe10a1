"""
SQLAlchemy store implementations.

Responsibility:
    Persist compliance records, ledger entries, pools and routes through the ORM
    models in ``fueleu_kernel.models``.  Every public method runs in its
    own ``session_scope`` (commit on success, rollback on any exception),
    and only frozen DTOs cross the store boundary.

Invariants enforced:
    - A ledger append is one transaction: all entries commit or none do.
    - UNIQUE(ship_id, sequence) on ledger entries turns a lost race with a
      second writer process into OptimisticLockError.
    - UNIQUE(ship_id, year) on pool members rejects a second pool for a
      ship in the same year.
    - Setting a baseline route clears the previous one in the same
      transaction.

Failure modes:
    - OptimisticLockError on ledger sequence conflicts.
    - ShipAlreadyPooledError when a member ship is already pooled.
    - ImmutabilityViolationError if code attempts to modify stored entries
      or pools.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError as SAIntegrityError
from sqlalchemy.orm import Session, sessionmaker

from fueleu_kernel.db.engine import session_scope
from fueleu_kernel.domain.clock import Clock, SystemClock
from fueleu_kernel.domain.dtos import ComplianceRecord, LedgerEntry, Pool
from fueleu_kernel.domain.route import FuelType, RouteRecord, VesselType
from fueleu_kernel.exceptions import OptimisticLockError, ShipAlreadyPooledError
from fueleu_kernel.logging_config import get_logger
from fueleu_kernel.models.compliance_record import ComplianceRecordModel
from fueleu_kernel.models.ledger_entry import LedgerEntryModel
from fueleu_kernel.models.pool import PoolMemberModel, PoolModel
from fueleu_kernel.models.route import RouteModel
from fueleu_services.ports import ComplianceStore, LedgerStore, PoolStore, RouteStore

logger = get_logger("services.sql_store")


class SqlComplianceStore(ComplianceStore):
    def __init__(self, session_factory: sessionmaker[Session], clock: Clock | None = None):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def get(self, ship_id: str, year: int) -> ComplianceRecord | None:
        with session_scope(self._session_factory) as session:
            model = session.execute(
                select(ComplianceRecordModel).where(
                    ComplianceRecordModel.ship_id == ship_id,
                    ComplianceRecordModel.year == year,
                )
            ).scalar_one_or_none()
            return model.to_dto() if model is not None else None

    def upsert(self, record: ComplianceRecord) -> ComplianceRecord:
        now = self._clock.now()
        with session_scope(self._session_factory) as session:
            model = session.execute(
                select(ComplianceRecordModel)
                .where(
                    ComplianceRecordModel.ship_id == record.ship_id,
                    ComplianceRecordModel.year == record.year,
                )
                .with_for_update()
            ).scalar_one_or_none()
            if model is None:
                session.add(ComplianceRecordModel.from_dto(record, computed_at=now))
            else:
                model.apply_dto(record, computed_at=now)
        return record

    def list_for_ship(self, ship_id: str) -> list[ComplianceRecord]:
        with session_scope(self._session_factory) as session:
            models = session.execute(
                select(ComplianceRecordModel)
                .where(ComplianceRecordModel.ship_id == ship_id)
                .order_by(ComplianceRecordModel.year)
            ).scalars()
            return [m.to_dto() for m in models]


class SqlLedgerStore(LedgerStore):
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def append(self, entries: Sequence[LedgerEntry]) -> None:
        try:
            with session_scope(self._session_factory) as session:
                session.add_all([LedgerEntryModel.from_dto(e) for e in entries])
                session.flush()
        except SAIntegrityError as exc:
            first = entries[0]
            logger.warning(
                "ledger_sequence_conflict",
                extra={
                    "ship_id": first.ship_id,
                    "sequence": first.sequence,
                    "entry_count": len(entries),
                },
            )
            raise OptimisticLockError(
                "LedgerEntry", f"{first.ship_id}#{first.sequence}"
            ) from exc

    def entries_for(self, ship_id: str) -> list[LedgerEntry]:
        with session_scope(self._session_factory) as session:
            models = session.execute(
                select(LedgerEntryModel)
                .where(LedgerEntryModel.ship_id == ship_id)
                .order_by(LedgerEntryModel.sequence)
            ).scalars()
            return [m.to_dto() for m in models]


class SqlPoolStore(PoolStore):
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def save(self, pool: Pool) -> Pool:
        try:
            with session_scope(self._session_factory) as session:
                session.add(PoolModel.from_dto(pool))
                session.flush()
        except SAIntegrityError as exc:
            for ship_id in pool.ship_ids:
                existing = self.pools_for_ship(ship_id, pool.year)
                if existing:
                    raise ShipAlreadyPooledError(
                        ship_id, pool.year, str(existing[0].pool_id)
                    ) from exc
            raise OptimisticLockError("Pool", str(pool.pool_id)) from exc
        return pool

    def get(self, pool_id: UUID) -> Pool | None:
        with session_scope(self._session_factory) as session:
            model = session.execute(
                select(PoolModel).where(PoolModel.pool_id == pool_id)
            ).scalar_one_or_none()
            return model.to_dto() if model is not None else None

    def pools_for_year(self, year: int) -> list[Pool]:
        with session_scope(self._session_factory) as session:
            models = session.execute(
                select(PoolModel)
                .where(PoolModel.year == year)
                .order_by(PoolModel.created_at, PoolModel.pool_id)
            ).scalars()
            return [m.to_dto() for m in models]

    def pools_for_ship(self, ship_id: str, year: int | None = None) -> list[Pool]:
        stmt = (
            select(PoolModel)
            .join(PoolMemberModel, PoolMemberModel.pool_id == PoolModel.pool_id)
            .where(PoolMemberModel.ship_id == ship_id)
        )
        if year is not None:
            stmt = stmt.where(PoolModel.year == year)
        stmt = stmt.order_by(PoolModel.created_at, PoolModel.pool_id)

        with session_scope(self._session_factory) as session:
            models = session.execute(stmt).scalars().unique()
            return [m.to_dto() for m in models]


class SqlRouteStore(RouteStore):
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def save(self, route: RouteRecord) -> RouteRecord:
        with session_scope(self._session_factory) as session:
            model = session.execute(
                select(RouteModel).where(RouteModel.route_id == route.route_id).with_for_update()
            ).scalar_one_or_none()
            if model is None:
                model = RouteModel.from_dto(route)
                session.add(model)
            else:
                model.apply_dto(route)
            session.flush()
            return model.to_dto()

    def get(self, route_id: str) -> RouteRecord | None:
        with session_scope(self._session_factory) as session:
            model = session.execute(
                select(RouteModel).where(RouteModel.route_id == route_id)
            ).scalar_one_or_none()
            return model.to_dto() if model is not None else None

    def list_routes(
        self,
        vessel_type: VesselType | None = None,
        fuel_type: FuelType | None = None,
        year: int | None = None,
    ) -> list[RouteRecord]:
        stmt = select(RouteModel)
        if vessel_type is not None:
            stmt = stmt.where(RouteModel.vessel_type == vessel_type.value)
        if fuel_type is not None:
            stmt = stmt.where(RouteModel.fuel_type == fuel_type.value)
        if year is not None:
            stmt = stmt.where(RouteModel.year == year)
        stmt = stmt.order_by(RouteModel.route_id)

        with session_scope(self._session_factory) as session:
            return [m.to_dto() for m in session.execute(stmt).scalars()]

    def baseline(self) -> RouteRecord | None:
        with session_scope(self._session_factory) as session:
            model = session.execute(
                select(RouteModel).where(RouteModel.is_baseline.is_(True))
            ).scalar_one_or_none()
            return model.to_dto() if model is not None else None

    def set_baseline(self, route_id: str) -> RouteRecord | None:
        with session_scope(self._session_factory) as session:
            model = session.execute(
                select(RouteModel).where(RouteModel.route_id == route_id).with_for_update()
            ).scalar_one_or_none()
            if model is None:
                return None
            session.execute(
                update(RouteModel)
                .where(RouteModel.is_baseline.is_(True), RouteModel.route_id != route_id)
                .values(is_baseline=False)
            )
            model.is_baseline = True
            session.flush()
            return model.to_dto()
