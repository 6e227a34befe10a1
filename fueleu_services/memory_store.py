"""
In-memory store implementations.

Thread-safe dict-backed stores used by tests and single-process
deployments.  They follow the same contracts as the SQL stores, including
all-or-nothing ledger appends, the one-pool-per-ship-per-year rule and
a single baseline route.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import replace
from uuid import UUID

from fueleu_kernel.domain.dtos import ComplianceRecord, LedgerEntry, Pool
from fueleu_kernel.domain.route import FuelType, RouteRecord, VesselType
from fueleu_kernel.exceptions import OptimisticLockError, ShipAlreadyPooledError
from fueleu_kernel.logging_config import get_logger
from fueleu_services.ports import ComplianceStore, LedgerStore, PoolStore, RouteStore

logger = get_logger("services.memory_store")


class InMemoryComplianceStore(ComplianceStore):
    def __init__(self):
        self._records: dict[tuple[str, int], ComplianceRecord] = {}
        self._lock = threading.Lock()

    def get(self, ship_id: str, year: int) -> ComplianceRecord | None:
        with self._lock:
            return self._records.get((ship_id, year))

    def upsert(self, record: ComplianceRecord) -> ComplianceRecord:
        with self._lock:
            self._records[(record.ship_id, record.year)] = record
        return record

    def list_for_ship(self, ship_id: str) -> list[ComplianceRecord]:
        with self._lock:
            records = [r for (s, _), r in self._records.items() if s == ship_id]
        return sorted(records, key=lambda r: r.year)


class InMemoryLedgerStore(LedgerStore):
    """
    Ledger entries per ship.

    ``append`` stages every entry (``_stage``) against a copy of the
    affected ships' ledgers and commits the copies only when all entries
    staged successfully.
    """

    def __init__(self):
        self._entries: dict[str, list[LedgerEntry]] = {}
        self._lock = threading.Lock()

    def append(self, entries: Sequence[LedgerEntry]) -> None:
        with self._lock:
            staged: dict[str, list[LedgerEntry]] = {}
            for entry in entries:
                ledger = staged.get(entry.ship_id)
                if ledger is None:
                    ledger = list(self._entries.get(entry.ship_id, ()))
                    staged[entry.ship_id] = ledger
                self._stage(ledger, entry)
            self._entries.update(staged)

    def _stage(self, ledger: list[LedgerEntry], entry: LedgerEntry) -> None:
        if entry.sequence != len(ledger) + 1:
            logger.warning(
                "ledger_sequence_conflict",
                extra={
                    "ship_id": entry.ship_id,
                    "sequence": entry.sequence,
                    "ledger_length": len(ledger),
                },
            )
            raise OptimisticLockError("LedgerEntry", f"{entry.ship_id}#{entry.sequence}")
        ledger.append(entry)

    def entries_for(self, ship_id: str) -> list[LedgerEntry]:
        with self._lock:
            return list(self._entries.get(ship_id, ()))


class InMemoryPoolStore(PoolStore):
    def __init__(self):
        self._pools: dict[UUID, Pool] = {}
        self._lock = threading.Lock()

    def save(self, pool: Pool) -> Pool:
        with self._lock:
            for ship_id in pool.ship_ids:
                for existing in self._pools.values():
                    if existing.year == pool.year and existing.member(ship_id) is not None:
                        raise ShipAlreadyPooledError(ship_id, pool.year, str(existing.pool_id))
            self._pools[pool.pool_id] = pool
        return pool

    def get(self, pool_id: UUID) -> Pool | None:
        with self._lock:
            return self._pools.get(pool_id)

    def pools_for_year(self, year: int) -> list[Pool]:
        with self._lock:
            pools = [p for p in self._pools.values() if p.year == year]
        return sorted(pools, key=lambda p: p.created_at)

    def pools_for_ship(self, ship_id: str, year: int | None = None) -> list[Pool]:
        with self._lock:
            pools = [
                p
                for p in self._pools.values()
                if p.member(ship_id) is not None and (year is None or p.year == year)
            ]
        return sorted(pools, key=lambda p: p.created_at)


class InMemoryRouteStore(RouteStore):
    def __init__(self):
        self._routes: dict[str, RouteRecord] = {}
        self._lock = threading.Lock()

    def save(self, route: RouteRecord) -> RouteRecord:
        with self._lock:
            existing = self._routes.get(route.route_id)
            is_baseline = existing is not None and existing.is_baseline
            stored = replace(route, is_baseline=is_baseline)
            self._routes[route.route_id] = stored
        return stored

    def get(self, route_id: str) -> RouteRecord | None:
        with self._lock:
            return self._routes.get(route_id)

    def list_routes(
        self,
        vessel_type: VesselType | None = None,
        fuel_type: FuelType | None = None,
        year: int | None = None,
    ) -> list[RouteRecord]:
        with self._lock:
            routes = [
                r
                for r in self._routes.values()
                if (vessel_type is None or r.vessel_type == vessel_type)
                and (fuel_type is None or r.fuel_type == fuel_type)
                and (year is None or r.year == year)
            ]
        return sorted(routes, key=lambda r: r.route_id)

    def baseline(self) -> RouteRecord | None:
        with self._lock:
            for route in self._routes.values():
                if route.is_baseline:
                    return route
        return None

    def set_baseline(self, route_id: str) -> RouteRecord | None:
        with self._lock:
            if route_id not in self._routes:
                return None
            for key, route in self._routes.items():
                self._routes[key] = replace(route, is_baseline=key == route_id)
            return self._routes[route_id]
