"""
Store ports for the compliance accounting services.

Services depend on these interfaces and receive implementations by
injection; they never construct a store themselves.  Two implementations
ship with the package: ``memory_store`` (tests, single process) and
``sql_store`` (SQLAlchemy, PostgreSQL in production).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from fueleu_kernel.domain.dtos import ComplianceRecord, LedgerEntry, Pool
from fueleu_kernel.domain.route import FuelType, RouteRecord, VesselType
from fueleu_kernel.domain.values import ZERO


class ComplianceStore(ABC):
    """Compliance records keyed by (ship_id, year)."""

    @abstractmethod
    def get(self, ship_id: str, year: int) -> ComplianceRecord | None:
        """Return the record for a ship-year, or None."""

    @abstractmethod
    def upsert(self, record: ComplianceRecord) -> ComplianceRecord:
        """Insert or replace the record for its ship-year."""

    @abstractmethod
    def list_for_ship(self, ship_id: str) -> list[ComplianceRecord]:
        """All records of a ship, ordered by year."""


class LedgerStore(ABC):
    """Append-only banking ledger entries."""

    @abstractmethod
    def append(self, entries: Sequence[LedgerEntry]) -> None:
        """
        Persist all entries or none of them.

        Raises:
            OptimisticLockError: an entry's (ship_id, sequence) is taken.
        """

    @abstractmethod
    def entries_for(self, ship_id: str) -> list[LedgerEntry]:
        """All entries of a ship in sequence order."""


class PoolStore(ABC):
    """Immutable pools."""

    @abstractmethod
    def save(self, pool: Pool) -> Pool:
        """
        Persist a new pool.

        Raises:
            ShipAlreadyPooledError / OptimisticLockError: a member ship is
                already in a pool for the same year.
        """

    @abstractmethod
    def get(self, pool_id: UUID) -> Pool | None:
        """Return a pool by id, or None."""

    @abstractmethod
    def pools_for_year(self, year: int) -> list[Pool]:
        """Pools of a compliance year, oldest first."""

    @abstractmethod
    def pools_for_ship(self, ship_id: str, year: int | None = None) -> list[Pool]:
        """Pools a ship belongs to, optionally for one year, oldest first."""

    def delta_for(self, ship_id: str, year: int) -> Decimal:
        """Net CB a ship gained (+) or gave (-) through pooling in ``year``."""
        total = ZERO
        for pool in self.pools_for_ship(ship_id, year):
            member = pool.member(ship_id)
            if member is not None:
                total += member.delta
        return total


class RouteStore(ABC):
    """Registered routes and the single baseline route."""

    @abstractmethod
    def save(self, route: RouteRecord) -> RouteRecord:
        """Register a route, replacing the reported values of a known route_id."""

    @abstractmethod
    def get(self, route_id: str) -> RouteRecord | None:
        """Return a route by id, or None."""

    @abstractmethod
    def list_routes(
        self,
        vessel_type: VesselType | None = None,
        fuel_type: FuelType | None = None,
        year: int | None = None,
    ) -> list[RouteRecord]:
        """Routes matching every given filter, ordered by route_id."""

    @abstractmethod
    def baseline(self) -> RouteRecord | None:
        """The current baseline route, or None."""

    @abstractmethod
    def set_baseline(self, route_id: str) -> RouteRecord | None:
        """
        Make ``route_id`` the only baseline route.

        Returns the updated route, or None (and changes nothing) when the
        route is not registered.
        """
