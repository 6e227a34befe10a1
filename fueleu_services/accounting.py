"""
ComplianceAccountingService -- facade over calculation, banking and pooling.

Responsibility:
    The single entry point callers (HTTP handlers, batch jobs) use to record
    ship-year metrics, bank and apply surplus, transfer credits, create pools,
    read adjusted positions and compare registered routes with a baseline.
    Composes the ComplianceCalculator, the BankingLedger and the
    PoolingAllocator over injected stores.

Architecture position:
    Services -- outermost layer of the package.  Holds no state of its own
    beyond the ledger's book cache.
    Route registry operations need the optional ``route_store``.

Invariants enforced:
    - adjusted_cb = original_cb - banked + applied + pooled; each term is
      read from its own source and never double-counted.
    - A ship joins at most one pool per year; pool creation runs under the
      locks of every member ship.
    - ``as_of_year=None`` resolves to the injected Clock's compliance year.

Failure modes:
    - Typed errors from fueleu_kernel.exceptions propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID, uuid4

from fueleu_config.schema import RegulatoryConfig
from fueleu_engines.calculator import ComplianceCalculator
from fueleu_engines.pooling import PoolingAllocator
from fueleu_kernel.domain.clock import Clock, SystemClock
from fueleu_kernel.domain.dtos import (
    ActiveCredit,
    AdjustedComplianceBalance,
    BankingStatistics,
    ComplianceRecord,
    LedgerBalance,
    LedgerEntry,
    Pool,
    PoolBalanceSummary,
    PoolMemberInput,
    RawShipYearMetrics,
)
from fueleu_kernel.domain.route import FuelType, RouteComparison, RouteRecord, VesselType
from fueleu_kernel.domain.values import ZERO
from fueleu_kernel.exceptions import (
    BaselineNotSetError,
    ComplianceRecordNotFoundError,
    ExceedsAdjustedBalanceError,
    PoolNotFoundError,
    RouteNotFoundError,
    ShipAlreadyPooledError,
)
from fueleu_kernel.logging_config import LogContext, get_logger
from fueleu_services.banking_ledger import BankingLedger
from fueleu_services.locks import ShipLockManager
from fueleu_services.ports import ComplianceStore, LedgerStore, PoolStore, RouteStore

logger = get_logger("services.accounting")


class ComplianceAccountingService:
    """
    Compliance accounting facade.

    Usage:
        service = ComplianceAccountingService(
            config=get_active_config(),
            compliance_store=InMemoryComplianceStore(),
            ledger_store=InMemoryLedgerStore(),
            pool_store=InMemoryPoolStore(),
        )
        service.record_metrics(RawShipYearMetrics("S1", 2025, "88.0", "4000"))
        service.bank_surplus("S1", 2025, Decimal("1000000"))
    """

    def __init__(
        self,
        config: RegulatoryConfig,
        compliance_store: ComplianceStore,
        ledger_store: LedgerStore,
        pool_store: PoolStore,
        clock: Clock | None = None,
        locks: ShipLockManager | None = None,
        route_store: RouteStore | None = None,
    ):
        self._config = config
        self._compliance_store = compliance_store
        self._pool_store = pool_store
        self._route_store = route_store
        self._clock = clock or SystemClock()
        self._locks = locks or ShipLockManager(config.lock_timeout_seconds)
        self._calculator = ComplianceCalculator(config)
        self._allocator = PoolingAllocator(config)
        self._ledger = BankingLedger(
            config=config,
            compliance_store=compliance_store,
            ledger_store=ledger_store,
            pool_store=pool_store,
            locks=self._locks,
            clock=self._clock,
        )

    @property
    def ledger(self) -> BankingLedger:
        return self._ledger

    @property
    def calculator(self) -> ComplianceCalculator:
        return self._calculator

    def _year(self, as_of_year: int | None) -> int:
        return self._clock.current_compliance_year() if as_of_year is None else as_of_year

    # =========================================================================
    # Compliance balance
    # =========================================================================

    def record_metrics(self, metrics: RawShipYearMetrics) -> ComplianceRecord:
        """Compute the ship-year's CB and store it, replacing any previous one."""
        record = self._calculator.compute(metrics)
        self._compliance_store.upsert(record)
        logger.info(
            "compliance_record_stored",
            extra={
                "ship_id": record.ship_id,
                "year": record.year,
                "cb": record.cb,
                "schedule_version": record.schedule_version,
            },
        )
        return record

    def get_compliance_balance(self, ship_id: str, year: int) -> ComplianceRecord:
        record = self._compliance_store.get(ship_id, year)
        if record is None:
            raise ComplianceRecordNotFoundError(ship_id, year)
        return record

    def get_adjusted_compliance_balance(
        self, ship_id: str, year: int
    ) -> AdjustedComplianceBalance:
        """Raw CB of the year after banking, applied credit and pooling."""
        record = self.get_compliance_balance(ship_id, year)
        banked, applied = self._ledger.year_movements(ship_id, year)
        return AdjustedComplianceBalance(
            ship_id=ship_id,
            year=year,
            original_cb=record.cb,
            banked=banked,
            applied=applied,
            pooled=self._pool_store.delta_for(ship_id, year),
        )

    def compare_routes(
        self,
        baseline: RouteRecord,
        routes: Sequence[RouteRecord],
        year: int | None = None,
    ) -> tuple[RouteComparison, ...]:
        return self._calculator.compare_routes(baseline, routes, year)

    # =========================================================================
    # Routes
    # =========================================================================

    @property
    def _routes(self) -> RouteStore:
        if self._route_store is None:
            raise RuntimeError("ComplianceAccountingService was built without a route_store")
        return self._route_store

    def register_route(self, route: RouteRecord) -> RouteRecord:
        stored = self._routes.save(route)
        logger.info(
            "route_registered",
            extra={
                "route_id": stored.route_id,
                "year": stored.year,
                "is_baseline": stored.is_baseline,
            },
        )
        return stored

    def get_routes(
        self,
        vessel_type: VesselType | None = None,
        fuel_type: FuelType | None = None,
        year: int | None = None,
    ) -> list[RouteRecord]:
        return self._routes.list_routes(vessel_type=vessel_type, fuel_type=fuel_type, year=year)

    def get_route(self, route_id: str) -> RouteRecord:
        route = self._routes.get(route_id)
        if route is None:
            raise RouteNotFoundError(route_id)
        return route

    def set_baseline(self, route_id: str) -> RouteRecord:
        """Make ``route_id`` the baseline, clearing the previous one."""
        route = self._routes.set_baseline(route_id)
        if route is None:
            raise RouteNotFoundError(route_id)
        logger.info("route_baseline_set", extra={"route_id": route_id})
        return route

    def get_comparison(self, year: int | None = None) -> tuple[RouteComparison, ...]:
        """
        Compare every registered route with the baseline route.

        The target is that of ``year``, defaulting to the current compliance
        year.

        Raises:
            BaselineNotSetError: no route is marked as the baseline.
        """
        baseline = self._routes.baseline()
        if baseline is None:
            raise BaselineNotSetError()
        return self._calculator.compare_routes(
            baseline, self._routes.list_routes(), self._year(year)
        )

    # =========================================================================
    # Banking
    # =========================================================================

    def bank_surplus(self, ship_id: str, year: int, amount: Decimal) -> LedgerEntry:
        return self._ledger.deposit(ship_id, year, amount)

    def apply_banked_surplus(
        self,
        ship_id: str,
        year: int,
        amount: Decimal,
        as_of_year: int | None = None,
    ) -> LedgerEntry:
        """Apply banked credit to the deficit of ``year``, spending credit usable in the current year."""
        return self._ledger.withdraw(ship_id, year, amount, self._year(as_of_year))

    def transfer_credits(
        self,
        from_ship_id: str,
        to_ship_id: str,
        amount: Decimal,
        as_of_year: int | None = None,
    ) -> LedgerEntry:
        return self._ledger.transfer(
            from_ship_id, to_ship_id, amount, self._year(as_of_year)
        )

    def get_available_balance(self, ship_id: str, as_of_year: int | None = None) -> Decimal:
        return self._ledger.available_balance(ship_id, self._year(as_of_year))

    def get_ledger_balance(self, ship_id: str, as_of_year: int | None = None) -> LedgerBalance:
        return self._ledger.balance(ship_id, self._year(as_of_year))

    def get_bank_entries(self, ship_id: str, year: int | None = None) -> tuple[LedgerEntry, ...]:
        return self._ledger.entries(ship_id, year)

    def get_banking_statistics(
        self, ship_id: str, as_of_year: int | None = None
    ) -> BankingStatistics:
        return self._ledger.statistics(ship_id, self._year(as_of_year))

    def get_expiring_credits(
        self,
        ship_id: str,
        as_of_year: int | None = None,
        within_years: int = 1,
    ) -> tuple[ActiveCredit, ...]:
        return self._ledger.expiring_credits(ship_id, self._year(as_of_year), within_years)

    # =========================================================================
    # Pooling
    # =========================================================================

    def create_pool(self, year: int, members: Sequence[PoolMemberInput]) -> Pool:
        """
        Allocate and persist a pool from caller-supplied CB snapshots.

        A member with a compliance record for ``year`` may not enter with
        more than its adjusted CB, so banked or applied credit is never
        pooled a second time.

        Raises:
            ValidationError: size, duplicate members.
            ConstraintViolation: negative pool sum, a member rule broken,
                a ship already pooled in ``year``, or a snapshot above the
                ship's adjusted CB.
        """
        members = tuple(members)
        ship_ids = [m.ship_id for m in members]

        with self._locks.hold(*ship_ids), LogContext.bind(operation="create_pool"):
            allocation = self._allocator.allocate(members)

            for ship_id in ship_ids:
                existing = self._pool_store.pools_for_ship(ship_id, year)
                if existing:
                    self._reject_pool(
                        ShipAlreadyPooledError(ship_id, year, str(existing[0].pool_id))
                    )

            # Ships with a record may not pool CB they already banked
            for member in members:
                if self._compliance_store.get(member.ship_id, year) is None:
                    continue
                adjusted = self.get_adjusted_compliance_balance(member.ship_id, year)
                if member.cb_before > adjusted.adjusted_cb:
                    self._reject_pool(
                        ExceedsAdjustedBalanceError(
                            member.ship_id, year, member.cb_before, adjusted.adjusted_cb
                        )
                    )

            pool = Pool(
                pool_id=uuid4(),
                year=year,
                created_at=self._clock.now(),
                members=allocation.members,
                transfers=allocation.transfers,
            )
            self._pool_store.save(pool)

            logger.info(
                "pool_created",
                extra={
                    "pool_id": pool.pool_id,
                    "year": year,
                    "member_count": len(pool.members),
                    "pool_sum": allocation.total_after,
                },
            )
            return pool

    def _reject_pool(self, error) -> None:
        logger.warning(
            "pool_creation_rejected",
            extra={"error_code": error.code, "ship_id": error.ship_id, "year": error.year},
        )
        raise error

    def create_pool_from_balances(self, year: int, ship_ids: Sequence[str]) -> Pool:
        """Create a pool from each ship's current adjusted CB for ``year``."""
        with self._locks.hold(*ship_ids):
            members = [
                PoolMemberInput(
                    ship_id=ship_id,
                    cb_before=self.get_adjusted_compliance_balance(ship_id, year).adjusted_cb,
                )
                for ship_id in ship_ids
            ]
            return self.create_pool(year, members)

    def get_pool(self, pool_id: UUID) -> Pool:
        pool = self._pool_store.get(pool_id)
        if pool is None:
            raise PoolNotFoundError(str(pool_id))
        return pool

    def get_pools_for_year(self, year: int) -> list[Pool]:
        return self._pool_store.pools_for_year(year)

    def get_pools_for_ship(self, ship_id: str, year: int | None = None) -> list[Pool]:
        return self._pool_store.pools_for_ship(ship_id, year)

    def get_pool_summary(self, pool_id: UUID) -> PoolBalanceSummary:
        """Surplus and deficit contributed by the members (on cb_before)."""
        pool = self.get_pool(pool_id)
        surplus = sum((m.cb_before for m in pool.members if m.cb_before > ZERO), ZERO)
        deficit = sum((m.cb_before for m in pool.members if m.cb_before < ZERO), ZERO)
        return PoolBalanceSummary(
            pool_id=pool.pool_id,
            year=pool.year,
            total_surplus=surplus,
            total_deficit=deficit,
            net_balance=surplus + deficit,
            member_count=len(pool.members),
        )
