"""
Pure domain layer.

Immutable DTOs, value helpers and the clock abstraction, with NO
dependencies on the ORM, the database or I/O.
"""

from fueleu_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from fueleu_kernel.domain.dtos import (
    ActiveCredit,
    AdjustedComplianceBalance,
    AllocationResult,
    BankingStatistics,
    ComplianceRecord,
    CreditDraw,
    EntryKind,
    LedgerBalance,
    LedgerEntry,
    Pool,
    PoolBalanceSummary,
    PoolMember,
    PoolMemberInput,
    PoolTransfer,
    RawShipYearMetrics,
)
from fueleu_kernel.domain.route import (
    FuelType,
    RouteComparison,
    RouteRecord,
    VesselType,
)
from fueleu_kernel.domain.values import CB_DECIMAL_PLACES, ZERO, round_cb, to_decimal

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ActiveCredit",
    "AdjustedComplianceBalance",
    "AllocationResult",
    "BankingStatistics",
    "ComplianceRecord",
    "CreditDraw",
    "EntryKind",
    "LedgerBalance",
    "LedgerEntry",
    "Pool",
    "PoolBalanceSummary",
    "PoolMember",
    "PoolMemberInput",
    "PoolTransfer",
    "RawShipYearMetrics",
    "FuelType",
    "RouteComparison",
    "RouteRecord",
    "VesselType",
    "CB_DECIMAL_PLACES",
    "ZERO",
    "round_cb",
    "to_decimal",
]
