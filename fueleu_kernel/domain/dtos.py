"""
Domain DTOs -- immutable value objects passed between engines, services
and stores.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.  Stores translate
    between these DTOs and their own representation (ORM rows, dicts);
    nothing outside ``fueleu_kernel.models`` sees an ORM instance.

Invariants enforced:
    - All quantities are Decimal (inputs are coerced via ``to_decimal``).
    - LedgerEntry sign follows its kind: DEPOSIT is positive, WITHDRAWAL,
      TRANSFER and EXPIRY are negative.  The kind is the source of truth,
      the sign is checked against it.
    - Consuming entries (WITHDRAWAL, TRANSFER, EXPIRY) carry draws whose
      amounts sum to the magnitude of the entry.
    - Only TRANSFER entries name a counterparty ship.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from fueleu_kernel.domain.values import ZERO, coerce_decimal_fields

# =============================================================================
# Compliance
# =============================================================================


@dataclass(frozen=True)
class RawShipYearMetrics:
    """Operational data for one ship in one compliance year."""

    ship_id: str
    year: int
    actual_intensity: Decimal  # gCO2e/MJ
    fuel_consumption: Decimal  # tonnes

    def __post_init__(self) -> None:
        coerce_decimal_fields(self, "actual_intensity", "fuel_consumption")


@dataclass(frozen=True)
class ComplianceRecord:
    """
    Compliance balance of one ship-year.

    ``cb`` is positive for a surplus and negative for a deficit.
    """

    ship_id: str
    year: int
    actual_intensity: Decimal
    fuel_consumption: Decimal
    energy_in_scope: Decimal  # MJ
    target_intensity: Decimal
    cb: Decimal  # gCO2e, rounded
    schedule_version: str

    def __post_init__(self) -> None:
        coerce_decimal_fields(
            self,
            "actual_intensity",
            "fuel_consumption",
            "energy_in_scope",
            "target_intensity",
            "cb",
        )

    @property
    def is_surplus(self) -> bool:
        return self.cb > ZERO

    @property
    def is_deficit(self) -> bool:
        return self.cb < ZERO


@dataclass(frozen=True)
class AdjustedComplianceBalance:
    """A ship-year's CB after banking, applied credits and pooling."""

    ship_id: str
    year: int
    original_cb: Decimal
    banked: Decimal
    applied: Decimal
    pooled: Decimal

    @property
    def adjusted_cb(self) -> Decimal:
        return self.original_cb - self.banked + self.applied + self.pooled


# =============================================================================
# Banking ledger
# =============================================================================


class EntryKind(str, Enum):
    """What a ledger entry does to the ship's banked credits."""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"
    EXPIRY = "expiry"

    @property
    def consumes_credit(self) -> bool:
        return self is not EntryKind.DEPOSIT


@dataclass(frozen=True)
class CreditDraw:
    """Quantity taken from one deposit by a consuming entry."""

    deposit_entry_id: UUID
    source_year: int
    amount: Decimal

    def __post_init__(self) -> None:
        coerce_decimal_fields(self, "amount")
        if self.amount <= ZERO:
            raise ValueError("Draw amount must be positive")


@dataclass(frozen=True)
class LedgerEntry:
    """
    Append-only unit of a ship's banking ledger.

    ``year`` is the source year for DEPOSIT and EXPIRY entries, the deficit
    year a WITHDRAWAL is applied to, and the oldest source year drawn by a
    TRANSFER.  ``related_entry_id`` links a DEPOSIT received through a
    transfer to the TRANSFER entry on the sending ledger.
    """

    entry_id: UUID
    ship_id: str
    sequence: int
    year: int
    amount: Decimal
    kind: EntryKind
    created_at: datetime
    counterparty_ship_id: str | None = None
    related_entry_id: UUID | None = None
    draws: tuple[CreditDraw, ...] = ()

    def __post_init__(self) -> None:
        coerce_decimal_fields(self, "amount")
        object.__setattr__(self, "kind", EntryKind(self.kind))
        object.__setattr__(self, "draws", tuple(self.draws))

        if self.kind is EntryKind.DEPOSIT:
            if self.amount <= ZERO:
                raise ValueError("Deposit amount must be positive")
            if self.draws:
                raise ValueError("Deposit entries do not draw credit")
        else:
            if self.amount >= ZERO:
                raise ValueError(f"{self.kind.value} amount must be negative")
            drawn = sum((d.amount for d in self.draws), ZERO)
            if drawn != -self.amount:
                raise ValueError(
                    f"Draws total {drawn} does not match entry amount {self.amount}"
                )

        if (self.kind is EntryKind.TRANSFER) != (self.counterparty_ship_id is not None):
            raise ValueError("Only transfer entries name a counterparty ship")

    @property
    def is_own_deposit(self) -> bool:
        """Deposit banked from the ship's own surplus (not received)."""
        return self.kind is EntryKind.DEPOSIT and self.related_entry_id is None


@dataclass(frozen=True)
class ActiveCredit:
    """A deposit that is not fully consumed and not yet swept."""

    deposit_entry_id: UUID
    source_year: int
    original_amount: Decimal
    remaining: Decimal
    expires_after_year: int

    def is_usable_in(self, year: int) -> bool:
        return self.source_year <= year <= self.expires_after_year


@dataclass(frozen=True)
class LedgerBalance:
    """Derived view of a ship's ledger as of a compliance year."""

    ship_id: str
    as_of_year: int
    total_balance: Decimal
    available: Decimal
    active_credits: tuple[ActiveCredit, ...]


@dataclass(frozen=True)
class BankingStatistics:
    """Lifetime banking activity of a ship."""

    ship_id: str
    as_of_year: int
    total_deposited: Decimal
    total_withdrawn: Decimal
    total_transferred_out: Decimal
    total_expired: Decimal
    current_balance: Decimal
    expiring_soon: Decimal
    utilization_rate: Decimal  # percent of deposited credit put to use


# =============================================================================
# Pooling
# =============================================================================


@dataclass(frozen=True)
class PoolMemberInput:
    """A ship entering a pool with its CB snapshot."""

    ship_id: str
    cb_before: Decimal

    def __post_init__(self) -> None:
        coerce_decimal_fields(self, "cb_before")


@dataclass(frozen=True)
class PoolMember:
    """A ship's CB before and after pool allocation."""

    ship_id: str
    cb_before: Decimal
    cb_after: Decimal

    def __post_init__(self) -> None:
        coerce_decimal_fields(self, "cb_before", "cb_after")

    @property
    def delta(self) -> Decimal:
        return self.cb_after - self.cb_before


@dataclass(frozen=True)
class PoolTransfer:
    """One step of the greedy allocation."""

    from_ship_id: str
    to_ship_id: str
    amount: Decimal


@dataclass(frozen=True)
class AllocationResult:
    """Outcome of a successful pool allocation. Members keep input order."""

    members: tuple[PoolMember, ...]
    transfers: tuple[PoolTransfer, ...]

    @property
    def total_before(self) -> Decimal:
        return sum((m.cb_before for m in self.members), ZERO)

    @property
    def total_after(self) -> Decimal:
        return sum((m.cb_after for m in self.members), ZERO)


@dataclass(frozen=True)
class Pool:
    """A persisted, immutable pool for one compliance year."""

    pool_id: UUID
    year: int
    created_at: datetime
    members: tuple[PoolMember, ...]
    transfers: tuple[PoolTransfer, ...] = ()

    def member(self, ship_id: str) -> PoolMember | None:
        for m in self.members:
            if m.ship_id == ship_id:
                return m
        return None

    @property
    def ship_ids(self) -> tuple[str, ...]:
        return tuple(m.ship_id for m in self.members)


@dataclass(frozen=True)
class PoolBalanceSummary:
    """Aggregate contributions of a pool's members (on cb_before)."""

    pool_id: UUID
    year: int
    total_surplus: Decimal
    total_deficit: Decimal
    net_balance: Decimal
    member_count: int
