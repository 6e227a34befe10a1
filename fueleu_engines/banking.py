"""
Module: fueleu_engines.banking
Responsibility:
    FIFO and expiry bookkeeping of one ship's banked credits.  A CreditBook
    is the derived state of a ship's ledger: it is built by replaying the
    entries in sequence order and kept current by applying each new entry
    after it has been persisted.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The stateful
    BankingLedger service owns persistence, locking and the book cache.

Invariants enforced:
    - Entries are applied in contiguous sequence order starting at 1.
    - A draw never takes more than the remaining quantity of its deposit.
    - A credit banked from year Y is usable in Y .. Y + max_apply_years and
      expired from Y + max_apply_years + 1 on.
    - Credits are consumed oldest source year first, then by deposit
      sequence.
    - total_balance always equals the sum of remaining quantities.

Failure modes:
    - ValueError when an entry is out of sequence, belongs to another ship,
      or draws from an unknown or exhausted deposit.  For a book replayed
      from a store this means the stored ledger is corrupt.
    - ValueError from plan_draws when usable credit is insufficient; the
      service checks ``available`` first and reports the shortfall.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from fueleu_kernel.domain.dtos import ActiveCredit, CreditDraw, EntryKind, LedgerEntry
from fueleu_kernel.domain.values import ZERO


@dataclass
class _Credit:
    deposit_entry_id: UUID
    source_year: int
    sequence: int
    original_amount: Decimal
    remaining: Decimal


class CreditBook:
    """
    Derived credit state of one ship.

    Contract:
        Mutated only through ``apply``; every other method is a query.
    """

    def __init__(self, ship_id: str, max_apply_years: int):
        self.ship_id = ship_id
        self.max_apply_years = max_apply_years
        self._entries: list[LedgerEntry] = []
        self._credits: dict[UUID, _Credit] = {}
        self._total_balance = ZERO

    @classmethod
    def from_entries(
        cls,
        ship_id: str,
        entries: Iterable[LedgerEntry],
        max_apply_years: int,
    ) -> CreditBook:
        """Replay stored entries (in sequence order) into a fresh book."""
        book = cls(ship_id, max_apply_years)
        for entry in entries:
            book.apply(entry)
        return book

    # -- state -----------------------------------------------------------

    @property
    def entries(self) -> tuple[LedgerEntry, ...]:
        return tuple(self._entries)

    @property
    def next_sequence(self) -> int:
        return len(self._entries) + 1

    @property
    def total_balance(self) -> Decimal:
        return self._total_balance

    def apply(self, entry: LedgerEntry) -> None:
        """Apply one persisted entry to the book."""
        if entry.ship_id != self.ship_id:
            raise ValueError(
                f"Entry {entry.entry_id} belongs to ship {entry.ship_id}, "
                f"not {self.ship_id}"
            )
        if entry.sequence != self.next_sequence:
            raise ValueError(
                f"Entry {entry.entry_id} has sequence {entry.sequence}, "
                f"expected {self.next_sequence}"
            )

        if entry.kind is EntryKind.DEPOSIT:
            self._credits[entry.entry_id] = _Credit(
                deposit_entry_id=entry.entry_id,
                source_year=entry.year,
                sequence=entry.sequence,
                original_amount=entry.amount,
                remaining=entry.amount,
            )
        else:
            # Validate every draw before touching any credit
            for draw in entry.draws:
                credit = self._credits.get(draw.deposit_entry_id)
                if credit is None:
                    raise ValueError(
                        f"Entry {entry.entry_id} draws from unknown deposit "
                        f"{draw.deposit_entry_id}"
                    )
                if draw.amount > credit.remaining:
                    raise ValueError(
                        f"Entry {entry.entry_id} draws {draw.amount} from deposit "
                        f"{draw.deposit_entry_id} with {credit.remaining} remaining"
                    )
            for draw in entry.draws:
                self._credits[draw.deposit_entry_id].remaining -= draw.amount

        self._entries.append(entry)
        self._total_balance += entry.amount

    # -- credit queries --------------------------------------------------

    def _fifo(self) -> list[_Credit]:
        live = [c for c in self._credits.values() if c.remaining > ZERO]
        return sorted(live, key=lambda c: (c.source_year, c.sequence))

    def _is_usable(self, credit: _Credit, year: int) -> bool:
        return credit.source_year <= year <= credit.source_year + self.max_apply_years

    def active_credits(self) -> tuple[ActiveCredit, ...]:
        """Credits with a remaining quantity, oldest source year first."""
        return tuple(
            ActiveCredit(
                deposit_entry_id=c.deposit_entry_id,
                source_year=c.source_year,
                original_amount=c.original_amount,
                remaining=c.remaining,
                expires_after_year=c.source_year + self.max_apply_years,
            )
            for c in self._fifo()
        )

    def available(self, as_of_year: int) -> Decimal:
        """Remaining quantity of credits usable in ``as_of_year``."""
        return sum(
            (c.remaining for c in self._fifo() if self._is_usable(c, as_of_year)),
            ZERO,
        )

    def plan_draws(self, amount: Decimal, as_of_year: int) -> tuple[CreditDraw, ...]:
        """
        FIFO draws covering ``amount`` from credits usable in ``as_of_year``.

        A credit may be partially consumed; the last draw takes only what is
        still needed.
        """
        if amount <= ZERO:
            raise ValueError(f"Draw total must be positive, got {amount}")

        draws: list[CreditDraw] = []
        needed = amount
        for credit in self._fifo():
            if needed <= ZERO:
                break
            if not self._is_usable(credit, as_of_year):
                continue
            take = min(credit.remaining, needed)
            draws.append(
                CreditDraw(
                    deposit_entry_id=credit.deposit_entry_id,
                    source_year=credit.source_year,
                    amount=take,
                )
            )
            needed -= take

        if needed > ZERO:
            raise ValueError(
                f"Insufficient usable credit for ship {self.ship_id} in "
                f"{as_of_year}: short by {needed}"
            )
        return tuple(draws)

    def expired_draws(self, as_of_year: int) -> tuple[CreditDraw, ...]:
        """One draw per deposit whose remainder has expired by ``as_of_year``."""
        return tuple(
            CreditDraw(
                deposit_entry_id=c.deposit_entry_id,
                source_year=c.source_year,
                amount=c.remaining,
            )
            for c in self._fifo()
            if c.source_year + self.max_apply_years < as_of_year
        )

    def expiring_credits(self, as_of_year: int, within_years: int = 1) -> tuple[ActiveCredit, ...]:
        """Usable credits whose last usable year falls before ``as_of_year + within_years``."""
        return tuple(
            credit
            for credit in self.active_credits()
            if credit.is_usable_in(as_of_year)
            and credit.expires_after_year < as_of_year + within_years
        )

    # -- per-year movements ----------------------------------------------

    def own_deposited_for_year(self, year: int) -> Decimal:
        """Surplus banked from the ship's own CB of ``year``."""
        return sum(
            (e.amount for e in self._entries if e.is_own_deposit and e.year == year),
            ZERO,
        )

    def applied_to_year(self, year: int) -> Decimal:
        """Banked credit applied to the deficit of ``year``."""
        return sum(
            (-e.amount for e in self._entries if e.kind is EntryKind.WITHDRAWAL and e.year == year),
            ZERO,
        )

    def total_of(self, kind: EntryKind) -> Decimal:
        """Magnitude of all entries of one kind."""
        return sum((abs(e.amount) for e in self._entries if e.kind is kind), ZERO)
