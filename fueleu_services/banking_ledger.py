"""
BankingLedger -- Article 20 banking of surplus Compliance Balance.

Responsibility:
    Validate and record deposits, withdrawals, ship-to-ship transfers and
    expiry sweeps as append-only ledger entries, and answer balance
    queries from a per-ship CreditBook cache.

Architecture position:
    Services -- imperative shell around the pure CreditBook engine.
    Depends on the ComplianceStore (deposit/withdraw validation), the
    LedgerStore (persistence), the PoolStore (pool deltas), the
    ShipLockManager (serialization) and the Clock (entry timestamps).

Invariants enforced:
    - Every mutating operation, and every query that may sweep, runs under
      the locks of the ships it touches.
    - Cumulative own deposits from a year never exceed
      round(cb * max_bank_fraction) nor the surplus left after pooling.
    - Withdrawals never exceed the usable balance nor the uncovered deficit
      of the year they are applied to.
    - A transfer is persisted as one atomic append: the source TRANSFER
      entry plus one destination DEPOSIT per draw, each keeping its source
      year.
    - The book cache is updated only after the store accepted the entries.

Failure modes:
    - The typed errors of fueleu_kernel.exceptions, each logged as a
      warning with its limiting values before it is raised.
    - OptimisticLockError from the store drops the ship's cached book so
      the next call reloads it.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

from fueleu_config.schema import RegulatoryConfig
from fueleu_engines.banking import CreditBook
from fueleu_kernel.domain.clock import Clock, SystemClock
from fueleu_kernel.domain.dtos import (
    ActiveCredit,
    BankingStatistics,
    ComplianceRecord,
    CreditDraw,
    EntryKind,
    LedgerBalance,
    LedgerEntry,
)
from fueleu_kernel.domain.values import ZERO, round_cb, to_decimal
from fueleu_kernel.exceptions import (
    ComplianceRecordNotFoundError,
    ExceedsBankCapError,
    ExceedsDeficitError,
    FuelEUError,
    InsufficientBankedAmountError,
    InvalidAmountError,
    LedgerIntegrityError,
    NoDeficitToCoverError,
    NothingToBankError,
    OptimisticLockError,
    SelfTransferError,
)
from fueleu_kernel.logging_config import LogContext, get_logger
from fueleu_services.locks import ShipLockManager
from fueleu_services.ports import ComplianceStore, LedgerStore, PoolStore

logger = get_logger("services.banking_ledger")

_HUNDRED = Decimal("100")


class BankingLedger:
    """
    Banking operations over per-ship append-only ledgers.

    Contract:
        The compliance year that decides which credits are usable or
        expired is always passed explicitly (``as_of_year``).
    Non-goals:
        - Does not compute Compliance Balances; deposits and withdrawals
          read the stored ComplianceRecord.
    """

    def __init__(
        self,
        config: RegulatoryConfig,
        compliance_store: ComplianceStore,
        ledger_store: LedgerStore,
        pool_store: PoolStore | None = None,
        locks: ShipLockManager | None = None,
        clock: Clock | None = None,
    ):
        self._config = config
        self._rules = config.banking
        self._compliance_store = compliance_store
        self._ledger_store = ledger_store
        self._pool_store = pool_store
        self._locks = locks or ShipLockManager(config.lock_timeout_seconds)
        self._clock = clock or SystemClock()
        self._books: dict[str, CreditBook] = {}

    @property
    def locks(self) -> ShipLockManager:
        return self._locks

    # =========================================================================
    # Mutations
    # =========================================================================

    def deposit(self, ship_id: str, year: int, amount: Decimal) -> LedgerEntry:
        """
        Bank surplus CB of ``year`` for later use.

        Raises:
            InvalidAmountError: amount is not positive.
            ComplianceRecordNotFoundError: no CB for the ship-year.
            NothingToBankError: the year's CB is not a surplus.
            ExceedsBankCapError: amount exceeds what is still bankable.
        """
        amount = self._positive_amount(amount)

        with self._locks.hold(ship_id), LogContext.bind(ship_id=ship_id, operation="deposit"):
            record = self._require_record(ship_id, year)
            if not record.is_surplus:
                self._reject(NothingToBankError(ship_id, year, record.cb))

            book = self._book(ship_id)
            cap = round_cb(record.cb * self._rules.max_bank_fraction, self._config.cb_decimal_places)
            already_banked = book.own_deposited_for_year(year)
            surplus_left = record.cb + self._pool_delta(ship_id, year) - already_banked
            bankable = max(ZERO, min(cap - already_banked, surplus_left))

            if amount > bankable:
                self._reject(
                    ExceedsBankCapError(ship_id, year, amount, cap, already_banked, bankable)
                )

            entry = LedgerEntry(
                entry_id=uuid4(),
                ship_id=ship_id,
                sequence=book.next_sequence,
                year=year,
                amount=amount,
                kind=EntryKind.DEPOSIT,
                created_at=self._clock.now(),
            )
            self._commit([entry])

            logger.info(
                "ledger_deposit_completed",
                extra={
                    "year": year,
                    "amount": amount,
                    "cap": cap,
                    "already_banked": already_banked + amount,
                    "entry_id": entry.entry_id,
                },
            )
            return entry

    def withdraw(
        self,
        ship_id: str,
        year: int,
        amount: Decimal,
        as_of_year: int,
    ) -> LedgerEntry:
        """
        Apply banked credit to the deficit of ``year``.

        Credits are consumed FIFO among those usable in ``as_of_year``, the
        current compliance year. Credits expired by then are swept first.

        Raises:
            InvalidAmountError: amount is not positive.
            ComplianceRecordNotFoundError: no CB for the ship-year.
            NoDeficitToCoverError: the year's CB is not a deficit.
            InsufficientBankedAmountError: amount exceeds usable credit.
            ExceedsDeficitError: amount exceeds the uncovered deficit.
        """
        amount = self._positive_amount(amount)

        with self._locks.hold(ship_id), LogContext.bind(ship_id=ship_id, operation="withdraw"):
            record = self._require_record(ship_id, year)
            if not record.is_deficit:
                self._reject(NoDeficitToCoverError(ship_id, year, record.cb))

            book = self._swept_book(ship_id, as_of_year)
            available = book.available(as_of_year)
            if amount > available:
                self._reject(InsufficientBankedAmountError(ship_id, amount, available))

            remaining_deficit = max(
                ZERO,
                -(record.cb + self._pool_delta(ship_id, year)) - book.applied_to_year(year),
            )
            if amount > remaining_deficit:
                self._reject(ExceedsDeficitError(ship_id, year, amount, remaining_deficit))

            entry = LedgerEntry(
                entry_id=uuid4(),
                ship_id=ship_id,
                sequence=book.next_sequence,
                year=year,
                amount=-amount,
                kind=EntryKind.WITHDRAWAL,
                created_at=self._clock.now(),
                draws=book.plan_draws(amount, as_of_year),
            )
            self._commit([entry])

            logger.info(
                "ledger_withdrawal_completed",
                extra={
                    "year": year,
                    "as_of_year": as_of_year,
                    "amount": amount,
                    "draw_count": len(entry.draws),
                    "entry_id": entry.entry_id,
                },
            )
            return entry

    def transfer(
        self,
        from_ship_id: str,
        to_ship_id: str,
        amount: Decimal,
        as_of_year: int,
    ) -> LedgerEntry:
        """
        Move usable credit from one ship's ledger to another's.

        Returns the TRANSFER entry on the source ledger.  The destination
        receives one DEPOSIT per draw, tagged with the draw's source year
        and linked to the TRANSFER through ``related_entry_id``.

        Raises:
            SelfTransferError: source and destination are the same ship.
            InvalidAmountError: amount is not positive.
            InsufficientBankedAmountError: amount exceeds the source's
                usable credit in ``as_of_year``.
        """
        if from_ship_id == to_ship_id:
            self._reject(SelfTransferError(from_ship_id))
        amount = self._positive_amount(amount)

        with self._locks.hold(from_ship_id, to_ship_id), LogContext.bind(
            ship_id=from_ship_id, operation="transfer"
        ):
            source_book = self._swept_book(from_ship_id, as_of_year)
            available = source_book.available(as_of_year)
            if amount > available:
                self._reject(InsufficientBankedAmountError(from_ship_id, amount, available))

            draws = source_book.plan_draws(amount, as_of_year)
            now = self._clock.now()
            source_entry = LedgerEntry(
                entry_id=uuid4(),
                ship_id=from_ship_id,
                sequence=source_book.next_sequence,
                year=min(d.source_year for d in draws),
                amount=-amount,
                kind=EntryKind.TRANSFER,
                created_at=now,
                counterparty_ship_id=to_ship_id,
                draws=draws,
            )

            destination_book = self._book(to_ship_id)
            received = [
                LedgerEntry(
                    entry_id=uuid4(),
                    ship_id=to_ship_id,
                    sequence=destination_book.next_sequence + offset,
                    year=draw.source_year,
                    amount=draw.amount,
                    kind=EntryKind.DEPOSIT,
                    created_at=now,
                    related_entry_id=source_entry.entry_id,
                )
                for offset, draw in enumerate(draws)
            ]
            self._commit([source_entry, *received])

            logger.info(
                "ledger_transfer_completed",
                extra={
                    "to_ship_id": to_ship_id,
                    "as_of_year": as_of_year,
                    "amount": amount,
                    "draw_count": len(draws),
                    "entry_id": source_entry.entry_id,
                },
            )
            return source_entry

    def sweep_expired(self, ship_id: str, as_of_year: int) -> tuple[LedgerEntry, ...]:
        """Record an EXPIRY entry for every credit expired by ``as_of_year``."""
        with self._locks.hold(ship_id):
            return self._sweep(self._book(ship_id), as_of_year)

    # =========================================================================
    # Queries
    # =========================================================================

    def available_balance(self, ship_id: str, as_of_year: int) -> Decimal:
        """Credit usable in ``as_of_year`` after sweeping expired credits."""
        with self._locks.hold(ship_id):
            return self._swept_book(ship_id, as_of_year).available(as_of_year)

    def balance(self, ship_id: str, as_of_year: int) -> LedgerBalance:
        with self._locks.hold(ship_id):
            book = self._swept_book(ship_id, as_of_year)
            return LedgerBalance(
                ship_id=ship_id,
                as_of_year=as_of_year,
                total_balance=book.total_balance,
                available=book.available(as_of_year),
                active_credits=book.active_credits(),
            )

    def entries(self, ship_id: str, year: int | None = None) -> tuple[LedgerEntry, ...]:
        """Ledger entries in sequence order, optionally only those tagged ``year``."""
        with self._locks.hold(ship_id):
            entries = self._book(ship_id).entries
        if year is None:
            return entries
        return tuple(e for e in entries if e.year == year)

    def expiring_credits(
        self, ship_id: str, as_of_year: int, within_years: int = 1
    ) -> tuple[ActiveCredit, ...]:
        """Usable credits that stop being usable within ``within_years``."""
        with self._locks.hold(ship_id):
            return self._swept_book(ship_id, as_of_year).expiring_credits(
                as_of_year, within_years
            )

    def statistics(self, ship_id: str, as_of_year: int) -> BankingStatistics:
        with self._locks.hold(ship_id):
            book = self._swept_book(ship_id, as_of_year)
            deposited = book.total_of(EntryKind.DEPOSIT)
            withdrawn = book.total_of(EntryKind.WITHDRAWAL)
            transferred_out = book.total_of(EntryKind.TRANSFER)
            expiring_soon = sum(
                (c.remaining for c in book.expiring_credits(as_of_year)), ZERO
            )
            if deposited > ZERO:
                utilization = round_cb((withdrawn + transferred_out) / deposited * _HUNDRED)
            else:
                utilization = ZERO

            return BankingStatistics(
                ship_id=ship_id,
                as_of_year=as_of_year,
                total_deposited=deposited,
                total_withdrawn=withdrawn,
                total_transferred_out=transferred_out,
                total_expired=book.total_of(EntryKind.EXPIRY),
                current_balance=book.total_balance,
                expiring_soon=expiring_soon,
                utilization_rate=utilization,
            )

    def year_movements(self, ship_id: str, year: int) -> tuple[Decimal, Decimal]:
        """(own deposits banked from ``year``, credit applied to ``year``)."""
        with self._locks.hold(ship_id):
            book = self._book(ship_id)
            return book.own_deposited_for_year(year), book.applied_to_year(year)

    def verify(self, ship_id: str) -> Decimal:
        """
        Replay the stored ledger and compare it with the cached book.

        Returns:
            The replayed total balance.

        Raises:
            LedgerIntegrityError: cache and store disagree.
        """
        with self._locks.hold(ship_id):
            cached = self._book(ship_id)
            replayed = CreditBook.from_entries(
                ship_id,
                self._ledger_store.entries_for(ship_id),
                self._rules.max_apply_years,
            )
            if (
                cached.total_balance != replayed.total_balance
                or cached.active_credits() != replayed.active_credits()
                or cached.next_sequence != replayed.next_sequence
            ):
                logger.error(
                    "ledger_integrity_mismatch",
                    extra={
                        "ship_id": ship_id,
                        "cached_balance": cached.total_balance,
                        "replayed_balance": replayed.total_balance,
                        "cached_entries": cached.next_sequence - 1,
                        "replayed_entries": replayed.next_sequence - 1,
                    },
                )
                raise LedgerIntegrityError(
                    ship_id, cached.total_balance, replayed.total_balance
                )
            return replayed.total_balance

    # =========================================================================
    # Internals
    # =========================================================================

    def _book(self, ship_id: str) -> CreditBook:
        # Caller holds the ship lock
        book = self._books.get(ship_id)
        if book is None:
            book = CreditBook.from_entries(
                ship_id,
                self._ledger_store.entries_for(ship_id),
                self._rules.max_apply_years,
            )
            self._books[ship_id] = book
        return book

    def _swept_book(self, ship_id: str, as_of_year: int) -> CreditBook:
        book = self._book(ship_id)
        self._sweep(book, as_of_year)
        return book

    def _sweep(self, book: CreditBook, as_of_year: int) -> tuple[LedgerEntry, ...]:
        expired = book.expired_draws(as_of_year)
        if not expired:
            return ()

        now = self._clock.now()
        entries = tuple(
            self._expiry_entry(book, offset, draw, now)
            for offset, draw in enumerate(expired)
        )
        self._commit(list(entries))

        logger.info(
            "ledger_credits_expired",
            extra={
                "ship_id": book.ship_id,
                "as_of_year": as_of_year,
                "expired_count": len(entries),
                "expired_total": sum((d.amount for d in expired), ZERO),
            },
        )
        return entries

    @staticmethod
    def _expiry_entry(book: CreditBook, offset: int, draw: CreditDraw, now) -> LedgerEntry:
        return LedgerEntry(
            entry_id=uuid4(),
            ship_id=book.ship_id,
            sequence=book.next_sequence + offset,
            year=draw.source_year,
            amount=-draw.amount,
            kind=EntryKind.EXPIRY,
            created_at=now,
            draws=(draw,),
        )

    def _commit(self, entries: list[LedgerEntry]) -> None:
        """Persist entries atomically, then apply them to the cached books."""
        # Books are resolved before the append so none is loaded from a
        # store that already holds the new entries
        books = {e.ship_id: self._book(e.ship_id) for e in entries}
        try:
            self._ledger_store.append(entries)
        except OptimisticLockError:
            for ship_id in books:
                self._books.pop(ship_id, None)
            raise
        for entry in entries:
            books[entry.ship_id].apply(entry)

    def _require_record(self, ship_id: str, year: int) -> ComplianceRecord:
        record = self._compliance_store.get(ship_id, year)
        if record is None:
            self._reject(ComplianceRecordNotFoundError(ship_id, year))
        return record

    def _pool_delta(self, ship_id: str, year: int) -> Decimal:
        if self._pool_store is None:
            return ZERO
        return self._pool_store.delta_for(ship_id, year)

    def _positive_amount(self, amount: Decimal) -> Decimal:
        value = round_cb(to_decimal(amount), self._config.cb_decimal_places)
        if value <= ZERO:
            self._reject(InvalidAmountError("amount", to_decimal(amount)))
        return value

    @staticmethod
    def _reject(error: FuelEUError) -> None:
        logger.warning(
            "ledger_operation_rejected",
            extra={
                "error_code": error.code,
                **{f"error_{k}": v for k, v in vars(error).items() if not k.startswith("_")},
            },
        )
        raise error
