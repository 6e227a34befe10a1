"""
Module: fueleu_kernel.models.ledger_entry
Responsibility: ORM persistence for banking ledger entries.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(ship_id, sequence): two writers that read the same ledger
      length cannot both append.  The loser gets an IntegrityError, which
      the SQL store reports as OptimisticLockError.
    - Append-only: no UPDATE or DELETE (db/immutability.py).
    - Credit draws are stored as a JSON list alongside the consuming entry;
      amounts are serialized as strings so no float ever touches them.

Failure modes:
    - IntegrityError on duplicate (ship_id, sequence) or duplicate entry_id.
    - ImmutabilityViolationError on UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fueleu_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from fueleu_kernel.domain.dtos import LedgerEntry


class LedgerEntryModel(Base):
    """
    One append-only banking ledger entry.

    Guarantees:
        - kind is persisted as EntryKind.value.
        - amount sign matches kind (checked by the LedgerEntry DTO on both
          the write and the read path).
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        UniqueConstraint("ship_id", "sequence", name="uq_ledger_ship_sequence"),
        Index("idx_ledger_ship_year", "ship_id", "year"),
        Index("idx_ledger_related", "related_entry_id"),
    )

    entry_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    ship_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    counterparty_ship_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    related_entry_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    draws: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.ship_id}#{self.sequence} "
            f"{self.kind} {self.amount} year={self.year}>"
        )

    def to_dto(self) -> LedgerEntry:
        """Convert ORM model to frozen domain DTO."""
        from fueleu_kernel.domain.dtos import CreditDraw, EntryKind
        from fueleu_kernel.domain.dtos import LedgerEntry as LedgerEntryDTO
        from fueleu_kernel.domain.values import round_cb

        return LedgerEntryDTO(
            entry_id=self.entry_id,
            ship_id=self.ship_id,
            sequence=self.sequence,
            year=self.year,
            amount=round_cb(self.amount),
            kind=EntryKind(self.kind),
            created_at=self.created_at,
            counterparty_ship_id=self.counterparty_ship_id,
            related_entry_id=self.related_entry_id,
            draws=tuple(
                CreditDraw(
                    deposit_entry_id=UUID(d["deposit_entry_id"]),
                    source_year=int(d["source_year"]),
                    amount=Decimal(d["amount"]),
                )
                for d in (self.draws or [])
            ),
        )

    @classmethod
    def from_dto(cls, dto: LedgerEntry) -> LedgerEntryModel:
        """Create ORM model from domain DTO."""
        return cls(
            entry_id=dto.entry_id,
            ship_id=dto.ship_id,
            sequence=dto.sequence,
            year=dto.year,
            amount=dto.amount,
            kind=dto.kind.value,
            created_at=dto.created_at,
            counterparty_ship_id=dto.counterparty_ship_id,
            related_entry_id=dto.related_entry_id,
            draws=[
                {
                    "deposit_entry_id": str(d.deposit_entry_id),
                    "source_year": d.source_year,
                    "amount": str(d.amount),
                }
                for d in dto.draws
            ],
        )
