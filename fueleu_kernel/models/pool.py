"""
Module: fueleu_kernel.models.pool
Responsibility: ORM persistence for compliance pools and their members.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(ship_id, year) on members: a ship belongs to at most one pool
      per compliance year.
    - Members are stored with their input position and read back in it.
    - Pools and members are append-only (db/immutability.py).

Failure modes:
    - IntegrityError when a ship is pooled twice in the same year.
    - ImmutabilityViolationError on UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fueleu_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from fueleu_kernel.domain.dtos import Pool


class PoolModel(Base):
    """A pool created for one compliance year."""

    __tablename__ = "pools"

    __table_args__ = (Index("idx_pool_year", "year"),)

    pool_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    transfers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    members: Mapped[list["PoolMemberModel"]] = relationship(
        "PoolMemberModel",
        back_populates="pool",
        primaryjoin="PoolModel.pool_id == PoolMemberModel.pool_id",
        order_by="PoolMemberModel.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Pool {self.pool_id} year={self.year}>"

    def to_dto(self) -> Pool:
        """Convert ORM model to frozen domain DTO."""
        from fueleu_kernel.domain.dtos import Pool as PoolDTO
        from fueleu_kernel.domain.dtos import PoolTransfer

        return PoolDTO(
            pool_id=self.pool_id,
            year=self.year,
            created_at=self.created_at,
            members=tuple(m.to_dto() for m in self.members),
            transfers=tuple(
                PoolTransfer(
                    from_ship_id=t["from_ship_id"],
                    to_ship_id=t["to_ship_id"],
                    amount=Decimal(t["amount"]),
                )
                for t in (self.transfers or [])
            ),
        )

    @classmethod
    def from_dto(cls, dto: Pool) -> PoolModel:
        """Create ORM model (with members) from domain DTO."""
        pool = cls(
            pool_id=dto.pool_id,
            year=dto.year,
            created_at=dto.created_at,
            transfers=[
                {
                    "from_ship_id": t.from_ship_id,
                    "to_ship_id": t.to_ship_id,
                    "amount": str(t.amount),
                }
                for t in dto.transfers
            ],
        )
        pool.members = [
            PoolMemberModel(
                pool_id=dto.pool_id,
                position=position,
                ship_id=m.ship_id,
                year=dto.year,
                cb_before=m.cb_before,
                cb_after=m.cb_after,
            )
            for position, m in enumerate(dto.members)
        ]
        return pool


class PoolMemberModel(Base):
    """A ship's CB before and after allocation within a pool."""

    __tablename__ = "pool_members"

    __table_args__ = (
        UniqueConstraint("ship_id", "year", name="uq_pool_member_ship_year"),
        UniqueConstraint("pool_id", "position", name="uq_pool_member_position"),
    )

    pool_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("pools.pool_id"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    ship_id: Mapped[str] = mapped_column(String(100), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    cb_before: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    cb_after: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    pool: Mapped["PoolModel"] = relationship(
        "PoolModel",
        back_populates="members",
        foreign_keys=[pool_id],
        primaryjoin="PoolMemberModel.pool_id == PoolModel.pool_id",
    )

    def __repr__(self) -> str:
        return f"<PoolMember {self.ship_id} pool={self.pool_id} {self.cb_before}->{self.cb_after}>"

    def to_dto(self):
        from fueleu_kernel.domain.dtos import PoolMember
        from fueleu_kernel.domain.values import round_cb

        return PoolMember(
            ship_id=self.ship_id,
            cb_before=round_cb(self.cb_before),
            cb_after=round_cb(self.cb_after),
        )
