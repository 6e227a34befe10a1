"""
Module: fueleu_kernel.models.compliance_record
Responsibility: ORM persistence for computed ship-year compliance balances.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(ship_id, year): one compliance record per ship-year.  Recomputing
      a ship-year replaces the stored values in place.

Failure modes:
    - IntegrityError on a duplicate (ship_id, year) insert.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fueleu_kernel.db.base import Base

if TYPE_CHECKING:
    from fueleu_kernel.domain.dtos import ComplianceRecord


class ComplianceRecordModel(Base):
    """Stored CB of one ship in one compliance year."""

    __tablename__ = "compliance_records"

    __table_args__ = (
        UniqueConstraint("ship_id", "year", name="uq_compliance_ship_year"),
        Index("idx_compliance_year", "year"),
    )

    ship_id: Mapped[str] = mapped_column(String(100), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    actual_intensity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    fuel_consumption: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    energy_in_scope: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    target_intensity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    cb: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    schedule_version: Mapped[str] = mapped_column(String(100), nullable=False)
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<ComplianceRecord {self.ship_id}/{self.year} cb={self.cb}>"

    def to_dto(self) -> ComplianceRecord:
        """Convert ORM model to frozen domain DTO."""
        from fueleu_kernel.domain.dtos import ComplianceRecord as ComplianceRecordDTO
        from fueleu_kernel.domain.values import round_cb

        return ComplianceRecordDTO(
            ship_id=self.ship_id,
            year=self.year,
            actual_intensity=self.actual_intensity,
            fuel_consumption=self.fuel_consumption,
            energy_in_scope=self.energy_in_scope,
            target_intensity=self.target_intensity,
            cb=round_cb(self.cb),
            schedule_version=self.schedule_version,
        )

    def apply_dto(self, dto: ComplianceRecord, computed_at: datetime) -> None:
        """Overwrite the stored values with a recomputed record."""
        self.actual_intensity = dto.actual_intensity
        self.fuel_consumption = dto.fuel_consumption
        self.energy_in_scope = dto.energy_in_scope
        self.target_intensity = dto.target_intensity
        self.cb = dto.cb
        self.schedule_version = dto.schedule_version
        self.computed_at = computed_at

    @classmethod
    def from_dto(cls, dto: ComplianceRecord, computed_at: datetime) -> ComplianceRecordModel:
        """Create ORM model from domain DTO."""
        return cls(
            ship_id=dto.ship_id,
            year=dto.year,
            actual_intensity=dto.actual_intensity,
            fuel_consumption=dto.fuel_consumption,
            energy_in_scope=dto.energy_in_scope,
            target_intensity=dto.target_intensity,
            cb=dto.cb,
            schedule_version=dto.schedule_version,
            computed_at=computed_at,
        )
