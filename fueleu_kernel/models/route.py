"""
Module: fueleu_kernel.models.route
Responsibility: ORM persistence for registered routes and the baseline flag.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(route_id): a route is registered once; re-registering replaces
      its reported values.
    - At most one row has is_baseline set.  The store clears the previous
      baseline in the same transaction that sets a new one.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fueleu_kernel.db.base import Base

if TYPE_CHECKING:
    from fueleu_kernel.domain.route import RouteRecord


class RouteModel(Base):
    """Reported performance of one route for a year."""

    __tablename__ = "routes"

    __table_args__ = (
        UniqueConstraint("route_id", name="uq_route_route_id"),
        Index("idx_route_year", "year"),
    )

    route_id: Mapped[str] = mapped_column(String(100), nullable=False)
    vessel_type: Mapped[str] = mapped_column(String(50), nullable=False)
    fuel_type: Mapped[str] = mapped_column(String(50), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    ghg_intensity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    fuel_consumption: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    distance: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    total_emissions: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    is_baseline: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        marker = " baseline" if self.is_baseline else ""
        return f"<Route {self.route_id} {self.year}{marker}>"

    def to_dto(self) -> RouteRecord:
        from fueleu_kernel.domain.route import FuelType, RouteRecord, VesselType

        return RouteRecord(
            route_id=self.route_id,
            vessel_type=VesselType(self.vessel_type),
            fuel_type=FuelType(self.fuel_type),
            year=self.year,
            ghg_intensity=self.ghg_intensity,
            fuel_consumption=self.fuel_consumption,
            distance=self.distance,
            total_emissions=self.total_emissions,
            is_baseline=self.is_baseline,
        )

    def apply_dto(self, dto: RouteRecord) -> None:
        """Overwrite the reported values; the baseline flag is left alone."""
        self.vessel_type = dto.vessel_type.value
        self.fuel_type = dto.fuel_type.value
        self.year = dto.year
        self.ghg_intensity = dto.ghg_intensity
        self.fuel_consumption = dto.fuel_consumption
        self.distance = dto.distance
        self.total_emissions = dto.total_emissions

    @classmethod
    def from_dto(cls, dto: RouteRecord) -> RouteModel:
        return cls(
            route_id=dto.route_id,
            vessel_type=dto.vessel_type.value,
            fuel_type=dto.fuel_type.value,
            year=dto.year,
            ghg_intensity=dto.ghg_intensity,
            fuel_consumption=dto.fuel_consumption,
            distance=dto.distance,
            total_emissions=dto.total_emissions,
            is_baseline=False,
        )
