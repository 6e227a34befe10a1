"""
Route records -- voyage-level operational data.

Routes are the raw operational source a ship-year's metrics are taken from,
and the unit of the baseline comparison report (how each route's GHG
intensity compares with a chosen baseline route and with the target).
At most one registered route is the baseline at any time.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from fueleu_kernel.domain.dtos import RawShipYearMetrics
from fueleu_kernel.domain.values import coerce_decimal_fields


class VesselType(str, Enum):
    CONTAINER = "Container"
    BULK_CARRIER = "BulkCarrier"
    TANKER = "Tanker"
    RORO = "RoRo"


class FuelType(str, Enum):
    HFO = "HFO"  # Heavy Fuel Oil
    LNG = "LNG"  # Liquefied Natural Gas
    MGO = "MGO"  # Marine Gas Oil


@dataclass(frozen=True)
class RouteRecord:
    """One route's reported performance for a year."""

    route_id: str
    vessel_type: VesselType
    fuel_type: FuelType
    year: int
    ghg_intensity: Decimal  # gCO2e/MJ
    fuel_consumption: Decimal  # tonnes
    distance: Decimal  # km
    total_emissions: Decimal  # tonnes
    is_baseline: bool = False

    def __post_init__(self) -> None:
        coerce_decimal_fields(
            self, "ghg_intensity", "fuel_consumption", "distance", "total_emissions"
        )

    def to_metrics(self, ship_id: str) -> RawShipYearMetrics:
        """Use this route as the ship's operational data for the year."""
        return RawShipYearMetrics(
            ship_id=ship_id,
            year=self.year,
            actual_intensity=self.ghg_intensity,
            fuel_consumption=self.fuel_consumption,
        )


@dataclass(frozen=True)
class RouteComparison:
    """A route measured against the baseline route and the target."""

    baseline: RouteRecord
    comparison: RouteRecord
    percent_diff: Decimal
    compliant: bool
    target_intensity: Decimal
