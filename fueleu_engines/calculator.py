"""
Module: fueleu_engines.calculator
Responsibility:
    Turn a ship-year's operational data into its Compliance Balance, and
    compare routes' GHG intensity against a baseline route and the target.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Reads regulatory constants from the RegulatoryConfig it is built with.

Invariants enforced:
    - energy_in_scope = fuel_consumption * energy_conversion_factor > 0.
    - cb = round((target - actual) * energy, cb_decimal_places), rounding
      half away from zero.  Positive is surplus, negative is deficit.
    - Targets are looked up, never interpolated.
    - Purity: same metrics and config always produce the same record.

Failure modes:
    - InvalidMetricsError on negative intensity, negative fuel, or zero
      energy in scope.
    - UnsupportedYearError for a year outside the compliance window or
      with no published target.

Usage:
    from fueleu_config import get_active_config
    from fueleu_engines.calculator import ComplianceCalculator

    calculator = ComplianceCalculator(get_active_config())
    record = calculator.compute(
        RawShipYearMetrics("IMO9000001", 2025, Decimal("91.0"), Decimal("5000"))
    )
    record.cb  # Decimal("-340956000.00")
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from fueleu_config.schema import RegulatoryConfig
from fueleu_engines.tracer import traced_engine
from fueleu_kernel.domain.dtos import ComplianceRecord, RawShipYearMetrics
from fueleu_kernel.domain.route import RouteComparison, RouteRecord
from fueleu_kernel.domain.values import ZERO, round_cb
from fueleu_kernel.exceptions import InvalidMetricsError, UnsupportedYearError
from fueleu_kernel.logging_config import get_logger

logger = get_logger("engines.calculator")

_HUNDRED = Decimal("100")


class ComplianceCalculator:
    """
    Compute Compliance Balances from ship-year metrics.

    Contract:
        Pure functions over the RegulatoryConfig; no clock, no I/O.
    Guarantees:
        - Every record carries the config's schedule_version.
    Non-goals:
        - Does not persist records; the accounting service upserts them.
    """

    def __init__(self, config: RegulatoryConfig):
        self._config = config

    @property
    def config(self) -> RegulatoryConfig:
        return self._config

    def target_intensity(self, year: int) -> Decimal:
        """Published target GHG intensity (gCO2e/MJ) for a compliance year."""
        window = self._config.compliance_window
        target = self._config.target_intensities.get(year)
        if not window.contains(year) or target is None:
            raise UnsupportedYearError(year, window.first_year, window.last_year)
        return target

    @traced_engine("compliance_calculator", "1.0", fingerprint_fields=("metrics",))
    def compute(self, metrics: RawShipYearMetrics) -> ComplianceRecord:
        """
        Compute the Compliance Balance of one ship-year.

        Args:
            metrics: Actual intensity (gCO2e/MJ) and fuel consumption (t).

        Returns:
            ComplianceRecord with energy_in_scope, target and rounded cb.

        Raises:
            InvalidMetricsError: negative inputs or zero energy in scope.
            UnsupportedYearError: no target for metrics.year.
        """
        self._validate(metrics)
        target = self.target_intensity(metrics.year)

        energy = metrics.fuel_consumption * self._config.energy_conversion_factor
        if energy <= ZERO:
            raise InvalidMetricsError(
                metrics.ship_id,
                metrics.year,
                "fuel_consumption",
                metrics.fuel_consumption,
                "energy in scope must be positive",
            )

        cb = round_cb(
            (target - metrics.actual_intensity) * energy,
            self._config.cb_decimal_places,
        )

        logger.debug(
            "compliance_balance_computed",
            extra={
                "ship_id": metrics.ship_id,
                "year": metrics.year,
                "target_intensity": target,
                "energy_in_scope": energy,
                "cb": cb,
            },
        )

        return ComplianceRecord(
            ship_id=metrics.ship_id,
            year=metrics.year,
            actual_intensity=metrics.actual_intensity,
            fuel_consumption=metrics.fuel_consumption,
            energy_in_scope=energy,
            target_intensity=target,
            cb=cb,
            schedule_version=self._config.schedule_version,
        )

    def compare_routes(
        self,
        baseline: RouteRecord,
        routes: Sequence[RouteRecord],
        year: int | None = None,
    ) -> tuple[RouteComparison, ...]:
        """
        Compare each route's GHG intensity with the baseline and the target.

        percent_diff = (route / baseline - 1) * 100, rounded to two places,
        and 0 when the baseline intensity is 0.  The baseline itself is
        skipped if it appears in ``routes``.  The target is taken for
        ``year``, defaulting to the baseline route's year.
        """
        target = self.target_intensity(year if year is not None else baseline.year)

        comparisons = []
        for route in routes:
            if route.route_id == baseline.route_id:
                continue
            if baseline.ghg_intensity == ZERO:
                percent_diff = ZERO
            else:
                percent_diff = round_cb(
                    (route.ghg_intensity / baseline.ghg_intensity - 1) * _HUNDRED
                )
            comparisons.append(
                RouteComparison(
                    baseline=baseline,
                    comparison=route,
                    percent_diff=percent_diff,
                    compliant=route.ghg_intensity <= target,
                    target_intensity=target,
                )
            )
        return tuple(comparisons)

    @staticmethod
    def _validate(metrics: RawShipYearMetrics) -> None:
        if metrics.actual_intensity < ZERO:
            raise InvalidMetricsError(
                metrics.ship_id,
                metrics.year,
                "actual_intensity",
                metrics.actual_intensity,
                "must not be negative",
            )
        if metrics.fuel_consumption < ZERO:
            raise InvalidMetricsError(
                metrics.ship_id,
                metrics.year,
                "fuel_consumption",
                metrics.fuel_consumption,
                "must not be negative",
            )
