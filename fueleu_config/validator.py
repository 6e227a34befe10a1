"""
Configuration Validator (``fueleu_config.validator``).

Responsibility
--------------
Validates a ``RegulatoryConfig`` before it is handed to engines, so a
malformed schedule or an impossible banking/pooling rule is rejected at
load time rather than in the middle of a ledger operation.

Invariants enforced
-------------------
* Window ordering -- ``first_year <= last_year``.
* Schedule sanity -- periods are ordered, do not overlap, lie inside the
  window, and reduce the reference by 0..100 percent.
* Positive physical constants -- reference intensity and energy factor.
* Rule ranges -- bank fraction in (0, 1], apply years >= 0,
  ``2 <= min_pool_size <= max_pool_size``, lock timeout > 0.

Failure modes
-------------
* Errors -> ``get_active_config()`` raises ``ValueError`` listing them all.
* Warnings (years in the window with no published target) -> the config is
  usable; those years fail with ``UnsupportedYearError`` when computed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from fueleu_config.schema import RegulatoryConfig


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: RegulatoryConfig) -> ConfigValidationResult:
    """
    Validate a regulatory configuration.

    Postconditions:
        - Every problem found is reported; validation never stops at the
          first error.
    """
    result = ConfigValidationResult()

    _validate_window(config, result)
    _validate_constants(config, result)
    _validate_schedule(config, result)
    _validate_banking(config, result)
    _validate_pooling(config, result)

    if config.lock_timeout_seconds <= 0:
        result.add_error(
            f"lock_timeout_seconds must be positive, got {config.lock_timeout_seconds}"
        )

    return result


def _validate_window(config: RegulatoryConfig, result: ConfigValidationResult) -> None:
    window = config.compliance_window
    if window.first_year > window.last_year:
        result.add_error(
            f"compliance_window.first_year {window.first_year} is after "
            f"last_year {window.last_year}"
        )


def _validate_constants(config: RegulatoryConfig, result: ConfigValidationResult) -> None:
    if config.reference_intensity <= 0:
        result.add_error(
            f"reference_intensity must be positive, got {config.reference_intensity}"
        )
    if config.energy_conversion_factor <= 0:
        result.add_error(
            f"energy_conversion_factor must be positive, got "
            f"{config.energy_conversion_factor}"
        )
    if config.cb_decimal_places < 0:
        result.add_error(
            f"cb_decimal_places must be >= 0, got {config.cb_decimal_places}"
        )


def _validate_schedule(config: RegulatoryConfig, result: ConfigValidationResult) -> None:
    if not config.target_schedule:
        result.add_error("target_schedule is empty")
        return

    window = config.compliance_window
    previous_end: int | None = None
    for period in config.target_schedule:
        label = f"target period {period.from_year}-{period.to_year}"
        if period.from_year > period.to_year:
            result.add_error(f"{label}: from_year is after to_year")
        if not (window.contains(period.from_year) and window.contains(period.to_year)):
            result.add_error(
                f"{label}: outside compliance window "
                f"{window.first_year}-{window.last_year}"
            )
        if not (Decimal("0") <= period.reduction_percent <= Decimal("100")):
            result.add_error(
                f"{label}: reduction_percent {period.reduction_percent} "
                f"not in 0..100"
            )
        if previous_end is not None and period.from_year <= previous_end:
            result.add_error(f"{label}: overlaps or precedes the previous period")
        previous_end = period.to_year

    missing = [
        y
        for y in range(window.first_year, window.last_year + 1)
        if y not in config.target_intensities
    ]
    if missing:
        result.add_warning(f"no published target for years {missing}")


def _validate_banking(config: RegulatoryConfig, result: ConfigValidationResult) -> None:
    rules = config.banking
    if not (Decimal("0") < rules.max_bank_fraction <= Decimal("1")):
        result.add_error(
            f"banking.max_bank_fraction must be in (0, 1], got {rules.max_bank_fraction}"
        )
    if rules.max_apply_years < 0:
        result.add_error(
            f"banking.max_apply_years must be >= 0, got {rules.max_apply_years}"
        )


def _validate_pooling(config: RegulatoryConfig, result: ConfigValidationResult) -> None:
    rules = config.pooling
    if rules.min_pool_size < 2:
        result.add_error(
            f"pooling.min_pool_size must be at least 2, got {rules.min_pool_size}"
        )
    if rules.max_pool_size < rules.min_pool_size:
        result.add_error(
            f"pooling.max_pool_size {rules.max_pool_size} is below "
            f"min_pool_size {rules.min_pool_size}"
        )
