"""
RegulatoryConfig schema.

The typed form of a regulatory configuration set.  YAML files are parsed
into these frozen dataclasses by the loader and checked by the validator
before ``get_active_config()`` hands them to engines and services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Rule groups
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComplianceWindow:
    """Years for which a compliance balance may be computed."""

    first_year: int
    last_year: int

    def contains(self, year: int) -> bool:
        return self.first_year <= year <= self.last_year


@dataclass(frozen=True)
class TargetPeriod:
    """A reduction of the reference intensity applying to a span of years."""

    from_year: int
    to_year: int
    reduction_percent: Decimal


@dataclass(frozen=True)
class BankingRules:
    """Article 20 banking limits."""

    max_bank_fraction: Decimal = Decimal("0.20")
    max_apply_years: int = 3


@dataclass(frozen=True)
class PoolingRules:
    """Article 21 pool size limits."""

    min_pool_size: int = 2
    max_pool_size: int = 100


# ---------------------------------------------------------------------------
# Configuration set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegulatoryConfig:
    """
    Root regulatory configuration.

    ``target_intensities`` is the expanded per-year schedule; a year with
    no entry has no published target.
    """

    regime: str
    version: str
    compliance_window: ComplianceWindow
    reference_intensity: Decimal
    energy_conversion_factor: Decimal
    target_schedule: tuple[TargetPeriod, ...]
    target_intensities: dict[int, Decimal] = field(default_factory=dict)
    cb_decimal_places: int = 2
    banking: BankingRules = field(default_factory=BankingRules)
    pooling: PoolingRules = field(default_factory=PoolingRules)
    lock_timeout_seconds: float = 5.0
    description: str = ""
    checksum: str = ""

    @property
    def schedule_version(self) -> str:
        """Identifier stamped on every computed ComplianceRecord."""
        return f"{self.regime}@{self.version}"
