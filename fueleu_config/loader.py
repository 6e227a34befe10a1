"""
Configuration Loader (``fueleu_config.loader``).

Responsibility
--------------
Loads a regulatory YAML file and parses it into the typed
``fueleu_config.schema`` dataclasses.  Runtime callers go through
``fueleu_config.get_active_config()``; this module is the tooling
underneath it.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Numeric values are converted to ``Decimal`` through ``str`` so a YAML
  float never leaks binary noise into a target intensity.
* Reduction periods are expanded into explicit per-year targets:
  ``target = reference_intensity * (1 - reduction_percent / 100)``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the source
  document for configuration identity.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from fueleu_config.schema import (
    BankingRules,
    ComplianceWindow,
    PoolingRules,
    RegulatoryConfig,
    TargetPeriod,
)
from fueleu_kernel.domain.values import to_decimal

_HUNDRED = Decimal("100")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, key: str) -> Decimal:
    """Parse a YAML scalar (string, int or float) into a Decimal."""
    if value is None:
        raise ValueError(f"'{key}' is required")
    try:
        return to_decimal(value)
    except (TypeError, ArithmeticError) as exc:
        raise ValueError(f"'{key}' is not a number: {value!r}") from exc


def parse_window(data: dict[str, Any]) -> ComplianceWindow:
    """Parse the compliance window."""
    return ComplianceWindow(
        first_year=int(data["first_year"]),
        last_year=int(data["last_year"]),
    )


def parse_target_period(data: dict[str, Any]) -> TargetPeriod:
    """Parse one reduction period of the target schedule."""
    return TargetPeriod(
        from_year=int(data["from_year"]),
        to_year=int(data["to_year"]),
        reduction_percent=parse_decimal(data["reduction_percent"], "reduction_percent"),
    )


def expand_target_schedule(
    reference_intensity: Decimal,
    periods: tuple[TargetPeriod, ...],
) -> dict[int, Decimal]:
    """
    Expand reduction periods into one target intensity per year.

    Later periods win when periods overlap; the validator reports overlaps
    as errors before a config is ever used.
    """
    targets: dict[int, Decimal] = {}
    for period in periods:
        target = reference_intensity * (1 - period.reduction_percent / _HUNDRED)
        for year in range(period.from_year, period.to_year + 1):
            targets[year] = target
    return targets


def parse_banking(data: dict[str, Any]) -> BankingRules:
    """Parse banking rules; missing keys take the regulation's defaults."""
    defaults = BankingRules()
    return BankingRules(
        max_bank_fraction=parse_decimal(
            data.get("max_bank_fraction", defaults.max_bank_fraction), "max_bank_fraction"
        ),
        max_apply_years=int(data.get("max_apply_years", defaults.max_apply_years)),
    )


def parse_pooling(data: dict[str, Any]) -> PoolingRules:
    """Parse pooling rules; missing keys take the regulation's defaults."""
    defaults = PoolingRules()
    return PoolingRules(
        min_pool_size=int(data.get("min_pool_size", defaults.min_pool_size)),
        max_pool_size=int(data.get("max_pool_size", defaults.max_pool_size)),
    )


def parse_config(data: dict[str, Any]) -> RegulatoryConfig:
    """
    Parse a full ``RegulatoryConfig`` from a loaded YAML document.

    Preconditions:
        - ``data`` contains ``regime``, ``version``, ``compliance_window``,
          ``reference_intensity``, ``energy_conversion_factor`` and
          ``target_schedule``.
    Postconditions:
        - ``target_intensities`` holds one entry per year covered by the
          schedule.
        - ``checksum`` is the SHA-256 of the source document.
    """
    reference = parse_decimal(data["reference_intensity"], "reference_intensity")
    periods = tuple(parse_target_period(p) for p in data["target_schedule"])
    concurrency = data.get("concurrency") or {}

    return RegulatoryConfig(
        regime=str(data["regime"]),
        version=str(data["version"]),
        description=str(data.get("description", "")),
        compliance_window=parse_window(data["compliance_window"]),
        reference_intensity=reference,
        energy_conversion_factor=parse_decimal(
            data["energy_conversion_factor"], "energy_conversion_factor"
        ),
        target_schedule=periods,
        target_intensities=expand_target_schedule(reference, periods),
        cb_decimal_places=int(data.get("cb_decimal_places", 2)),
        banking=parse_banking(data.get("banking") or {}),
        pooling=parse_pooling(data.get("pooling") or {}),
        lock_timeout_seconds=float(concurrency.get("lock_timeout_seconds", 5.0)),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> RegulatoryConfig:
    """Load and parse one regulatory configuration file."""
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
