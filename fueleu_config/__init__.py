"""
fueleu_config -- single public entrypoint for regulatory configuration.

Responsibility:
    Provides the ONLY way to obtain regulatory constants at runtime through
    ``get_active_config()``.  Engines and services receive the returned
    ``RegulatoryConfig``; none of them reads YAML or environment variables.

Architecture position:
    Configuration -- YAML-driven, validated at load time.  This package sits
    above ``fueleu_kernel`` and below ``fueleu_engines`` /
    ``fueleu_services``.  The kernel MUST NEVER import from ``fueleu_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - A config is returned only after ``validate_configuration`` reports no
      errors.
    - Same YAML always produces the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set for the requested regime.
    - ``ValueError`` -- schema or structural validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``FUELEU_CONFIG_TRACE`` log entry with the regime, version and checksum.
    The version is stamped onto every ComplianceRecord as
    ``schedule_version``.
"""

from __future__ import annotations

from pathlib import Path

from fueleu_config.loader import load_config_file
from fueleu_config.schema import (
    BankingRules,
    ComplianceWindow,
    PoolingRules,
    RegulatoryConfig,
    TargetPeriod,
)
from fueleu_config.validator import ConfigValidationResult, validate_configuration
from fueleu_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DEFAULT_REGIME = "fueleu_maritime"


def get_active_config(
    regime: str = DEFAULT_REGIME,
    config_dir: Path | None = None,
) -> RegulatoryConfig:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned ``RegulatoryConfig`` has passed validation.
        - A ``FUELEU_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Non-goals:
        - This function does NOT cache; callers hold the returned config
          for the lifetime of their engines and services.

    Args:
        regime: Name of the configuration set (``<regime>.yaml``).
        config_dir: Override path to the configuration sets directory.
            Defaults to fueleu_config/sets/.

    Raises:
        FileNotFoundError: If no configuration set exists for ``regime``.
        ValueError: If configuration validation fails.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{regime}.yaml"
    if not path.is_file():
        raise FileNotFoundError(
            f"No configuration set found for regime='{regime}' in {sets_dir}"
        )

    config = load_config_file(path)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"warning": warning})

    _logger.info(
        "FUELEU_CONFIG_TRACE",
        extra={
            "trace_type": "FUELEU_CONFIG_TRACE",
            "regime": config.regime,
            "config_version": config.version,
            "schedule_version": config.schedule_version,
            "checksum": config.checksum,
            "first_year": config.compliance_window.first_year,
            "last_year": config.compliance_window.last_year,
            "target_year_count": len(config.target_intensities),
        },
    )

    return config


__all__ = [
    "get_active_config",
    "DEFAULT_REGIME",
    "RegulatoryConfig",
    "BankingRules",
    "PoolingRules",
    "ComplianceWindow",
    "TargetPeriod",
    "ConfigValidationResult",
    "validate_configuration",
]
