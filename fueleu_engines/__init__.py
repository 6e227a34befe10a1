"""
Pure calculation engines for FuelEU compliance accounting.

These engines have NO dependencies on persistence, clocks, or I/O.  They
take DTOs and a RegulatoryConfig and return DTOs; the services in
``fueleu_services`` own storage, locking and time.

Engines:
    - ComplianceCalculator: Compliance Balance of a ship-year, route comparison
    - CreditBook: FIFO consumption and expiry of a ship's banked credits
    - PoolingAllocator: greedy redistribution of CB across a pool

Usage:
    from fueleu_engines import ComplianceCalculator, PoolingAllocator

    calculator = ComplianceCalculator(config)
    record = calculator.compute(metrics)
"""

from fueleu_engines.banking import CreditBook
from fueleu_engines.calculator import ComplianceCalculator
from fueleu_engines.pooling import PoolingAllocator
from fueleu_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "ComplianceCalculator",
    "CreditBook",
    "PoolingAllocator",
    "traced_engine",
    "compute_input_fingerprint",
]
