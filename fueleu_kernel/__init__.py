"""
FuelEU Kernel - Compliance Accounting Engine foundation

An append-only compliance accounting core with:
- Deterministic compliance balance computation
- Banking ledger with FIFO consumption and lazy expiry
- Pool allocation under per-member regulatory constraints
- Typed errors and structured logging
"""

__version__ = "0.1.0"
