"""
Stateful services for FuelEU compliance accounting.

Store ports and their in-memory and SQLAlchemy implementations, the
per-ship lock manager, the BankingLedger and the
ComplianceAccountingService facade.
"""

from fueleu_services.accounting import ComplianceAccountingService
from fueleu_services.banking_ledger import BankingLedger
from fueleu_services.locks import ShipLockManager
from fueleu_services.memory_store import (
    InMemoryComplianceStore,
    InMemoryLedgerStore,
    InMemoryPoolStore,
    InMemoryRouteStore,
)
from fueleu_services.ports import ComplianceStore, LedgerStore, PoolStore, RouteStore
from fueleu_services.sql_store import (
    SqlComplianceStore,
    SqlLedgerStore,
    SqlPoolStore,
    SqlRouteStore,
)

__all__ = [
    "ComplianceAccountingService",
    "BankingLedger",
    "ShipLockManager",
    "ComplianceStore",
    "LedgerStore",
    "PoolStore",
    "RouteStore",
    "InMemoryComplianceStore",
    "InMemoryLedgerStore",
    "InMemoryPoolStore",
    "InMemoryRouteStore",
    "SqlComplianceStore",
    "SqlLedgerStore",
    "SqlPoolStore",
    "SqlRouteStore",
]
