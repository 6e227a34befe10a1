"""ORM models for the compliance accounting kernel."""

from fueleu_kernel.models.compliance_record import ComplianceRecordModel
from fueleu_kernel.models.ledger_entry import LedgerEntryModel
from fueleu_kernel.models.pool import PoolMemberModel, PoolModel
from fueleu_kernel.models.route import RouteModel

__all__ = [
    "ComplianceRecordModel",
    "LedgerEntryModel",
    "PoolModel",
    "PoolMemberModel",
    "RouteModel",
]
