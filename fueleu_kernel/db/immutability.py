"""
ORM-level immutability enforcement.

Banking ledger entries and pools are append-only.  A ledger is corrected
by appending entries, never by editing history; a pool, once created, is
the regulatory record of how its members' balances were redistributed.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events:

    session.flush()
         |
         v
    [before_update event] --> _block_update() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _block_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Entity            | When Immutable
------------------|------------------------
LedgerEntryModel  | ALWAYS (from creation)
PoolModel         | ALWAYS (from creation)
PoolMemberModel   | ALWAYS (from creation)

Compliance records are NOT listed: recomputing a ship-year under a new
regulatory schedule replaces its CB.

Usage:

    from fueleu_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # called by create_tables()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event

from fueleu_kernel.exceptions import ImmutabilityViolationError
from fueleu_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _entity_id(target) -> str:
    return str(getattr(target, "entry_id", None) or getattr(target, "pool_id", None) or target.id)


def _block_update(mapper, connection, target):
    """Prevent any UPDATE of an append-only record."""
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": _entity_id(target),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=_entity_id(target),
        reason="Append-only records cannot be modified",
    )


def _block_delete(mapper, connection, target):
    """Prevent DELETE of an append-only record."""
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": _entity_id(target),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=_entity_id(target),
        reason="Append-only records cannot be deleted",
    )


def _protected_models():
    from fueleu_kernel.models.ledger_entry import LedgerEntryModel
    from fueleu_kernel.models.pool import PoolMemberModel, PoolModel

    return (LedgerEntryModel, PoolModel, PoolMemberModel)


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; already registered listeners are skipped.
    """
    for model in _protected_models():
        if not event.contains(model, "before_update", _block_update):
            event.listen(model, "before_update", _block_update)
        if not event.contains(model, "before_delete", _block_delete):
            event.listen(model, "before_delete", _block_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for model in _protected_models():
        _safe_remove_listener(model, "before_update", _block_update)
        _safe_remove_listener(model, "before_delete", _block_delete)
