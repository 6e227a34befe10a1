"""
Typed Exception Hierarchy for the FuelEU Compliance Accounting Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Compliance operations are rejected for precise regulatory reasons. Callers
(an HTTP layer, a CLI, a batch job) must be able to tell a bank-cap breach
from an insufficient balance without parsing messages, and must be able to
show the user the limiting value so they can correct the request.

Every exception therefore:
  1. Has its own TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries the limiting values as ATTRIBUTES (cap, available, pool sum...)

Example:
    try:
        ledger.withdraw(ship_id, 2027, Decimal("500.00"), as_of_year=2027)
    except InsufficientBankedAmountError as e:
        api_response(code=e.code, available=str(e.available))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FuelEUError (base)
    |
    +-- ValidationError                    caller error, malformed input
    |   +-- InvalidAmountError
    |   +-- InvalidMetricsError
    |   +-- InvalidPoolSizeError
    |   +-- DuplicatePoolMemberError
    |   +-- SelfTransferError
    |
    +-- ConstraintViolation                regulatory rule broken
    |   +-- NothingToBankError
    |   +-- ExceedsBankCapError
    |   +-- NoDeficitToCoverError
    |   +-- ExceedsDeficitError
    |   +-- InsufficientBankedAmountError
    |   +-- PoolSumNegativeError
    |   +-- DeficitShipWorseError
    |   +-- SurplusShipNegativeError
    |   +-- PoolConservationError
    |   +-- ShipAlreadyPooledError
    |   +-- ExceedsAdjustedBalanceError
    |
    +-- NotFoundError
    |   +-- ComplianceRecordNotFoundError
    |   +-- PoolNotFoundError
    |   +-- RouteNotFoundError
    |
    +-- BaselineNotSetError
    |
    +-- UnsupportedYearError
    |
    +-- ConcurrencyError                   the only retryable category
    |   +-- LockTimeoutError
    |   +-- OptimisticLockError
    |
    +-- IntegrityError
        +-- LedgerIntegrityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_AMOUNT              | Amount not strictly positive
                | INVALID_METRICS             | Negative intensity/fuel, zero energy
                | INVALID_POOL_SIZE           | Member count outside [min, max]
                | DUPLICATE_POOL_MEMBER       | Same ship twice in one pool request
                | SELF_TRANSFER               | Transfer source == destination
----------------|-----------------------------|-----------------------------------------
Constraint      | NOTHING_TO_BANK             | Deposit against CB <= 0
                | EXCEEDS_BANK_CAP            | Deposit above 20% cap / remaining surplus
                | NO_DEFICIT_TO_COVER         | Withdrawal against CB >= 0
                | EXCEEDS_DEFICIT             | Withdrawal above uncovered deficit
                | INSUFFICIENT_BANKED_AMOUNT  | Withdrawal/transfer above available
                | POOL_SUM_NEGATIVE           | Sum of member CB < 0
                | DEFICIT_SHIP_WORSE          | Deficit member exits below cb_before
                | SURPLUS_SHIP_NEGATIVE       | Surplus member exits below zero
                | POOL_CONSERVATION_BROKEN    | Sum after != sum before
                | SHIP_ALREADY_POOLED         | Ship already in a pool for the year
                | EXCEEDS_ADJUSTED_BALANCE    | Pool cb_before above the adjusted CB
----------------|-----------------------------|-----------------------------------------
Not found       | COMPLIANCE_RECORD_NOT_FOUND | No record for ship-year
                | POOL_NOT_FOUND              | Unknown pool id
                | ROUTE_NOT_FOUND             | Unknown route id
----------------|-----------------------------|-----------------------------------------
Routes          | BASELINE_NOT_SET            | Comparison without a baseline route
----------------|-----------------------------|-----------------------------------------
Year            | UNSUPPORTED_YEAR            | Outside window or no published target
----------------|-----------------------------|-----------------------------------------
Concurrency     | LOCK_TIMEOUT                | Ship ledger lock not acquired in time
                | OPTIMISTIC_LOCK_CONFLICT    | Concurrent writer detected by the store
----------------|-----------------------------|-----------------------------------------
Integrity       | LEDGER_INTEGRITY_BROKEN     | Cached balance != replayed entries
                | IMMUTABILITY_VIOLATION      | Update/delete of an append-only row

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Inherit from Exception, not ValueError: domain errors are catchable as a
   group without mixing in programming errors.

2. ``code`` is a class attribute so it is readable without instantiation.

3. Amounts are stored as Decimal attributes. Converting them to strings for
   transport is the caller's job.
"""

from __future__ import annotations

from decimal import Decimal


class FuelEUError(Exception):
    """
    Base exception for all compliance accounting errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FUELEU_ERROR"


# Validation errors


class ValidationError(FuelEUError):
    """Malformed or out-of-range input. Caller error, never retried."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """An amount that must be strictly positive was not."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: Decimal):
        self.field = field
        self.value = value
        super().__init__(f"{field} must be greater than 0, got {value}")


class InvalidMetricsError(ValidationError):
    """Raw ship-year metrics violate an input constraint."""

    code: str = "INVALID_METRICS"

    def __init__(self, ship_id: str, year: int, field: str, value: Decimal, reason: str):
        self.ship_id = ship_id
        self.year = year
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(
            f"Invalid metrics for ship {ship_id} in {year}: {field}={value} ({reason})"
        )


class InvalidPoolSizeError(ValidationError):
    """Pool member count outside the allowed range."""

    code: str = "INVALID_POOL_SIZE"

    def __init__(self, member_count: int, min_size: int, max_size: int):
        self.member_count = member_count
        self.min_size = min_size
        self.max_size = max_size
        super().__init__(
            f"Pool must have between {min_size} and {max_size} members, "
            f"got {member_count}"
        )


class DuplicatePoolMemberError(ValidationError):
    """The same ship appears more than once in a pool request."""

    code: str = "DUPLICATE_POOL_MEMBER"

    def __init__(self, ship_id: str):
        self.ship_id = ship_id
        super().__init__(f"Ship {ship_id} appears more than once in the pool")


class SelfTransferError(ValidationError):
    """Transfer source and destination are the same ship."""

    code: str = "SELF_TRANSFER"

    def __init__(self, ship_id: str):
        self.ship_id = ship_id
        super().__init__(f"Cannot transfer credits from ship {ship_id} to itself")


# Constraint violations


class ConstraintViolation(FuelEUError):
    """A regulatory rule was broken. Carries the limiting value."""

    code: str = "CONSTRAINT_VIOLATION"


class NothingToBankError(ConstraintViolation):
    """Deposit requested for a year whose CB is not strictly positive."""

    code: str = "NOTHING_TO_BANK"

    def __init__(self, ship_id: str, year: int, cb: Decimal):
        self.ship_id = ship_id
        self.year = year
        self.cb = cb
        super().__init__(
            f"Ship {ship_id} has no surplus to bank in {year} (CB {cb} gCO2e)"
        )


class ExceedsBankCapError(ConstraintViolation):
    """Deposit would exceed the bankable amount for the source year."""

    code: str = "EXCEEDS_BANK_CAP"

    def __init__(
        self,
        ship_id: str,
        year: int,
        requested: Decimal,
        cap: Decimal,
        already_banked: Decimal,
        bankable: Decimal,
    ):
        self.ship_id = ship_id
        self.year = year
        self.requested = requested
        self.cap = cap
        self.already_banked = already_banked
        self.bankable = bankable
        super().__init__(
            f"Amount {requested} exceeds bankable amount for ship {ship_id} in "
            f"{year}: {bankable} gCO2e (cap {cap}, already banked {already_banked})"
        )


class NoDeficitToCoverError(ConstraintViolation):
    """Withdrawal requested for a year whose CB is not strictly negative."""

    code: str = "NO_DEFICIT_TO_COVER"

    def __init__(self, ship_id: str, year: int, cb: Decimal):
        self.ship_id = ship_id
        self.year = year
        self.cb = cb
        super().__init__(
            f"Ship {ship_id} has no deficit to cover in {year} (CB {cb} gCO2e)"
        )


class ExceedsDeficitError(ConstraintViolation):
    """Withdrawal would apply more than the uncovered deficit of the year."""

    code: str = "EXCEEDS_DEFICIT"

    def __init__(
        self, ship_id: str, year: int, requested: Decimal, remaining_deficit: Decimal
    ):
        self.ship_id = ship_id
        self.year = year
        self.requested = requested
        self.remaining_deficit = remaining_deficit
        super().__init__(
            f"Amount {requested} exceeds the uncovered deficit of ship {ship_id} "
            f"in {year}: {remaining_deficit} gCO2e"
        )


class InsufficientBankedAmountError(ConstraintViolation):
    """Withdrawal or transfer exceeds the available banked balance."""

    code: str = "INSUFFICIENT_BANKED_AMOUNT"

    def __init__(self, ship_id: str, requested: Decimal, available: Decimal):
        self.ship_id = ship_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient banked amount for ship {ship_id}. "
            f"Available: {available} gCO2e, requested: {requested}"
        )


class PoolSumNegativeError(ConstraintViolation):
    """A pool cannot be formed from a net-deficit group."""

    code: str = "POOL_SUM_NEGATIVE"

    def __init__(self, pool_sum: Decimal):
        self.pool_sum = pool_sum
        super().__init__(f"Pool sum cannot be negative (sum {pool_sum} gCO2e)")


class DeficitShipWorseError(ConstraintViolation):
    """A member that entered with a deficit would exit worse off."""

    code: str = "DEFICIT_SHIP_WORSE"

    def __init__(self, ship_id: str, cb_before: Decimal, cb_after: Decimal):
        self.ship_id = ship_id
        self.cb_before = cb_before
        self.cb_after = cb_after
        super().__init__(
            f"Deficit ship {ship_id} cannot exit worse than its original CB "
            f"({cb_after} < {cb_before})"
        )


class SurplusShipNegativeError(ConstraintViolation):
    """A member that entered with a surplus would exit negative."""

    code: str = "SURPLUS_SHIP_NEGATIVE"

    def __init__(self, ship_id: str, cb_before: Decimal, cb_after: Decimal):
        self.ship_id = ship_id
        self.cb_before = cb_before
        self.cb_after = cb_after
        super().__init__(
            f"Surplus ship {ship_id} cannot exit with negative CB ({cb_after})"
        )


class PoolConservationError(ConstraintViolation):
    """Allocation created or destroyed compliance balance."""

    code: str = "POOL_CONSERVATION_BROKEN"

    def __init__(self, sum_before: Decimal, sum_after: Decimal):
        self.sum_before = sum_before
        self.sum_after = sum_after
        super().__init__(
            f"Pool allocation is not conservative: {sum_after} != {sum_before}"
        )


class ShipAlreadyPooledError(ConstraintViolation):
    """A ship may belong to at most one pool per compliance year."""

    code: str = "SHIP_ALREADY_POOLED"

    def __init__(self, ship_id: str, year: int, pool_id: str):
        self.ship_id = ship_id
        self.year = year
        self.pool_id = pool_id
        super().__init__(
            f"Ship {ship_id} is already a member of pool {pool_id} for {year}"
        )


class ExceedsAdjustedBalanceError(ConstraintViolation):
    """A pool member claims more CB than it has left after banking and pooling."""

    code: str = "EXCEEDS_ADJUSTED_BALANCE"

    def __init__(self, ship_id: str, year: int, cb_before: Decimal, adjusted_cb: Decimal):
        self.ship_id = ship_id
        self.year = year
        self.cb_before = cb_before
        self.adjusted_cb = adjusted_cb
        super().__init__(
            f"Ship {ship_id} cannot enter a pool for {year} with CB {cb_before}: "
            f"adjusted CB is {adjusted_cb} gCO2e"
        )


# Not found


class NotFoundError(FuelEUError):
    """Requested record does not exist."""

    code: str = "NOT_FOUND"


class ComplianceRecordNotFoundError(NotFoundError):
    """No compliance record for the requested ship-year."""

    code: str = "COMPLIANCE_RECORD_NOT_FOUND"

    def __init__(self, ship_id: str, year: int):
        self.ship_id = ship_id
        self.year = year
        super().__init__(f"No compliance record for ship {ship_id} in {year}")


class PoolNotFoundError(NotFoundError):
    """No pool with the requested id."""

    code: str = "POOL_NOT_FOUND"

    def __init__(self, pool_id: str):
        self.pool_id = pool_id
        super().__init__(f"Pool not found: {pool_id}")


class RouteNotFoundError(NotFoundError):
    """No route with the requested id."""

    code: str = "ROUTE_NOT_FOUND"

    def __init__(self, route_id: str):
        self.route_id = route_id
        super().__init__(f"Route not found: {route_id}")


# Routes


class BaselineNotSetError(FuelEUError):
    """A comparison needs a baseline route and none is set."""

    code: str = "BASELINE_NOT_SET"

    def __init__(self):
        super().__init__("No baseline route set")


# Regulatory schedule


class UnsupportedYearError(FuelEUError):
    """Year outside the regulatory window or without a published target."""

    code: str = "UNSUPPORTED_YEAR"

    def __init__(self, year: int, first_year: int, last_year: int):
        self.year = year
        self.first_year = first_year
        self.last_year = last_year
        super().__init__(
            f"Year {year} is not supported by the regulatory schedule "
            f"({first_year}-{last_year})"
        )


# Concurrency


class ConcurrencyError(FuelEUError):
    """Transient contention. The caller may resubmit."""

    code: str = "CONCURRENCY_ERROR"


class LockTimeoutError(ConcurrencyError):
    """A ship ledger lock could not be acquired in time."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, ship_ids: tuple[str, ...], timeout_seconds: float):
        self.ship_ids = ship_ids
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timed out after {timeout_seconds}s acquiring ledger lock for "
            f"{', '.join(ship_ids)}"
        )


class OptimisticLockError(ConcurrencyError):
    """The store detected a concurrent writer on the same ledger."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "ledger was modified by another writer"
        )


# Integrity


class IntegrityError(FuelEUError):
    """Stored state contradicts an accounting invariant."""

    code: str = "INTEGRITY_ERROR"


class LedgerIntegrityError(IntegrityError):
    """Incrementally maintained balance disagrees with the entry log."""

    code: str = "LEDGER_INTEGRITY_BROKEN"

    def __init__(self, ship_id: str, cached: Decimal, replayed: Decimal):
        self.ship_id = ship_id
        self.cached = cached
        self.replayed = replayed
        super().__init__(
            f"Ledger for ship {ship_id} is inconsistent: cached balance {cached}, "
            f"replayed balance {replayed}"
        )


class ImmutabilityViolationError(IntegrityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )
