"""
Module: fueleu_engines.pooling
Responsibility:
    Redistribute Compliance Balance across the members of a pool (Article 21)
    with a greedy surplus-to-deficit allocation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The accounting service
    snapshots the members' CB, calls ``allocate``, and persists the Pool.

Invariants enforced:
    - Pool size within [min_pool_size, max_pool_size]; no duplicate ships.
    - Sum of cb_before is not negative.
    - A deficit ship never ends worse than it entered.
    - A surplus ship never ends below zero.
    - Sum of cb_after equals sum of cb_before exactly (Decimal arithmetic,
      inputs normalized to cb_decimal_places on entry).
    - Ties are broken by input order; results are returned in input order.

Failure modes:
    - InvalidPoolSizeError, DuplicatePoolMemberError, PoolSumNegativeError
      before any allocation.
    - DeficitShipWorseError, SurplusShipNegativeError, PoolConservationError
      if an allocation breaks a member or pool rule.  No partial result is
      ever returned.

Usage:
    allocator = PoolingAllocator(get_active_config())
    result = allocator.allocate([
        PoolMemberInput("A", Decimal("500")),
        PoolMemberInput("B", Decimal("-300")),
    ])
    [m.cb_after for m in result.members]  # [Decimal("200.00"), Decimal("0.00")]
"""

from __future__ import annotations

from collections.abc import Sequence

from fueleu_config.schema import RegulatoryConfig
from fueleu_engines.tracer import traced_engine
from fueleu_kernel.domain.dtos import (
    AllocationResult,
    PoolMember,
    PoolMemberInput,
    PoolTransfer,
)
from fueleu_kernel.domain.values import ZERO, round_cb
from fueleu_kernel.exceptions import (
    DeficitShipWorseError,
    DuplicatePoolMemberError,
    InvalidPoolSizeError,
    PoolConservationError,
    PoolSumNegativeError,
    SurplusShipNegativeError,
)
from fueleu_kernel.logging_config import get_logger

logger = get_logger("engines.pooling")


class PoolingAllocator:
    """
    Greedy pool allocation.

    Contract:
        Pure function of the member snapshots and pooling rules.
    Guarantees:
        - Every surplus ship is visited in descending cb_before order and
          covers deficits smallest-first (most negative cb_after first).
    Non-goals:
        - Does not look up CB or check that a ship is already pooled;
          the accounting service does that under the ship locks.
    """

    def __init__(self, config: RegulatoryConfig):
        self._rules = config.pooling
        self._places = config.cb_decimal_places

    @traced_engine("pooling_allocator", "1.0", fingerprint_fields=("members",))
    def allocate(self, members: Sequence[PoolMemberInput]) -> AllocationResult:
        """
        Allocate surplus to deficits across the pool.

        Args:
            members: Ships with their CB snapshot, in caller order.

        Returns:
            AllocationResult with members in input order and the transfers
            made, in the order they were made.
        """
        self._check_preconditions(members)

        ship_ids = [m.ship_id for m in members]
        before = [round_cb(m.cb_before, self._places) for m in members]
        after = list(before)

        logger.info(
            "pool_allocation_started",
            extra={"member_count": len(members), "pool_sum": sum(before, ZERO)},
        )

        # sorted() is stable, so equal keys keep input order
        surplus_order = sorted(range(len(members)), key=lambda i: before[i], reverse=True)
        transfers: list[PoolTransfer] = []

        for giver in surplus_order:
            if after[giver] <= ZERO:
                continue
            deficits = sorted(
                (i for i in range(len(members)) if after[i] < ZERO),
                key=lambda i: after[i],
            )
            for taker in deficits:
                if after[giver] <= ZERO:
                    break
                amount = min(after[giver], -after[taker])
                after[giver] -= amount
                after[taker] += amount
                transfers.append(
                    PoolTransfer(
                        from_ship_id=ship_ids[giver],
                        to_ship_id=ship_ids[taker],
                        amount=amount,
                    )
                )

        result = AllocationResult(
            members=tuple(
                PoolMember(ship_id=ship_ids[i], cb_before=before[i], cb_after=after[i])
                for i in range(len(members))
            ),
            transfers=tuple(transfers),
        )
        self._check_postconditions(result)

        logger.info(
            "pool_allocation_completed",
            extra={
                "member_count": len(members),
                "transfer_count": len(transfers),
                "pool_sum": result.total_after,
            },
        )
        return result

    def _check_preconditions(self, members: Sequence[PoolMemberInput]) -> None:
        count = len(members)
        if not (self._rules.min_pool_size <= count <= self._rules.max_pool_size):
            raise InvalidPoolSizeError(
                count, self._rules.min_pool_size, self._rules.max_pool_size
            )

        seen: set[str] = set()
        for member in members:
            if member.ship_id in seen:
                raise DuplicatePoolMemberError(member.ship_id)
            seen.add(member.ship_id)

        pool_sum = sum((round_cb(m.cb_before, self._places) for m in members), ZERO)
        if pool_sum < ZERO:
            raise PoolSumNegativeError(pool_sum)

    @staticmethod
    def _check_postconditions(result: AllocationResult) -> None:
        for member in result.members:
            if member.cb_before < ZERO and member.cb_after < member.cb_before:
                raise DeficitShipWorseError(
                    member.ship_id, member.cb_before, member.cb_after
                )
            if member.cb_before > ZERO and member.cb_after < ZERO:
                raise SurplusShipNegativeError(
                    member.ship_id, member.cb_before, member.cb_after
                )

        if result.total_after != result.total_before:
            raise PoolConservationError(result.total_before, result.total_after)
