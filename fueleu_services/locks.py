"""
ShipLockManager -- per-ship serialization of ledger and pool writes.

Responsibility:
    Hold one re-entrant lock per ship id.  ``hold`` takes the locks of
    every ship an operation touches, in sorted ship-id order, so two
    transfers in opposite directions between the same ships cannot
    deadlock.

Invariants enforced:
    - Locks are always acquired in sorted order and released on every exit
      path, including validation failures raised inside the block.
    - A lock that cannot be taken within the timeout releases whatever was
      already acquired and raises LockTimeoutError.

Non-goals:
    - Cross-process exclusion.  The SQL store's UNIQUE(ship_id, sequence)
      constraint covers a second writer process.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from fueleu_kernel.exceptions import LockTimeoutError
from fueleu_kernel.logging_config import get_logger

logger = get_logger("services.locks")


class ShipLockManager:
    def __init__(self, timeout_seconds: float = 5.0):
        self._timeout_seconds = timeout_seconds
        self._locks: dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, ship_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(ship_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[ship_id] = lock
            return lock

    @contextmanager
    def hold(self, *ship_ids: str, timeout: float | None = None) -> Iterator[None]:
        """Hold the locks of all ``ship_ids`` for the duration of the block."""
        ordered = tuple(sorted(set(ship_ids)))
        wait = self._timeout_seconds if timeout is None else timeout

        acquired: list[threading.RLock] = []
        try:
            for ship_id in ordered:
                lock = self._lock_for(ship_id)
                if not lock.acquire(timeout=wait):
                    logger.warning(
                        "ship_lock_timeout",
                        extra={
                            "ship_ids": list(ordered),
                            "blocked_on": ship_id,
                            "timeout_seconds": wait,
                        },
                    )
                    raise LockTimeoutError(ordered, wait)
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
