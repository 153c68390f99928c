"""
Concurrency admission control

Per-capability admission distinguishing exclusive from concurrent
execution. The lock set is keyed by capability name only: two different
argument sets for the same exclusive capability still conflict.

Invocations are interleaved on a single event loop, never run in true
parallel, so admission is a plain set-membership check: there is no
suspension point between the check and the insert. A second exclusive
invocation arriving while the first is in flight is rejected immediately;
there is no queueing.

Example:
    manager = ConcurrencyManager()
    with manager.admit("order.submit", ConcurrencyPolicy.EXCLUSIVE) as acquired:
        if not acquired:
            ...  # CONFLICT
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Set

from capbus.core.capabilities.models import ConcurrencyPolicy

logger = logging.getLogger(__name__)


class ConcurrencyManager:
    """Owns the set of capability names holding an exclusive lock"""

    def __init__(self):
        self._locks: Set[str] = set()

    def acquire(self, capability_name: str, policy: ConcurrencyPolicy) -> bool:
        """
        Try to admit an invocation

        Concurrent policy always succeeds and never touches the lock set.
        Exclusive policy succeeds only if the name is not already locked.
        """
        if ConcurrencyPolicy(policy) is ConcurrencyPolicy.CONCURRENT:
            return True
        if capability_name in self._locks:
            logger.debug(f"Exclusive lock busy: {capability_name}")
            return False
        self._locks.add(capability_name)
        logger.debug(f"Exclusive lock acquired: {capability_name}")
        return True

    def release(self, capability_name: str) -> None:
        if capability_name in self._locks:
            self._locks.discard(capability_name)
            logger.debug(f"Exclusive lock released: {capability_name}")

    def is_locked(self, capability_name: str) -> bool:
        return capability_name in self._locks

    @contextmanager
    def admit(self, capability_name: str, policy: ConcurrencyPolicy) -> Iterator[bool]:
        """
        Scoped acquisition

        Yields whether the invocation was admitted. An exclusive lock taken
        here is released exactly once on every exit path, including
        exceptions and cancellation.
        """
        acquired = self.acquire(capability_name, policy)
        exclusive = ConcurrencyPolicy(policy) is ConcurrencyPolicy.EXCLUSIVE
        try:
            yield acquired
        finally:
            if acquired and exclusive:
                self.release(capability_name)
