"""
Idempotency store for capability invocations

Time-bounded cache of previously computed results keyed by a
client-supplied idempotency key. Only successful results are cached:
a failed call must stay retriable under the same key instead of being
shadowed by a stale error.

Eviction:
- get() treats an expired entry as absent and purges it on read
- set() sweeps every expired entry in one pass once the store grows past
  the sweep threshold, bounding growth from keys that are set once and
  never read again

There is no background thread; all eviction happens inside get()/set().
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from capbus.core.capabilities.models import SuccessResult

logger = logging.getLogger(__name__)


class IdempotencyStore(ABC):
    """Idempotency cache interface"""

    @abstractmethod
    def get(self, key: str) -> Optional[SuccessResult]:
        """Cached result for key, or None if absent/expired"""

    @abstractmethod
    def set(self, key: str, result: SuccessResult, ttl: Optional[float] = None) -> None:
        """Cache a successful result (ttl in seconds)"""

    @abstractmethod
    def has(self, key: str) -> bool:
        """True if a live entry exists"""

    @abstractmethod
    def clear(self) -> None:
        """Remove all entries"""


@dataclass(frozen=True)
class CacheEntry:
    result: SuccessResult
    expires_at: float


class InMemoryIdempotencyStore(IdempotencyStore):
    """
    Process-local idempotency cache

    Example:
        >>> store = InMemoryIdempotencyStore(default_ttl=60)
        >>> store.set("order-42", SuccessResult(request_id="r1", data={"id": 42}))
        >>> store.get("order-42").data
        {'id': 42}
    """

    DEFAULT_TTL_SECONDS = 5 * 60
    DEFAULT_SWEEP_THRESHOLD = 1000

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        sweep_threshold: int = DEFAULT_SWEEP_THRESHOLD,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize idempotency store

        Args:
            default_ttl: Entry lifetime in seconds when set() gets no ttl
            sweep_threshold: Size above which set() sweeps expired entries
            clock: Monotonic time source in seconds (injectable for tests)
        """
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self._cache: Dict[str, CacheEntry] = {}
        self.default_ttl = default_ttl
        self.sweep_threshold = sweep_threshold
        self._clock = clock

    def get(self, key: str) -> Optional[SuccessResult]:
        entry = self._cache.get(key)
        if entry is None:
            return None

        if self._is_expired(entry):
            logger.debug(f"Idempotency entry expired: {key}")
            self._cache.pop(key, None)
            return None

        return entry.result

    def set(self, key: str, result: SuccessResult, ttl: Optional[float] = None) -> None:
        if getattr(result, "status", None) != "success":
            raise ValueError("Only successful results may be cached")

        lifetime = self.default_ttl if ttl is None else ttl
        self._cache[key] = CacheEntry(
            result=result,
            expires_at=self._clock() + lifetime,
        )
        logger.debug(f"Cached idempotent result: {key} (ttl={lifetime}s)")

        if len(self._cache) > self.sweep_threshold:
            self._cleanup_expired()

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        count = len(self._cache)
        self._cache.clear()
        logger.info(f"Cleared idempotency store ({count} entries)")

    def __len__(self) -> int:
        return len(self._cache)

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock() > entry.expires_at

    def _cleanup_expired(self) -> None:
        """Remove expired entries"""
        expired_keys = [
            key
            for key, entry in self._cache.items()
            if self._is_expired(entry)
        ]

        for key in expired_keys:
            self._cache.pop(key, None)

        if expired_keys:
            logger.debug(f"Swept {len(expired_keys)} expired idempotency entries")

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about cached results

        Returns:
            Dictionary with store statistics
        """
        return {
            "total_entries": len(self._cache),
            "default_ttl_seconds": self.default_ttl,
            "sweep_threshold": self.sweep_threshold,
        }
