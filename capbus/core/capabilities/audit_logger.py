"""
Invocation audit logger

Append-only record of every invocation attempt and its outcome. Records
are never updated or deleted individually; the log can only be cleared
as a whole.

The bus writes exactly one record per invocation, on every branch
(success, NOT_FOUND, VALIDATION, FORBIDDEN, CONFLICT, precondition failure,
INTERNAL). An idempotent cache hit writes nothing: it was audited once,
on the original call.
"""

import logging
from abc import ABC, abstractmethod
from typing import List

from capbus.core.capabilities.models import AuditRecord

logger = logging.getLogger(__name__)


class AuditLogger(ABC):
    """Audit sink interface"""

    @abstractmethod
    def record(self, entry: AuditRecord) -> None:
        """Append one record"""

    @abstractmethod
    def get_log(self) -> List[AuditRecord]:
        """Snapshot of all records, oldest first"""

    @abstractmethod
    def clear(self) -> None:
        """Remove all records"""


class InMemoryAuditLogger(AuditLogger):
    """
    Process-local audit log

    get_log() returns deep copies: frozen models still hold mutable
    argument and data values, and those must not leak out.

    Example:
        >>> audit = InMemoryAuditLogger()
        >>> audit.get_log()
        []
    """

    def __init__(self):
        self._log: List[AuditRecord] = []

    def record(self, entry: AuditRecord) -> None:
        self._log.append(entry)
        logger.debug(
            f"Audit: {entry.invocation.capability} -> {entry.result.status} "
            f"(request_id={entry.invocation.request_id}, {entry.duration_ms:.1f}ms)"
        )

    def get_log(self) -> List[AuditRecord]:
        return [entry.model_copy(deep=True) for entry in self._log]

    def clear(self) -> None:
        count = len(self._log)
        self._log = []
        logger.info(f"Cleared audit log ({count} records)")

    def __len__(self) -> int:
        return len(self._log)
