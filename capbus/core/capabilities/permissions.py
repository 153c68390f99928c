"""
Permission checking for capability invocations

A permission checker is a pure predicate: given the permissions a
capability requires, the current application context and the caller, it
answers whether the invocation may proceed. It must not mutate anything.

The default policy (SimplePermissionChecker) is a boolean AND over
membership: permitted iff every required permission is granted by the
context. The caller identity is accepted but ignored; it is there for
caller-aware policies (e.g. denying destructive capabilities to agents).

Example:
    >>> checker = SimplePermissionChecker()
    >>> checker.check(["cart.write"], AppContext(permissions=["cart.write"]), CallerIdentity.ui())
    True
"""

import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Iterable, Union

from capbus.core.capabilities.models import AppContext, CallerIdentity

logger = logging.getLogger(__name__)


class PermissionChecker(ABC):
    """Permission policy interface (check may be sync or async)"""

    @abstractmethod
    def check(
        self,
        required: Iterable[str],
        context: AppContext,
        caller: CallerIdentity
    ) -> Union[bool, Awaitable[bool]]:
        """Return True if the invocation is permitted"""


class SimplePermissionChecker(PermissionChecker):
    """Granted set must be a superset of the required set"""

    def check(
        self,
        required: Iterable[str],
        context: AppContext,
        caller: CallerIdentity
    ) -> bool:
        granted = set(context.permissions)
        missing = [p for p in required if p not in granted]
        if missing:
            logger.debug(f"Missing permissions for {caller.type.value} caller: {missing}")
            return False
        return True
