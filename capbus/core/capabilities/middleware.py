"""
Middleware chain

A middleware wraps handler execution:

    async def middleware(invocation, capability, next_) -> InvocationResult:
        ...before...
        result = await next_()
        ...after...
        return result

Composition is onion-style: the first middleware registered with use() is
the outermost wrapper. For [A, B] the order is A-before, B-before,
handler, B-after, A-after.

Contract: a middleware calls next_() zero times (short-circuit: return its
own result, downstream middlewares and the handler never run) or exactly
once. Calling next_() more than once is a contract violation with
undefined results; it is not guarded against at runtime.

The chain is folded into a single callable once and cached; use()
invalidates the cache.

Reusable building blocks (not installed by default):
- LoggingMiddleware: logs capability + arguments before, status after
- TimingMiddleware: wall-clock duration around next_() via callback
- ConfirmationMiddleware: asks before agent-triggered destructive calls
"""

from __future__ import annotations

import inspect
import logging
import time
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Union,
)

from capbus.core.capabilities.errors import create_error_result
from capbus.core.capabilities.models import (
    CallerType,
    CapabilityInvocation,
    ErrorCode,
    SideEffect,
)

if TYPE_CHECKING:
    from capbus.core.capabilities.definition import CapabilityDefinition
    from capbus.core.capabilities.models import InvocationResult

logger = logging.getLogger(__name__)

Next = Callable[[], Awaitable["InvocationResult"]]
Middleware = Callable[
    [CapabilityInvocation, "CapabilityDefinition", Next],
    Awaitable["InvocationResult"],
]
ChainRunner = Callable[
    [CapabilityInvocation, "CapabilityDefinition", Next],
    Awaitable["InvocationResult"],
]


async def _call_terminal(invocation, capability, terminal: Next):
    return await terminal()


def _link(middleware: Middleware, downstream: ChainRunner) -> ChainRunner:
    async def run(invocation, capability, terminal: Next):
        def next_() -> Awaitable["InvocationResult"]:
            return downstream(invocation, capability, terminal)

        return await middleware(invocation, capability, next_)

    return run


def compose(middlewares: Sequence[Middleware]) -> ChainRunner:
    """Fold middlewares into one runner; the first one is outermost"""
    runner: ChainRunner = _call_terminal
    for middleware in reversed(middlewares):
        runner = _link(middleware, runner)
    return runner


class MiddlewareChain:
    """Ordered middleware list with a cached composed runner"""

    def __init__(self, middlewares: Optional[Iterable[Middleware]] = None):
        self._middlewares: List[Middleware] = list(middlewares or [])
        self._runner: Optional[ChainRunner] = None

    def use(self, middleware: Middleware) -> None:
        if not callable(middleware):
            raise TypeError("middleware must be callable")
        self._middlewares.append(middleware)
        self._runner = None

    def run(
        self,
        invocation: CapabilityInvocation,
        capability: "CapabilityDefinition",
        terminal: Next
    ) -> Awaitable["InvocationResult"]:
        """Run the chain with ``terminal`` (the handler) as innermost link"""
        if self._runner is None:
            self._runner = compose(tuple(self._middlewares))
        return self._runner(invocation, capability, terminal)

    def __len__(self) -> int:
        return len(self._middlewares)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(list(self._middlewares))


# ============================================
# Standard Middlewares
# ============================================

class LoggingMiddleware:
    """Log every invocation before and after the rest of the chain"""

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.log = log or logging.getLogger("capbus.middleware")
        self.level = level

    async def __call__(self, invocation, capability, next_: Next):
        self.log.log(
            self.level,
            f"[bus] invoking {invocation.capability} {invocation.arguments!r}"
        )
        result = await next_()
        self.log.log(self.level, f"[bus] {invocation.capability} -> {result.status}")
        return result


class TimingMiddleware:
    """
    Measure wall-clock duration around next_()

    Independent of the bus's own audit duration: it only covers the part
    of the chain downstream of where it is installed.
    """

    def __init__(self, on_timing: Optional[Callable[[str, float], Any]] = None):
        self.on_timing = on_timing

    async def __call__(self, invocation, capability, next_: Next):
        start = time.perf_counter()
        result = await next_()
        duration_ms = (time.perf_counter() - start) * 1000
        if self.on_timing is not None:
            self.on_timing(invocation.capability, duration_ms)
        else:
            logger.debug(f"{invocation.capability} took {duration_ms:.2f}ms")
        return result


ConfirmFn = Callable[[str, Any], Union[bool, Awaitable[bool]]]


class ConfirmationMiddleware:
    """
    Ask before an agent runs a destructive capability

    Only applies when side_effect is destructive AND the caller is an
    agent. UI-originated calls and non-destructive agent calls pass
    straight through. A declined confirmation short-circuits with
    FORBIDDEN "User declined the action".
    """

    DECLINED_MESSAGE = "User declined the action"

    def __init__(self, confirm: ConfirmFn):
        self.confirm = confirm

    async def __call__(self, invocation, capability, next_: Next):
        if (
            capability.side_effect is SideEffect.DESTRUCTIVE
            and invocation.caller.type is CallerType.AGENT
        ):
            confirmed = self.confirm(capability.description, invocation.arguments)
            if inspect.isawaitable(confirmed):
                confirmed = await confirmed
            if not confirmed:
                logger.warning(f"Agent call to {invocation.capability} declined by user")
                return create_error_result(
                    invocation.request_id,
                    ErrorCode.FORBIDDEN,
                    self.DECLINED_MESSAGE,
                )
        return await next_()
