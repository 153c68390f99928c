"""
Bus events and the event emitter

Four event kinds share one channel:
- invocation: emitted by the bus once per audited invocation
- stateChange: a capability reports that a domain's state changed
- notification: user-facing informational/warning/error message
- progress: long-running task progress (0..100)

EventEmitter invokes listeners synchronously, in subscription order, on
every emit. Listener exceptions are NOT caught by the emitter: they
propagate to whoever called emit(). The bus wraps its own internal
emission; direct callers of emit() see listener failures.

Listeners must not assume isolation: a listener that triggers a new
invocation synchronously causes a re-entrant emit before the remaining
listeners of the current event have run.
"""

import logging
from typing import Annotated, Callable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from capbus.core.capabilities.models import CallerIdentity, InvocationResult
from capbus.util.timestamps import epoch_ms

logger = logging.getLogger(__name__)


# ============================================
# Event Types
# ============================================

class InvocationEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["invocation"] = "invocation"
    capability: str
    caller: CallerIdentity
    result: InvocationResult
    timestamp: int = Field(default_factory=epoch_ms)


class StateChangeEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["stateChange"] = "stateChange"
    domain: str
    summary: str
    timestamp: int = Field(default_factory=epoch_ms)


class NotificationEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["notification"] = "notification"
    level: Literal["info", "warning", "error"] = "info"
    message: str
    timestamp: int = Field(default_factory=epoch_ms)


class ProgressEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["progress"] = "progress"
    task_id: str
    percent: float = Field(ge=0, le=100)
    message: Optional[str] = None
    timestamp: int = Field(default_factory=epoch_ms)


BusEvent = Annotated[
    Union[InvocationEvent, StateChangeEvent, NotificationEvent, ProgressEvent],
    Field(discriminator="type"),
]

EventListener = Callable[[BusEvent], None]


# ============================================
# Emitter
# ============================================

class EventEmitter:
    """Ordered publish/subscribe for BusEvent"""

    def __init__(self):
        # Listeners need not be hashable. Membership uses ==, and bound
        # methods compare their instance by identity.
        self._listeners: List[EventListener] = []

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """
        Subscribe a listener

        Returns:
            Zero-argument unsubscribe function (idempotent)
        """
        if listener not in self._listeners:
            self._listeners.append(listener)
            logger.debug(f"Listener subscribed: {getattr(listener, '__name__', listener)!r}")

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: BusEvent) -> None:
        # Snapshot: listeners may (un)subscribe while being notified
        for listener in list(self._listeners):
            listener(event)

    def listener_count(self) -> int:
        return len(self._listeners)

    def clear(self) -> None:
        self._listeners.clear()
