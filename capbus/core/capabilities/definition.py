"""
Capability definition - the unit of registration

A CapabilityDefinition is a closed, immutable record: the bus stores it by
name and never mutates it. Input/output declarations are normalized into
Contract objects at construction time.

Example:
    from pydantic import BaseModel
    from capbus.core.capabilities import CapabilityDefinition

    class AddInput(BaseModel):
        a: float
        b: float

    class AddOutput(BaseModel):
        sum: float

    async def add(data: AddInput, ctx) -> dict:
        return {"sum": data.a + data.b}

    math_add = CapabilityDefinition(
        name="math.add",
        description="Add two numbers",
        input=AddInput,
        output=AddOutput,
        handler=add,
    )
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Sequence, Union

from capbus.core.capabilities.contracts import Contract, as_contract
from capbus.core.capabilities.exceptions import InvalidCapabilityError
from capbus.core.capabilities.models import (
    AppContext,
    AvailabilityResult,
    CallerIdentity,
    ConcurrencyPolicy,
    PreconditionResult,
    SideEffect,
)

if TYPE_CHECKING:
    from capbus.core.capabilities.bus import CapabilityBus


@dataclass(frozen=True)
class InvocationContext:
    """Context handed to handlers and precondition checks"""
    caller: CallerIdentity
    request_id: str
    bus: "CapabilityBus"


Handler = Callable[[Any, InvocationContext], Awaitable[Any]]
PreconditionCheck = Callable[[Any, InvocationContext], Awaitable[PreconditionResult]]
AvailabilityCheck = Callable[[AppContext], Union[AvailabilityResult, bool, Mapping[str, Any]]]


@dataclass(frozen=True)
class CapabilityDefinition:
    """
    Named, schema-typed operation

    Attributes:
        name: Unique registry key
        description: Human/LLM readable description
        input: Input contract (validated on every invocation)
        output: Output contract (schema only, never validated at runtime)
        handler: async (validated_input, context) -> output value
        side_effect: Side effect classification
        permissions: Required permission strings (treated as a set)
        concurrency: Admission policy
        preconditions: Optional async (validated_input, context) -> PreconditionResult
        is_available: Optional (AppContext) -> AvailabilityResult, bool or mapping
    """
    name: str
    description: str
    input: Contract
    output: Contract
    handler: Handler
    side_effect: SideEffect = SideEffect.PURE
    permissions: Sequence[str] = ()
    concurrency: ConcurrencyPolicy = ConcurrencyPolicy.CONCURRENT
    preconditions: Optional[PreconditionCheck] = None
    is_available: Optional[AvailabilityCheck] = None

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise InvalidCapabilityError("Capability name must be a non-empty string")
        if not callable(self.handler):
            raise InvalidCapabilityError(f"Capability '{self.name}' handler is not callable")
        if self.preconditions is not None and not callable(self.preconditions):
            raise InvalidCapabilityError(f"Capability '{self.name}' preconditions is not callable")
        if self.is_available is not None and not callable(self.is_available):
            raise InvalidCapabilityError(f"Capability '{self.name}' is_available is not callable")

        # frozen dataclass: normalize through object.__setattr__
        try:
            object.__setattr__(self, "side_effect", SideEffect(self.side_effect))
            object.__setattr__(self, "concurrency", ConcurrencyPolicy(self.concurrency))
        except ValueError as e:
            raise InvalidCapabilityError(f"Capability '{self.name}': {e}") from e
        object.__setattr__(self, "input", as_contract(self.input))
        object.__setattr__(self, "output", as_contract(self.output))
        object.__setattr__(self, "permissions", tuple(self.permissions))

    def check_availability(self, context: AppContext) -> AvailabilityResult:
        """Evaluate is_available (default: always available)"""
        if self.is_available is None:
            return AvailabilityResult(available=True)
        outcome = self.is_available(context)
        if isinstance(outcome, AvailabilityResult):
            return outcome
        if isinstance(outcome, bool):
            return AvailabilityResult(available=outcome)
        if isinstance(outcome, Mapping):
            return AvailabilityResult.model_validate(outcome)
        raise InvalidCapabilityError(
            f"Capability '{self.name}' is_available returned {type(outcome).__name__}; "
            f"expected bool, mapping or AvailabilityResult"
        )
