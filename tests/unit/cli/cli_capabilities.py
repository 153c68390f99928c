"""Capabilities registered by the CLI tests (imported as "cli_capabilities:register")."""

from pydantic import BaseModel

from capbus.core.capabilities import (
    AvailabilityResult,
    CapabilityDefinition,
    ConcurrencyPolicy,
    PreconditionResult,
    SideEffect,
)


class AddInput(BaseModel):
    a: float
    b: float


class AddOutput(BaseModel):
    sum: float


async def add(data: AddInput, ctx) -> AddOutput:
    return AddOutput(sum=data.a + data.b)


async def empty_cart(data, ctx) -> PreconditionResult:
    return PreconditionResult.failed("Cart is empty", recovery_hint="Add items first")


async def submit(data, ctx):
    return {"order_id": "ord-1"}


def admin_only(context) -> AvailabilityResult:
    if "admin" in context.permissions:
        return AvailabilityResult()
    return AvailabilityResult(available=False, unavailable_reason="Requires admin")


def register(bus):
    bus.register(CapabilityDefinition(
        name="math.add",
        description="Add two numbers",
        input=AddInput,
        output=AddOutput,
        handler=add,
    ))
    bus.register(CapabilityDefinition(
        name="order.submit",
        description="Submit the cart",
        input={"type": "object"},
        output={"type": "object"},
        handler=submit,
        side_effect=SideEffect.DESTRUCTIVE,
        permissions=["user.authenticated"],
        concurrency=ConcurrencyPolicy.EXCLUSIVE,
        preconditions=empty_cart,
        is_available=admin_only,
    ))


not_callable = 42
