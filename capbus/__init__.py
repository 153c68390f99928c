"""capbus - capability invocation mediator for UI and agent callers"""

__version__ = "0.1.0"

from capbus.core.capabilities import (  # noqa: E402
    AppContext,
    CallerIdentity,
    CapabilityBus,
    CapabilityDefinition,
    ConcurrencyPolicy,
    ErrorCode,
    InvokeOptions,
    PreconditionResult,
    SideEffect,
)

__all__ = [
    "__version__",
    "AppContext",
    "CallerIdentity",
    "CapabilityBus",
    "CapabilityDefinition",
    "ConcurrencyPolicy",
    "ErrorCode",
    "InvokeOptions",
    "PreconditionResult",
    "SideEffect",
]
