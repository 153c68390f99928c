"""
Capability Bus

This package provides the capability invocation mediator: one pipeline
through which UI code and autonomous agents invoke named, schema-typed
operations and receive structured results.

Components:
- CapabilityDefinition, InvocationContext (definition)
- Contract, ModelContract, JsonSchemaContract (contracts)
- EventEmitter and bus event types (events)
- PermissionChecker, SimplePermissionChecker (permissions)
- IdempotencyStore, InMemoryIdempotencyStore (idempotency)
- ConcurrencyManager (concurrency)
- AuditLogger, InMemoryAuditLogger (audit_logger)
- generate_manifest, manifest_to_tool_definitions (manifest)
- MiddlewareChain and standard middlewares (middleware)
- CapabilityBus (bus)
"""

from .models import (
    SideEffect,
    ConcurrencyPolicy,
    CallerType,
    ErrorCode,
    CallerIdentity,
    SuccessResult,
    ErrorResult,
    InvocationResult,
    AppContext,
    AvailabilityResult,
    PreconditionResult,
    InvokeOptions,
    CapabilityInvocation,
    AuditRecord,
    ApplicationInfo,
    ManifestCapabilityEntry,
    CapabilityManifest,
    ToolDefinition,
)
from .exceptions import (
    CapabilityBusError,
    ContractViolation,
    InvalidCapabilityError,
)
from .errors import create_error_result, create_success_result
from .contracts import (
    Contract,
    ModelContract,
    JsonSchemaContract,
    as_contract,
    to_json_schema,
)
from .definition import CapabilityDefinition, InvocationContext
from .events import (
    BusEvent,
    EventEmitter,
    EventListener,
    InvocationEvent,
    NotificationEvent,
    ProgressEvent,
    StateChangeEvent,
)
from .permissions import PermissionChecker, SimplePermissionChecker
from .idempotency import IdempotencyStore, InMemoryIdempotencyStore
from .concurrency import ConcurrencyManager
from .audit_logger import AuditLogger, InMemoryAuditLogger
from .manifest import generate_manifest, manifest_to_tool_definitions
from .middleware import (
    Middleware,
    MiddlewareChain,
    LoggingMiddleware,
    TimingMiddleware,
    ConfirmationMiddleware,
)
from .bus import CapabilityBus

__all__ = [
    # Models
    "SideEffect",
    "ConcurrencyPolicy",
    "CallerType",
    "ErrorCode",
    "CallerIdentity",
    "SuccessResult",
    "ErrorResult",
    "InvocationResult",
    "AppContext",
    "AvailabilityResult",
    "PreconditionResult",
    "InvokeOptions",
    "CapabilityInvocation",
    "AuditRecord",
    "ApplicationInfo",
    "ManifestCapabilityEntry",
    "CapabilityManifest",
    "ToolDefinition",
    # Exceptions
    "CapabilityBusError",
    "ContractViolation",
    "InvalidCapabilityError",
    # Result factories
    "create_error_result",
    "create_success_result",
    # Contracts
    "Contract",
    "ModelContract",
    "JsonSchemaContract",
    "as_contract",
    "to_json_schema",
    # Definition
    "CapabilityDefinition",
    "InvocationContext",
    # Events
    "BusEvent",
    "EventEmitter",
    "EventListener",
    "InvocationEvent",
    "NotificationEvent",
    "ProgressEvent",
    "StateChangeEvent",
    # Components
    "PermissionChecker",
    "SimplePermissionChecker",
    "IdempotencyStore",
    "InMemoryIdempotencyStore",
    "ConcurrencyManager",
    "AuditLogger",
    "InMemoryAuditLogger",
    "generate_manifest",
    "manifest_to_tool_definitions",
    # Middleware
    "Middleware",
    "MiddlewareChain",
    "LoggingMiddleware",
    "TimingMiddleware",
    "ConfirmationMiddleware",
    # Bus
    "CapabilityBus",
]
