"""
Data models for the capability bus

This module defines the value objects that flow through the invocation
pipeline. Every model here is plain data: it can be serialized with
``model_dump(mode="json")`` and compared by value.

Models:
- SideEffect / ConcurrencyPolicy / CallerType / ErrorCode: closed enumerations
- CallerIdentity: who triggered an invocation (ui, agent, test)
- SuccessResult / ErrorResult: the InvocationResult tagged union
- AppContext: granted permissions plus arbitrary application state
- PreconditionResult / AvailabilityResult: capability-supplied checks
- InvokeOptions / CapabilityInvocation: one request in flight
- AuditRecord: one append-only audit entry
- CapabilityManifest / ManifestCapabilityEntry / ToolDefinition: discovery views
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from capbus.util.timestamps import epoch_ms


class SideEffect(str, Enum):
    """Side effect classification of a capability"""
    PURE = "pure"                # No observable effect
    UI_ONLY = "ui-only"          # Changes local UI state only
    NETWORK = "network"          # Talks to a remote system
    DESTRUCTIVE = "destructive"  # Irreversible (orders, deletions, payments)


class ConcurrencyPolicy(str, Enum):
    """Admission policy for in-flight invocations of one capability"""
    CONCURRENT = "concurrent"
    EXCLUSIVE = "exclusive"


class CallerType(str, Enum):
    """Origin of an invocation"""
    UI = "ui"
    AGENT = "agent"
    TEST = "test"


class ErrorCode(str, Enum):
    """
    Closed error taxonomy

    TRANSIENT is reserved for capability authors signalling that a retry
    may succeed. The bus never produces it and never retries on it.
    """
    VALIDATION = "VALIDATION"
    FORBIDDEN = "FORBIDDEN"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    TRANSIENT = "TRANSIENT"
    INTERNAL = "INTERNAL"


class CallerIdentity(BaseModel):
    """
    Tags the origin of an invocation

    UI-originated and agent-originated calls go through the same pipeline;
    only middlewares (e.g. confirmation) look at the caller type.
    """
    model_config = ConfigDict(frozen=True)

    type: CallerType = Field(
        description="Caller category (ui, agent or test)"
    )
    source: Optional[str] = Field(
        default=None,
        description="Free-text origin, e.g. component or agent name"
    )
    triggering_message: Optional[str] = Field(
        default=None,
        description="Message that caused an agent to issue this call"
    )

    @classmethod
    def ui(cls, source: Optional[str] = None) -> "CallerIdentity":
        return cls(type=CallerType.UI, source=source)

    @classmethod
    def agent(
        cls,
        source: Optional[str] = None,
        triggering_message: Optional[str] = None
    ) -> "CallerIdentity":
        return cls(type=CallerType.AGENT, source=source, triggering_message=triggering_message)

    @classmethod
    def test(cls, source: Optional[str] = None) -> "CallerIdentity":
        return cls(type=CallerType.TEST, source=source)


# ============================================
# Invocation Results
# ============================================

class SuccessResult(BaseModel):
    """Successful invocation outcome"""
    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"
    request_id: str
    data: Any = None
    timestamp: int = Field(
        default_factory=epoch_ms,
        description="Completion time in epoch milliseconds"
    )

    @property
    def ok(self) -> bool:
        return True


class ErrorResult(BaseModel):
    """Failed invocation outcome"""
    model_config = ConfigDict(frozen=True)

    status: Literal["error"] = "error"
    request_id: str
    code: ErrorCode
    message: str
    recovery_hint: Optional[str] = Field(
        default=None,
        description="Advice for the caller; never interpreted programmatically"
    )
    timestamp: int = Field(
        default_factory=epoch_ms,
        description="Completion time in epoch milliseconds"
    )

    @property
    def ok(self) -> bool:
        return False


InvocationResult = Annotated[
    Union[SuccessResult, ErrorResult],
    Field(discriminator="status"),
]


# ============================================
# Context and Capability-supplied Checks
# ============================================

class AppContext(BaseModel):
    """
    Application context used for permission checks and availability

    Extra keys are kept so that ``is_available`` predicates can inspect
    arbitrary application state (cart size, login state, ...).
    """
    model_config = ConfigDict(extra="allow")

    permissions: List[str] = Field(
        default_factory=list,
        description="Granted permission strings"
    )


class AvailabilityResult(BaseModel):
    """Outcome of a capability's is_available predicate"""
    available: bool = True
    unavailable_reason: Optional[str] = None


class PreconditionResult(BaseModel):
    """Outcome of a capability's precondition check"""
    met: bool
    code: ErrorCode = ErrorCode.PRECONDITION_FAILED
    message: str = ""
    recovery_hint: Optional[str] = None

    @classmethod
    def satisfied(cls) -> "PreconditionResult":
        return cls(met=True)

    @classmethod
    def failed(
        cls,
        message: str,
        recovery_hint: Optional[str] = None,
        code: ErrorCode = ErrorCode.PRECONDITION_FAILED
    ) -> "PreconditionResult":
        return cls(met=False, code=code, message=message, recovery_hint=recovery_hint)


# ============================================
# Invocation Request
# ============================================

class InvokeOptions(BaseModel):
    """Per-call options for CapabilityBus.invoke"""
    idempotency_key: Optional[str] = Field(
        default=None,
        description="Client token deduplicating retried invocations"
    )
    request_id: Optional[str] = Field(
        default=None,
        description="Caller-supplied request id (generated when absent)"
    )
    timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Deadline in seconds for preconditions + handler chain"
    )


class CapabilityInvocation(BaseModel):
    """One request in flight, as seen by middlewares and the audit log"""
    model_config = ConfigDict(frozen=True)

    capability: str
    arguments: Any = None
    request_id: str
    idempotency_key: Optional[str] = None
    caller: CallerIdentity


class AuditRecord(BaseModel):
    """Append-only audit entry: one per invocation attempt"""
    model_config = ConfigDict(frozen=True)

    invocation: CapabilityInvocation
    result: InvocationResult
    duration_ms: float = Field(
        description="Wall-clock pipeline duration in milliseconds"
    )
    timestamp: int = Field(
        description="Invocation start time in epoch milliseconds"
    )


# ============================================
# Manifest
# ============================================

class ApplicationInfo(BaseModel):
    name: str
    version: str


class ManifestCapabilityEntry(BaseModel):
    """One capability as described to a caller"""
    name: str
    description: str
    input_schema: Dict[str, Any]
    output_schema: Dict[str, Any]
    side_effect: SideEffect
    permissions: List[str]
    concurrency: ConcurrencyPolicy
    available: bool
    unavailable_reason: Optional[str] = None


class CapabilityManifest(BaseModel):
    """Point-in-time, context-filtered description of the registry"""
    schema_version: str
    application: ApplicationInfo
    capabilities: List[ManifestCapabilityEntry]
    generated_at: str = Field(
        description="ISO 8601 UTC generation time"
    )


class ToolDefinition(BaseModel):
    """Reduced manifest entry for LLM tool calling"""
    name: str
    description: str
    input_schema: Dict[str, Any]
