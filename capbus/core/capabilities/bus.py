"""
Capability Bus - single mediator for every capability invocation

UI-originated and agent-originated calls go through the same pipeline.
Every failure is returned as a structured ErrorResult; nothing raised by
a handler, precondition, middleware or permission checker escapes invoke().

Invocation pipeline (short-circuits on first failure):
1. Lookup: unknown name -> NOT_FOUND
2. Validate: input contract rejects args -> VALIDATION
3. Idempotency: live cached result for the key -> returned as-is
   (no permission check, no execution, no audit record, no event)
4. Permission: required set vs. app context -> FORBIDDEN
5. Concurrency: exclusive lock busy -> CONFLICT
6. Preconditions: not met -> code/message/hint supplied by the capability
7. Execute: middleware chain with the handler innermost; a raising
   handler becomes INTERNAL inside the chain
8. Finalize: audit record + invocation event (always); cache success
   results under the idempotency key
9. Release: exclusive lock released on every exit path

Example:
    bus = CapabilityBus(app_context=lambda: AppContext(permissions=["cart.write"]))
    bus.register(math_add)
    result = await bus.invoke("math.add", {"a": 2, "b": 3}, CallerIdentity.ui())
    assert result.status == "success"
"""

import asyncio
import copy
import inspect
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from capbus.config import BusConfig, get_config
from capbus.core.capabilities.audit_logger import AuditLogger, InMemoryAuditLogger
from capbus.core.capabilities.concurrency import ConcurrencyManager
from capbus.core.capabilities.contracts import to_json_schema
from capbus.core.capabilities.definition import CapabilityDefinition, InvocationContext
from capbus.core.capabilities.errors import create_error_result, create_success_result
from capbus.core.capabilities.events import BusEvent, EventEmitter, EventListener, InvocationEvent
from capbus.core.capabilities.exceptions import ContractViolation, InvalidCapabilityError
from capbus.core.capabilities.idempotency import IdempotencyStore, InMemoryIdempotencyStore
from capbus.core.capabilities.manifest import (
    SchemaConverter,
    generate_manifest,
    manifest_to_tool_definitions,
)
from capbus.core.capabilities.middleware import Middleware, MiddlewareChain
from capbus.core.capabilities.models import (
    AppContext,
    ApplicationInfo,
    AuditRecord,
    CallerIdentity,
    CapabilityInvocation,
    CapabilityManifest,
    ErrorCode,
    InvocationResult,
    InvokeOptions,
    ToolDefinition,
)
from capbus.core.capabilities.permissions import PermissionChecker, SimplePermissionChecker
from capbus.util.timestamps import epoch_ms
from capbus.util.ids import new_request_id

logger = logging.getLogger(__name__)

ContextProvider = Callable[[], Union[AppContext, Dict[str, Any]]]

GENERIC_FAILURE_MESSAGE = "An unexpected error occurred"


async def _resolve(value: Any) -> Any:
    """Await value if it is awaitable (sync or async collaborators)"""
    if inspect.isawaitable(value):
        return await value
    return value


def _coerce_context(context: Union[AppContext, Dict[str, Any], None]) -> AppContext:
    if context is None:
        return AppContext()
    if isinstance(context, AppContext):
        return context
    return AppContext.model_validate(context)


class CapabilityBus:
    """
    Capability registry + invocation pipeline

    The bus is an explicitly constructed object: pass it to the code that
    needs it rather than reaching for a global.
    """

    def __init__(
        self,
        permission_checker: Optional[PermissionChecker] = None,
        idempotency_store: Optional[IdempotencyStore] = None,
        audit_logger: Optional[AuditLogger] = None,
        middlewares: Optional[Iterable[Middleware]] = None,
        generate_request_id: Optional[Callable[[], str]] = None,
        app_context: Optional[ContextProvider] = None,
        schema_converter: Optional[SchemaConverter] = None,
        config: Optional[BusConfig] = None
    ):
        """
        Initialize capability bus

        Args:
            permission_checker: Permission policy (default: SimplePermissionChecker)
            idempotency_store: Result cache (default: in-memory, TTL from config)
            audit_logger: Audit sink (default: in-memory)
            middlewares: Initial middleware list, outermost first
            generate_request_id: Request id factory (default: ULID)
            app_context: Provider of the current AppContext (default: no permissions)
            schema_converter: Contract -> JSON-Schema projection for manifests
            config: BusConfig (default: global config)
        """
        self.config = config if config is not None else get_config()

        self._capabilities: Dict[str, CapabilityDefinition] = {}
        self._emitter = EventEmitter()
        self._middlewares = MiddlewareChain(middlewares)
        self._concurrency = ConcurrencyManager()

        # Injected stores define __len__ and are falsy while empty:
        # compare against None, never rely on truthiness
        if permission_checker is None:
            permission_checker = SimplePermissionChecker()
        if idempotency_store is None:
            idempotency_store = InMemoryIdempotencyStore(
                default_ttl=self.config.idempotency_ttl_seconds,
                sweep_threshold=self.config.idempotency_sweep_threshold,
            )
        if audit_logger is None:
            audit_logger = InMemoryAuditLogger()

        self._permission_checker = permission_checker
        self._idempotency_store = idempotency_store
        self._audit_logger = audit_logger
        self._generate_request_id = (
            generate_request_id if generate_request_id is not None else new_request_id
        )
        self._app_context = app_context
        self._schema_converter = (
            schema_converter if schema_converter is not None else to_json_schema
        )

    # ============================================
    # Registry
    # ============================================

    def register(self, definition: CapabilityDefinition) -> None:
        """Register a capability (last write wins on duplicate name)"""
        if not isinstance(definition, CapabilityDefinition):
            raise InvalidCapabilityError(
                f"Expected CapabilityDefinition, got {type(definition).__name__}"
            )
        if definition.name in self._capabilities:
            logger.warning(f"Replacing registered capability: {definition.name}")
        self._capabilities[definition.name] = definition
        logger.debug(f"Capability registered: {definition.name}")

    def unregister(self, name: str) -> None:
        if self._capabilities.pop(name, None) is not None:
            logger.debug(f"Capability unregistered: {name}")

    def get_capability(self, name: str) -> Optional[CapabilityDefinition]:
        return self._capabilities.get(name)

    def has_capability(self, name: str) -> bool:
        return name in self._capabilities

    def get_registered_names(self) -> List[str]:
        return list(self._capabilities)

    # ============================================
    # Middleware / Events / Audit
    # ============================================

    def use(self, middleware: Middleware) -> None:
        """Append a middleware; earlier middlewares wrap later ones"""
        self._middlewares.use(middleware)

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        return self._emitter.subscribe(listener)

    def emit(self, event: BusEvent) -> None:
        """Publish an event to all listeners (listener errors propagate)"""
        self._emitter.emit(event)

    def get_audit_log(self) -> List[AuditRecord]:
        return self._audit_logger.get_log()

    def clear_audit_log(self) -> None:
        self._audit_logger.clear()

    # ============================================
    # Discovery
    # ============================================

    def get_manifest(
        self,
        context: Union[AppContext, Dict[str, Any], None] = None,
        app_info: Union[ApplicationInfo, Dict[str, str], None] = None
    ) -> CapabilityManifest:
        """
        Describe the registry for a caller context

        Args:
            context: Caller context (default: the bus's app context provider)
            app_info: Application name/version (default: from config)
        """
        if context is None:
            context = self._current_context()
        if app_info is None:
            app_info = ApplicationInfo(name=self.config.app_name, version=self.config.app_version)
        elif not isinstance(app_info, ApplicationInfo):
            app_info = ApplicationInfo.model_validate(app_info)

        return generate_manifest(
            self._capabilities,
            _coerce_context(context),
            app_info,
            schema_converter=self._schema_converter,
            schema_version=self.config.manifest_schema_version,
        )

    def get_tool_definitions(
        self,
        context: Union[AppContext, Dict[str, Any], None] = None
    ) -> List[ToolDefinition]:
        return manifest_to_tool_definitions(self.get_manifest(context))

    # ============================================
    # Invocation
    # ============================================

    async def invoke(
        self,
        name: str,
        args: Any,
        caller: CallerIdentity,
        options: Optional[InvokeOptions] = None
    ) -> InvocationResult:
        """
        Invoke a capability by name

        Args:
            name: Capability name
            args: Raw arguments (validated against the input contract)
            caller: Caller identity
            options: Idempotency key, request id, timeout

        Returns:
            SuccessResult or ErrorResult (never raises for pipeline failures)
        """
        options = options or InvokeOptions()
        request_id = options.request_id or self._generate_request_id()
        idempotency_key = options.idempotency_key
        started_at = epoch_ms()
        start = time.perf_counter()

        def finish(result: InvocationResult) -> InvocationResult:
            self._record(name, args, caller, request_id, idempotency_key, result, started_at, start)
            return result

        # Step 1: Lookup
        capability = self._capabilities.get(name)
        if capability is None:
            return finish(create_error_result(
                request_id, ErrorCode.NOT_FOUND, f"Unknown capability: {name}"
            ))

        # Step 2: Validate input
        try:
            validated = await _resolve(capability.input.validate(args))
        except ContractViolation as e:
            return finish(create_error_result(request_id, ErrorCode.VALIDATION, str(e)))
        except Exception as e:
            logger.error(f"Input contract for {name} failed: {e}", exc_info=True)
            return finish(self._internal_error(request_id, e))

        # Step 3: Idempotent replay
        if idempotency_key:
            cached = self._idempotency_store.get(idempotency_key)
            if cached is not None:
                logger.debug(f"Idempotent replay: {name} (key={idempotency_key})")
                return cached

        # Step 4: Permissions
        try:
            context = self._current_context()
            permitted = await _resolve(
                self._permission_checker.check(capability.permissions, context, caller)
            )
        except Exception as e:
            logger.error(f"Permission check for {name} failed: {e}", exc_info=True)
            return finish(self._internal_error(request_id, e))
        if not permitted:
            return finish(create_error_result(
                request_id, ErrorCode.FORBIDDEN, "Insufficient permissions"
            ))

        # Step 5: Concurrency admission (released on every exit path)
        with self._concurrency.admit(name, capability.concurrency) as acquired:
            if not acquired:
                return finish(create_error_result(
                    request_id,
                    ErrorCode.CONFLICT,
                    f'Capability "{name}" is currently executing (exclusive concurrency)',
                ))

            invocation = CapabilityInvocation(
                capability=name,
                arguments=validated,
                request_id=request_id,
                idempotency_key=idempotency_key,
                caller=caller,
            )
            context = InvocationContext(caller=caller, request_id=request_id, bus=self)

            # Steps 6-7: Preconditions + middleware chain + handler
            try:
                execution = self._execute(capability, invocation, validated, context)
                if options.timeout is not None:
                    result = await asyncio.wait_for(execution, timeout=options.timeout)
                else:
                    result = await execution
            except asyncio.TimeoutError:
                logger.warning(f"Capability {name} timed out after {options.timeout}s")
                result = create_error_result(
                    request_id,
                    ErrorCode.INTERNAL,
                    f'Capability "{name}" timed out after {options.timeout}s',
                )
            except Exception as e:
                logger.error(f"Capability {name} pipeline failed: {e}", exc_info=True)
                result = self._internal_error(request_id, e)

            # Step 8: Finalize
            finish(result)
            if idempotency_key and result.status == "success":
                self._idempotency_store.set(idempotency_key, result)

            return result

    async def _execute(
        self,
        capability: CapabilityDefinition,
        invocation: CapabilityInvocation,
        validated: Any,
        context: InvocationContext
    ) -> InvocationResult:
        request_id = invocation.request_id

        # Failures below become INTERNAL here, so the only TimeoutError
        # reaching invoke() is the wait_for deadline
        if capability.preconditions is not None:
            try:
                precheck = await _resolve(capability.preconditions(validated, context))
            except Exception as e:
                logger.error(f"Preconditions for {capability.name} raised: {e!r}", exc_info=True)
                return self._internal_error(request_id, e)
            if not precheck.met:
                return create_error_result(
                    request_id,
                    precheck.code,
                    precheck.message,
                    precheck.recovery_hint,
                )

        async def run_handler() -> InvocationResult:
            try:
                data = await _resolve(capability.handler(validated, context))
            except Exception as e:
                logger.error(f"Capability {capability.name} handler raised: {e}", exc_info=True)
                return self._internal_error(request_id, e)
            return create_success_result(request_id, data)

        try:
            return await self._middlewares.run(invocation, capability, run_handler)
        except Exception as e:
            logger.error(f"Middleware for {capability.name} raised: {e!r}", exc_info=True)
            return self._internal_error(request_id, e)

    # ============================================
    # Helpers
    # ============================================

    def _current_context(self) -> AppContext:
        if self._app_context is None:
            return AppContext()
        return _coerce_context(self._app_context())

    @staticmethod
    def _internal_error(request_id: str, error: Exception) -> InvocationResult:
        return create_error_result(
            request_id,
            ErrorCode.INTERNAL,
            str(error) or GENERIC_FAILURE_MESSAGE,
        )

    def _record(
        self,
        name: str,
        args: Any,
        caller: CallerIdentity,
        request_id: str,
        idempotency_key: Optional[str],
        result: InvocationResult,
        started_at: int,
        start: float
    ) -> None:
        """Write the audit record and emit the invocation event"""
        duration_ms = (time.perf_counter() - start) * 1000

        if result.status == "success":
            logger.info(f"Capability invocation completed: {name} in {duration_ms:.1f}ms")
        elif result.code in (ErrorCode.FORBIDDEN, ErrorCode.CONFLICT):
            logger.warning(f"Capability invocation denied: {name} ({result.code.value}: {result.message})")
        else:
            logger.info(f"Capability invocation failed: {name} ({result.code.value}: {result.message})")

        try:
            record = AuditRecord(
                invocation=CapabilityInvocation(
                    capability=name,
                    arguments=copy.deepcopy(args),
                    request_id=request_id,
                    idempotency_key=idempotency_key,
                    caller=caller,
                ),
                result=result,
                duration_ms=duration_ms,
                timestamp=started_at,
            )
            self._audit_logger.record(record)
        except Exception as e:
            # Don't propagate - auditing should not break execution
            logger.error(f"Failed to record audit entry for {name}: {e}", exc_info=True)

        try:
            self._emitter.emit(InvocationEvent(capability=name, caller=caller, result=result))
        except Exception as e:
            logger.error(f"Event listener failed for {name}: {e}", exc_info=True)
