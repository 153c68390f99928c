"""Result factories for the invocation pipeline"""

from typing import Any, Optional

from capbus.core.capabilities.models import ErrorCode, ErrorResult, SuccessResult


def create_error_result(
    request_id: str,
    code: ErrorCode,
    message: str,
    recovery_hint: Optional[str] = None
) -> ErrorResult:
    """
    Build an error result stamped with the current time

    Example:
        >>> r = create_error_result("req_1", ErrorCode.NOT_FOUND, "Unknown capability: x")
        >>> r.status
        'error'
    """
    return ErrorResult(
        request_id=request_id,
        code=code,
        message=message,
        recovery_hint=recovery_hint,
    )


def create_success_result(request_id: str, data: Any) -> SuccessResult:
    """Build a success result stamped with the current time"""
    return SuccessResult(request_id=request_id, data=data)
