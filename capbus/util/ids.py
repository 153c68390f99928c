"""Request id generation"""

from ulid import ULID


def new_request_id() -> str:
    """
    Default request id for CapabilityBus.invoke

    ULIDs sort by creation time, so audit records keyed by request id
    keep invocation order.
    """
    return str(ULID())
