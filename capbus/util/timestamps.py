"""
Wall-clock stamps used on results, events, audit records and manifests

Results, events and audit records carry epoch milliseconds (int);
manifests carry an ISO 8601 UTC string with a Z suffix.
"""

import time
from datetime import datetime, timezone


def epoch_ms() -> int:
    return time.time_ns() // 1_000_000


def iso_timestamp() -> str:
    """ISO 8601 UTC with millisecond precision, e.g. '2026-01-31T12:34:56.789Z'"""
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")
