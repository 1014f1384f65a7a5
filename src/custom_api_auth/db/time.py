"""Wall clock helpers.

Protocol code works in integer seconds since the epoch. Services take a
`Clock` callable so tests can freeze or advance time.
"""

import time
from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], int]


def epoch_seconds() -> int:
    """Return the current wall clock time in whole seconds."""
    return int(time.time())


def to_iso(timestamp: int) -> str:
    """Render an epoch timestamp as an ISO-8601 UTC string."""
    return datetime.fromtimestamp(timestamp, UTC).isoformat()
