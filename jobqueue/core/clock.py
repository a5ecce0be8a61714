"""
Time source abstraction.

Every "now" used for scheduling, claiming, stuck detection and retention goes
through a ``Clock`` so that retry and timeout behaviour can be driven
deterministically in tests.
"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)
