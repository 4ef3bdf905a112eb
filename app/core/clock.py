"""Time helpers shared by the stores and the status machinery."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]
"""Zero-argument callable returning an aware UTC ``datetime``."""


def utc_now() -> datetime:
    """Return the current time as an aware UTC ``datetime``."""
    return datetime.now(UTC)


def epoch_ms(moment: datetime) -> int:
    """Milliseconds since the Unix epoch for *moment*."""
    return int(moment.timestamp() * 1000)
