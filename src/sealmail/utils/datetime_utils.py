"""Datetime utilities for sealmail."""

from __future__ import annotations

import time
from datetime import datetime, timezone


def now_ms() -> int:
    """Return the current wall-clock time in milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


def from_epoch_ms(timestamp_ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime.

    Args:
        timestamp_ms: Milliseconds since the Unix epoch.

    Returns:
        A timezone-aware datetime in UTC.
    """
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def to_base36(value: int) -> str:
    """Encode a non-negative integer in lowercase base 36."""
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return "".join(reversed(out))
