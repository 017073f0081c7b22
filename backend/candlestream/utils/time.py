"""UTC and epoch-millisecond helpers.

Feed and storage times are integer milliseconds since the epoch. These
helpers convert at the edges (logs, CLI output) only.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def ms_to_datetime(ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(ms / 1000, tz=UTC)


def format_ms(ms: int) -> str:
    """Format epoch milliseconds as ISO 8601 with millisecond precision.

    Output format: YYYY-MM-DDTHH:MM:SS.fffZ
    """
    dt = ms_to_datetime(ms)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ms % 1000:03d}Z"
