"""Request freshness check."""

import time
from typing import Optional

DEFAULT_TOLERANCE_SECONDS = 300


def check_clock_skew(
    claimed_unix_seconds: int,
    now_unix_seconds: Optional[int] = None,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
) -> bool:
    """
    True when |now - claimed| <= tolerance.

    The boundary is inclusive: with tolerance 300, a timestamp exactly 300
    seconds away passes and 301 fails.
    """
    if now_unix_seconds is None:
        now_unix_seconds = int(time.time())
    return abs(now_unix_seconds - claimed_unix_seconds) <= tolerance_seconds
