"""
saledger/core/time.py

THE ONLY CLOCK IN SALEDGER.

Block timestamps are integer milliseconds since the Unix epoch.
Every module that needs "now" imports now_ms() from here.
"""

import time


def now_ms() -> int:
    """Return the current wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000
