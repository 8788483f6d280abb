"""
clock.py — Time source shared by every expiring store.

Stores, guards and limiters take a zero-argument callable returning an aware
UTC datetime. Production code passes utc_now; tests pass a manual clock and
advance it instead of sleeping.
"""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
