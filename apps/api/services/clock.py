"""
Clock capability.

Services that stamp timestamps take a `clock` argument instead of reading
the wall clock, so tests can pin time.
"""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
