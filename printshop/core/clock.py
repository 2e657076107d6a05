# printshop/core/clock.py
from __future__ import annotations

from datetime import datetime, timedelta


class Clock:
    """
    Source of "now" for every workflow.
    Returns a *naive* UTC datetime so it compares cleanly with the
    naive DateTime columns.
    """

    def now(self) -> datetime:
        return datetime.utcnow()


class FrozenClock(Clock):
    """Fixed clock for tests; move it with advance()."""

    def __init__(self, at: datetime):
        self._at = at

    def now(self) -> datetime:
        return self._at

    def advance(self, **kwargs) -> datetime:
        self._at = self._at + timedelta(**kwargs)
        return self._at


system_clock = Clock()
