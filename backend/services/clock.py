"""
clock.py — Source of "today" and "now" for the services
Stats and log validation are computed relative to the server's local calendar date.
"""

from datetime import date, datetime


class Clock:
    def today(self) -> date:
        return date.today()

    def now(self) -> datetime:
        return datetime.now()


class FixedClock(Clock):
    """Clock pinned to a given day; `now()` is midday of that day."""

    def __init__(self, today: date):
        self._today = today

    def today(self) -> date:
        return self._today

    def now(self) -> datetime:
        return datetime(self._today.year, self._today.month, self._today.day, 12, 0, 0)


system_clock = Clock()


def get_clock() -> Clock:
    """FastAPI dependency — overridden in tests with a FixedClock."""
    return system_clock
