"""
stats_engine.py — Habit statistics
Current streak (backward walk from today/yesterday), longest streak (forward scan),
total completed days and completion percentage since creation.
Pure functions: callers pass the logs and "today" in.
"""

from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol


class LogLike(Protocol):
    log_date: date
    completed: bool


@dataclass(frozen=True)
class HabitStats:
    current_streak: int = 0
    longest_streak: int = 0
    total_completed: int = 0
    completion_percentage: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def _by_date(logs: Iterable[LogLike]) -> dict[date, LogLike]:
    return {log.log_date: log for log in logs}


def _is_completed(log_map: dict[date, LogLike], day: date) -> bool:
    log = log_map.get(day)
    return bool(log is not None and log.completed)


def current_streak(logs: Iterable[LogLike], today: date) -> int:
    """Consecutive completed days ending at the anchor day.

    Anchor is today when today is completed, otherwise yesterday. A missing or
    incomplete anchor means no current streak, even if an older run exists.
    """
    log_map = _by_date(logs)
    if not log_map:
        return 0

    anchor = today if _is_completed(log_map, today) else today - timedelta(days=1)
    if not _is_completed(log_map, anchor):
        return 0

    streak = 0
    expected = anchor
    while _is_completed(log_map, expected):
        streak += 1
        expected -= timedelta(days=1)
    return streak


def longest_streak(logs: Iterable[LogLike]) -> int:
    """Longest run of consecutive completed days anywhere in history."""
    max_streak = 0
    running = 0
    expected: date | None = None

    for log in sorted(logs, key=lambda l: l.log_date):
        if not log.completed:
            running = 0
            expected = None
            continue

        if expected is None or log.log_date == expected:
            running += 1
        else:
            # gap: this day starts a new run
            running = 1
        max_streak = max(max_streak, running)
        expected = log.log_date + timedelta(days=1)

    return max_streak


def completion_percentage(total_completed: int, created_at: date | datetime, today: date) -> float:
    """Completed days over days since creation (both ends inclusive), 2dp half-up, capped at 100."""
    created_day = created_at.date() if isinstance(created_at, datetime) else created_at
    days_since_creation = (today - created_day).days + 1
    if days_since_creation <= 0:
        return 0.0

    pct = (Decimal(total_completed) * 100 / Decimal(days_since_creation)).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )
    return min(100.0, float(pct))


def compute_stats(logs: Iterable[LogLike], habit_created_at: date | datetime, today: date) -> HabitStats:
    logs = list(logs)
    total = sum(1 for log in logs if log.completed)
    return HabitStats(
        current_streak=current_streak(logs, today),
        longest_streak=longest_streak(logs),
        total_completed=total,
        completion_percentage=completion_percentage(total, habit_created_at, today),
    )
