"""
heatmap.py — Calendar heatmap
Turns a sparse set of logs into one entry per day of the requested range,
with days that have no log reported as not completed.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable

from config import MAX_RANGE_DAYS
from errors import InvalidDateRange


@dataclass(frozen=True)
class HeatmapDay:
    date: date
    completed: bool
    notes: str | None = None

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "completed": self.completed, "notes": self.notes}


@dataclass(frozen=True)
class Heatmap:
    habit_id: int
    start_date: date
    end_date: date
    days: list[HeatmapDay] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "habit_id": self.habit_id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "days": [d.to_dict() for d in self.days],
        }


def validate_date_range(start_date: date, end_date: date, max_days: int = MAX_RANGE_DAYS):
    if start_date > end_date:
        raise InvalidDateRange("Start date must be before or equal to end date")
    if (end_date - start_date).days + 1 > max_days:
        raise InvalidDateRange(f"Date range cannot exceed {max_days} days")


def resolve_range(
    today: date,
    start_date: date | None = None,
    end_date: date | None = None,
    year: int | None = None,
    month: str | None = None,
) -> tuple[date, date]:
    """Pick the heatmap window: explicit pair > year > month (YYYY-MM) > current year."""
    if start_date is not None or end_date is not None:
        if start_date is None or end_date is None:
            raise InvalidDateRange("Both start_date and end_date must be provided together")
        return start_date, end_date

    if year is not None:
        if not 1 <= year <= 9999:
            raise InvalidDateRange(f"Invalid year: {year}")
        return date(year, 1, 1), date(year, 12, 31)

    if month is not None:
        try:
            y, m = month.split("-")
            if len(y) != 4 or len(m) != 2:
                raise ValueError(month)
            first = date(int(y), int(m), 1)
        except ValueError:
            raise InvalidDateRange("Invalid month format. Expected YYYY-MM (e.g. 2026-02)")
        _, last_day = calendar.monthrange(first.year, first.month)
        return first, first.replace(day=last_day)

    return date(today.year, 1, 1), date(today.year, 12, 31)


def build_heatmap(habit_id: int, start_date: date, end_date: date, logs: Iterable) -> Heatmap:
    validate_date_range(start_date, end_date)

    log_map = {log.log_date: log for log in logs}
    days = []
    # offsets from start_date; stepping past end_date would overflow at 9999-12-31
    for offset in range((end_date - start_date).days + 1):
        day = start_date + timedelta(days=offset)
        log = log_map.get(day)
        if log is not None:
            days.append(HeatmapDay(day, bool(log.completed), log.notes))
        else:
            days.append(HeatmapDay(day, False, None))

    return Heatmap(habit_id=habit_id, start_date=start_date, end_date=end_date, days=days)
