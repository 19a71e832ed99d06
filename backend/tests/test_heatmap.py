from dataclasses import dataclass
from datetime import date, timedelta

import pytest

from errors import InvalidDateRange
from services.heatmap import build_heatmap, resolve_range, validate_date_range

TODAY = date(2026, 1, 10)


@dataclass
class Log:
    log_date: date
    completed: bool = True
    notes: str | None = None


def test_fills_every_day_of_the_range():
    heatmap = build_heatmap(1, date(2026, 1, 1), date(2026, 1, 7), [Log(date(2026, 1, 3))])

    assert len(heatmap.days) == 7
    assert [d.date for d in heatmap.days] == [date(2026, 1, 1) + timedelta(days=i) for i in range(7)]
    assert [d.completed for d in heatmap.days] == [False, False, True, False, False, False, False]
    assert all(d.notes is None for d in heatmap.days)


def test_keeps_log_values_and_notes():
    logs = [Log(date(2026, 1, 2), completed=False, notes="sick"), Log(date(2026, 1, 1), notes="easy")]
    heatmap = build_heatmap(5, date(2026, 1, 1), date(2026, 1, 3), logs)

    assert heatmap.habit_id == 5
    assert [(d.completed, d.notes) for d in heatmap.days] == [(True, "easy"), (False, "sick"), (False, None)]


def test_single_day_range():
    heatmap = build_heatmap(1, TODAY, TODAY, [])
    assert len(heatmap.days) == 1
    assert heatmap.days[0].completed is False


def test_leap_year_span_of_366_days_is_allowed():
    heatmap = build_heatmap(1, date(2024, 1, 1), date(2024, 12, 31), [])
    assert len(heatmap.days) == 366


def test_start_after_end_is_rejected():
    with pytest.raises(InvalidDateRange):
        build_heatmap(1, date(2026, 1, 7), date(2026, 1, 1), [])


def test_span_over_366_days_is_rejected():
    with pytest.raises(InvalidDateRange):
        build_heatmap(1, date(2025, 1, 1), date(2026, 1, 2), [])
    # exactly 366 days passes
    validate_date_range(date(2025, 1, 1), date(2026, 1, 1))


def test_to_dict_uses_iso_dates():
    data = build_heatmap(2, date(2026, 1, 1), date(2026, 1, 2), [Log(date(2026, 1, 2))]).to_dict()
    assert data == {
        "habit_id": 2,
        "start_date": "2026-01-01",
        "end_date": "2026-01-02",
        "days": [
            {"date": "2026-01-01", "completed": False, "notes": None},
            {"date": "2026-01-02", "completed": True, "notes": None},
        ],
    }


class TestResolveRange:
    def test_defaults_to_current_year(self):
        assert resolve_range(TODAY) == (date(2026, 1, 1), date(2026, 12, 31))

    def test_explicit_pair_wins(self):
        start, end = date(2025, 3, 1), date(2025, 3, 31)
        assert resolve_range(TODAY, start, end, year=2020, month="2021-01") == (start, end)

    def test_half_a_pair_is_rejected(self):
        with pytest.raises(InvalidDateRange):
            resolve_range(TODAY, start_date=date(2026, 1, 1))
        with pytest.raises(InvalidDateRange):
            resolve_range(TODAY, end_date=date(2026, 1, 1))

    def test_year(self):
        assert resolve_range(TODAY, year=2024) == (date(2024, 1, 1), date(2024, 12, 31))

    def test_year_beats_month(self):
        assert resolve_range(TODAY, year=2024, month="2025-02") == (date(2024, 1, 1), date(2024, 12, 31))

    def test_month(self):
        assert resolve_range(TODAY, month="2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
        assert resolve_range(TODAY, month="2025-12") == (date(2025, 12, 1), date(2025, 12, 31))

    @pytest.mark.parametrize("month", ["2026-13", "2026-2", "feb", "2026/02", ""])
    def test_malformed_month(self, month):
        with pytest.raises(InvalidDateRange):
            resolve_range(TODAY, month=month)


class TestCalendarEdges:
    def test_range_ending_on_last_representable_day(self):
        heatmap = build_heatmap(1, date(9999, 12, 25), date(9999, 12, 31), [Log(date(9999, 12, 31))])
        assert len(heatmap.days) == 7
        assert heatmap.days[-1].date == date(9999, 12, 31)
        assert heatmap.days[-1].completed is True

    def test_single_last_day(self):
        heatmap = build_heatmap(1, date(9999, 12, 31), date(9999, 12, 31), [])
        assert [d.date for d in heatmap.days] == [date(9999, 12, 31)]

    def test_last_year_and_month(self):
        assert resolve_range(TODAY, year=9999) == (date(9999, 1, 1), date(9999, 12, 31))
        assert resolve_range(TODAY, month="9999-12") == (date(9999, 12, 1), date(9999, 12, 31))
        assert len(build_heatmap(1, *resolve_range(TODAY, year=9999), []).days) == 365

    @pytest.mark.parametrize("year", [0, 10000, -1])
    def test_year_out_of_range(self, year):
        with pytest.raises(InvalidDateRange):
            resolve_range(TODAY, year=year)

    def test_month_year_zero(self):
        with pytest.raises(InvalidDateRange):
            resolve_range(TODAY, month="0000-01")
