from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

import pytest

from releasecal.calendar_grid import (
    build_month,
    events_on,
    first_weekday,
    group_by_date,
    shift_month,
)


@dataclass
class Release:
    title: str
    release_date: datetime


def test_first_weekday_is_sunday_based():
    # 2025-01-01 was a Wednesday; 2023-10-01 a Sunday.
    assert first_weekday(2025, 0) == 3
    assert first_weekday(2023, 9) == 0


def test_build_month_buckets_events_by_day():
    events = [
        Release("a", datetime(2025, 1, 1, 9)),
        Release("b", datetime(2025, 1, 1, 22)),
        Release("c", datetime(2025, 1, 31)),
        Release("outside", datetime(2025, 2, 1)),
    ]
    grid = build_month(2025, 0, events)

    assert grid.leading_blanks == 3
    assert grid.last_day == 31
    assert [e.title for e in grid.days[1]] == ["a", "b"]
    assert [e.title for e in grid.days[31]] == ["c"]
    assert all(not grid.days[day] for day in range(2, 31))
    assert grid.title == "January 2025"


def test_build_month_handles_leap_february():
    assert build_month(2024, 1, []).last_day == 29
    assert build_month(2025, 1, []).last_day == 28


def test_cells_start_with_blanks_and_weeks_are_padded():
    grid = build_month(2025, 0, [])
    cells = list(grid.cells())
    assert [cell.is_blank for cell in cells[:4]] == [True, True, True, False]
    assert cells[3].day == date(2025, 1, 1)
    weeks = grid.weeks()
    assert all(len(week) == 7 for week in weeks)
    assert len(weeks) == 5


def test_build_month_rejects_bad_index():
    with pytest.raises(ValueError):
        build_month(2025, 12, [])


def test_group_by_date_and_events_on():
    events = [
        Release("a", datetime(2025, 1, 2, 8)),
        Release("b", datetime(2025, 1, 2, 20)),
        Release("c", datetime(2025, 1, 5)),
    ]
    grouped = group_by_date(events)
    assert list(grouped) == [date(2025, 1, 2), date(2025, 1, 5)]
    assert [e.title for e in grouped[date(2025, 1, 2)]] == ["a", "b"]
    assert [e.title for e in events_on(events, date(2025, 1, 5))] == ["c"]


def test_shift_month_wraps_years():
    assert shift_month(2025, 0, -1) == (2024, 11)
    assert shift_month(2024, 11, 1) == (2025, 0)
    assert shift_month(2025, 5, 14) == (2026, 7)
