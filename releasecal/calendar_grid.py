"""Month grids and date buckets for the calendar and list views."""

from __future__ import annotations

import calendar
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Generic, Protocol, TypeVar


class Dated(Protocol):
    release_date: datetime


E = TypeVar("E", bound=Dated)


@dataclass(frozen=True)
class DayCell(Generic[E]):
    """One square of the month grid; ``day`` is None for leading blanks."""

    day: date | None
    events: tuple[E, ...] = ()

    @property
    def is_blank(self) -> bool:
        return self.day is None


@dataclass(frozen=True)
class MonthGrid(Generic[E]):
    year: int
    month_index: int
    leading_blanks: int
    days: dict[int, list[E]] = field(default_factory=dict)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month_index + 1, 1)

    @property
    def last_day(self) -> int:
        return len(self.days)

    @property
    def title(self) -> str:
        return f"{calendar.month_name[self.month_index + 1]} {self.year}"

    def cells(self) -> Iterator[DayCell[E]]:
        for _ in range(self.leading_blanks):
            yield DayCell(None)
        for day_number, events in self.days.items():
            yield DayCell(
                date(self.year, self.month_index + 1, day_number), tuple(events)
            )

    def weeks(self) -> list[list[DayCell[E]]]:
        """Split cells into rows of seven, padding the final row with blanks."""
        cells = list(self.cells())
        while len(cells) % 7:
            cells.append(DayCell(None))
        return [cells[index : index + 7] for index in range(0, len(cells), 7)]


def first_weekday(year: int, month_index: int) -> int:
    """Weekday of the first of the month with 0 = Sunday."""
    monday_based = calendar.monthrange(year, month_index + 1)[0]
    return (monday_based + 1) % 7


def _release_day(event: Dated) -> date:
    return event.release_date.date()


def events_on(events: Iterable[E], day: date) -> list[E]:
    return [event for event in events if _release_day(event) == day]


def build_month(year: int, month_index: int, events: Iterable[E]) -> MonthGrid[E]:
    """Bucket ``events`` into the days of a month (``month_index`` is zero-based)."""
    if not 0 <= month_index <= 11:
        raise ValueError("month_index must be between 0 and 11")
    last_day = calendar.monthrange(year, month_index + 1)[1]
    days: dict[int, list[E]] = {day: [] for day in range(1, last_day + 1)}
    for event in events:
        released = _release_day(event)
        if released.year == year and released.month == month_index + 1:
            days[released.day].append(event)
    return MonthGrid(
        year=year,
        month_index=month_index,
        leading_blanks=first_weekday(year, month_index),
        days=days,
    )


def group_by_date(events: Iterable[E]) -> dict[date, list[E]]:
    """Group events by release day, keeping first-seen date order."""
    grouped: dict[date, list[E]] = {}
    for event in events:
        grouped.setdefault(_release_day(event), []).append(event)
    return grouped


def shift_month(year: int, month_index: int, delta: int) -> tuple[int, int]:
    """Move ``delta`` months from (year, zero-based month)."""
    absolute = year * 12 + month_index + delta
    return divmod(absolute, 12)
