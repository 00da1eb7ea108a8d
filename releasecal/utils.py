"""Utility helpers for ReleaseCal."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime


def utcnow() -> datetime:
    """Return a naive UTC datetime."""

    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Normalize aware datetimes to naive UTC; naive values pass through."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def parse_release_date(raw: str | date | datetime) -> datetime:
    """Parse an ISO8601 date or datetime into a naive UTC datetime.

    Accepts a trailing ``Z`` and bare dates such as ``2025-01-01`` (midnight).
    Raises ``ValueError`` for anything else.
    """
    if isinstance(raw, datetime):
        return to_naive_utc(raw)
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    text = (raw or "").strip()
    if not text:
        raise ValueError("Empty release date")
    if text.endswith(("Z", "z")):
        text = f"{text[:-1]}+00:00"
    return to_naive_utc(datetime.fromisoformat(text))


def isoformat_utc(value: datetime | None) -> str | None:
    if value is None:
        return None
    return to_naive_utc(value).replace(microsecond=0).isoformat() + "Z"


@dataclass(frozen=True)
class Countdown:
    days: int
    hours: int
    minutes: int
    seconds: int
    is_past: bool

    def label(self) -> str:
        if self.is_past:
            return "Released!"
        return f"{self.days}d {self.hours}h {self.minutes}m {self.seconds}s"


def countdown(target: datetime, *, now: datetime | None = None) -> Countdown:
    """Return the time left until ``target``; all zero once it has passed."""
    now = to_naive_utc(now) if now else utcnow()
    remaining = int((to_naive_utc(target) - now).total_seconds())
    if remaining <= 0:
        return Countdown(0, 0, 0, 0, True)
    days, remainder = divmod(remaining, 24 * 3600)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)
    return Countdown(days, hours, minutes, seconds, False)


def humanize_time(value: datetime | None, *, now: datetime | None = None) -> str:
    """Return a friendly string such as 'in 2 weeks' or '3 hours ago'."""
    if not value:
        return ""
    now = now or utcnow()
    delta_seconds = (value - now).total_seconds()
    past = delta_seconds < 0
    seconds = abs(delta_seconds)

    units = [
        ("year", 365 * 24 * 3600),
        ("month", 30 * 24 * 3600),
        ("day", 24 * 3600),
        ("hour", 3600),
        ("minute", 60),
    ]

    amount = 0
    label = "minute"
    for name, step in units:
        value_count = int(seconds // step)
        if value_count >= 1:
            amount = value_count
            label = name
            break
    else:
        return "in moments" if not past else "moments ago"

    if amount != 1:
        label = f"{label}s"
    if past:
        return f"{amount} {label} ago"
    return f"in {amount} {label}"


def format_date_header(value: datetime | date) -> str:
    """Format a list-view header such as 'Wednesday, Jan 1, 2025'."""
    return f"{value:%A}, {value:%b} {value.day}, {value.year}"
