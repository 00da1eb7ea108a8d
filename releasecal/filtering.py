"""Interest-based release filtering.

The calendar, list and detail views all consume :func:`filter_events`, so the
precedence rules live in exactly one place:

* an empty interest set shows everything;
* when an event's category has selected subcategories, only its
  ``subcategory1``/``subcategory2`` decide, and selecting the bare category as
  well changes nothing;
* otherwise the bare category has to be selected.

An event whose category has selected subcategories but which carries no
subcategory of its own is excluded, never shown through the category.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar

from markupsafe import Markup, escape

SUBCATEGORY_SEPARATOR = ":"


class Filterable(Protocol):
    title: str
    description: str | None
    category: str
    subcategory1: str | None
    subcategory2: str | None


E = TypeVar("E", bound=Filterable)


def is_subcategory_interest(interest: str) -> bool:
    return SUBCATEGORY_SEPARATOR in interest


def split_subcategory_interest(interest: str) -> tuple[str, str]:
    """Split ``"Category:Subcategory"`` on its first separator."""
    main_category, _, subcategory = interest.partition(SUBCATEGORY_SEPARATOR)
    return main_category, subcategory


def split_interests(interests: Iterable[str]) -> tuple[set[str], dict[str, list[str]]]:
    """Return the bare categories and the selected subcategories per category."""
    main_categories: set[str] = set()
    subcategories: dict[str, list[str]] = {}
    for interest in interests:
        if is_subcategory_interest(interest):
            category, subcategory = split_subcategory_interest(interest)
            subcategories.setdefault(category, []).append(subcategory)
        else:
            main_categories.add(interest)
    return main_categories, subcategories


def matches_search(event: Filterable, query: str | None) -> bool:
    if not query:
        return True
    needle = query.lower()
    if needle in (event.title or "").lower():
        return True
    return needle in (event.description or "").lower()


def _matches_split(
    event: Filterable,
    main_categories: set[str],
    subcategories: dict[str, list[str]],
) -> bool:
    selected = subcategories.get(event.category)
    if selected:
        return bool(
            (event.subcategory1 and event.subcategory1 in selected)
            or (event.subcategory2 and event.subcategory2 in selected)
        )
    return event.category in main_categories


def matches_interests(event: Filterable, interests: Iterable[str]) -> bool:
    interests = list(interests)
    if not interests:
        return True
    main_categories, subcategories = split_interests(interests)
    return _matches_split(event, main_categories, subcategories)


def filter_events(
    events: Iterable[E], interests: Iterable[str], query: str | None = ""
) -> list[E]:
    """Return the events to display, sorted by release date (stable)."""
    interests = list(interests)
    main_categories, subcategories = split_interests(interests)
    selected = [
        event
        for event in events
        if matches_search(event, query)
        and (
            not interests or _matches_split(event, main_categories, subcategories)
        )
    ]
    return sorted(selected, key=lambda event: event.release_date)


def has_search_match(events: Sequence[Filterable], query: str | None) -> bool:
    """True when a non-blank query matches any of ``events``."""
    if not query or not query.strip():
        return False
    return any(matches_search(event, query) for event in events)


def highlight_matches(text: str | None, query: str | None) -> Markup:
    """Escape ``text`` and wrap case-insensitive matches of ``query`` in <mark>."""
    if not text:
        return Markup("")
    if not query or not query.strip():
        return escape(text)
    pattern = re.compile(re.escape(query), re.IGNORECASE)
    parts: list[str] = []
    cursor = 0
    for match in pattern.finditer(text):
        parts.append(escape(text[cursor : match.start()]))
        parts.append(Markup("<mark>%s</mark>") % match.group(0))
        cursor = match.end()
    parts.append(escape(text[cursor:]))
    return Markup("").join(parts)
