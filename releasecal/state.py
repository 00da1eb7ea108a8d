"""Client-side state: interests, favorites and the loaded releases.

State that a browser would keep in local storage goes through a
:class:`PersistencePort`, which stores serialized JSON strings per key.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable
from datetime import date
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from .calendar_grid import MonthGrid, build_month, group_by_date
from .client import ReleaseCalClient
from .errors import BackendError
from .filtering import filter_events, has_search_match
from .schemas import EventRecord
from .session import Notifier

logger = logging.getLogger(__name__)

INTERESTS_KEY = "userInterests"
FAVORITES_KEY = "favoriteEvents"
ACCESS_TOKEN_KEY = "accessToken"
LOAD_EVENTS_FAILED = "Failed to load events. Please try again later."

# JSON.stringify writes compact arrays; Python's default spaces them.
COMPACT_SEPARATORS = (",", ":")
SPACED_SEPARATORS = (", ", ": ")


class PersistencePort(Protocol):
    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str) -> None: ...


class MemoryStorage:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def read(self, key: str) -> str | None:
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFileStorage:
    """Keeps every key in one JSON object on disk, rewritten atomically."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as exc:
            logger.error("Could not read client state %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def read(self, key: str) -> str | None:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def write(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        with os.fdopen(fd, "w") as handle:
            json.dump(data, handle, indent=2, sort_keys=True)
        os.replace(tmp_name, self.path)


def _load_string_list(
    storage: PersistencePort, key: str
) -> tuple[list[str], tuple[str, str]]:
    """Return the stored list and the JSON separators it was written with."""
    raw = storage.read(key)
    if not raw:
        return [], COMPACT_SEPARATORS
    try:
        value = json.loads(raw)
    except ValueError:
        logger.error("Ignoring corrupt %s in client storage", key)
        return [], COMPACT_SEPARATORS
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        logger.error("Ignoring malformed %s in client storage", key)
        return [], COMPACT_SEPARATORS
    separators = SPACED_SEPARATORS if ", " in raw else COMPACT_SEPARATORS
    return value, separators


class InterestStore:
    """The user's interest tags in the order they were selected.

    The array is written back with the separators it was loaded with, so
    adding and then removing a tag leaves the stored value byte-identical.
    """

    def __init__(self, storage: PersistencePort) -> None:
        self.storage = storage
        self.tags, self._separators = _load_string_list(storage, INTERESTS_KEY)

    @property
    def interests(self) -> set[str]:
        return set(self.tags)

    def __contains__(self, tag: str) -> bool:
        return tag in self.tags

    def _persist(self, tags: list[str]) -> None:
        self.storage.write(INTERESTS_KEY, json.dumps(tags, separators=self._separators))
        self.tags = tags

    def toggle(self, tag: str) -> bool:
        """Add or remove ``tag``; returns True when it is now selected."""
        if tag in self.tags:
            self._persist([existing for existing in self.tags if existing != tag])
            return False
        self._persist([*self.tags, tag])
        return True

    def replace(self, tags: Iterable[str]) -> None:
        self._persist(list(dict.fromkeys(tags)))


class FavoritesStore:
    """Favorite event ids in the order they were added.

    With a signed-in client, toggles are mirrored to ``/api/user-events``;
    mirroring failures are reported but keep the local change.
    """

    def __init__(
        self,
        storage: PersistencePort,
        client: ReleaseCalClient | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.storage = storage
        self.client = client
        self.notifier = notifier
        self.ids, self._separators = _load_string_list(storage, FAVORITES_KEY)

    def is_favorite(self, event_id: str) -> bool:
        return event_id in self.ids

    def toggle(self, event_id: str) -> bool:
        if event_id in self.ids:
            self.ids = [existing for existing in self.ids if existing != event_id]
            selected = False
        else:
            self.ids = [*self.ids, event_id]
            selected = True
        self.storage.write(
            FAVORITES_KEY, json.dumps(self.ids, separators=self._separators)
        )
        self._mirror(event_id, selected)
        return selected

    def _mirror(self, event_id: str, selected: bool) -> None:
        if not self.client or not self.client.access_token:
            return
        try:
            if selected:
                self.client.save_user_event(event_id, is_favorite=True)
                return
            for record in self.client.list_user_events():
                if record.event_id == event_id:
                    self.client.delete_user_event(record.id)
        except BackendError as exc:
            logger.warning("Could not sync favorite %s: %s", event_id, exc.message)
            if self.notifier:
                self.notifier.notify("Favorite not synced", exc.message, "destructive")


class EventStore:
    """Holds the loaded releases plus the search and interest selection."""

    def __init__(
        self,
        client: ReleaseCalClient,
        interests: InterestStore,
        notifier: Notifier | None = None,
    ) -> None:
        self.client = client
        self.interest_store = interests
        self.notifier = notifier or Notifier()
        self.events: list[EventRecord] = []
        self.query = ""
        self.error: str | None = None
        self.is_loading = False
        self._sequence = 0

    @property
    def interests(self) -> set[str]:
        return self.interest_store.interests

    def begin_fetch(self) -> int:
        self._sequence += 1
        self.is_loading = True
        self.error = None
        return self._sequence

    def complete_fetch(
        self,
        token: int,
        events: list[EventRecord] | None = None,
        *,
        error: str | None = None,
    ) -> bool:
        """Apply a fetch result unless a newer fetch has started since."""
        if token != self._sequence:
            logger.debug("Dropping stale events response %d (latest %d)", token, self._sequence)
            return False
        self.is_loading = False
        self.error = error
        self.events = list(events or [])
        return True

    def refresh(self) -> bool:
        token = self.begin_fetch()
        try:
            events = self.client.fetch_events()
        except (BackendError, ValidationError) as exc:
            logger.error("Failed to load events: %s", exc)
            applied = self.complete_fetch(token, [], error=LOAD_EVENTS_FAILED)
            if applied:
                self.notifier.notify("Error", LOAD_EVENTS_FAILED, "destructive")
            return False
        return self.complete_fetch(token, events)

    def set_query(self, query: str) -> None:
        self.query = query or ""

    def filtered(self) -> list[EventRecord]:
        return filter_events(self.events, self.interests, self.query)

    def month(self, year: int, month_index: int) -> MonthGrid[EventRecord]:
        """Month grid by interests only; the query just marks matching days."""
        return build_month(year, month_index, filter_events(self.events, self.interests))

    def highlighted_days(self, grid: MonthGrid[EventRecord]) -> set[date]:
        return {
            cell.day
            for cell in grid.cells()
            if not cell.is_blank and has_search_match(cell.events, self.query)
        }

    def by_date(self) -> dict[date, list[EventRecord]]:
        return group_by_date(self.filtered())

    def find(self, event_id: str) -> EventRecord | None:
        for event in self.events:
            if event.id == event_id:
                return event
        return None
