"""CRUD helpers for events and user favorites."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Sequence

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from .errors import BackendError
from .models import Event, UserEvent
from .utils import to_naive_utc, utcnow


def _now() -> datetime:
    return utcnow()


def _clean(value: str | None) -> str | None:
    cleaned = (value or "").strip()
    return cleaned or None


def get_event(session: Session, event_id: str) -> Event | None:
    return session.get(Event, event_id)


def list_events(
    session: Session,
    *,
    category: str | None = None,
    subcategories: Iterable[str] | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> Sequence[Event]:
    """Return events ordered by release date, narrowed by the given filters."""
    stmt = select(Event)

    if category:
        stmt = stmt.where(Event.category == category)

    wanted = [name for name in (subcategories or []) if name]
    if wanted:
        stmt = stmt.where(
            or_(Event.subcategory1.in_(wanted), Event.subcategory2.in_(wanted))
        )

    if start:
        stmt = stmt.where(Event.release_date >= to_naive_utc(start))

    if end:
        stmt = stmt.where(Event.release_date <= to_naive_utc(end))

    stmt = stmt.order_by(Event.release_date.asc(), Event.created_at.asc())
    return session.scalars(stmt).all()


def create_event(
    session: Session,
    *,
    title: str,
    release_date: datetime,
    category: str,
    description: str | None = None,
    subcategory1: str | None = None,
    subcategory2: str | None = None,
    link: str | None = None,
    image_url: str | None = None,
) -> Event:
    """Create and persist a new release."""
    event = Event(
        title=title.strip(),
        description=(description or "").strip(),
        release_date=to_naive_utc(release_date),
        category=category.strip(),
        subcategory1=_clean(subcategory1),
        subcategory2=_clean(subcategory2),
        link=_clean(link),
        image_url=_clean(image_url),
        created_at=_now(),
    )
    session.add(event)
    session.flush()
    return event


def list_user_events(session: Session, user_id: str) -> Sequence[UserEvent]:
    stmt = (
        select(UserEvent)
        .where(UserEvent.user_id == user_id)
        .order_by(UserEvent.created_at.asc())
    )
    return session.scalars(stmt).all()


def upsert_user_event(
    session: Session,
    *,
    user_id: str,
    event_id: str,
    is_favorite: bool = True,
) -> UserEvent:
    """Create the user's record for an event, or update its favorite flag."""
    if not get_event(session, event_id):
        raise BackendError("Event not found", kind="not_found")
    stmt = select(UserEvent).where(
        UserEvent.user_id == user_id, UserEvent.event_id == event_id
    )
    record = session.scalars(stmt).first()
    if record:
        record.is_favorite = bool(is_favorite)
    else:
        record = UserEvent(
            user_id=user_id,
            event_id=event_id,
            is_favorite=bool(is_favorite),
            created_at=_now(),
        )
    session.add(record)
    session.flush()
    return record


def delete_user_event(session: Session, *, user_id: str, user_event_id: str) -> None:
    """Delete one of the user's records; other users' records count as missing."""
    record = session.get(UserEvent, user_event_id)
    if not record or record.user_id != user_id:
        raise BackendError("User event not found", kind="not_found")
    session.delete(record)
    session.flush()
