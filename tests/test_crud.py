from __future__ import annotations

from datetime import datetime, timezone

import pytest

from releasecal import crud
from releasecal.errors import BackendError
from releasecal.models import Event, User, UserEvent


def _event(session, title: str, when: datetime, **kwargs) -> Event:
    kwargs.setdefault("category", "Movies")
    return crud.create_event(session, title=title, release_date=when, **kwargs)


def _user(session, email: str = "fan@example.com") -> User:
    user = User(email=email, password_hash="x")
    session.add(user)
    session.flush()
    return user


def test_create_event_normalizes_fields(db_session):
    event = crud.create_event(
        db_session,
        title="  Spaced Title  ",
        release_date=datetime(2025, 1, 1, 12, tzinfo=timezone.utc),
        category=" Games ",
        subcategory1="   ",
        link="",
    )
    assert event.id
    assert event.title == "Spaced Title"
    assert event.category == "Games"
    assert event.description == ""
    assert event.subcategory1 is None
    assert event.link is None
    assert event.release_date == datetime(2025, 1, 1, 12)


def test_list_events_orders_by_release_date(db_session):
    late = _event(db_session, "Late", datetime(2025, 6, 1))
    early = _event(db_session, "Early", datetime(2025, 1, 1))
    middle = _event(db_session, "Middle", datetime(2025, 3, 1))

    assert [e.id for e in crud.list_events(db_session)] == [early.id, middle.id, late.id]


def test_list_events_subcategory_matches_either_slot(db_session):
    first = _event(db_session, "First", datetime(2025, 1, 1), subcategory1="Horror")
    second = _event(
        db_session, "Second", datetime(2025, 1, 2), subcategory1="Drama", subcategory2="Horror"
    )
    _event(db_session, "Other", datetime(2025, 1, 3), subcategory1="Drama")

    found = crud.list_events(db_session, subcategories=["Horror"])
    assert [e.id for e in found] == [first.id, second.id]


def test_list_events_date_bounds_are_inclusive(db_session):
    edge = _event(db_session, "Edge", datetime(2025, 1, 31))
    _event(db_session, "After", datetime(2025, 2, 1))

    found = crud.list_events(
        db_session, start=datetime(2025, 1, 31), end=datetime(2025, 1, 31)
    )
    assert [e.id for e in found] == [edge.id]


def test_upsert_user_event_updates_existing_record(db_session):
    user = _user(db_session)
    event = _event(db_session, "Fav", datetime(2025, 1, 1))

    created = crud.upsert_user_event(db_session, user_id=user.id, event_id=event.id)
    updated = crud.upsert_user_event(
        db_session, user_id=user.id, event_id=event.id, is_favorite=False
    )

    assert created.id == updated.id
    assert updated.is_favorite is False
    assert len(crud.list_user_events(db_session, user.id)) == 1


def test_upsert_user_event_unknown_event(db_session):
    user = _user(db_session)
    with pytest.raises(BackendError) as excinfo:
        crud.upsert_user_event(db_session, user_id=user.id, event_id="missing")
    assert excinfo.value.kind == "not_found"
    assert excinfo.value.message == "Event not found"


def test_delete_user_event_checks_owner(db_session):
    owner = _user(db_session, "owner@example.com")
    intruder = _user(db_session, "intruder@example.com")
    event = _event(db_session, "Fav", datetime(2025, 1, 1))
    record = crud.upsert_user_event(db_session, user_id=owner.id, event_id=event.id)

    with pytest.raises(BackendError) as excinfo:
        crud.delete_user_event(db_session, user_id=intruder.id, user_event_id=record.id)
    assert excinfo.value.message == "User event not found"

    crud.delete_user_event(db_session, user_id=owner.id, user_event_id=record.id)
    assert crud.list_user_events(db_session, owner.id) == []


def test_deleting_event_cascades_to_favorites(db_session):
    user = _user(db_session)
    event = _event(db_session, "Doomed", datetime(2025, 1, 1))
    record = crud.upsert_user_event(db_session, user_id=user.id, event_id=event.id)
    record_id = record.id

    db_session.delete(event)
    db_session.flush()
    db_session.expunge_all()

    assert db_session.get(UserEvent, record_id) is None
