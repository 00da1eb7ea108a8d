from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from releasecal import api, crud
from releasecal.database import get_session
from releasecal.models import AuthSession, UserEvent
from releasecal.utils import utcnow


def _make_event(
    *,
    title: str = "Dune: Part Three",
    category: str = "Movies",
    release_date: datetime | None = None,
    subcategory1: str | None = None,
    subcategory2: str | None = None,
    description: str = "",
):
    with get_session() as session:
        return crud.create_event(
            session,
            title=title,
            description=description,
            release_date=release_date or datetime(2025, 1, 15, 12, 0),
            category=category,
            subcategory1=subcategory1,
            subcategory2=subcategory2,
        )


def _signup(client, email: str = "reader@example.com", password: str = "secret123"):
    response = client.post("/api/auth/signup", json={"email": email, "password": password})
    assert response.status_code == 201
    return response.json()


def _auth_headers(client, email: str = "reader@example.com") -> dict[str, str]:
    token = _signup(client, email=email)["session"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


# -------- Auth --------


def test_signup_returns_user_and_session(client):
    body = _signup(client, email="New@Example.com")
    assert body["user"]["email"] == "new@example.com"
    assert body["session"]["access_token"]
    assert body["session"]["expires_at"].endswith("Z")


def test_signup_requires_email_and_password(client):
    response = client.post("/api/auth/signup", json={"email": "a@example.com"})
    assert response.status_code == 400
    assert response.json() == {"error": "Email and password are required"}


def test_signup_duplicate_email_is_rejected(client):
    _signup(client)
    response = client.post(
        "/api/auth/signup", json={"email": "reader@example.com", "password": "another1"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "User already registered"


def test_signup_short_password_is_rejected(client):
    response = client.post(
        "/api/auth/signup", json={"email": "short@example.com", "password": "abc"}
    )
    assert response.status_code == 400
    assert "at least" in response.json()["error"]


def test_signin_with_valid_credentials(client):
    _signup(client)
    response = client.post(
        "/api/auth/signin", json={"email": "reader@example.com", "password": "secret123"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["user"]["email"] == "reader@example.com"
    assert body["session"]["token_type"] == "bearer"


def test_signin_with_wrong_password_is_unauthorized(client):
    _signup(client)
    response = client.post(
        "/api/auth/signin", json={"email": "reader@example.com", "password": "nope-nope"}
    )
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid login credentials"}


def test_signin_missing_fields(client):
    response = client.post("/api/auth/signin", json={})
    assert response.status_code == 400
    assert response.json() == {"error": "Email and password are required"}


def test_signin_malformed_body_is_bad_request(client):
    response = client.post(
        "/api/auth/signin",
        content="not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert "error" in response.json()


def test_signout_revokes_token(client):
    headers = _auth_headers(client)
    response = client.post("/api/auth/signout", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Signed out successfully"}

    response = client.get("/api/user-events", headers=headers)
    assert response.status_code == 401


def test_signout_backend_failure_returns_500(client, monkeypatch):
    def boom(db, token):
        raise RuntimeError("backend down")

    monkeypatch.setattr(api.auth, "sign_out", boom)
    response = client.post("/api/auth/signout")
    assert response.status_code == 500
    assert response.json() == {"error": "An unexpected error occurred"}


def test_current_user_anonymous_and_signed_in(client):
    assert client.get("/api/auth/user").json() == {"user": None}

    headers = _auth_headers(client)
    body = client.get("/api/auth/user", headers=headers).json()
    assert body["user"]["email"] == "reader@example.com"

    response = client.get("/api/auth/user", headers={"Authorization": "Bearer bogus"})
    assert response.status_code == 401


def test_expired_session_is_rejected(client):
    headers = _auth_headers(client)
    token = headers["Authorization"].split(" ", 1)[1]
    with get_session() as session:
        auth_session = session.get(AuthSession, token)
        auth_session.expires_at = utcnow() - timedelta(minutes=1)

    response = client.get("/api/user-events", headers=headers)
    assert response.status_code == 401
    assert response.json() == {"error": "Not authenticated"}


# -------- Events --------


def test_list_events_returns_sorted_array(client):
    later = _make_event(title="Later", release_date=datetime(2025, 3, 1))
    sooner = _make_event(title="Sooner", release_date=datetime(2025, 1, 1))

    response = client.get("/api/events")
    assert response.status_code == 200
    body = response.json()
    assert isinstance(body, list)
    assert [item["id"] for item in body] == [sooner.id, later.id]
    assert body[0]["release_date"] == "2025-01-01T00:00:00Z"


def test_list_events_filters_by_category_and_subcategories(client):
    action = _make_event(title="Action Movie", subcategory1="Action")
    _make_event(title="Drama Movie", subcategory1="Drama")
    second_slot = _make_event(title="Mixed", subcategory1="Drama", subcategory2="Sci-Fi")
    _make_event(title="Album", category="Music", subcategory1="Action")

    response = client.get(
        "/api/events", params={"category": "Movies", "subcategories": "Action,Sci-Fi"}
    )
    assert response.status_code == 200
    assert {item["id"] for item in response.json()} == {action.id, second_slot.id}


def test_list_events_filters_by_date_range(client):
    _make_event(title="Old", release_date=datetime(2024, 12, 31))
    inside = _make_event(title="Inside", release_date=datetime(2025, 1, 10))
    _make_event(title="Too late", release_date=datetime(2025, 2, 10))

    response = client.get(
        "/api/events",
        params={"startDate": "2025-01-01T00:00:00Z", "endDate": "2025-01-31"},
    )
    assert [item["id"] for item in response.json()] == [inside.id]


def test_list_events_rejects_bad_dates(client):
    response = client.get("/api/events", params={"startDate": "yesterday"})
    assert response.status_code == 400
    assert "startDate" in response.json()["error"]


def test_list_events_is_cached_until_create(client):
    _make_event(title="First")
    assert len(client.get("/api/events").json()) == 1

    # Inserted behind the API's back, so the cached listing stays stale.
    _make_event(title="Second")
    assert len(client.get("/api/events").json()) == 1

    response = client.post(
        "/api/events",
        json={"title": "Third", "release_date": "2025-05-01", "category": "Games"},
    )
    assert response.status_code == 201
    assert len(client.get("/api/events").json()) == 3


def test_create_event_returns_event(client):
    response = client.post(
        "/api/events",
        json={
            "title": "Elden Saga",
            "release_date": "2025-02-20T15:00:00Z",
            "category": "Games",
            "subcategory1": "RPG",
            "link": "https://example.com/elden",
        },
    )
    assert response.status_code == 201
    event = response.json()["event"]
    assert event["title"] == "Elden Saga"
    assert event["release_date"] == "2025-02-20T15:00:00Z"
    assert event["subcategory1"] == "RPG"
    assert event["subcategory2"] is None
    assert event["description"] == ""


@pytest.mark.parametrize("missing", ["title", "release_date", "category"])
def test_create_event_requires_fields(client, missing):
    payload = {"title": "Thing", "release_date": "2025-02-20", "category": "Music"}
    payload.pop(missing)
    response = client.post("/api/events", json=payload)
    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields"}


def test_create_event_insert_failure_returns_500(client, monkeypatch):
    def boom(session, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(api, "create_event", boom)
    response = client.post(
        "/api/events",
        json={"title": "Thing", "release_date": "2025-02-20", "category": "Music"},
    )
    assert response.status_code == 500
    assert response.json() == {"error": "An unexpected error occurred"}


def test_get_event_by_id(client):
    event = _make_event(title="Single")
    response = client.get(f"/api/events/{event.id}")
    assert response.status_code == 200
    assert response.json()["event"]["title"] == "Single"

    response = client.get("/api/events/missing")
    assert response.status_code == 404
    assert response.json() == {"error": "Event not found"}


# -------- User events --------


def test_user_events_require_authentication(client):
    assert client.get("/api/user-events").status_code == 401
    response = client.post("/api/user-events", json={"event_id": "1"})
    assert response.status_code == 401
    assert response.json() == {"error": "Not authenticated"}
    assert client.delete("/api/user-events/1").status_code == 401


def test_create_user_event_requires_event_id(client):
    headers = _auth_headers(client)
    response = client.post("/api/user-events", json={}, headers=headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Event ID is required"}


def test_create_user_event_unknown_event(client):
    headers = _auth_headers(client)
    response = client.post("/api/user-events", json={"event_id": "nope"}, headers=headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Event not found"}


def test_favorite_lifecycle(client):
    event = _make_event()
    headers = _auth_headers(client)

    response = client.post(
        "/api/user-events", json={"event_id": event.id, "is_favorite": True}, headers=headers
    )
    assert response.status_code == 201
    record = response.json()
    assert record["event_id"] == event.id
    assert record["is_favorite"] is True

    # Posting again updates the same record.
    response = client.post(
        "/api/user-events", json={"event_id": event.id, "is_favorite": False}, headers=headers
    )
    assert response.status_code == 201
    assert response.json()["id"] == record["id"]

    listed = client.get("/api/user-events", headers=headers).json()
    assert [item["id"] for item in listed] == [record["id"]]
    assert listed[0]["is_favorite"] is False

    response = client.delete(f"/api/user-events/{record['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"message": "User event deleted successfully"}
    assert client.get("/api/user-events", headers=headers).json() == []


def test_delete_unknown_user_event(client):
    headers = _auth_headers(client)
    response = client.delete("/api/user-events/999", headers=headers)
    assert response.status_code == 404
    assert response.json() == {"error": "User event not found"}


def test_cannot_delete_another_users_favorite(client):
    event = _make_event()
    owner = _auth_headers(client, email="owner@example.com")
    other = _auth_headers(client, email="other@example.com")
    record = client.post(
        "/api/user-events", json={"event_id": event.id}, headers=owner
    ).json()

    response = client.delete(f"/api/user-events/{record['id']}", headers=other)
    assert response.status_code == 404
    with get_session() as session:
        assert session.get(UserEvent, record["id"]) is not None


def test_user_events_only_lists_own_records(client):
    event = _make_event()
    owner = _auth_headers(client, email="owner@example.com")
    other = _auth_headers(client, email="other@example.com")
    client.post("/api/user-events", json={"event_id": event.id}, headers=owner)

    assert client.get("/api/user-events", headers=other).json() == []
    assert len(client.get("/api/user-events", headers=owner).json()) == 1
