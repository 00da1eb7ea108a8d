"""HTTP client for the ReleaseCal API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import settings
from .errors import BackendError
from .schemas import EventRecord, UserEventRecord, UserRecord

logger = logging.getLogger(__name__)

_KIND_BY_STATUS = {
    400: "invalid",
    401: "unauthorized",
    404: "not_found",
    409: "conflict",
}


class ReleaseCalClient:
    """Thin wrapper over ``httpx.Client``; any httpx client (or TestClient) works."""

    def __init__(
        self,
        http: httpx.Client | None = None,
        *,
        base_url: str | None = None,
        access_token: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._owns_http = http is None
        self.http = http or httpx.Client(
            base_url=base_url or settings.api_base_url, timeout=timeout
        )
        self.access_token = access_token

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "ReleaseCalClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.http.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise BackendError(f"Could not reach the server: {exc}") from exc
        try:
            body = response.json()
        except ValueError:
            body = None
        if response.is_error:
            message = (body or {}).get("error") if isinstance(body, dict) else None
            raise BackendError(
                message or f"Request failed with status {response.status_code}",
                kind=_KIND_BY_STATUS.get(response.status_code, "unavailable"),
            )
        return body

    # -------- Events --------

    def fetch_events(
        self,
        *,
        category: str | None = None,
        subcategories: list[str] | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> list[EventRecord]:
        params: dict[str, str] = {}
        if category:
            params["category"] = category
        if subcategories:
            params["subcategories"] = ",".join(subcategories)
        if start_date:
            params["startDate"] = start_date
        if end_date:
            params["endDate"] = end_date
        body = self._request("GET", "/api/events", params=params)
        # Older deployments wrap the list as {"events": [...]}.
        if isinstance(body, dict):
            body = body.get("events") or []
        return [EventRecord.model_validate(item) for item in body or []]

    def get_event(self, event_id: str) -> EventRecord:
        body = self._request("GET", f"/api/events/{event_id}")
        return EventRecord.model_validate(body["event"])

    def create_event(self, **fields: Any) -> EventRecord:
        body = self._request("POST", "/api/events", json=fields)
        return EventRecord.model_validate(body["event"])

    # -------- Auth --------

    def _authenticate(self, path: str, email: str, password: str) -> UserRecord:
        body = self._request("POST", path, json={"email": email, "password": password})
        session = body.get("session") or {}
        self.access_token = session.get("access_token")
        return UserRecord.model_validate(body["user"])

    def sign_in(self, email: str, password: str) -> UserRecord:
        return self._authenticate("/api/auth/signin", email, password)

    def sign_up(self, email: str, password: str) -> UserRecord:
        return self._authenticate("/api/auth/signup", email, password)

    def sign_out(self) -> None:
        self._request("POST", "/api/auth/signout")
        self.access_token = None

    def get_user(self) -> UserRecord | None:
        body = self._request("GET", "/api/auth/user")
        user = body.get("user")
        return UserRecord.model_validate(user) if user else None

    # -------- User events --------

    def list_user_events(self) -> list[UserEventRecord]:
        body = self._request("GET", "/api/user-events")
        return [UserEventRecord.model_validate(item) for item in body or []]

    def save_user_event(self, event_id: str, *, is_favorite: bool = True) -> UserEventRecord:
        body = self._request(
            "POST",
            "/api/user-events",
            json={"event_id": event_id, "is_favorite": is_favorite},
        )
        return UserEventRecord.model_validate(body)

    def delete_user_event(self, user_event_id: str) -> None:
        self._request("DELETE", f"/api/user-events/{user_event_id}")
