"""FastAPI application for ReleaseCal."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import asynccontextmanager, contextmanager
from importlib.metadata import PackageNotFoundError, version as pkg_version
from pathlib import Path
from typing import Any
import tomllib

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import auth
from .config import settings
from .crud import (
    create_event,
    delete_user_event,
    get_event,
    list_events,
    list_user_events,
    upsert_user_event,
)
from .database import get_db
from .errors import ApiError, BackendError
from .models import AuthSession, Event, User, UserEvent
from .scheduler import start_scheduler, stop_scheduler
from .schemas import CredentialsPayload, EventCreatePayload, UserEventPayload
from .storage import init_db
from .utils import isoformat_utc, parse_release_date
from .web import register_web_routes, render_error

# Use uvicorn's error logger so messages get the level prefix in the default log
# format.
logger = logging.getLogger("uvicorn.error")

UNEXPECTED_ERROR = "An unexpected error occurred"
NOT_AUTHENTICATED = "Not authenticated"


def _load_app_version() -> str:
    """Return the current package version, falling back to pyproject for dev runs."""
    try:
        return pkg_version("releasecal")
    except PackageNotFoundError:
        pyproject_path = Path(__file__).resolve().parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            data = tomllib.loads(pyproject_path.read_text())
            project = data.get("project") or {}
            return str(project.get("version") or "dev")
    return "dev"


APP_VERSION = _load_app_version()


class ResponseCache:
    """In-process TTL cache for event listings, keyed by query string."""

    def __init__(
        self, ttl_seconds: int, *, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires, value = entry
        if expires <= self._clock():
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def clear(self) -> None:
        self._entries.clear()


events_cache = ResponseCache(settings.events_cache_seconds)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    if settings.enable_scheduler:
        start_scheduler()
    try:
        yield
    finally:
        stop_scheduler()


app = FastAPI(title="ReleaseCal", version=APP_VERSION, lifespan=lifespan)
static_dir = Path(__file__).parent / "static"
app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

register_web_routes(app)


def _wants_json(request: Request) -> bool:
    accept = (request.headers.get("accept") or "").lower()
    return request.url.path.startswith("/api/") or (
        "application/json" in accept and "text/html" not in accept
    )


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as friendly pages unless JSON was requested."""
    detail = exc.detail if isinstance(exc.detail, str) else "Something went wrong."
    if _wants_json(request):
        return JSONResponse({"error": detail}, status_code=exc.status_code)
    return render_error(request, exc.status_code, detail)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    if _wants_json(request):
        return JSONResponse({"error": "Invalid request body"}, status_code=400)
    return render_error(
        request,
        422,
        "Some of the fields were invalid. Please double-check and try again.",
    )


@app.exception_handler(OperationalError)
async def operational_error_handler(request: Request, exc: OperationalError):
    raw = str(exc.orig) if getattr(exc, "orig", None) else str(exc)
    if "database is locked" in raw.lower():
        logger.error(
            "SQLite database is locked while handling %s %s",
            request.method,
            request.url.path,
        )
        detail, status = "The backend is busy. Please try again shortly.", 503
    else:
        logger.error(
            "Operational database error on %s %s: %s",
            request.method,
            request.url.path,
            raw,
        )
        detail, status = UNEXPECTED_ERROR, 500
    if _wants_json(request):
        return JSONResponse({"error": detail}, status_code=status)
    return render_error(request, status, detail)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Gracefully handle unexpected errors."""
    logger.exception(
        "Unhandled error while processing %s %s", request.method, request.url.path
    )
    if _wants_json(request):
        return JSONResponse({"error": UNEXPECTED_ERROR}, status_code=500)
    return render_error(
        request,
        500,
        "We hit a snag while processing that request. Please try again.",
    )


@contextmanager
def _backend_call(action: str, statuses: dict[str, int] | None = None) -> Iterator[None]:
    """Translate backend failures into API errors for one handler step.

    ``statuses`` maps :class:`BackendError` kinds to HTTP codes; unmapped kinds
    become 500 with the backend's message, anything else a generic 500.
    """
    try:
        yield
    except ApiError:
        raise
    except BackendError as exc:
        status = (statuses or {}).get(exc.kind, 500)
        if status >= 500:
            logger.error("Backend error while %s: %s", action, exc.message)
        raise ApiError(status, exc.message) from exc
    except Exception as exc:
        logger.exception("Unexpected error while %s", action)
        raise ApiError(500, UNEXPECTED_ERROR) from exc


def _get_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("authorization") or ""
    if not auth_header.lower().startswith("bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    with _backend_call("resolving session"):
        user = auth.get_user_for_token(db, _get_bearer_token(request))
    if not user:
        raise ApiError(401, NOT_AUTHENTICATED)
    return user


def _serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "created_at": isoformat_utc(user.created_at),
    }


def _serialize_session(auth_session: AuthSession) -> dict:
    return {
        "access_token": auth_session.access_token,
        "token_type": "bearer",
        "expires_at": isoformat_utc(auth_session.expires_at),
    }


def _serialize_event(event: Event) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "release_date": isoformat_utc(event.release_date),
        "category": event.category,
        "subcategory1": event.subcategory1,
        "subcategory2": event.subcategory2,
        "link": event.link,
        "image_url": event.image_url,
        "links": {"html": f"/event/{event.id}"},
    }


def _serialize_user_event(record: UserEvent) -> dict:
    return {
        "id": record.id,
        "user_id": record.user_id,
        "event_id": record.event_id,
        "is_favorite": record.is_favorite,
        "created_at": isoformat_utc(record.created_at),
    }


def _parse_date_param(name: str, raw: str | None):
    if not raw:
        return None
    try:
        return parse_release_date(raw)
    except ValueError as exc:
        raise ApiError(400, f"Invalid {name}; use ISO8601 format") from exc


def _require_credentials(payload: CredentialsPayload) -> tuple[str, str]:
    email = (payload.email or "").strip()
    password = payload.password or ""
    if not email or not password:
        raise ApiError(400, "Email and password are required")
    return email, password


# -------- Auth --------


@app.post("/api/auth/signin")
def api_sign_in(payload: CredentialsPayload, db: Session = Depends(get_db)):
    email, password = _require_credentials(payload)
    with _backend_call("signing in", {"unauthorized": 401}):
        user, auth_session = auth.sign_in(db, email=email, password=password)
    return {"user": _serialize_user(user), "session": _serialize_session(auth_session)}


@app.post("/api/auth/signup", status_code=201)
def api_sign_up(payload: CredentialsPayload, db: Session = Depends(get_db)):
    email, password = _require_credentials(payload)
    with _backend_call("signing up", {"invalid": 400, "conflict": 400}):
        user, auth_session = auth.sign_up(db, email=email, password=password)
    return {"user": _serialize_user(user), "session": _serialize_session(auth_session)}


@app.post("/api/auth/signout")
def api_sign_out(request: Request, db: Session = Depends(get_db)):
    with _backend_call("signing out"):
        auth.sign_out(db, _get_bearer_token(request))
    return {"message": "Signed out successfully"}


@app.get("/api/auth/user")
def api_current_user(request: Request, db: Session = Depends(get_db)):
    token = _get_bearer_token(request)
    if not token:
        return {"user": None}
    with _backend_call("loading the current user"):
        user = auth.get_user_for_token(db, token)
    if not user:
        raise ApiError(401, "Invalid or expired session")
    return {"user": _serialize_user(user)}


# -------- Events --------


@app.get("/api/events")
def api_list_events(
    category: str | None = Query(None),
    subcategories: str | None = Query(None, description="Comma-separated list"),
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    cache_key = "|".join(
        [category or "all", subcategories or "all", start_date or "all", end_date or "all"]
    )
    cached = events_cache.get(cache_key)
    if cached is not None:
        return JSONResponse(cached)

    start = _parse_date_param("startDate", start_date)
    end = _parse_date_param("endDate", end_date)
    wanted = [name.strip() for name in (subcategories or "").split(",") if name.strip()]
    with _backend_call("listing events"):
        events = list_events(
            db, category=category, subcategories=wanted, start=start, end=end
        )
        payload = [_serialize_event(event) for event in events]
    events_cache.set(cache_key, payload)
    return JSONResponse(payload)


@app.post("/api/events", status_code=201)
def api_create_event(payload: EventCreatePayload, db: Session = Depends(get_db)):
    title = (payload.title or "").strip()
    category = (payload.category or "").strip()
    if not title or not payload.release_date or not category:
        raise ApiError(400, "Missing required fields")
    release_date = _parse_date_param("release_date", payload.release_date)
    with _backend_call("creating an event"):
        event = create_event(
            db,
            title=title,
            description=payload.description,
            release_date=release_date,
            category=category,
            subcategory1=payload.subcategory1,
            subcategory2=payload.subcategory2,
            link=payload.link,
            image_url=payload.image_url,
        )
        body = {"event": _serialize_event(event)}
    events_cache.clear()
    logger.info("Created event %s (%s)", event.id, category)
    return body


@app.get("/api/events/{event_id}")
def api_get_event(event_id: str, db: Session = Depends(get_db)):
    with _backend_call("loading an event"):
        event = get_event(db, event_id)
    if not event:
        raise ApiError(404, "Event not found")
    return {"event": _serialize_event(event)}


# -------- User events (favorites) --------


@app.get("/api/user-events")
def api_list_user_events(
    user: User = Depends(require_user), db: Session = Depends(get_db)
):
    with _backend_call("listing user events"):
        records = list_user_events(db, user.id)
        return [_serialize_user_event(record) for record in records]


@app.post("/api/user-events", status_code=201)
def api_create_user_event(
    payload: UserEventPayload,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    event_id = (payload.event_id or "").strip()
    if not event_id:
        raise ApiError(400, "Event ID is required")
    with _backend_call("saving a user event", {"not_found": 404}):
        record = upsert_user_event(
            db, user_id=user.id, event_id=event_id, is_favorite=payload.is_favorite
        )
        return _serialize_user_event(record)


@app.delete("/api/user-events/{user_event_id}")
def api_delete_user_event(
    user_event_id: str,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    with _backend_call("deleting a user event", {"not_found": 404}):
        delete_user_event(db, user_id=user.id, user_event_id=user_event_id)
    return {"message": "User event deleted successfully"}
