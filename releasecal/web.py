"""Server-rendered calendar, list, detail and interests pages."""

from __future__ import annotations

from pathlib import Path

from fastapi import Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from .calendar_grid import build_month, group_by_date, shift_month
from .catalog import MAIN_CATEGORIES, SUBCATEGORIES, WEEKDAY_LABELS, category_color, subcategory_tag
from .crud import get_event, list_events
from .database import get_db
from .filtering import filter_events, has_search_match, highlight_matches
from .utils import countdown, format_date_header, humanize_time, utcnow

templates = Jinja2Templates(directory=Path(__file__).parent / "templates")

templates.env.globals["weekday_labels"] = WEEKDAY_LABELS
templates.env.globals["main_categories"] = MAIN_CATEGORIES
templates.env.filters["relative_time"] = humanize_time
templates.env.filters["highlight"] = highlight_matches
templates.env.filters["category_color"] = category_color
templates.env.filters["date_header"] = format_date_header


def render_error(request: Request, status_code: int, message: str | None):
    context = {
        "request": request,
        "status_code": status_code,
        "error_message": message or "Something went wrong.",
    }
    return templates.TemplateResponse(
        request, "error.html", context, status_code=status_code
    )


def interests_from_query(request: Request) -> list[str]:
    """Collect ``interests`` given either repeated or comma-separated."""
    interests: list[str] = []
    for raw in request.query_params.getlist("interests"):
        for tag in raw.split(","):
            tag = tag.strip()
            if tag and tag not in interests:
                interests.append(tag)
    return interests


def calendar_page(
    request: Request,
    year: int | None = None,
    month: int | None = None,
    q: str = "",
    db: Session = Depends(get_db),
):
    """Render one month of releases; ``month`` is 1-12 in the URL."""
    today = utcnow().date()
    year = year or today.year
    month = month or today.month
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="Month must be between 1 and 12")

    interests = interests_from_query(request)
    # The search only marks days; the month still shows every release of interest.
    grid = build_month(year, month - 1, filter_events(list_events(db), interests))
    prev_year, prev_index = shift_month(year, month - 1, -1)
    next_year, next_index = shift_month(year, month - 1, 1)
    highlighted = {
        cell.day
        for cell in grid.cells()
        if not cell.is_blank and has_search_match(cell.events, q)
    }
    return templates.TemplateResponse(
        request,
        "calendar.html",
        {
            "request": request,
            "grid": grid,
            "today": today,
            "query": q,
            "interests": interests,
            "highlighted": highlighted,
            "prev_month": {"year": prev_year, "month": prev_index + 1},
            "next_month": {"year": next_year, "month": next_index + 1},
        },
    )


def list_page(request: Request, q: str = "", db: Session = Depends(get_db)):
    interests = interests_from_query(request)
    visible = filter_events(list_events(db), interests, q)
    return templates.TemplateResponse(
        request,
        "list.html",
        {
            "request": request,
            "grouped": group_by_date(visible),
            "query": q,
            "interests": interests,
        },
    )


def event_page(request: Request, event_id: str, db: Session = Depends(get_db)):
    event = get_event(db, event_id)
    status_code = 200 if event else 404
    return templates.TemplateResponse(
        request,
        "event.html",
        {
            "request": request,
            "event": event,
            "remaining": countdown(event.release_date) if event else None,
        },
        status_code=status_code,
    )


def interests_page(request: Request):
    selected = set(interests_from_query(request))
    catalog = [
        {
            "name": category,
            "selected": category in selected,
            "subcategories": [
                {
                    "name": name,
                    "tag": subcategory_tag(category, name),
                    "selected": subcategory_tag(category, name) in selected,
                }
                for name in SUBCATEGORIES.get(category, ())
            ],
        }
        for category in MAIN_CATEGORIES
    ]
    return templates.TemplateResponse(
        request,
        "interests.html",
        {"request": request, "catalog": catalog, "interests": sorted(selected)},
    )


def register_web_routes(app):
    """Register web routes on the FastAPI app."""
    app.get("/", response_class=HTMLResponse)(calendar_page)
    app.get("/calendar", response_class=HTMLResponse)(calendar_page)
    app.get("/list", response_class=HTMLResponse)(list_page)
    app.get("/event/{event_id}", response_class=HTMLResponse)(event_page)
    app.get("/interests", response_class=HTMLResponse)(interests_page)
