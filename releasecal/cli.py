"""Typer CLI for ReleaseCal."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path

from sqlalchemy.exc import OperationalError
import typer
import uvicorn

from .auth import purge_expired_sessions
from .calendar_grid import MonthGrid, build_month
from .client import ReleaseCalClient
from .config import (
    load_settings,
    settings,
    settings_as_dict,
    update_config_file,
)
from .crud import list_events
from .database import get_session
from .filtering import filter_events, has_search_match
from .scheduler import start_scheduler, stop_scheduler
from .seed import seed_fake_data
from .session import AuthSession, Notification, Notifier
from .state import (
    ACCESS_TOKEN_KEY,
    EventStore,
    FavoritesStore,
    InterestStore,
    JsonFileStorage,
    MemoryStorage,
)
from .storage import init_db, upgrade_database
from .utils import format_date_header, utcnow

app = typer.Typer(help="ReleaseCal command-line interface")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Show help when no subcommand is provided."""
    logging.basicConfig(format="%(levelname)s: %(name)s: %(message)s")
    logging.getLogger("releasecal").setLevel(settings.log_level.upper())
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _readonly_exit(exc: OperationalError, action: str) -> None:
    message = str(getattr(exc, "orig", exc)).lower()
    if "readonly" in message or "read-only" in message:
        typer.secho(
            f"Unable to {action} because the database is read-only. "
            f"Ensure write access to {settings.database_path}.",
            err=True,
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)


@app.command("upgrade-db")
def upgrade_db(
    no_backup: bool = typer.Option(
        False,
        "--no-backup",
        help="Skip creating a .bak copy of the database before upgrading",
    ),
) -> None:
    """Upgrade the SQLite database schema if needed."""
    try:
        actions = upgrade_database(make_backup=not no_backup)
    except OperationalError as exc:
        _readonly_exit(exc, "upgrade")
        raise

    if not actions:
        typer.echo("Database already up to date.")
        return

    typer.echo("Database upgrade complete:")
    for action in actions:
        typer.echo(f"- {action}")


@app.command("purge-sessions")
def purge_sessions() -> None:
    """Delete expired sign-in sessions."""
    init_db()
    try:
        removed = purge_expired_sessions()
    except OperationalError as exc:
        _readonly_exit(exc, "purge sessions")
        raise
    typer.echo(f"Removed {removed} expired sessions.")


@app.command("runserver")
def runserver(
    host: str = typer.Option(settings.app_host, "--host", help="Host to bind"),
    port: int = typer.Option(settings.app_port, "--port", help="Port to bind"),
):
    """Start FastAPI with APScheduler."""
    init_db()
    if settings.enable_scheduler:
        start_scheduler()
    config = uvicorn.Config(
        "releasecal.api:app",
        host=host,
        port=port,
        reload=False,
        proxy_headers=True,
        forwarded_allow_ips="*",
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    try:
        typer.echo(f"Starting ReleaseCal on {host}:{port}")
        server.run()
    finally:
        stop_scheduler()


@app.command("seed-data")
def seed_data(
    events: int = typer.Option(
        settings.seed_events, "--events", min=0, help="Number of releases to create"
    ),
    months_ahead: int = typer.Option(
        settings.seed_months_ahead,
        "--months-ahead",
        min=0,
        help="How far ahead release dates may fall",
    ),
):
    """Populate the database with fake releases for testing."""
    stats = seed_fake_data(event_count=events, months_ahead=months_ahead)
    typer.echo(
        f"Seed complete: {stats['events']} releases across "
        f"{stats['categories']} categories."
    )


def _parse_month(raw: str) -> tuple[int, int]:
    try:
        parsed = datetime.strptime(raw, "%Y-%m")
    except ValueError as exc:
        raise typer.BadParameter("Use YYYY-MM, e.g. 2025-01") from exc
    return parsed.year, parsed.month - 1


def _client_storage() -> JsonFileStorage:
    return JsonFileStorage(settings.client_state_path)


def _api_client(storage: JsonFileStorage | None = None) -> ReleaseCalClient:
    """API client carrying the stored access token, if any."""
    storage = storage or _client_storage()
    return ReleaseCalClient(access_token=storage.read(ACCESS_TOKEN_KEY) or None)


def _echo_notification(notification: Notification | None) -> None:
    if notification is None:
        return
    failed = notification.variant == "destructive"
    typer.secho(
        f"{notification.title}: {notification.description}",
        err=failed,
        fg=typer.colors.RED if failed else None,
    )


def _echo_month(grid: MonthGrid, highlighted: set[date]) -> None:
    typer.echo(grid.title)
    for cell in grid.cells():
        if cell.is_blank:
            continue
        marker = "*" if cell.day in highlighted else " "
        for event in cell.events:
            typer.echo(f"{cell.day.day:>2}{marker} [{event.category}] {event.title}")


@app.command("releases")
def releases(
    interests: list[str] = typer.Option(
        [], "--interest", "-i", help="Interest tag such as Movies or Movies:Action"
    ),
    query: str = typer.Option("", "--search", "-s", help="Search titles and descriptions"),
    month: str | None = typer.Option(
        None, "--month", help="Show a month grid for YYYY-MM instead of a list"
    ),
    remote: bool = typer.Option(
        False, "--remote", help=f"Fetch from the API ({settings.api_base_url})"
    ),
    save: bool = typer.Option(
        False, "--save", help="Remember the given --interest tags for later runs"
    ),
) -> None:
    """Print releases matching the saved (or given) interests and search.

    Without ``--interest`` the selection saved by ``releasecal interests`` is
    used. ``--save`` stores the given ``--interest`` tags as the new selection.
    In a month grid, days with a search hit are marked with ``*``.
    """
    month_args = _parse_month(month) if month else None
    interest_store = InterestStore(_client_storage())
    if interests:
        if not save:
            interest_store = InterestStore(MemoryStorage())
        interest_store.replace(interests)

    if remote:
        with _api_client() as client:
            store = EventStore(client, interest_store)
            if not store.refresh():
                typer.secho(store.error, err=True, fg=typer.colors.RED)
                raise typer.Exit(code=1)
        store.set_query(query)
        if month_args:
            grid = store.month(*month_args)
            _echo_month(grid, store.highlighted_days(grid))
            return
        visible = store.filtered()
    else:
        init_db()
        with get_session() as session:
            loaded = list_events(session)
        if month_args:
            grid = build_month(*month_args, filter_events(loaded, interest_store.interests))
            highlighted = {
                cell.day
                for cell in grid.cells()
                if not cell.is_blank and has_search_match(cell.events, query)
            }
            _echo_month(grid, highlighted)
            return
        visible = filter_events(loaded, interest_store.interests, query)

    if not visible:
        typer.echo("No releases match.")
        return
    current_header = None
    for event in visible:
        header = format_date_header(event.release_date)
        if header != current_header:
            typer.secho(header, bold=True)
            current_header = header
        marker = "" if event.release_date >= utcnow() else " (released)"
        typer.echo(f"  [{event.category}] {event.title}{marker}")


@app.command("interests")
def interests_command(
    tags: list[str] = typer.Argument(
        None, help="Tags to toggle, such as Movies or Games:RPG"
    ),
) -> None:
    """Toggle saved interest tags and show the current selection."""
    store = InterestStore(_client_storage())
    for tag in tags or []:
        selected = store.toggle(tag)
        typer.echo(f"{'Added' if selected else 'Removed'} {tag}")
    if store.tags:
        typer.echo("Interests: " + ", ".join(store.tags))
    else:
        typer.echo("No interests selected; showing every release.")


@app.command("favorite")
def favorite(event_id: str = typer.Argument(..., help="Release id to toggle")) -> None:
    """Toggle a favorite release; synced to the API when signed in."""
    storage = _client_storage()
    notifier = Notifier()
    with _api_client(storage) as client:
        favorites = FavoritesStore(storage, client, notifier)
        selected = favorites.toggle(event_id)
    typer.echo(f"{'Added' if selected else 'Removed'} favorite {event_id}")
    for notification in notifier.notifications:
        _echo_notification(notification)


def _authenticate(action: str, email: str, password: str) -> None:
    storage = _client_storage()
    with _api_client(storage) as client:
        holder = AuthSession(client)
        succeeded = getattr(holder, action)(email, password)
    _echo_notification(holder.notifier.last)
    if not succeeded:
        raise typer.Exit(code=1)
    storage.write(ACCESS_TOKEN_KEY, holder.access_token or "")


@app.command("signin")
def signin(
    email: str = typer.Option(..., "--email", prompt=True, help="Account email"),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, help="Account password"
    ),
) -> None:
    """Sign in and remember the session for favorites sync."""
    _authenticate("sign_in", email, password)


@app.command("signup")
def signup(
    email: str = typer.Option(..., "--email", prompt=True, help="Account email"),
    password: str = typer.Option(
        ...,
        "--password",
        prompt=True,
        hide_input=True,
        confirmation_prompt=True,
        help="Account password",
    ),
) -> None:
    """Create an account; sign in afterwards with ``signin``."""
    _authenticate("sign_up", email, password)


@app.command("signout")
def signout() -> None:
    """End the stored session."""
    storage = _client_storage()
    with _api_client(storage) as client:
        if not client.access_token:
            typer.echo("Not signed in.")
            return
        holder = AuthSession(client)
        succeeded = holder.sign_out()
    _echo_notification(holder.notifier.last)
    if not succeeded:
        raise typer.Exit(code=1)
    storage.write(ACCESS_TOKEN_KEY, "")


@app.command("config")
def configure(
    show: bool = typer.Option(
        False, "--show", help="Show the current effective configuration"
    ),
    host: str | None = typer.Option(None, "--host", help="Default host for runserver"),
    port: int | None = typer.Option(None, "--port", help="Default port for runserver"),
    config_path: Path | None = typer.Option(
        None, "--config-path", help="Path to releasecal.toml (default: ./releasecal.toml)"
    ),
    events_cache_seconds: int | None = typer.Option(
        None, "--events-cache-seconds", min=0, help="Cache lifetime for event listings"
    ),
    session_ttl_hours: int | None = typer.Option(
        None, "--session-ttl-hours", min=1, help="Hours a sign-in session stays valid"
    ),
    password_min_length: int | None = typer.Option(
        None, "--password-min-length", min=1, help="Minimum password length for sign-up"
    ),
    session_purge_hours: int | None = typer.Option(
        None, "--session-purge-hours", min=1, help="Hours between expired-session purges"
    ),
    vacuum_hours: int | None = typer.Option(
        None, "--vacuum-hours", help="Hours between SQLite VACUUM runs"
    ),
    seed_events: int | None = typer.Option(
        None, "--seed-events", min=0, help="Default seed-data release count"
    ),
    seed_months_ahead: int | None = typer.Option(
        None, "--seed-months-ahead", min=0, help="Default seed-data months ahead"
    ),
    api_base_url: str | None = typer.Option(
        None, "--api-base-url", help="Base URL used by the API client"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level"),
    enable_scheduler: bool | None = typer.Option(
        None,
        "--enable-scheduler/--disable-scheduler",
        help="Toggle background scheduler (session purge/vacuum)",
    ),
):
    """View or update the persistent configuration file."""

    updates = {
        "app_host": host,
        "app_port": port,
        "events_cache_seconds": events_cache_seconds,
        "session_ttl_hours": session_ttl_hours,
        "password_min_length": password_min_length,
        "session_purge_hours": session_purge_hours,
        "sqlite_vacuum_hours": vacuum_hours,
        "seed_events": seed_events,
        "seed_months_ahead": seed_months_ahead,
        "api_base_url": api_base_url,
        "log_level": log_level,
        "enable_scheduler": enable_scheduler,
    }
    clean_updates = {k: v for k, v in updates.items() if v is not None}

    settings_ref = settings
    target_path = config_path or settings.config_path
    if clean_updates:
        settings_ref = update_config_file(clean_updates, path=target_path)
        typer.echo(f"Updated configuration in {target_path}")
    else:
        settings_ref = load_settings(target_path)
    if show or not clean_updates:
        effective = settings_as_dict(settings_ref)
        effective["config_path"] = str(target_path)
        typer.echo(json.dumps(effective, indent=2))


if __name__ == "__main__":
    app()
