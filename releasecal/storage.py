"""Database initialization and maintenance."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect, text

from . import database
from .config import settings

logger = logging.getLogger("uvicorn.error")


def init_db() -> None:
    actions = upgrade_database(make_backup=False)
    for action in actions:
        logger.info("Database: %s", action)


def _alembic_config() -> Config:
    package_dir = Path(__file__).resolve().parent
    script_location = package_dir / "alembic"
    ini_path = script_location.parent / "alembic.ini"

    config = Config(str(ini_path)) if ini_path.exists() else Config()
    config.set_main_option("script_location", str(script_location))
    config.set_main_option(
        "sqlalchemy.url",
        # set_main_option interpolates, so a literal % must be doubled.
        database.engine.url.render_as_string(hide_password=False).replace("%", "%%"),
    )
    return config


def upgrade_database(*, make_backup: bool = True) -> list[str]:
    """Upgrade the database schema in-place.

    Returns a list of applied actions; empty if already up-to-date.
    """
    actions: list[str] = []
    db_path = Path(settings.database_path)

    if make_backup and db_path.exists():
        backup_path = db_path.with_suffix(db_path.suffix + ".bak")
        shutil.copy(db_path, backup_path)
        actions.append(f"Backup created at {backup_path}")

    inspector = inspect(database.engine)
    has_alembic = inspector.has_table("alembic_version")
    has_events = inspector.has_table("events")
    config = _alembic_config()

    if has_events and not has_alembic:
        # Tables created outside Alembic (e.g. metadata.create_all): baseline.
        command.stamp(config, "head")
        actions.append("Stamped existing database to Alembic head")
        return actions

    before = _current_revision()
    command.upgrade(config, "head")
    after = _current_revision()
    if before != after:
        actions.append(f"Applied Alembic migrations {before or 'base'} -> {after}")
    return actions


def _current_revision() -> str | None:
    if not inspect(database.engine).has_table("alembic_version"):
        return None
    with database.engine.connect() as conn:
        return conn.execute(text("SELECT version_num FROM alembic_version")).scalar()


def vacuum_database() -> None:
    """Reclaim space in the SQLite file after purges."""
    if database.engine.dialect.name != "sqlite":
        return
    with database.engine.connect() as connection:
        connection.execution_options(isolation_level="AUTOCOMMIT").exec_driver_sql(
            "VACUUM"
        )
    logger.info("SQLite VACUUM complete")
