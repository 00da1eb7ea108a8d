from __future__ import annotations

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine

from releasecal import database, storage
from releasecal.models import Base


def _patch_db(monkeypatch: pytest.MonkeyPatch, engine: Engine) -> None:
    monkeypatch.setattr(database, "engine", engine)


def _get_version(engine: Engine) -> str | None:
    with engine.connect() as conn:
        try:
            return conn.execute(
                text("select version_num from alembic_version")
            ).scalar()
        except Exception:
            return None


def test_upgrade_database_stamps_existing_db(monkeypatch, tmp_path):
    db_path = tmp_path / "existing.sqlite"
    engine = create_engine(f"sqlite:///{db_path}", future=True)
    Base.metadata.create_all(bind=engine)  # existing schema without Alembic tracking
    _patch_db(monkeypatch, engine)

    actions = storage.upgrade_database(make_backup=False)

    assert "Stamped existing database to Alembic head" in actions
    assert _get_version(engine) == "0002_event_images"


def test_upgrade_database_creates_fresh_schema(monkeypatch, tmp_path):
    db_path = tmp_path / "fresh.sqlite"
    engine = create_engine(f"sqlite:///{db_path}", future=True)
    _patch_db(monkeypatch, engine)

    actions = storage.upgrade_database(make_backup=False)

    assert actions == ["Applied Alembic migrations base -> 0002_event_images"]
    inspector = inspect(engine)
    for table in ("events", "users", "auth_sessions", "user_events"):
        assert inspector.has_table(table)
    columns = {column["name"] for column in inspector.get_columns("events")}
    assert {"subcategory1", "subcategory2", "image_url"} <= columns

    assert storage.upgrade_database(make_backup=False) == []


def test_vacuum_database_runs_on_sqlite(monkeypatch, tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'vacuum.sqlite'}", future=True)
    _patch_db(monkeypatch, engine)
    storage.vacuum_database()


def test_upgrade_database_handles_percent_in_path(monkeypatch, tmp_path):
    db_dir = tmp_path / "100%done"
    db_dir.mkdir()
    engine = create_engine(f"sqlite:///{db_dir / 'release%cal.sqlite'}", future=True)
    _patch_db(monkeypatch, engine)

    actions = storage.upgrade_database(make_backup=False)

    assert actions == ["Applied Alembic migrations base -> 0002_event_images"]
    assert _get_version(engine) == "0002_event_images"
