"""Global configuration for ReleaseCal."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable

DEFAULTS: dict[str, Any] = {
    "app_host": "0.0.0.0",
    "app_port": 8000,
    "events_cache_seconds": 300,
    "session_ttl_hours": 168,
    "password_min_length": 6,
    "enable_scheduler": True,
    "session_purge_hours": 6,
    "sqlite_vacuum_hours": 24,
    "seed_events": 40,
    "seed_months_ahead": 3,
    "api_base_url": "http://127.0.0.1:8000",
    "client_state_path": "client-state.json",
    "log_level": "INFO",
}

TYPE_CASTERS: dict[str, Callable[[Any], Any]] = {
    "app_host": str,
    "app_port": int,
    "events_cache_seconds": int,
    "session_ttl_hours": int,
    "password_min_length": int,
    "enable_scheduler": bool,
    "session_purge_hours": int,
    "sqlite_vacuum_hours": int,
    "seed_events": int,
    "seed_months_ahead": int,
    "api_base_url": str,
    "client_state_path": str,
    "log_level": str,
}


@dataclass(frozen=True)
class Settings:
    base_dir: Path
    data_dir: Path
    database_path: Path
    app_host: str
    app_port: int
    events_cache_seconds: int
    session_ttl_hours: int
    password_min_length: int
    enable_scheduler: bool
    session_purge_hours: int
    sqlite_vacuum_hours: int
    seed_events: int
    seed_months_ahead: int
    api_base_url: str
    client_state_path: Path
    log_level: str
    config_path: Path

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(hours=self.session_ttl_hours)


def _boolify(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"Cannot parse boolean value from {value!r}")


def _cast_value(key: str, value: Any) -> Any:
    if key not in TYPE_CASTERS:
        return value
    caster = TYPE_CASTERS[key]
    if caster is bool:
        return _boolify(value)
    return caster(value)


def _load_toml_config(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        return tomllib.load(handle)


def _config_layered_value(key: str, *, toml_config: dict[str, Any]) -> Any:
    env_key = f"RELEASECAL_{key.upper()}"
    if env_key in os.environ:
        return _cast_value(key, os.environ[env_key])
    if key in toml_config:
        return _cast_value(key, toml_config[key])
    return DEFAULTS[key]


def _resolve_paths(
    *,
    base_dir: Path,
    data_dir: str | Path | None,
    database_path: str | Path | None,
):
    resolved_base = Path(base_dir)
    resolved_data = Path(data_dir) if data_dir else resolved_base / "data"
    if not resolved_data.is_absolute():
        resolved_data = resolved_base / resolved_data
    resolved_db = (
        Path(database_path) if database_path else resolved_data / "releasecal.db"
    )
    if not resolved_db.is_absolute():
        resolved_db = resolved_base / resolved_db
    return resolved_base, resolved_data, resolved_db


def load_settings(config_override: Path | None = None) -> Settings:
    base_dir = Path(os.getenv("RELEASECAL_BASE_DIR", Path.cwd()))
    env_config = os.getenv("RELEASECAL_CONFIG")
    config_path = Path(config_override or env_config or base_dir / "releasecal.toml")
    toml_config = _load_toml_config(config_path)

    base_dir_value, data_dir_value, database_path_value = _resolve_paths(
        base_dir=base_dir,
        data_dir=os.getenv("RELEASECAL_DATA_DIR", toml_config.get("data_dir")),
        database_path=os.getenv("RELEASECAL_DB", toml_config.get("database_path")),
    )

    values = {
        key: _config_layered_value(key, toml_config=toml_config) for key in DEFAULTS
    }
    client_state_path = Path(values.pop("client_state_path"))
    if not client_state_path.is_absolute():
        client_state_path = data_dir_value / client_state_path

    settings = Settings(
        base_dir=base_dir_value,
        data_dir=data_dir_value,
        database_path=database_path_value,
        client_state_path=client_state_path,
        config_path=config_path,
        **values,
    )
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return settings


def settings_as_dict(settings: Settings) -> dict[str, Any]:
    return {
        "base_dir": str(settings.base_dir),
        "data_dir": str(settings.data_dir),
        "database_path": str(settings.database_path),
        "app_host": settings.app_host,
        "app_port": settings.app_port,
        "events_cache_seconds": settings.events_cache_seconds,
        "session_ttl_hours": settings.session_ttl_hours,
        "password_min_length": settings.password_min_length,
        "enable_scheduler": settings.enable_scheduler,
        "session_purge_hours": settings.session_purge_hours,
        "sqlite_vacuum_hours": settings.sqlite_vacuum_hours,
        "seed_events": settings.seed_events,
        "seed_months_ahead": settings.seed_months_ahead,
        "api_base_url": settings.api_base_url,
        "client_state_path": str(settings.client_state_path),
        "log_level": settings.log_level,
    }


def _toml_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def write_config_file(config: dict[str, Any], *, path: Path) -> None:
    lines = ["# ReleaseCal configuration\n"]
    for key in sorted(config.keys()):
        lines.append(f"{key} = {_toml_literal(config[key])}\n")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(lines), encoding="utf-8")


def update_config_file(updates: dict[str, Any], *, path: Path | None = None) -> Settings:
    current_settings = settings if "settings" in globals() else load_settings()
    target_path = path or current_settings.config_path
    existing = _load_toml_config(target_path)
    merged = {**existing}
    for key, value in updates.items():
        if key not in DEFAULTS:
            continue
        merged[key] = _cast_value(key, value)
    write_config_file(merged, path=target_path)
    new_settings = load_settings(target_path)
    globals()["settings"] = new_settings
    return new_settings


settings = load_settings()
