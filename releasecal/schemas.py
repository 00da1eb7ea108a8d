"""Request payloads and client-side records."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import parse_release_date


class CredentialsPayload(BaseModel):
    email: str | None = None
    password: str | None = None


class EventCreatePayload(BaseModel):
    title: str | None = None
    description: str | None = None
    release_date: str | None = Field(None, description="ISO date or datetime string")
    category: str | None = None
    subcategory1: str | None = None
    subcategory2: str | None = None
    link: str | None = None
    image_url: str | None = None


class UserEventPayload(BaseModel):
    event_id: str | None = None
    is_favorite: bool = True

    @field_validator("event_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class EventRecord(BaseModel):
    """A release as the client sees it: read-only, release date in naive UTC."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str | None = ""
    release_date: datetime
    category: str
    subcategory1: str | None = None
    subcategory2: str | None = None
    link: str | None = None
    image_url: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("release_date", mode="before")
    @classmethod
    def _normalize_release_date(cls, value: Any) -> Any:
        if isinstance(value, (str, datetime)):
            return parse_release_date(value)
        return value


class UserRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str


class UserEventRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    event_id: str
    is_favorite: bool
    created_at: datetime | None = None
