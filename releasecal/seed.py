"""Development helpers for populating fake releases."""

from __future__ import annotations

import random
from datetime import datetime, timedelta

from faker import Faker
from sqlalchemy.orm import Session

from .catalog import MAIN_CATEGORIES, SUBCATEGORIES
from .crud import create_event
from .database import get_session
from .models import Event
from .storage import init_db
from .utils import utcnow

_title_patterns = {
    "Movies": ["{word} Rising", "The {word}", "{word}: Part II", "Return of the {word}"],
    "TV Shows": ["{word} (Season {n})", "The {word} Files", "{word} Street"],
    "Anime": ["{word} Chronicles", "{word} no Yaiba", "Blade of {word}"],
    "Games": ["{word} Legends", "{word} Remastered", "{word} Online"],
    "Music": ["{word} (Deluxe)", "{word} EP", "Songs for {word}"],
}
_release_hours = [0, 3, 9, 12, 15, 18]
_subcategory_odds = 0.85
_second_subcategory_odds = 0.4


def seed_fake_data(
    *,
    event_count: int = 40,
    months_ahead: int = 3,
    days_back: int = 14,
) -> dict[str, int]:
    """Populate the SQLite database with synthetic releases across the catalog."""
    if event_count < 0:
        raise ValueError("event_count must be >= 0")
    if months_ahead < 0:
        raise ValueError("months_ahead must be >= 0")
    if days_back < 0:
        raise ValueError("days_back must be >= 0")

    init_db()
    fake = Faker()
    stats = {"events": 0, "categories": 0}
    seen_categories: set[str] = set()

    with get_session() as session:
        for _ in range(event_count):
            event = _create_release(
                session, fake, months_ahead=months_ahead, days_back=days_back
            )
            seen_categories.add(event.category)
            stats["events"] += 1

    stats["categories"] = len(seen_categories)
    return stats


def _create_release(
    session: Session, fake: Faker, *, months_ahead: int, days_back: int
) -> Event:
    category = random.choice(MAIN_CATEGORIES)
    subcategory1, subcategory2 = _pick_subcategories(category)
    return create_event(
        session,
        title=_release_title(fake, category),
        description=fake.paragraph(nb_sentences=3),
        release_date=_random_release_date(months_ahead, days_back),
        category=category,
        subcategory1=subcategory1,
        subcategory2=subcategory2,
        link=fake.url() if random.random() < 0.6 else None,
        image_url=fake.image_url() if random.random() < 0.3 else None,
    )


def _pick_subcategories(category: str) -> tuple[str | None, str | None]:
    options = list(SUBCATEGORIES.get(category, ()))
    if not options or random.random() > _subcategory_odds:
        return None, None
    first = random.choice(options)
    remaining = [name for name in options if name != first]
    if remaining and random.random() < _second_subcategory_odds:
        return first, random.choice(remaining)
    return first, None


def _random_release_date(months_ahead: int, days_back: int) -> datetime:
    today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    day_offset = random.randint(-days_back, max(months_ahead * 30, 0))
    return today + timedelta(days=day_offset, hours=random.choice(_release_hours))


def _release_title(fake: Faker, category: str) -> str:
    pattern = random.choice(_title_patterns.get(category, ["{word}"]))
    word = fake.word().title()
    return pattern.format(word=word, n=random.randint(1, 5))
