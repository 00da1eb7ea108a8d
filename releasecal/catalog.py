"""Release categories, their subcategories, and display colors."""

from __future__ import annotations

MAIN_CATEGORIES: tuple[str, ...] = ("Movies", "TV Shows", "Anime", "Games", "Music")

SUBCATEGORIES: dict[str, tuple[str, ...]] = {
    "Movies": (
        "Sci-Fi",
        "Action",
        "Superhero",
        "Horror",
        "Thriller",
        "Adventure",
        "Drama",
        "Historical",
    ),
    "TV Shows": ("Fantasy", "Drama", "Horror", "Thriller", "Sci-Fi", "Action", "Comedy"),
    "Anime": ("Action", "Fantasy", "Superhero", "Horror", "Comedy", "Supernatural"),
    "Games": ("RPG", "Open World", "Action", "Adventure", "Souls-like"),
    "Music": ("Pop", "Soul", "Hip-Hop", "Rap", "Alternative", "K-Pop", "R&B"),
}

CATEGORY_COLORS: dict[str, str] = {
    "Movies": "#ef4444",
    "TV Shows": "#3b82f6",
    "Anime": "#a855f7",
    "Games": "#f59e0b",
    "Music": "#22c55e",
}
DEFAULT_COLOR = "#6b7280"

WEEKDAY_LABELS: tuple[str, ...] = ("SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT")


def category_color(category: str | None) -> str:
    return CATEGORY_COLORS.get(category or "", DEFAULT_COLOR)


def subcategory_tag(category: str, subcategory: str) -> str:
    """Return the composite interest tag for a subcategory."""
    return f"{category}:{subcategory}"
