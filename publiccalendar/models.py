"""Event data model and pure snapshot queries."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Union

DayLike = Union[date, datetime]


class Category(Enum):
    """Fixed classification of calendar content, one remote page each."""

    HOLIDAYS = "holidays"
    FLAG_DAYS = "flagdays"
    UN_DAYS = "undays"
    NIGHTS = "nights"
    THEME_DAYS = "themedays"
    INFORMATION_DAYS = "informationdays"

    @property
    def url(self) -> str:
        return CATEGORY_URLS[self]

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_URLS: dict[Category, str] = {
    Category.HOLIDAYS: "https://www.kalender.se/helgdagar",
    Category.FLAG_DAYS: "https://www.kalender.se/flaggdagar",
    Category.UN_DAYS: "https://www.kalender.se/fn-dagar",
    Category.NIGHTS: "https://www.kalender.se/aftnar",
    Category.THEME_DAYS: "https://www.kalender.se/temadagar",
    Category.INFORMATION_DAYS: "https://www.kalender.se/samhallsinformation",
}

CATEGORY_LABELS: dict[Category, str] = {
    Category.HOLIDAYS: "Holiday",
    Category.FLAG_DAYS: "Flag day",
    Category.UN_DAYS: "UN day",
    Category.NIGHTS: "Eve",
    Category.THEME_DAYS: "Theme day",
    Category.INFORMATION_DAYS: "Information day",
}


def as_day(value: DayLike) -> date:
    """Reduce a date or datetime to its calendar day."""
    if isinstance(value, datetime):
        return value.date()
    return value


@dataclass(frozen=True)
class Event:
    """A single calendar entry."""

    title: str
    date: date
    category: Category

    def __post_init__(self) -> None:
        # Time of day carries no meaning for calendar entries
        if isinstance(self.date, datetime):
            object.__setattr__(self, "date", self.date.date())

    @property
    def event_id(self) -> str:
        """Deterministic hash of category + title + date.

        Used for deduplication; never persisted.
        """
        key = f"{self.category.value}|{self.title}|{self.date.isoformat()}"
        return hashlib.sha256(key.encode()).hexdigest()[:16]

    @property
    def sort_key(self) -> tuple:
        """Key for chronological sorting."""
        return (self.date, self.title.lower())

    def to_dict(self) -> dict:
        """Serialize to a plain, JSON-friendly dict."""
        return {
            "title": self.title,
            "date": self.date.isoformat(),
            "category": self.category.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> Event:
        """Deserialize from a plain dict.

        Raises ``KeyError`` or ``ValueError`` on malformed input.
        """
        return cls(
            title=str(data["title"]),
            date=date.fromisoformat(str(data["date"])[:10]),
            category=Category(data["category"]),
        )

    def __repr__(self) -> str:
        return f"<Event '{self.title}' on {self.date.isoformat()} [{self.category.value}]>"


# A snapshot maps each fetched category to its date-sorted events. A category
# missing from the mapping has not been fetched yet; an empty tuple means it
# was fetched and had nothing.
Snapshot = dict[Category, tuple[Event, ...]]


def make_snapshot(mapping: Mapping[Category, Iterable[Event]]) -> Snapshot:
    """Build a snapshot with every sequence sorted by date."""
    return {
        category: tuple(sorted(events, key=lambda e: e.date))
        for category, events in mapping.items()
    }


def snapshot_size(snapshot: Mapping[Category, Iterable[Event]]) -> int:
    return sum(len(tuple(events)) for events in snapshot.values())


def snapshot_to_dict(snapshot: Mapping[Category, Iterable[Event]]) -> dict:
    return {
        category.value: [e.to_dict() for e in events]
        for category, events in snapshot.items()
    }


def snapshot_from_dict(data: Mapping) -> Snapshot:
    """Inverse of :func:`snapshot_to_dict`.

    Raises ``KeyError``/``ValueError``/``TypeError`` on malformed input.
    """
    if not isinstance(data, Mapping):
        raise TypeError(f"expected an object, got {type(data).__name__}")
    return make_snapshot({
        Category(key): [Event.from_dict(item) for item in items]
        for key, items in data.items()
    })


# ------------------------------------------------------------------
# Queries
# ------------------------------------------------------------------

def events_on(
    snapshot: Mapping[Category, Iterable[Event]],
    day: DayLike,
    categories: Iterable[Category] = tuple(Category),
) -> list[Event]:
    """Return every event on *day* in the requested categories, sorted by date.

    Matching is by calendar day, so a datetime at any time of day works.
    Categories missing from the snapshot contribute nothing.
    """
    target = as_day(day)
    found: list[Event] = []
    for category in categories:
        found.extend(e for e in snapshot.get(category, ()) if e.date == target)
    return sorted(found, key=lambda e: e.date)


def is_holiday(snapshot: Mapping[Category, Iterable[Event]], day: DayLike) -> bool:
    """Whether the holidays category has an event on *day*."""
    target = as_day(day)
    return any(e.date == target for e in snapshot.get(Category.HOLIDAYS, ()))
