"""Base collector class shared by every calendar source."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime

import httpx

from publiccalendar.models import Category, Event

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0  # seconds, per category


class CollectionError(Exception):
    """Collecting one category failed (transport, decode or structure)."""

    def __init__(self, category: Category, reason: str) -> None:
        super().__init__(f"{category.value}: {reason}")
        self.category = category
        self.reason = reason


class BaseCollector(ABC):
    """Abstract base class for a one-category source collector.

    A collector is single-use: ``collect()`` fetches and parses the page for
    its category, then closes the HTTP client whatever the outcome. Subclasses
    implement ``_collect_impl()``.

    Failures that make the whole page unusable raise ``CollectionError``;
    individual rows that cannot be parsed are skipped by the subclass.
    """

    def __init__(self, category: Category, *, timeout: float = DEFAULT_TIMEOUT,
                 client: httpx.Client | None = None) -> None:
        self.category = category
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    # ------------------------------------------------------------------
    # Shared utilities
    # ------------------------------------------------------------------

    @staticmethod
    def parse_iso_date(text: str) -> date | None:
        """Parse '2026-06-06' into a date. Returns None on failure."""
        try:
            return datetime.strptime(text.strip(), "%Y-%m-%d").date()
        except ValueError:
            return None

    @staticmethod
    def clean_text(text: str | None) -> str:
        """Collapse runs of whitespace and strip."""
        if not text:
            return ""
        return " ".join(text.split())

    # ------------------------------------------------------------------
    # HTTP helper
    # ------------------------------------------------------------------

    def fetch_text(self, url: str) -> str:
        """GET *url* and return its body decoded as UTF-8.

        Raises:
            CollectionError: on transport errors, HTTP 4xx/5xx, or a body
                that is not valid UTF-8.
        """
        logger.debug("%s: fetching %s", self.category.value, url)
        try:
            resp = self._client.get(url)
        except httpx.HTTPError as exc:
            raise CollectionError(self.category, f"request failed for {url} ({exc})") from exc

        if resp.status_code >= 400:
            raise CollectionError(self.category, f"HTTP {resp.status_code} for {url}")

        try:
            return resp.content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CollectionError(self.category, f"cannot decode content from {url}") from exc

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def collect(self) -> list[Event]:
        """Fetch and parse the events for this collector's category.

        Returns events sorted ascending by date.
        """
        try:
            events = self._collect_impl()
        finally:
            self.close()
        return sorted(events, key=lambda e: e.date)

    @abstractmethod
    def _collect_impl(self) -> list[Event]:
        """Subclass hook: fetch and parse events."""
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} category={self.category.value!r}>"
