"""Collector for the kalender.se day tables."""

from __future__ import annotations

import logging
from typing import Optional

from bs4 import BeautifulSoup, Tag

from publiccalendar.collectors.base import BaseCollector, CollectionError
from publiccalendar.models import Event

logger = logging.getLogger(__name__)


class KalenderCollector(BaseCollector):
    """Scrapes one kalender.se category page.

    Every page lists its days in a ``.table`` element: a header row, then
    one row per day with the ISO date in the first cell and a linked title
    in the second.
    """

    def _collect_impl(self) -> list[Event]:
        url = self.category.url
        html = self.fetch_text(url)
        events = self.parse(html)
        logger.info("%s: collected %d event(s)", self.category.value, len(events))
        return events

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, html: str) -> list[Event]:
        """Turn a category page into events (unsorted, duplicates removed)."""
        soup = BeautifulSoup(html, "html.parser")
        rows = soup.select(".table tr")
        if not rows:
            raise CollectionError(self.category, "no .table rows found")

        events: list[Event] = []
        seen: set[str] = set()
        # First row is the header
        for row in rows[1:]:
            event = self._parse_row(row)
            if event is None or event.event_id in seen:
                continue
            seen.add(event.event_id)
            events.append(event)
        return events

    def _parse_row(self, row: Tag) -> Optional[Event]:
        cells = row.select("td")
        if len(cells) < 2:
            logger.debug("%s: skipping row with %d cell(s)", self.category.value, len(cells))
            return None

        day_text = self.clean_text(cells[0].get_text())
        day = self.parse_iso_date(day_text)
        if day is None:
            logger.debug("%s: cannot parse date from %r", self.category.value, day_text)
            return None

        links = cells[1].select("a")
        if links:
            title = self.clean_text(" ".join(a.get_text() for a in links))
        else:
            title = self.clean_text(cells[1].get_text())

        return Event(title=title, date=day, category=self.category)
