"""Render calendar days and cache summaries as Markdown."""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from publiccalendar.models import Category, DayLike, Event, as_day

logger = logging.getLogger(__name__)


def _format_date_heading(day: date) -> str:
    """Convert date(2026, 6, 6) to 'Saturday, June 6, 2026'."""
    return day.strftime("%A, %B %d, %Y").replace(" 0", " ")


def _format_timestamp(iso: Optional[str]) -> str:
    if not iso:
        return "never"
    dt = datetime.fromisoformat(iso)
    return dt.strftime("%B %d, %Y at %I:%M %p").replace(" 0", " ")


# ------------------------------------------------------------------
# Event entry
# ------------------------------------------------------------------

def _render_event(event: Event) -> str:
    """Render a single event as a Markdown bullet."""
    return f"- **{event.title}** ({event.category.label})"


# ------------------------------------------------------------------
# Full document renderers
# ------------------------------------------------------------------

def render_day(events: list[Event], day: DayLike) -> str:
    """Render the events of one day under a date heading."""
    lines: list[str] = [f"## {_format_date_heading(as_day(day))}", ""]

    if not events:
        lines.append("*No events.*")
        return "\n".join(lines)

    for event in events:
        lines.append(_render_event(event))

    return "\n".join(lines)


def render_stats(stats: dict) -> str:
    """Render ``CacheStore.stats()`` as a Markdown summary."""
    counts: dict[str, int] = stats.get("categories", {})
    lines: list[str] = [
        "# Public Calendar Cache",
        "",
        f"*Last refreshed: {_format_timestamp(stats.get('last_fetch'))}*",
        "",
        f"*Cache file: {stats.get('cache_file')}*",
        "",
        "| Category | Events |",
        "|---|---|",
    ]
    for category in Category:
        count = counts.get(category.value)
        lines.append(f"| {category.label} | {'not fetched' if count is None else count} |")
    return "\n".join(lines)


# ------------------------------------------------------------------
# File writers
# ------------------------------------------------------------------

def write_day(events: list[Event], day: DayLike, path: Path) -> Path:
    """Write ``render_day`` output to *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_day(events, day) + "\n", encoding="utf-8")
    logger.info("Wrote %s (%d events)", path, len(events))
    return path
