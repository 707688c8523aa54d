"""Cached public calendar of Swedish holidays, flag days and theme days."""

from publiccalendar.calendar import PublicCalendar
from publiccalendar.models import Category, Event, Snapshot, events_on, is_holiday

__all__ = ["Category", "Event", "PublicCalendar", "Snapshot", "events_on", "is_holiday"]
