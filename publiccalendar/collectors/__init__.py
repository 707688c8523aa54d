"""Collector package — one collector per calendar source."""

from publiccalendar.collectors.base import BaseCollector, CollectionError
from publiccalendar.collectors.kalender import KalenderCollector

__all__ = ["BaseCollector", "CollectionError", "KalenderCollector"]
