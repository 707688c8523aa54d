"""The long-lived owner of one calendar cache."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import Future
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

from publiccalendar.collectors import KalenderCollector
from publiccalendar.collectors.base import DEFAULT_TIMEOUT
from publiccalendar.distributor import SnapshotCallback, SnapshotDistributor, SnapshotStream, Subscription
from publiccalendar.models import Category, DayLike, Event, Snapshot, make_snapshot
from publiccalendar.scheduler import (
    DEFAULT_CHECK_INTERVAL,
    DEFAULT_INTERVAL,
    CollectorFactory,
    RefreshScheduler,
    utcnow,
)
from publiccalendar.store import CacheStore, Settings

logger = logging.getLogger(__name__)


def preview_snapshot() -> Snapshot:
    """Canned data for demos and UI previews."""
    return make_snapshot({
        Category.HOLIDAYS: [Event(title="Preview event", date=date.today(), category=Category.HOLIDAYS)],
    })


class PublicCalendar:
    """Cached public calendar with background refreshing.

    Owns the store, the distributor and the scheduler. Reads always answer
    from memory; ``fetch()`` only schedules work.

    Usage::

        with PublicCalendar(fetch_automatically=True) as cal:
            cal.publisher([Category.HOLIDAYS], callback=print)
            ...
            cal.is_holiday(date(2026, 12, 25))
    """

    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        *,
        fetch_automatically: bool = False,
        preview: bool = False,
        interval: timedelta = DEFAULT_INTERVAL,
        category_timeout: float = DEFAULT_TIMEOUT,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        collector_factory: CollectorFactory = KalenderCollector,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.preview = preview
        self.check_interval = check_interval
        self.store = CacheStore(cache_dir, settings=settings)
        initial = None if preview else self.store.load()
        self.distributor = SnapshotDistributor(self.store, initial=initial)
        self.scheduler = RefreshScheduler(
            self.store,
            self.distributor,
            collector_factory,
            interval=interval,
            enabled=fetch_automatically,
            category_timeout=category_timeout,
            clock=clock,
        )
        if fetch_automatically:
            self._start_timer()

    # ------------------------------------------------------------------
    # Refreshing
    # ------------------------------------------------------------------

    @property
    def fetch_automatically(self) -> bool:
        return self.scheduler.enabled

    @fetch_automatically.setter
    def fetch_automatically(self, value: bool) -> None:
        self.scheduler.enabled = value
        if value:
            self._start_timer()

    def _start_timer(self) -> None:
        if self.preview:
            self.distributor.publish(preview_snapshot())
            return
        self.scheduler.start(self.check_interval)

    def fetch(self, force: bool = False) -> Optional[Future]:
        """Refresh in the background if due (or if *force*)."""
        if self.preview:
            self.distributor.publish(preview_snapshot())
            return None
        return self.scheduler.fetch(force=force)

    def should_refresh(self) -> bool:
        return self.scheduler.should_refresh()

    def is_stale(self) -> bool:
        """Whether the cache is older than the refresh interval.

        Unlike ``should_refresh()`` this ignores ``fetch_automatically``.
        """
        last = self.store.last_fetch()
        return last is None or self.scheduler.clock() - last >= self.scheduler.interval

    def wait(self, timeout: Optional[float] = None) -> Optional[bool]:
        """Block until the current refresh finishes."""
        return self.scheduler.wait(timeout)

    def purge(self) -> None:
        """Forget everything cached, including the last refresh time."""
        self.distributor.purge()

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def current(self) -> Mapping[Category, tuple[Event, ...]]:
        return self.distributor.current()

    def events(self, day: Optional[DayLike] = None,
               categories: Iterable[Category] = tuple(Category)) -> list[Event]:
        """Events on *day* (default today) in *categories*."""
        return self.distributor.query(day or date.today(), categories)

    def is_holiday(self, day: Optional[DayLike] = None) -> bool:
        return self.distributor.is_holiday(day or date.today())

    def subscribe(self, callback: SnapshotCallback) -> Subscription:
        return self.distributor.subscribe(callback)

    def stream(self) -> SnapshotStream:
        return self.distributor.stream()

    def publisher(
        self,
        categories: Iterable[Category] = tuple(Category),
        day: Optional[DayLike] = None,
        *,
        callback: Callable[[list[Event]], None],
    ) -> Subscription:
        """Deliver the events of *day* in *categories* now and after every update."""
        return self.distributor.subscribe_events(callback, categories, day)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.scheduler.stop()

    def __enter__(self) -> PublicCalendar:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<PublicCalendar cache_dir={str(self.store.cache_dir)!r}>"
