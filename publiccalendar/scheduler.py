"""Refresh scheduling: due-ness, single-flight and the collect-and-commit pipeline."""

from __future__ import annotations

import concurrent.futures
import enum
import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from publiccalendar.collectors import CollectionError, KalenderCollector
from publiccalendar.collectors.base import DEFAULT_TIMEOUT
from publiccalendar.distributor import SnapshotDistributor
from publiccalendar.models import Category, Event, Snapshot, make_snapshot, snapshot_size
from publiccalendar.store import CacheStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = timedelta(hours=24)
DEFAULT_CHECK_INTERVAL = 60.0  # seconds between timer ticks


class Collector(Protocol):
    def collect(self) -> list[Event]: ...


CollectorFactory = Callable[..., Collector]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class RefreshScheduler:
    """Decides when to refresh and runs at most one refresh at a time.

    ``fetch()`` never blocks on I/O: the refresh runs on a background worker
    and its result reaches callers through the distributor. A category whose
    collection fails keeps its previous events (or stays absent if it never
    had any); the other categories are still committed.
    """

    def __init__(
        self,
        store: CacheStore,
        distributor: SnapshotDistributor,
        collector_factory: CollectorFactory = KalenderCollector,
        *,
        interval: timedelta = DEFAULT_INTERVAL,
        enabled: bool = True,
        category_timeout: float = DEFAULT_TIMEOUT,
        categories: Iterable[Category] = tuple(Category),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.distributor = distributor
        self.collector_factory = collector_factory
        self.interval = interval
        self.enabled = enabled
        self.category_timeout = category_timeout
        self.categories = tuple(categories)
        self.clock = clock

        self._state_lock = threading.Lock()
        self._running = False
        self._closed = False
        self._pending: Optional[concurrent.futures.Future] = None
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="publiccalendar-refresh"
        )
        self._stop_timer = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> RefreshState:
        return RefreshState.RUNNING if self._running else RefreshState.IDLE

    def should_refresh(self, now: Optional[datetime] = None) -> bool:
        """Whether automatic refreshing is on and the cache is due."""
        if not self.enabled:
            return False
        last = self.store.last_fetch()
        if last is None:
            return True
        return (now or self.clock()) - last >= self.interval

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    def fetch(self, force: bool = False) -> Optional[concurrent.futures.Future]:
        """Start a refresh in the background if one is warranted.

        A non-forced fetch against a cache that is not due and not empty is
        a no-op. Any fetch while a refresh is running is dropped.

        Returns:
            The ``Future`` of the started refresh (resolving to True if it
            committed a snapshot), or None if nothing was started.
        """
        if not force and self.distributor.current() and not self.should_refresh():
            logger.debug("Refresh not due, skipping")
            return None

        with self._state_lock:
            if self._closed:
                logger.debug("Scheduler closed, ignoring fetch")
                return None
            if self._running:
                logger.debug("Refresh already in progress, ignoring fetch")
                return None
            self._running = True
            generation = self.distributor.generation
            try:
                future = self._executor.submit(self._refresh, generation)
            except RuntimeError:
                self._running = False
                raise
            self._pending = future
        return future

    def wait(self, timeout: Optional[float] = None) -> Optional[bool]:
        """Block until the in-flight refresh (if any) finishes.

        Returns the refresh result, or None if nothing was running.
        """
        future = self._pending
        if future is None:
            return None
        return future.result(timeout=timeout)

    def _refresh(self, generation: int) -> bool:
        try:
            started = self.clock()
            logger.info("Refreshing %d categor(ies)", len(self.categories))
            previous = self.distributor.current()
            collected, failed = self._collect_all()

            if not collected:
                # Still recorded as a refresh: the next attempt waits a full interval
                logger.warning("Refresh failed for every category; keeping current cache")

            merged: dict[Category, list[Event]] = {}
            for category in self.categories:
                if category in collected:
                    merged[category] = collected[category]
                elif category in previous:
                    # Keep the last good result for a failed category
                    merged[category] = list(previous[category])
            snapshot = make_snapshot(merged)

            def persist() -> None:
                self.store.save(snapshot)
                self.store.set_last_fetch(self.clock())

            committed = self.distributor.commit(
                snapshot, generation, persist, accept=lambda: not self._closed
            )
            if committed:
                logger.info(
                    "Refresh complete: %d event(s), %d failed categor(ies), %.1fs",
                    snapshot_size(snapshot), len(failed),
                    (self.clock() - started).total_seconds(),
                )
            return committed
        except Exception:
            logger.exception("Refresh crashed")
            return False
        finally:
            with self._state_lock:
                self._running = False

    def _collect_all(self) -> tuple[dict[Category, list[Event]], list[Category]]:
        """Collect every category in parallel, isolating failures.

        All categories start together and share one deadline, so each gets
        ``category_timeout`` seconds regardless of how long the others take.

        Returns:
            (results by category, categories that failed)
        """
        collected: dict[Category, list[Event]] = {}
        failed: list[Category] = []
        pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=max(len(self.categories), 1),
            thread_name_prefix="publiccalendar-collect",
        )
        try:
            futures = {
                category: pool.submit(self._collect_one, category)
                for category in self.categories
            }
            concurrent.futures.wait(futures.values(), timeout=self.category_timeout)
            for category, future in futures.items():
                if not future.done():
                    logger.warning(
                        "%s: collection timed out after %.1fs", category.value, self.category_timeout
                    )
                    failed.append(category)
                    continue
                try:
                    collected[category] = future.result()
                except CollectionError as exc:
                    logger.warning("%s: collection failed (%s)", category.value, exc.reason)
                    failed.append(category)
                except Exception:
                    logger.exception("%s: unexpected error while collecting", category.value)
                    failed.append(category)
        finally:
            # Timed-out workers are left to finish on their own
            pool.shutdown(wait=False, cancel_futures=True)
        return collected, failed

    def _collect_one(self, category: Category) -> list[Event]:
        collector = self.collector_factory(category, timeout=self.category_timeout)
        return list(collector.collect())

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def start(self, check_interval: float = DEFAULT_CHECK_INTERVAL) -> None:
        """Start a daemon thread that triggers ``fetch()`` on every tick that is due.

        The first tick happens immediately.
        """
        if self._timer_thread is not None and self._timer_thread.is_alive():
            return
        self._stop_timer.clear()
        self._timer_thread = threading.Thread(
            target=self._tick_loop,
            args=(check_interval,),
            name="publiccalendar-timer",
            daemon=True,
        )
        self._timer_thread.start()

    def _tick_loop(self, check_interval: float) -> None:
        logger.debug("Refresh timer started (every %.0fs)", check_interval)
        while not self._stop_timer.is_set():
            if self.should_refresh():
                try:
                    self.fetch()
                except Exception:
                    logger.exception("Timer-triggered fetch failed")
            self._stop_timer.wait(check_interval)
        logger.debug("Refresh timer stopped")

    def stop(self) -> None:
        """Stop the timer and the worker; late refresh results are dropped."""
        with self._state_lock:
            self._closed = True
        self._stop_timer.set()
        if self._timer_thread is not None:
            self._timer_thread.join(timeout=5)
            self._timer_thread = None
        self._executor.shutdown(wait=False)
