"""Holds the current snapshot and broadcasts every update to subscribers."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping
from datetime import date
from types import MappingProxyType
from typing import Optional

from publiccalendar.models import (
    Category,
    DayLike,
    Event,
    Snapshot,
    events_on,
    is_holiday,
    snapshot_size,
)
from publiccalendar.store import CacheStore

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Snapshot], None]


class Subscription:
    """Handle returned by ``SnapshotDistributor.subscribe``."""

    def __init__(self, distributor: SnapshotDistributor, callback: SnapshotCallback) -> None:
        self._distributor = distributor
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        """Stop receiving updates. Safe to call more than once."""
        if self.active:
            self.active = False
            self._distributor._unsubscribe(self)


class SnapshotStream:
    """Queue-backed channel of snapshots.

    The current snapshot is the first item; every committed update follows
    in commit order. Iterating blocks until the next update and ends only
    after ``close()``.
    """

    _CLOSED = object()

    def __init__(self, distributor: SnapshotDistributor) -> None:
        self._queue: queue.Queue = queue.Queue()
        self._subscription = distributor.subscribe(self._queue.put)

    def get(self, timeout: Optional[float] = None) -> Snapshot:
        """Return the next snapshot.

        Raises:
            queue.Empty: if nothing arrives within *timeout* seconds.
            StopIteration: if the stream has been closed.
        """
        item = self._queue.get(timeout=timeout)
        if item is self._CLOSED:
            self._queue.put(self._CLOSED)
            raise StopIteration
        return item

    def close(self) -> None:
        self._subscription.cancel()
        self._queue.put(self._CLOSED)

    def __iter__(self) -> Iterator[Snapshot]:
        while True:
            try:
                yield self.get()
            except StopIteration:
                return


class SnapshotDistributor:
    """Shared, observable holder of the latest snapshot.

    There is a single writer path (``commit``/``publish``/``purge``), which
    takes an internal lock so updates reach subscribers in commit order.
    Readers never lock: the snapshot is replaced wholesale, never edited, so
    ``current()`` always sees a complete mapping. Readers and subscribers get
    a read-only view, so none of them can alter what the others see.

    ``generation`` counts purges. A refresh records the generation when it
    starts, and ``commit`` rejects results from before the latest purge.
    """

    def __init__(self, store: CacheStore, initial: Optional[Snapshot] = None) -> None:
        self.store = store
        self._snapshot: Mapping[Category, tuple[Event, ...]] = MappingProxyType(dict(initial or {}))
        self._subscriptions: list[Subscription] = []
        self._write_lock = threading.RLock()
        self._generation = 0

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def current(self) -> Mapping[Category, tuple[Event, ...]]:
        """Return the latest committed snapshot as a read-only mapping."""
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._generation

    def query(self, day: DayLike, categories: Iterable[Category] = tuple(Category)) -> list[Event]:
        """Events on *day* in *categories* from the current snapshot."""
        return events_on(self._snapshot, day, categories)

    def is_holiday(self, day: DayLike) -> bool:
        return is_holiday(self._snapshot, day)

    # ------------------------------------------------------------------
    # Subscribe
    # ------------------------------------------------------------------

    def subscribe(self, callback: SnapshotCallback) -> Subscription:
        """Register *callback*; it is called now with the current snapshot
        and then once per update.
        """
        subscription = Subscription(self, callback)
        with self._write_lock:
            self._subscriptions.append(subscription)
            self._deliver(subscription, self._snapshot)
        return subscription

    def subscribe_events(
        self,
        callback: Callable[[list[Event]], None],
        categories: Iterable[Category] = tuple(Category),
        day: Optional[DayLike] = None,
    ) -> Subscription:
        """Subscribe to the events of one day rather than whole snapshots."""
        wanted = tuple(categories)
        target = day or date.today()
        return self.subscribe(lambda snapshot: callback(events_on(snapshot, target, wanted)))

    def stream(self) -> SnapshotStream:
        """Return a blocking iterator over snapshot updates."""
        return SnapshotStream(self)

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._write_lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def commit(
        self,
        snapshot: Snapshot,
        generation: int,
        persist: Optional[Callable[[], None]] = None,
        accept: Optional[Callable[[], bool]] = None,
    ) -> bool:
        """Install a refreshed snapshot unless a purge happened since *generation*.

        *persist* runs under the writer lock before the swap, so a purge can
        never interleave between saving and publishing. *accept*, when given,
        is checked under the same lock and can veto the commit.

        Returns:
            True if the snapshot was installed, False if it was discarded.
        """
        with self._write_lock:
            if generation != self._generation:
                logger.info(
                    "Discarding refresh result from generation %d (current %d)",
                    generation, self._generation,
                )
                return False
            if accept is not None and not accept():
                logger.info("Discarding refresh result: no longer accepted")
                return False
            if persist is not None:
                persist()
            self._swap(snapshot)
        return True

    def publish(self, snapshot: Snapshot) -> None:
        """Install *snapshot* unconditionally and notify subscribers."""
        with self._write_lock:
            self._swap(snapshot)

    def purge(self) -> None:
        """Drop all cached data, on disk and in memory, and notify subscribers."""
        with self._write_lock:
            self._generation += 1
            self.store.delete()
            self.store.clear_last_fetch()
            self._swap({})
        logger.info("Cache purged")

    def _swap(self, snapshot: Snapshot) -> None:
        self._snapshot = MappingProxyType(dict(snapshot))
        logger.debug("Publishing snapshot with %d event(s)", snapshot_size(self._snapshot))
        for subscription in list(self._subscriptions):
            self._deliver(subscription, self._snapshot)

    @staticmethod
    def _deliver(subscription: Subscription, snapshot: Snapshot) -> None:
        if not subscription.active:
            return
        try:
            subscription.callback(snapshot)
        except Exception:
            logger.exception("Snapshot subscriber %r failed", subscription.callback)
