"""Shared fixtures for publiccalendar tests."""
import threading
import time
from datetime import date, datetime, timezone

import pytest

from publiccalendar.collectors import CollectionError
from publiccalendar.distributor import SnapshotDistributor
from publiccalendar.models import Category, Event
from publiccalendar.settings import MemorySettings
from publiccalendar.store import CacheStore


class FakeClock:
    """Controllable clock for due-ness tests."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now += delta


class FakeCollectorFactory:
    """Stands in for KalenderCollector without touching the network.

    ``results`` maps a category to a list of events or to an exception
    instance to raise. ``gate`` (when set) holds every collection until it
    is released, so a refresh can be kept in the Running state. ``delays``
    maps a category to seconds to sleep before answering.
    """

    def __init__(self, results=None, gate=None, delays=None):
        self.results = results or {}
        self.gate = gate
        self.delays = delays or {}
        self.calls = []
        self.started = threading.Event()
        self._lock = threading.Lock()

    def __call__(self, category, timeout=None):
        factory = self

        class _Collector:
            def collect(self_inner):
                with factory._lock:
                    factory.calls.append(category)
                factory.started.set()
                if factory.gate is not None:
                    factory.gate.wait(5)
                if category in factory.delays:
                    time.sleep(factory.delays[category])
                result = factory.results.get(category, [])
                if isinstance(result, BaseException):
                    raise result
                return sorted(result, key=lambda e: e.date)

        return _Collector()

    def passes(self):
        """Number of full collection passes (one call per category each)."""
        return len(self.calls) // len(Category)


def make_event(title, day, category=Category.HOLIDAYS):
    return Event(title=title, date=day, category=category)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    return MemorySettings()


@pytest.fixture
def store(tmp_path, settings):
    return CacheStore(tmp_path / "cache", settings=settings)


@pytest.fixture
def distributor(store):
    return SnapshotDistributor(store)


@pytest.fixture
def sample_results():
    """Collector output for every category."""
    return {
        Category.HOLIDAYS: [
            make_event("Juldagen", date(2024, 12, 25)),
            make_event("Nyårsdagen", date(2024, 1, 1)),
        ],
        Category.FLAG_DAYS: [
            make_event("Sveriges nationaldag", date(2024, 6, 6), Category.FLAG_DAYS),
        ],
        Category.UN_DAYS: [
            make_event("FN-dagen", date(2024, 10, 24), Category.UN_DAYS),
        ],
        Category.NIGHTS: [
            make_event("Julafton", date(2024, 12, 24), Category.NIGHTS),
        ],
        Category.THEME_DAYS: [
            make_event("Kanelbullens dag", date(2024, 10, 4), Category.THEME_DAYS),
        ],
        Category.INFORMATION_DAYS: [],
    }


@pytest.fixture
def failing_holidays(sample_results):
    results = dict(sample_results)
    results[Category.HOLIDAYS] = CollectionError(Category.HOLIDAYS, "timed out")
    return results
