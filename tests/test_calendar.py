"""Integration tests for the PublicCalendar coordinator."""
from datetime import date, timedelta

import pytest

from conftest import FakeCollectorFactory, make_event
from publiccalendar.calendar import PublicCalendar
from publiccalendar.models import Category, make_snapshot
from publiccalendar.settings import MemorySettings
from publiccalendar.store import CacheStore


@pytest.fixture
def make_calendar(tmp_path, settings, clock):
    created = []

    def _make(factory=None, **kwargs):
        kwargs.setdefault("settings", settings)
        kwargs.setdefault("clock", clock)
        cal = PublicCalendar(tmp_path / "cache", collector_factory=factory or FakeCollectorFactory(), **kwargs)
        created.append(cal)
        return cal

    yield _make
    for cal in created:
        cal.close()


class TestPublicCalendar:
    """Test cases for the coordinator."""

    def test_starts_from_persisted_cache(self, tmp_path, settings, make_calendar):
        snapshot = make_snapshot({Category.HOLIDAYS: [make_event("Juldagen", date(2024, 12, 25))]})
        CacheStore(tmp_path / "cache", settings=settings).save(snapshot)

        cal = make_calendar()

        assert cal.current() == snapshot
        assert cal.is_holiday(date(2024, 12, 25))
        assert cal.events(date(2024, 12, 25), [Category.HOLIDAYS])[0].title == "Juldagen"

    def test_fetch_then_query(self, make_calendar, sample_results):
        cal = make_calendar(FakeCollectorFactory(sample_results))

        assert cal.fetch().result(timeout=5)

        assert [e.title for e in cal.events(date(2024, 12, 24))] == ["Julafton"]
        assert cal.is_holiday(date(2024, 1, 1))
        assert not cal.is_holiday(date(2024, 12, 24))

    def test_queries_on_empty_cache_return_nothing(self, make_calendar):
        cal = make_calendar()
        assert cal.events(date(2024, 1, 1)) == []
        assert not cal.is_holiday(date(2024, 1, 1))

    def test_publisher_delivers_day_view_on_every_update(self, make_calendar, sample_results):
        cal = make_calendar(FakeCollectorFactory(sample_results))
        received = []
        cal.publisher([Category.HOLIDAYS], date(2024, 12, 25), callback=received.append)

        cal.fetch().result(timeout=5)
        cal.purge()

        assert [[e.title for e in events] for events in received] == [[], ["Juldagen"], []]

    def test_purge_clears_snapshot_and_timestamp(self, make_calendar, sample_results):
        cal = make_calendar(FakeCollectorFactory(sample_results))
        cal.fetch().result(timeout=5)
        assert cal.store.last_fetch() is not None

        cal.purge()

        assert cal.current() == {}
        assert cal.store.last_fetch() is None
        assert cal.store.load() is None

    def test_fetch_automatically_starts_refreshing(self, make_calendar, sample_results):
        factory = FakeCollectorFactory(sample_results)
        cal = make_calendar(factory, fetch_automatically=True, check_interval=0.05)
        stream = cal.stream()

        # the timer's first tick may land before or after subscribing
        snapshot = stream.get(timeout=5)
        if not snapshot:
            snapshot = stream.get(timeout=5)
        assert snapshot == make_snapshot(sample_results)
        assert cal.fetch_automatically

    def test_toggle_fetch_automatically(self, make_calendar, sample_results):
        cal = make_calendar(FakeCollectorFactory(sample_results), check_interval=0.05)
        assert not cal.fetch_automatically
        assert not cal.should_refresh()
        stream = cal.stream()
        assert stream.get(timeout=1) == {}

        cal.fetch_automatically = True

        assert cal.scheduler.enabled
        assert stream.get(timeout=5) == make_snapshot(sample_results)

    def test_is_stale_ignores_automatic_flag(self, make_calendar, clock):
        cal = make_calendar()
        assert cal.is_stale()
        cal.store.set_last_fetch(clock())
        assert not cal.is_stale()
        clock.advance(timedelta(hours=24))
        assert cal.is_stale()

    def test_preview_mode_publishes_canned_data_without_io(self, make_calendar):
        factory = FakeCollectorFactory()
        cal = make_calendar(factory, preview=True)

        assert cal.fetch() is None

        assert factory.calls == []
        assert [e.title for e in cal.events(date.today(), [Category.HOLIDAYS])] == ["Preview event"]
        assert cal.store.load() is None

    def test_context_manager_stops_scheduler(self, tmp_path):
        with PublicCalendar(tmp_path, settings=MemorySettings(), collector_factory=FakeCollectorFactory()) as cal:
            pass
        assert cal.fetch(force=True) is None
