"""
Status reporter tests
"""
from app.cache.backends import MongoStore
from app.cache.manager import RefreshOrchestrator
from app.cache.status import StatusReporter
from tests.conftest import FakeMongoClient


def test_status_without_data(fetcher, clock):
    reporter = StatusReporter(RefreshOrchestrator(fetcher=fetcher, now_fn=clock))

    status = reporter.status()

    assert status.has_data is False
    assert status.last_refreshed_at is None
    assert status.item_count == 0
    assert status.cache_age_minutes is None
    assert status.needs_update is True
    assert fetcher.calls == 0


def test_status_after_refresh_tracks_age(fetcher, clock):
    orchestrator = RefreshOrchestrator(fetcher=fetcher, ttl_seconds=3600, now_fn=clock)
    reporter = StatusReporter(orchestrator)
    orchestrator.refresh_now()
    refreshed_at = clock()

    clock.advance(minutes=25)
    status = reporter.status()
    assert status.has_data is True
    assert status.item_count == 50
    assert status.last_refreshed_at == refreshed_at
    assert status.cache_age_minutes == 25
    assert status.needs_update is False

    clock.advance(minutes=35)
    assert reporter.status().needs_update is True
    assert fetcher.calls == 1


def test_status_reports_backend_health(fetcher, clock):
    store = MongoStore("mongodb://localhost", client=FakeMongoClient(reachable=False))
    store.open(background=False)
    reporter = StatusReporter(RefreshOrchestrator(fetcher=fetcher, store=store, now_fn=clock))

    status = reporter.status()

    assert status.backend == "mongo"
    assert status.backend_available is False
