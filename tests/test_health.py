"""
HTTP surface tests: health, news read, forced refresh and status
"""
import pytest
from fastapi.testclient import TestClient

from app.cache import MemoryStore, RefreshOrchestrator, StatusReporter
from app.main import NewsServices, app, create_app
from app.news_client import NewsClient
from config.settings import Settings

client = TestClient(app)


@pytest.fixture
def services(fetcher, clock):
    orchestrator = RefreshOrchestrator(fetcher=fetcher, store=MemoryStore(), now_fn=clock)
    return NewsServices(
        client=NewsClient("id", "secret"),
        store=orchestrator.store,
        orchestrator=orchestrator,
        reporter=StatusReporter(orchestrator),
    )


@pytest.fixture
def api(services):
    with TestClient(create_app(services)) as test_client:
        yield test_client


def test_health_endpoint_returns_200():
    """Test that /health returns HTTP 200"""
    response = client.get("/health")
    assert response.status_code == 200


def test_health_endpoint_returns_ok_status():
    """Test that /health returns status: ok"""
    response = client.get("/health")
    data = response.json()
    assert data["status"] == "ok"
    assert "backend" in data


def test_version_endpoint():
    response = client.get("/version")
    assert response.json()["name"] == "News Cache Proxy"


def test_news_endpoint_serves_cached_items(api, fetcher):
    # Eager refresh is off in these services, so the first read fetches
    first = api.get("/news")
    second = api.get("/news")

    assert first.status_code == 200
    assert len(first.json()) == 50
    assert second.json() == first.json()
    assert fetcher.calls == 1


def test_news_endpoint_never_errors(api, fetcher):
    fetcher.fail = True

    response = api.get("/news")

    assert response.status_code == 200
    assert response.json() == []


def test_refresh_endpoint_forces_fetch(api, fetcher):
    api.get("/news")
    response = api.get("/news/refresh")

    assert response.status_code == 200
    assert len(response.json()) == 50
    assert fetcher.calls == 2


def test_status_endpoint_uses_camel_case_and_does_not_fetch(api, fetcher, clock):
    empty = api.get("/news/status").json()
    assert empty["hasData"] is False
    assert empty["needsUpdate"] is True
    assert fetcher.calls == 0

    api.get("/news")
    clock.advance(minutes=12)
    status = api.get("/news/status").json()

    assert status["hasData"] is True
    assert status["itemCount"] == 50
    assert status["cacheAgeMinutes"] == 12
    assert status["needsUpdate"] is False
    assert status["backend"] == "memory"
    assert fetcher.calls == 1


def test_cache_stats_endpoint(api):
    api.get("/news")
    stats = api.get("/cache/stats").json()

    assert stats["misses"] == 1
    assert stats["backend"] == "memory"


def test_cors_origins_follow_the_given_config(services):
    config = Settings(_env_file=None, cors_origins=["https://example.org"])
    preflight = {"Access-Control-Request-Method": "GET"}

    with TestClient(create_app(services, config=config)) as test_client:
        allowed = test_client.options(
            "/news", headers={"Origin": "https://example.org", **preflight}
        )
        default = test_client.options(
            "/news", headers={"Origin": "http://localhost:5173", **preflight}
        )

    assert allowed.headers["access-control-allow-origin"] == "https://example.org"
    assert "access-control-allow-origin" not in default.headers
