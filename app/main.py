"""
News Cache Proxy - Main FastAPI Application
Serves a bounded-staleness snapshot of Naver news search results
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from app.cache import (
    BackendStore,
    RefreshOrchestrator,
    RefreshScheduler,
    StatusReporter,
    create_store,
    get_ttl_for_backend,
)
from app.news_client import NewsClient
from app.schemas import CacheStatsResponse, CacheStatusResponse, HealthResponse
from config.settings import Settings, settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("main")

# Version tracking
APP_VERSION = "v1.0.0"
APP_NAME = "News Cache Proxy"


@dataclass
class NewsServices:
    """Everything the routes need, owned by one application instance."""
    client: NewsClient
    store: BackendStore
    orchestrator: RefreshOrchestrator
    reporter: StatusReporter
    scheduler: Optional[RefreshScheduler] = None


def build_services(config: Settings) -> NewsServices:
    """Wire the fetcher, store and orchestrator from configuration."""
    ttl_seconds = get_ttl_for_backend(config.resolved_backend, config.cache_ttl_seconds)
    client = NewsClient.from_settings(config)
    store = create_store(config, ttl_seconds=ttl_seconds)
    orchestrator = RefreshOrchestrator(
        fetcher=client,
        store=store,
        ttl_seconds=ttl_seconds,
        connect_timeout=config.backend_connect_timeout_seconds,
        on_demand_refresh=config.on_demand_refresh,
        eager_refresh=config.eager_refresh,
    )
    scheduler = None
    if config.scheduled_refresh_seconds > 0:
        scheduler = RefreshScheduler(orchestrator, config.scheduled_refresh_seconds)
    logger.info(
        f"News cache configured: backend={store.name}, ttl={ttl_seconds}s, "
        f"on_demand={config.on_demand_refresh}, eager={config.eager_refresh}, "
        f"scheduled={config.scheduled_refresh_seconds or 'off'}"
    )
    return NewsServices(
        client=client,
        store=store,
        orchestrator=orchestrator,
        reporter=StatusReporter(orchestrator),
        scheduler=scheduler,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the backend, warm the cache, start the timer; undo on shutdown."""
    services: NewsServices = app.state.news
    await run_in_threadpool(services.store.open)
    await run_in_threadpool(services.orchestrator.initialize)
    if services.scheduler is not None:
        services.scheduler.start()
    yield
    if services.scheduler is not None:
        services.scheduler.stop()
    await run_in_threadpool(services.store.close)
    services.client.close()


def create_app(
    services: Optional[NewsServices] = None,
    config: Settings = settings,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Pre-built services (tests); built from config when omitted
        config: Settings for services and CORS; defaults to the environment
    """
    app = FastAPI(
        title=APP_NAME,
        description="Cached multi-category news search",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.news = services or build_services(config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.get("/health", response_model=HealthResponse)
    def health_check(request: Request):
        """Health check endpoint."""
        store = request.app.state.news.store
        return HealthResponse(
            status="ok",
            backend=store.name,
            backend_available=store.is_available(),
        )

    @app.get("/version")
    def version_info():
        """Version information endpoint."""
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "full": f"{APP_NAME} {APP_VERSION}",
        }

    @app.get("/news")
    def get_news(request: Request) -> List[Dict[str, Any]]:
        """Current news items, refreshed first if the cache is stale."""
        return request.app.state.news.orchestrator.read()

    @app.get("/news/refresh")
    def refresh_news(request: Request) -> List[Dict[str, Any]]:
        """Force an upstream refresh and return its result."""
        logger.info("Manual news refresh requested")
        return request.app.state.news.orchestrator.refresh_now()

    @app.get("/news/status", response_model=CacheStatusResponse)
    def news_status(request: Request):
        """Cache diagnostics; never triggers a refresh."""
        status = request.app.state.news.reporter.status()
        return CacheStatusResponse.model_validate(status)

    @app.get("/cache/stats", response_model=CacheStatsResponse)
    def cache_stats(request: Request):
        """Get cache statistics."""
        return request.app.state.news.orchestrator.get_stats()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=3000)
