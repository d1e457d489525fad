"""
Read-only diagnostics for the news cache.
"""
from .core import CacheStatus
from .manager import RefreshOrchestrator
from .ttl_policies import cache_age_minutes, is_stale


class StatusReporter:
    """Describes the cache state without fetching or writing anything."""

    def __init__(self, orchestrator: RefreshOrchestrator):
        self._orchestrator = orchestrator

    def status(self) -> CacheStatus:
        orchestrator = self._orchestrator
        store = orchestrator.store
        now = orchestrator.now()
        snapshot = orchestrator.current_snapshot()

        if snapshot is None:
            return CacheStatus(
                has_data=False,
                last_refreshed_at=None,
                item_count=0,
                cache_age_minutes=None,
                needs_update=True,
                backend=store.name,
                backend_available=store.is_available(),
                ttl_seconds=orchestrator.ttl_seconds,
                checked_at=now,
            )

        return CacheStatus(
            has_data=not snapshot.is_empty,
            last_refreshed_at=snapshot.refreshed_at,
            item_count=snapshot.item_count,
            cache_age_minutes=cache_age_minutes(snapshot.refreshed_at, now),
            needs_update=is_stale(
                snapshot.refreshed_at,
                orchestrator.ttl_seconds,
                now,
                item_count=snapshot.item_count,
            ),
            backend=store.name,
            backend_available=store.is_available(),
            ttl_seconds=orchestrator.ttl_seconds,
            checked_at=now,
        )
