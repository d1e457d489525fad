"""
Refresh orchestration for the cached news snapshot.
"""
import threading
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from app.exceptions import BackendConnectTimeout, BackendError, FetchError

from .backends import BackendStore, MemoryStore, wait_until_available
from .coalescer import RefreshCoalescer
from .core import Snapshot, utcnow
from .ttl_policies import cache_age_minutes, is_stale

logger = logging.getLogger("cache.manager")


def _is_newer(current: Optional[Snapshot], candidate: Optional[Snapshot]) -> bool:
    """True if current was refreshed strictly after candidate."""
    if current is None or candidate is None:
        return False
    return current.refreshed_at > candidate.refreshed_at


class RefreshOrchestrator:
    """
    Serves the news snapshot with bounded staleness:
    - Fresh snapshots are returned without any upstream call
    - Stale, missing or empty snapshots trigger a refresh
    - Concurrent refreshes share one upstream fetch
    - Backend failures degrade caching but never fail a read

    The last snapshot seen by this process is also kept in memory, so a
    backend outage still serves the most recent data.
    """

    def __init__(
        self,
        fetcher: Any,
        store: Optional[BackendStore] = None,
        ttl_seconds: int = 3600,
        connect_timeout: float = 10.0,
        on_demand_refresh: bool = True,
        eager_refresh: bool = False,
        refresh_timeout: float = 30.0,
        now_fn: Callable[[], datetime] = utcnow,
        sleep_fn: Optional[Callable[[float], None]] = None,
    ):
        """
        Args:
            fetcher: Object with fetch() -> Snapshot (see NewsClient)
            store: Persistence backend; MemoryStore when omitted
            ttl_seconds: Freshness window
            connect_timeout: Max seconds to wait for the backend to come up
            on_demand_refresh: Reads may trigger a refresh; when False only
                the scheduler or an explicit refresh writes
            eager_refresh: Refresh once during initialize()
            refresh_timeout: Max seconds a coalesced caller waits on a running refresh
            now_fn: Clock, injectable for tests
            sleep_fn: Sleep used while waiting for the backend
        """
        self._fetcher = fetcher
        self._store = store if store is not None else MemoryStore()
        self._ttl_seconds = ttl_seconds
        self._connect_timeout = connect_timeout
        self._on_demand_refresh = on_demand_refresh
        self._eager_refresh = eager_refresh
        self._now = now_fn
        self._sleep_kwargs = {"sleep": sleep_fn} if sleep_fn else {}
        self._coalescer: RefreshCoalescer[Snapshot] = RefreshCoalescer(timeout=refresh_timeout)

        # Last known snapshot, swapped as one immutable value
        self._last_snapshot: Optional[Snapshot] = None
        self._state_lock = threading.Lock()
        self._backend_waited = False

        self._stats = {
            "hits_fresh": 0,
            "misses": 0,
            "refreshes": 0,
            "refresh_failures": 0,
            "save_failures": 0,
        }
        self._stats_lock = threading.Lock()

    @property
    def store(self) -> BackendStore:
        return self._store

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def now(self) -> datetime:
        return self._now()

    def _count(self, name: str) -> None:
        with self._stats_lock:
            self._stats[name] += 1

    def _remember(self, snapshot: Snapshot) -> None:
        """Keep the snapshot in memory unless a newer one is already held."""
        with self._state_lock:
            if _is_newer(self._last_snapshot, snapshot):
                return
            self._last_snapshot = snapshot

    def _remembered(self) -> Optional[Snapshot]:
        with self._state_lock:
            return self._last_snapshot

    def wait_for_backend(self) -> bool:
        """
        Wait, up to the connect timeout, for the backend to become reachable.

        Only the first caller pays the wait; once it has elapsed later reads
        go straight to load(), which fails softly.
        """
        if self._store.is_available():
            self._backend_waited = True
            return True
        if self._backend_waited:
            return False
        ready = wait_until_available(self._store, self._connect_timeout, **self._sleep_kwargs)
        self._backend_waited = True
        if not ready:
            error = BackendConnectTimeout(
                f"{self._store.name} backend not reachable after {self._connect_timeout}s"
            )
            logger.warning(f"{error}; continuing without it")
        return ready

    def _load(self) -> Tuple[Optional[Snapshot], bool]:
        """
        Newest snapshot plus whether it came from the backend (True) or
        process memory.

        A stored copy older than the remembered one (left behind by a failed
        save) never replaces it.
        """
        stored = self._store.load()
        remembered = self._remembered()
        if stored is not None and not _is_newer(remembered, stored):
            self._remember(stored)
            return stored, True
        return remembered, False

    def current_snapshot(self) -> Optional[Snapshot]:
        """
        Best snapshot available without any upstream call.

        Whichever of the backend's copy and the in-process one is newer.
        """
        return self._load()[0]

    def is_fresh(self, snapshot: Optional[Snapshot], from_store: bool = False) -> bool:
        """Apply the staleness policy to a loaded snapshot."""
        if snapshot is None or snapshot.is_empty:
            return False
        if from_store and self._store.ttl_native:
            # Presence alone means fresh; the backend expired anything older
            return True
        return not is_stale(
            snapshot.refreshed_at,
            self._ttl_seconds,
            self._now(),
            item_count=snapshot.item_count,
        )

    def read(self) -> List[Dict[str, Any]]:
        """
        Return the current news items, refreshing first if they are stale.

        Never raises. Worst case is an empty list.
        """
        self.wait_for_backend()
        snapshot, from_store = self._load()

        if self.is_fresh(snapshot, from_store):
            age = cache_age_minutes(snapshot.refreshed_at, self._now())
            logger.info(f"CACHE HIT (fresh): {snapshot.item_count} items, {age} min old")
            self._count("hits_fresh")
            return snapshot.to_list()

        if not self._on_demand_refresh:
            logger.debug("On-demand refresh disabled, serving stored snapshot as-is")
            return snapshot.to_list() if snapshot else []

        if snapshot is None:
            logger.info("CACHE MISS: no snapshot yet")
        else:
            age = cache_age_minutes(snapshot.refreshed_at, self._now())
            logger.info(f"CACHE EXPIRED: {age} min old, {snapshot.item_count} items")
        self._count("misses")
        return self.refresh_now()

    def _refresh(self) -> Snapshot:
        snapshot = self._fetcher.fetch()
        self._remember(snapshot)
        try:
            self._store.save(snapshot)
        except BackendError as e:
            self._count("save_failures")
            logger.warning(f"Snapshot not persisted to {self._store.name}: {e}")
        return snapshot

    def refresh_now(self) -> List[Dict[str, Any]]:
        """
        Fetch from upstream unconditionally and persist the result.

        On failure the previous snapshot (or an empty list) is returned and
        the store is left untouched. Never raises.
        """
        try:
            snapshot = self._coalescer.run(self._refresh)
            items = snapshot.to_list()
        except (FetchError, TimeoutError) as e:
            logger.error(f"News refresh failed: {e}")
            return self._previous_items()
        except Exception:
            logger.exception("Unexpected error during news refresh")
            return self._previous_items()

        self._count("refreshes")
        return items

    def _previous_items(self) -> List[Dict[str, Any]]:
        self._count("refresh_failures")
        previous = self.current_snapshot()
        if previous is None:
            return []
        logger.info(f"Serving previous snapshot ({previous.item_count} items)")
        return previous.to_list()

    def initialize(self) -> None:
        """
        Startup hook for long-lived processes.

        Waits for the backend and, when eager refresh is enabled, performs
        the first refresh so the first reader does not pay for it.
        """
        self.wait_for_backend()
        if self._eager_refresh:
            logger.info("Performing initial news refresh")
            self.refresh_now()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._stats_lock:
            stats = dict(self._stats)
        total = stats["hits_fresh"] + stats["misses"]
        stats["hit_rate_percent"] = round(stats["hits_fresh"] / total * 100, 1) if total else 0
        stats["backend"] = self._store.name
        stats["backend_available"] = self._store.is_available()
        stats["ttl_seconds"] = self._ttl_seconds
        stats["coalescer"] = self._coalescer.get_stats()
        return stats
