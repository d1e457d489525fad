"""
News caching module: bounded-staleness snapshot with pluggable backends.
"""
from .core import Snapshot, CacheStatus
from .ttl_policies import (
    get_ttl_for_backend,
    is_stale,
    cache_age,
    cache_age_minutes,
)
from .backends import (
    BackendStore,
    MemoryStore,
    RedisStore,
    MongoStore,
    create_store,
    wait_until_available,
)
from .coalescer import RefreshCoalescer
from .manager import RefreshOrchestrator
from .scheduler import RefreshScheduler
from .status import StatusReporter

__all__ = [
    # Core types
    "Snapshot",
    "CacheStatus",
    # Staleness policy
    "get_ttl_for_backend",
    "is_stale",
    "cache_age",
    "cache_age_minutes",
    # Backends
    "BackendStore",
    "MemoryStore",
    "RedisStore",
    "MongoStore",
    "create_store",
    "wait_until_available",
    # Refresh
    "RefreshCoalescer",
    "RefreshOrchestrator",
    "RefreshScheduler",
    "StatusReporter",
]
