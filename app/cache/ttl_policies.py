"""
Staleness policy: when a cached snapshot must be refetched.
"""
from datetime import datetime, timedelta
from typing import Optional, Union

from config.settings import PROFILE_TTL_SECONDS

from .core import ensure_utc


TTLLike = Union[int, float, timedelta]


def _as_timedelta(ttl: TTLLike) -> timedelta:
    if isinstance(ttl, timedelta):
        return ttl
    return timedelta(seconds=ttl)


def get_ttl_for_backend(backend: str, override_seconds: Optional[int] = None) -> int:
    """
    Freshness window for a deployment profile.

    Args:
        backend: "memory", "redis" or "mongo"
        override_seconds: Explicit TTL that wins over the profile default

    Returns:
        TTL in seconds
    """
    if override_seconds and override_seconds > 0:
        return override_seconds
    return PROFILE_TTL_SECONDS.get(backend, PROFILE_TTL_SECONDS["memory"])


def is_stale(
    last_refreshed_at: Optional[datetime],
    ttl: TTLLike,
    now: datetime,
    item_count: Optional[int] = None,
) -> bool:
    """
    Decide whether a snapshot has to be refetched.

    Args:
        last_refreshed_at: When the snapshot was fetched, None if never
        ttl: Freshness window (seconds or timedelta)
        now: Current time
        item_count: Number of cached items, if known. Zero counts as stale.

    Returns:
        True if a refresh is needed
    """
    if last_refreshed_at is None:
        return True
    if item_count == 0:
        return True
    return cache_age(last_refreshed_at, now) >= _as_timedelta(ttl)


def cache_age(last_refreshed_at: datetime, now: datetime) -> timedelta:
    """Time elapsed since the last refresh."""
    return ensure_utc(now) - ensure_utc(last_refreshed_at)


def cache_age_minutes(last_refreshed_at: Optional[datetime], now: datetime) -> Optional[int]:
    """Cache age rounded to whole minutes, for diagnostics only."""
    if last_refreshed_at is None:
        return None
    return round(cache_age(last_refreshed_at, now).total_seconds() / 60)
