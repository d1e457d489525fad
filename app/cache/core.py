"""
Core cache data structures.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by some drivers) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class Snapshot:
    """
    The merged result of one successful upstream fetch.

    Immutable so that items and refreshed_at are always replaced together.
    """
    items: Tuple[Dict[str, Any], ...]
    refreshed_at: datetime

    @classmethod
    def create(cls, items: List[Dict[str, Any]], refreshed_at: Optional[datetime] = None) -> "Snapshot":
        """
        Raises:
            ValueError: If any item is not a mapping
        """
        if not all(isinstance(item, dict) for item in items):
            raise ValueError("snapshot items must be objects")
        refreshed_at = ensure_utc(refreshed_at) if refreshed_at else utcnow()
        # BSON dates keep milliseconds only
        refreshed_at = refreshed_at.replace(microsecond=refreshed_at.microsecond // 1000 * 1000)
        return cls(items=tuple(items), refreshed_at=refreshed_at)

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_list(self) -> List[Dict[str, Any]]:
        """Items as a fresh list, safe to hand to callers."""
        return [dict(item) for item in self.items]

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form used by the key-value store."""
        return {
            "items": self.to_list(),
            "refreshed_at": self.refreshed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Snapshot":
        """
        Rebuild a snapshot from its serialized form.

        Raises:
            ValueError: If the payload is not a well-formed snapshot
        """
        if not isinstance(payload, dict):
            raise ValueError("snapshot payload must be an object")
        items = payload.get("items")
        refreshed_at = payload.get("refreshed_at")
        if not isinstance(items, list) or not isinstance(refreshed_at, str):
            raise ValueError("snapshot payload is missing items or refreshed_at")
        return cls.create(items, datetime.fromisoformat(refreshed_at))


@dataclass
class CacheStatus:
    """
    Diagnostic view of the cache, returned by the status endpoint.
    """
    has_data: bool
    last_refreshed_at: Optional[datetime]
    item_count: int
    cache_age_minutes: Optional[int]
    needs_update: bool
    backend: str = "memory"
    backend_available: bool = True
    ttl_seconds: int = 0
    checked_at: datetime = field(default_factory=utcnow)
