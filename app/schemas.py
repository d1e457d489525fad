"""
Pydantic schemas for API responses
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


# ===== CACHE STATUS SCHEMAS =====

class CacheStatusResponse(BaseModel):
    """Diagnostic view of the news cache (camelCase on the wire)"""
    has_data: bool
    last_refreshed_at: Optional[datetime] = None
    item_count: int
    cache_age_minutes: Optional[int] = None
    needs_update: bool
    backend: str
    backend_available: bool
    ttl_seconds: int
    checked_at: datetime

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


# ===== SERVICE SCHEMAS =====

class HealthResponse(BaseModel):
    """Liveness check"""
    status: str
    backend: str
    backend_available: bool


class CacheStatsResponse(BaseModel):
    """Orchestrator counters"""
    hits_fresh: int
    misses: int
    refreshes: int
    refresh_failures: int
    save_failures: int
    hit_rate_percent: float
    backend: str
    backend_available: bool
    ttl_seconds: int
    coalescer: Dict[str, Any]
