"""Configuration management using pydantic-settings."""
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings

load_dotenv()


# Default TTL by deployment profile (in seconds)
PROFILE_TTL_SECONDS = {
    "memory": 3600,   # 1 hour, process memory only
    "redis": 1800,    # 30 minutes, key-value backed
    "mongo": 3600,    # 1 hour, document store backed
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Naver Open API credentials
    naver_client_id: Optional[str] = None
    naver_client_secret: Optional[str] = None
    news_api_url: str = "https://openapi.naver.com/v1/search/news.json"

    # Upstream request shape
    news_display: int = 10
    news_start: int = 1
    news_sort: str = "date"
    request_timeout_seconds: float = 5.0

    # Cache backend: "memory", "redis" or "mongo" (inferred when unset)
    cache_backend: Optional[str] = None
    cache_ttl_seconds: Optional[int] = None

    # Redis
    redis_url: Optional[str] = None
    redis_key: str = "news:snapshot"

    # MongoDB
    mongodb_uri: Optional[str] = None
    mongodb_database: str = "news-db"
    mongodb_collection: str = "news"
    backend_connect_timeout_seconds: int = 10

    # Refresh modes
    eager_refresh: bool = True
    on_demand_refresh: bool = True
    scheduled_refresh_seconds: int = 0  # 0 disables the background timer

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3030",
        "http://localhost:5173",
        "https://dsign.zigdding.com",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @field_validator("backend_connect_timeout_seconds")
    @classmethod
    def _clamp_connect_timeout(cls, value: int) -> int:
        # Waits are polled once per second, between 1 and 30 attempts
        return max(1, min(30, value))

    @property
    def resolved_backend(self) -> str:
        """
        Backend actually in use.

        An explicit backend whose connection string is missing degrades to
        memory instead of failing at startup.
        """
        backend = (self.cache_backend or "").lower()
        if not backend:
            if self.mongodb_uri:
                return "mongo"
            if self.redis_url:
                return "redis"
            return "memory"
        if backend == "redis" and not self.redis_url:
            return "memory"
        if backend == "mongo" and not self.mongodb_uri:
            return "memory"
        if backend not in PROFILE_TTL_SECONDS:
            return "memory"
        return backend


settings = Settings()
