"""
Pluggable persistence for the news snapshot.

Three variants share one interface:

- MemoryStore: a lock-guarded slot in process memory
- RedisStore: key-value cache with native expiry (SET ... EX ttl)
- MongoStore: document store without expiry, cleared before every rewrite

Reads never raise. A backend that is down, slow or holding garbage simply
reports "no snapshot", and the orchestrator falls back to the upstream API.
"""
import json
import logging
import math
import re
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import redis
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError
from pymongo.server_api import ServerApi

from app.exceptions import BackendUnavailable, BackendWriteFailed

from .core import Snapshot, ensure_utc

logger = logging.getLogger("cache.backends")

# Fields the document store attaches to every stored item
REFRESHED_AT_FIELD = "refreshed_at"
SEQ_FIELD = "_seq"


def mask_uri(uri: Optional[str]) -> str:
    """Hide credentials in a connection string before logging it."""
    if not uri:
        return ""
    return re.sub(r"//[^@/]*@", "//***@", uri)


class BackendStore(ABC):
    """
    Persistence interface used by the refresh orchestrator.

    Lifecycle (open/close) belongs to the surrounding process; the
    orchestrator only calls load, save and is_available.
    """

    name = "base"
    # True when the backend expires records on its own
    ttl_native = False

    def open(self) -> None:
        """Connect to the backend. Must not raise on connection failure."""

    def close(self) -> None:
        """Release the backend connection."""

    @abstractmethod
    def load(self) -> Optional[Snapshot]:
        """Latest snapshot, or None if absent or unreadable. Never raises."""

    @abstractmethod
    def save(self, snapshot: Snapshot) -> None:
        """
        Persist a snapshot, replacing the previous one.

        Raises:
            BackendUnavailable: If the backend is not connected
            BackendWriteFailed: If the snapshot could not be written
        """

    def is_available(self) -> bool:
        return True


class MemoryStore(BackendStore):
    """Snapshot held in process memory only. Lost on restart."""

    name = "memory"

    def __init__(self):
        self._snapshot: Optional[Snapshot] = None
        self._lock = threading.Lock()

    def load(self) -> Optional[Snapshot]:
        with self._lock:
            return self._snapshot

    def save(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshot = snapshot


class RedisStore(BackendStore):
    """
    Snapshot stored as one JSON string with a native expiry.

    An expired key reads back as absent, so the read path never needs to
    look at timestamps.
    """

    name = "redis"
    ttl_native = True

    def __init__(
        self,
        url: Optional[str],
        ttl_seconds: int,
        key: str = "news:snapshot",
        client: Optional[Any] = None,
        socket_timeout: float = 2.0,
    ):
        self._url = url
        self._key = key
        self._ttl_seconds = ttl_seconds
        self._socket_timeout = socket_timeout
        self._client = client
        self._available = False

    def open(self) -> None:
        try:
            if self._client is None:
                self._client = redis.Redis.from_url(
                    self._url,
                    decode_responses=True,
                    socket_timeout=self._socket_timeout,
                    socket_connect_timeout=self._socket_timeout,
                )
            self._client.ping()
            self._available = True
            logger.info(f"Redis connected: {mask_uri(self._url)}")
        except (redis.RedisError, ValueError) as e:
            self._available = False
            logger.warning(f"Redis unavailable, caching degrades to memory: {e}")

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            except redis.RedisError as e:
                logger.warning(f"Error closing Redis connection: {e}")
            self._available = False
            logger.info("Redis connection closed")

    def is_available(self) -> bool:
        return self._client is not None and self._available

    def load(self) -> Optional[Snapshot]:
        if self._client is None:
            return None
        try:
            raw = self._client.get(self._key)
            self._available = True
        except redis.RedisError as e:
            self._available = False
            logger.warning(f"Redis read failed: {e}")
            return None
        if raw is None:
            return None
        try:
            return Snapshot.from_dict(json.loads(raw))
        except (TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed Redis payload at {self._key}: {e}")
            return None

    def save(self, snapshot: Snapshot) -> None:
        if self._client is None:
            raise BackendUnavailable("Redis client is not open")
        payload = json.dumps(snapshot.to_dict(), ensure_ascii=False)
        try:
            self._client.set(self._key, payload, ex=self._ttl_seconds)
            self._available = True
        except redis.RedisError as e:
            self._available = False
            raise BackendWriteFailed(f"Redis write failed: {e}") from e


class MongoStore(BackendStore):
    """
    Snapshot stored as one document per item, each stamped with the
    refresh time.

    MongoDB has no expiry here, so it returns arbitrarily old data; the
    orchestrator applies the staleness policy to the stored timestamp.
    """

    name = "mongo"

    def __init__(
        self,
        uri: Optional[str],
        database: str = "news-db",
        collection: str = "news",
        client: Optional[Any] = None,
        server_selection_timeout: float = 5.0,
    ):
        self._uri = uri
        self._database_name = database
        self._collection_name = collection
        self._server_selection_timeout = server_selection_timeout
        self._client = client
        self._collection = None
        self._connected = threading.Event()
        self._connect_thread: Optional[threading.Thread] = None

    def open(self, background: bool = True) -> None:
        """
        Start connecting.

        Args:
            background: Connect on a daemon thread so startup is not blocked;
                callers use wait_until_available() to bound their wait.
        """
        logger.info(f"MongoDB connecting: {mask_uri(self._uri)} (database: {self._database_name})")
        if self._client is None:
            try:
                self._client = MongoClient(
                    self._uri,
                    server_api=ServerApi("1", strict=True, deprecation_errors=True),
                    serverSelectionTimeoutMS=int(self._server_selection_timeout * 1000),
                )
            except PyMongoError as e:
                logger.error(f"Invalid MongoDB configuration: {e}")
                return
        if background:
            self._connect_thread = threading.Thread(
                target=self._connect, name="mongo-connect", daemon=True
            )
            self._connect_thread.start()
        else:
            self._connect()

    def _connect(self) -> None:
        try:
            self._client.admin.command("ping")
            self._collection = self._client[self._database_name][self._collection_name]
            self._connected.set()
            logger.info(f"MongoDB connected, using database {self._database_name}")
        except PyMongoError as e:
            self._connected.clear()
            logger.error(f"MongoDB connection failed: {e}")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._connected.clear()
            logger.info("MongoDB connection closed")

    def is_available(self) -> bool:
        return self._connected.is_set()

    def load(self) -> Optional[Snapshot]:
        if not self.is_available():
            return None
        try:
            newest = self._collection.find_one(
                {REFRESHED_AT_FIELD: {"$exists": True}},
                sort=[(REFRESHED_AT_FIELD, DESCENDING)],
            )
            if newest is None:
                return None
            refreshed_at = newest[REFRESHED_AT_FIELD]
            docs = list(
                self._collection.find(
                    {REFRESHED_AT_FIELD: refreshed_at}, {"_id": 0}
                ).sort(SEQ_FIELD, ASCENDING)
            )
            items = []
            for doc in docs:
                item = dict(doc)
                item.pop(REFRESHED_AT_FIELD, None)
                item.pop(SEQ_FIELD, None)
                items.append(item)
            return Snapshot.create(items, ensure_utc(refreshed_at))
        except PyMongoError as e:
            logger.warning(f"MongoDB read failed: {e}")
            return None
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Discarding malformed MongoDB documents: {e}")
            return None

    def save(self, snapshot: Snapshot) -> None:
        if not self.is_available():
            raise BackendUnavailable("MongoDB is not connected")
        # Full replace; items have no natural key to upsert on
        docs = [
            {**item, REFRESHED_AT_FIELD: snapshot.refreshed_at, SEQ_FIELD: seq}
            for seq, item in enumerate(snapshot.items)
        ]
        try:
            deleted = self._collection.delete_many({})
            logger.debug(f"Cleared {deleted.deleted_count} stored news documents")
            if docs:
                self._collection.insert_many(docs)
        except PyMongoError as e:
            raise BackendWriteFailed(f"MongoDB write failed: {e}") from e


def wait_until_available(
    store: BackendStore,
    timeout: float,
    interval: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Poll a store until it reports availability or the bound is reached.

    Blocks only the calling thread.

    Returns:
        True if the store became available
    """
    attempts = max(1, math.ceil(timeout / interval))
    for attempt in range(attempts):
        if store.is_available():
            return True
        logger.debug(f"Waiting for {store.name} backend ({attempt + 1}/{attempts})")
        sleep(interval)
    return store.is_available()


def create_store(settings: Any, ttl_seconds: int) -> BackendStore:
    """
    Build the store selected by configuration.

    Missing connection strings degrade to MemoryStore.
    """
    backend = settings.resolved_backend
    if backend == "redis":
        return RedisStore(settings.redis_url, ttl_seconds=ttl_seconds, key=settings.redis_key)
    if backend == "mongo":
        return MongoStore(
            settings.mongodb_uri,
            database=settings.mongodb_database,
            collection=settings.mongodb_collection,
        )
    if settings.cache_backend and settings.cache_backend.lower() != "memory":
        logger.warning(
            f"Cache backend '{settings.cache_backend}' is not configured, using memory"
        )
    return MemoryStore()


__all__ = [
    "BackendStore",
    "MemoryStore",
    "RedisStore",
    "MongoStore",
    "wait_until_available",
    "create_store",
    "mask_uri",
]
