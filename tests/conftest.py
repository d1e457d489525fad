"""
Shared fixtures: a controllable clock, a scripted fetcher, and in-memory
stand-ins for the Redis and MongoDB clients the stores talk to.
"""
import threading
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
import redis
from pymongo.errors import ServerSelectionTimeoutError

from app.cache.core import Snapshot
from app.exceptions import UpstreamUnavailable
from app.news_client import NEWS_CATEGORIES


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeFetcher:
    """Returns scripted snapshots and counts fetch() calls."""

    def __init__(self, clock: FakeClock, items: Optional[List[Dict[str, Any]]] = None):
        self.clock = clock
        self.items = items if items is not None else make_items(NEWS_CATEGORIES, 10)
        self.calls = 0
        self.fail = False

    def fetch(self) -> Snapshot:
        self.calls += 1
        if self.fail:
            raise UpstreamUnavailable("upstream down", "속보")
        return Snapshot.create(self.items, self.clock())


class FakeRedis:
    """Subset of redis.Redis used by RedisStore."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.expiry: Dict[str, int] = {}
        self.down = False
        self.closed = False

    def _check(self):
        if self.down:
            raise redis.ConnectionError("connection refused")

    def ping(self):
        self._check()
        return True

    def get(self, key):
        self._check()
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value
        self.expiry[key] = ex
        return True

    def expire_now(self, key):
        self.data.pop(key, None)

    def close(self):
        self.closed = True


class _Cursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, field, direction):
        return _Cursor(sorted(self._docs, key=lambda d: d.get(field), reverse=direction < 0))

    def __iter__(self):
        return iter(self._docs)


class FakeCollection:
    """Subset of pymongo Collection used by MongoStore."""

    def __init__(self):
        self.docs: List[Dict[str, Any]] = []
        self.delete_calls = 0

    @staticmethod
    def _matches(doc, query):
        for key, condition in query.items():
            if isinstance(condition, dict) and "$exists" in condition:
                if (key in doc) != condition["$exists"]:
                    return False
            elif doc.get(key) != condition:
                return False
        return True

    def delete_many(self, query):
        self.delete_calls += 1
        kept = [d for d in self.docs if not self._matches(d, query)]
        deleted = len(self.docs) - len(kept)
        self.docs = kept
        return SimpleNamespace(deleted_count=deleted)

    def insert_many(self, docs):
        for doc in docs:
            self.docs.append({"_id": len(self.docs) + 1, **doc})
        return SimpleNamespace(inserted_ids=[d["_id"] for d in self.docs[-len(docs):]])

    def find_one(self, query, sort=None):
        docs = [d for d in self.docs if self._matches(d, query)]
        if sort:
            field, direction = sort[0]
            docs = sorted(docs, key=lambda d: d[field], reverse=direction < 0)
        return dict(docs[0]) if docs else None

    def find(self, query, projection=None):
        docs = []
        for doc in self.docs:
            if self._matches(doc, query):
                doc = dict(doc)
                for key, include in (projection or {}).items():
                    if not include:
                        doc.pop(key, None)
                docs.append(doc)
        return _Cursor(docs)


class FakeMongoClient:
    """Subset of pymongo MongoClient used by MongoStore."""

    def __init__(self, reachable: bool = True):
        self.reachable = reachable
        self.collection = FakeCollection()
        self.closed = False
        self.admin = MagicMock()
        self.admin.command.side_effect = self._ping

    def _ping(self, name):
        if not self.reachable:
            raise ServerSelectionTimeoutError("no servers found")
        return {"ok": 1}

    def __getitem__(self, name):
        return {"news": self.collection}

    def close(self):
        self.closed = True


def make_items(categories, per_category: int) -> List[Dict[str, Any]]:
    """Naver-shaped items tagged with their category and position."""
    return [
        {
            "title": f"{category} headline {i}",
            "originallink": f"https://example.com/{category}/{i}",
            "link": f"https://n.news.naver.com/{category}/{i}",
            "description": f"{category} story {i}",
            "pubDate": "Wed, 01 May 2024 09:00:00 +0900",
        }
        for category in categories
        for i in range(per_category)
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fetcher(clock):
    return FakeFetcher(clock)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def fake_mongo():
    return FakeMongoClient()


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested waits."""
    waits: List[float] = []
    lock = threading.Lock()

    def sleep(seconds):
        with lock:
            waits.append(seconds)

    sleep.waits = waits
    return sleep
