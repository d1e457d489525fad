"""
Naver news search client.

One request per category, issued in parallel, merged in category order.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from app.cache.core import Snapshot, utcnow
from app.exceptions import MissingCredentials, UpstreamUnavailable

logger = logging.getLogger("news_client")

NEWS_API_URL = "https://openapi.naver.com/v1/search/news.json"

# Fixed query categories; their order is the order of the merged result
NEWS_CATEGORIES = ("한국", "속보", "특보", "사회", "IT")

DEFAULT_DISPLAY = 10
DEFAULT_TIMEOUT = 5.0


class NewsClient:
    """
    Fetches one merged snapshot across all news categories.

    Abort-on-first-failure: if any category request fails, the whole fetch
    fails and nothing is returned for the others.
    """

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        base_url: str = NEWS_API_URL,
        display: int = DEFAULT_DISPLAY,
        start: int = 1,
        sort: str = "date",
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._base_url = base_url
        self._display = display
        self._start = start
        self._sort = sort
        self._timeout = timeout
        self._session = session or requests.Session()
        self._now = now_fn

    @classmethod
    def from_settings(cls, settings: Any) -> "NewsClient":
        return cls(
            client_id=settings.naver_client_id,
            client_secret=settings.naver_client_secret,
            base_url=settings.news_api_url,
            display=settings.news_display,
            start=settings.news_start,
            sort=settings.news_sort,
            timeout=settings.request_timeout_seconds,
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self._client_id and self._client_secret)

    def _get_headers(self) -> dict:
        """Get API authentication headers."""
        return {
            "X-Naver-Client-Id": self._client_id,
            "X-Naver-Client-Secret": self._client_secret,
        }

    def _fetch_category(self, category: str) -> List[Dict[str, Any]]:
        """
        Search one category.

        Raises:
            UpstreamUnavailable: On timeout, network error, non-2xx or bad JSON
        """
        params = {
            "query": category,
            "display": self._display,
            "start": self._start,
            "sort": self._sort,
        }
        try:
            response = self._session.get(
                self._base_url,
                headers=self._get_headers(),
                params=params,
                timeout=self._timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as e:
            raise UpstreamUnavailable(
                f"Timed out after {self._timeout}s fetching '{category}'", category
            ) from e
        except requests.RequestException as e:
            raise UpstreamUnavailable(f"Request for '{category}' failed: {e}", category) from e
        except ValueError as e:
            raise UpstreamUnavailable(f"Malformed JSON for '{category}': {e}", category) from e

        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise UpstreamUnavailable(f"Response for '{category}' has no items array", category)
        if not all(isinstance(item, dict) for item in items):
            raise UpstreamUnavailable(f"Response for '{category}' has non-object items", category)
        return items

    def fetch(self, categories: Sequence[str] = NEWS_CATEGORIES) -> Snapshot:
        """
        Fetch every category in parallel and merge the results.

        Args:
            categories: Queries to run; result order follows this sequence

        Returns:
            Snapshot stamped with the fetch completion time

        Raises:
            MissingCredentials: If the client id or secret is not configured
            UpstreamUnavailable: If any single category request fails
        """
        if not self.has_credentials:
            logger.error("Naver API credentials are not configured")
            raise MissingCredentials("NAVER_CLIENT_ID and NAVER_CLIENT_SECRET are required")

        categories = list(categories)
        if not categories:
            return Snapshot.create([], self._now())

        logger.info(f"Fetching {len(categories)} news categories in parallel")
        results: Dict[int, List[Dict[str, Any]]] = {}

        executor = ThreadPoolExecutor(
            max_workers=len(categories),
            thread_name_prefix="news-fetch",
        )
        try:
            futures = {
                executor.submit(self._fetch_category, category): index
                for index, category in enumerate(categories)
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        except UpstreamUnavailable as e:
            logger.error(f"News fetch aborted: {e}")
            raise
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        items: List[Dict[str, Any]] = []
        for index in range(len(categories)):
            items.extend(results[index])

        snapshot = Snapshot.create(items, self._now())
        logger.info(
            f"Fetched {snapshot.item_count} news items "
            f"({snapshot.refreshed_at.isoformat()})"
        )
        return snapshot

    def close(self) -> None:
        self._session.close()
