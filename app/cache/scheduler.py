"""
Timer-driven refresh, independent of reads.
"""
import threading
import logging
from typing import Optional

from .manager import RefreshOrchestrator

logger = logging.getLogger("cache.scheduler")


class RefreshScheduler:
    """
    Calls RefreshOrchestrator.refresh_now() on a fixed interval.

    Usage:
        scheduler = RefreshScheduler(orchestrator, interval_seconds=3600)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(self, orchestrator: RefreshOrchestrator, interval_seconds: float = 3600):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._orchestrator = orchestrator
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="news-refresh-scheduler", daemon=True
        )
        self._thread.start()
        logger.info(f"Scheduled news refresh every {self._interval}s")

    def _run(self) -> None:
        # First tick after one full interval; startup refresh is initialize()'s job
        while not self._stop.wait(self._interval):
            self.tick()

    def tick(self) -> None:
        """Run one scheduled refresh."""
        items = self._orchestrator.refresh_now()
        self.runs += 1
        logger.info(f"Scheduled refresh #{self.runs} done ({len(items)} items)")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            logger.info("News refresh scheduler stopped")
