"""
Single-flight refresh.

When several readers observe a stale snapshot at the same time, only one
upstream fetch is made and every caller shares its outcome.
"""
import threading
import time
import logging
from typing import Optional, Callable, TypeVar, Generic
from dataclasses import dataclass, field

logger = logging.getLogger("cache.coalescer")

T = TypeVar("T")


@dataclass
class _Flight(Generic[T]):
    """Tracks the refresh currently in progress."""
    done: threading.Event = field(default_factory=threading.Event)
    result: Optional[T] = None
    error: Optional[BaseException] = None
    started_at: float = field(default_factory=time.monotonic)
    joined: int = 0


class RefreshCoalescer(Generic[T]):
    """
    Runs at most one refresh at a time; late arrivals join the running one.

    Usage:
        coalescer = RefreshCoalescer(timeout=30.0)
        snapshot = coalescer.run(fetch_snapshot)

    Errors raised by the refresh function are re-raised in every caller
    that shared the flight.
    """

    def __init__(self, timeout: float = 30.0):
        """
        Args:
            timeout: Max seconds a joining caller waits for the running refresh
        """
        self._flight: Optional[_Flight[T]] = None
        self._lock = threading.Lock()
        self._timeout = timeout
        self._flights = 0
        self._coalesced = 0

    def run(self, refresh_fn: Callable[[], T]) -> T:
        """
        Start a refresh, or wait for the one already in progress.

        Raises:
            TimeoutError: If the running refresh does not finish in time
            Exception: Any error from refresh_fn
        """
        with self._lock:
            flight = self._flight
            if flight is not None:
                flight.joined += 1
                self._coalesced += 1
                owner = False
                logger.debug(f"Joining in-flight refresh (joined: {flight.joined})")
            else:
                flight = _Flight()
                self._flight = flight
                self._flights += 1
                owner = True

        if owner:
            try:
                flight.result = refresh_fn()
            except Exception as e:
                flight.error = e
            finally:
                with self._lock:
                    self._flight = None
                flight.done.set()
        elif not flight.done.wait(timeout=self._timeout):
            logger.error(f"Timeout waiting for in-flight refresh after {self._timeout}s")
            raise TimeoutError(f"Refresh did not finish within {self._timeout}s")

        if flight.error is not None:
            raise flight.error
        return flight.result

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._flight is not None

    def get_stats(self) -> dict:
        """Get coalescer statistics."""
        with self._lock:
            running = self._flight
            return {
                "in_flight": running is not None,
                "running_for_seconds": (
                    round(time.monotonic() - running.started_at, 1) if running else None
                ),
                "flights": self._flights,
                "coalesced": self._coalesced,
            }
