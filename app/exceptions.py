"""
Error taxonomy for the news cache.

None of these escape the refresh orchestrator; they exist so that the
fetcher and the stores can report what went wrong in a form the
orchestrator can log and recover from.
"""
from typing import Optional


class NewsCacheError(Exception):
    """Base class for all news cache errors."""


class FetchError(NewsCacheError):
    """Raised when an upstream fetch cycle cannot produce a snapshot."""


class MissingCredentials(FetchError):
    """Raised when the upstream client id or secret is not configured."""


class UpstreamUnavailable(FetchError):
    """Raised when a category request times out, fails or returns bad JSON."""

    def __init__(self, message: str, category: Optional[str] = None):
        super().__init__(message)
        self.category = category


class BackendError(NewsCacheError):
    """Base class for persistence backend errors."""


class BackendUnavailable(BackendError):
    """Raised when a backend cannot be reached."""


class BackendWriteFailed(BackendError):
    """Raised when a snapshot cannot be persisted."""


class BackendConnectTimeout(BackendError):
    """Raised when a backend did not become reachable within the wait bound."""
