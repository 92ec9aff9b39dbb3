"""
Listening Insights - Exceptions
Errors raised by the fetch layer and the engine, caught by the API layer.
"""

from typing import Optional


class InsightsError(Exception):
    """Base class for every failure surfaced to callers of the engine."""


class UpstreamFetchError(InsightsError):
    """Raised when one of the six listening windows could not be fetched."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class SessionExpiredError(UpstreamFetchError):
    """Raised when Spotify rejects the access token."""

    def __init__(self, message: str = "Spotify session expired. Please log in again."):
        super().__init__(message, status=401)


class MalformedInputError(InsightsError):
    """Raised when a window or record is missing required fields."""


class InsightComputationError(InsightsError):
    """Raised when an analyzer fails; the report is never partially built."""
