"""
Exception taxonomy for marketplace searches.

Only failures that skip a strategy are exceptions. Empty searches, thin samples
and protected-term conflicts are ordinary values handled where they occur.
"""

from typing import Optional


class SearchError(Exception):
    """Base class for failures that cost one search strategy."""

    def __init__(self, message: str, query: Optional[str] = None):
        super().__init__(message)
        self.query = query


class NetworkFailure(SearchError):
    """Transport error or non-success HTTP status from the marketplace."""

    def __init__(self, message: str, query: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message, query=query)
        self.status = status


class MalformedResponse(NetworkFailure):
    """Response body that is not the JSON shape the marketplace promises."""
