"""
Error handling module for the comparable-sales engine.

Provides the search error taxonomy and the handler that turns strategy
failures into logged "no data" outcomes.
"""

from .error_handler import ErrorHandler
from .errors import MalformedResponse, NetworkFailure, SearchError

__all__ = ['ErrorHandler', 'SearchError', 'NetworkFailure', 'MalformedResponse']
